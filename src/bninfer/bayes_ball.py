"""
Structural independence tests with the Bayes-Ball algorithm.

The ball starts at the query's start variable and travels the undirected skeleton of the
network, children first and then parents. Where it may go next depends only on the
variable it is at and on the direction it entered from:

- an unobserved variable entered from a parent passes the ball on to its children;
- an unobserved variable entered from a child passes it to its parents and children;
- an observed variable entered from a parent bounces it back up to its parents;
- an observed variable entered from a child stops it.

Each (variable, entry direction) slot is therefore explored at most once, which bounds the
search by the number of edges. Bouncing off an observed descendant of a collider comes
back up through the collider on its other slot, so the answers agree with d-separation.
The two variables are dependent as soon as the ball reaches the end variable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple, Union

from bninfer.errors import BayesNetError, QueryFailure, SearchBudgetExceededError
from bninfer.network import BayesianNetwork
from bninfer.query import IndependenceQuery

logger = logging.getLogger(__name__)

# (variable name, entered from a child edge?)
Slot = Tuple[str, bool]

DEFAULT_MAX_STEPS = 1_000_000


@dataclass(frozen=True)
class IndependenceResult:
    query: IndependenceQuery
    independent: bool

    ok = True

    def format(self) -> str:
        return "yes" if self.independent else "no"


class BayesBallEngine:
    """Answers one IndependenceQuery against a network.

    Args:
        network: The shared network (only read)
        query: Start and end variables plus the observed variables
        max_steps: Upper bound on traversal steps before giving up
    """

    def __init__(
        self,
        network: BayesianNetwork,
        query: IndependenceQuery,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        self.network = network
        self.query = query
        self.max_steps = max_steps

    def run(self) -> IndependenceResult:
        """Search for an active trail between the start and end variables.

        Raises:
            VariableReferenceError: If the query mentions an unknown variable
            SearchBudgetExceededError: If the search takes more than ``max_steps`` steps
        """
        self.query.validate(self.network)
        start, end = self.query.start, self.query.end
        logger.debug(f"Running Bayes-Ball for {self.query}")

        if start == end:
            return IndependenceResult(self.query, independent=False)

        evidence = self.query.evidence_names
        visited: Set[Slot] = set()
        came_from: Dict[Slot, Optional[Slot]] = {}
        # Each frame: (slot being explored, its remaining moves); the start has no slot
        frames: List[Tuple[Optional[Slot], Iterator[Slot]]] = [(None, self._neighbours(start))]
        steps = 0

        while frames:
            slot, moves = frames[-1]
            step = next(moves, None)
            if step is None:
                frames.pop()
                continue

            steps += 1
            if steps > self.max_steps:
                raise SearchBudgetExceededError(
                    f"Bayes-Ball gave up on {self.query} after {self.max_steps} steps"
                )

            neighbour = step[0]
            if neighbour == end:
                if logger.isEnabledFor(logging.DEBUG):
                    trail = self._trail(came_from, slot, start) + [end]
                    logger.debug(f"Active trail for {self.query}: {' '.join(trail)}")
                return IndependenceResult(self.query, independent=False)
            if neighbour == start or step in visited:
                continue

            visited.add(step)
            came_from[step] = slot
            frames.append((step, self._moves(step, evidence)))

        logger.debug(f"No active trail for {self.query} ({steps} steps, {len(visited)} slots)")
        return IndependenceResult(self.query, independent=True)

    def execute(self) -> Union[IndependenceResult, QueryFailure]:
        """Run the query inside an error boundary; failures come back as QueryFailure."""
        try:
            return self.run()
        except BayesNetError as e:
            logger.warning(f"Query {self.query} failed: {e}")
            logger.debug("Failure details", exc_info=True)
            return QueryFailure.from_error(e, self.query)

    def _neighbours(self, name: str) -> Iterator[Slot]:
        variable = self.network.variables[name]
        for child in variable.children:
            yield child, False
        for parent in variable.parents:
            yield parent, True

    def _moves(self, slot: Slot, evidence: FrozenSet[str]) -> Iterator[Slot]:
        """Slots the ball may pass to from ``slot`` without being blocked."""
        name, from_child = slot
        variable = self.network.variables[name]
        if name in evidence:
            if not from_child:
                for parent in variable.parents:
                    yield parent, True
            return
        for child in variable.children:
            yield child, False
        if from_child:
            for parent in variable.parents:
                yield parent, True

    @staticmethod
    def _trail(came_from: Dict[Slot, Optional[Slot]], slot: Optional[Slot], start: str) -> List[str]:
        trail: List[str] = []
        while slot is not None:
            trail.append(slot[0])
            slot = came_from[slot]
        trail.append(start)
        return trail[::-1]


def is_independent(
    network: BayesianNetwork,
    query: IndependenceQuery,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Union[IndependenceResult, QueryFailure]:
    """Convenience wrapper: answer ``query`` with a fresh engine."""
    return BayesBallEngine(network, query, max_steps=max_steps).execute()
