"""
Exact inference by variable elimination.

For a query P(Q=q | E1=e1, ...) and a caller-supplied elimination order the engine:

1. restricts every CPT factor to the observed evidence outcomes,
2. drops the CPTs of variables that are neither the query, an evidence variable, nor
   an ancestor of one of them,
3. eliminates the variables of the order one by one (multiply the factors that mention
   the variable, then sum it out),
4. multiplies what is left around the query variable and normalizes it,
5. reads off the requested outcome, together with the number of additions and
   multiplications spent.

The engine works on a snapshot of the network, so the shared network is never modified
and sequential queries are independent of each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Set, Union

from bninfer.errors import (
    BayesNetError,
    QueryFailure,
    QueryUnsatisfiableError,
    ZeroProbabilityEvidenceError,
)
from bninfer.factor import Factor, OperationCounter, multiply_all, normalize, sum_out
from bninfer.network import BayesianNetwork, Variable
from bninfer.query import EliminationQuery
from bninfer.table_format import factor_to_ascii_table

logger = logging.getLogger(__name__)


def round_half_up(value: float, decimals: int = 5) -> Decimal:
    """Round the exact binary value of ``value`` half-up to ``decimals`` places."""
    return Decimal(value).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class EliminationResult:
    """Posterior probability of the requested outcome plus the arithmetic cost.

    ``distribution`` holds the full normalized posterior over the query variable.
    """
    query: EliminationQuery
    probability: float
    additions: int
    multiplications: int
    distribution: Dict[str, float] = field(default_factory=dict)

    ok = True

    def format(self, decimals: int = 5) -> str:
        """Render as ``probability,additions,multiplications``."""
        return f"{round_half_up(self.probability, decimals):.{decimals}f},{self.additions},{self.multiplications}"


class VariableEliminationEngine:
    """Answers one EliminationQuery against a network.

    Args:
        network: The shared network (never modified)
        query: The query, including its elimination order
    """

    def __init__(self, network: BayesianNetwork, query: EliminationQuery) -> None:
        self.network = network
        self.query = query

    def run(self) -> EliminationResult:
        """Run the full pipeline.

        Raises:
            VariableReferenceError: If the query mentions an unknown variable or outcome
            QueryUnsatisfiableError: If the query variable does not survive elimination
            ZeroProbabilityEvidenceError: If the evidence has probability zero
        """
        self.query.validate(self.network)
        logger.debug(f"Running variable elimination for {self.query}")

        counter = OperationCounter()
        variables, factors = self.network.snapshot()

        self._restrict(variables, factors)
        factors = self._prune_irrelevant(factors)
        factors = self._eliminate(variables, factors, counter)
        posterior = self._finalize(factors, counter)
        return self._report(posterior, counter)

    def execute(self) -> Union[EliminationResult, QueryFailure]:
        """Run the query inside an error boundary; failures come back as QueryFailure."""
        try:
            return self.run()
        except BayesNetError as e:
            logger.warning(f"Query {self.query} failed: {e}")
            logger.debug("Failure details", exc_info=True)
            return QueryFailure.from_error(e, self.query)

    # ------------------------------
    # Pipeline steps
    # ------------------------------

    def _restrict(self, variables: Dict[str, Variable], factors: List[Factor]) -> None:
        for name, outcome in self.query.evidence:
            variables.pop(name, None)
            for factor in factors:
                factor.restrict(name, outcome)
        if self.query.evidence:
            logger.debug(f"Restricted factors to evidence {dict(self.query.evidence)}")

    def _relevant_variables(self) -> Set[str]:
        """The query and evidence variables together with all of their ancestors."""
        relevant = {self.query.variable} | self.network.ancestors(self.query.variable)
        for name in self.query.evidence_names:
            if name not in relevant:
                relevant.add(name)
                relevant |= self.network.ancestors(name)
        return relevant

    def _prune_irrelevant(self, factors: List[Factor]) -> List[Factor]:
        relevant = self._relevant_variables()
        kept = [f for f in factors if f.owner is None or f.owner in relevant]
        dropped = [f.owner for f in factors if f.owner is not None and f.owner not in relevant]
        if dropped:
            logger.debug(f"Dropped CPTs irrelevant to the query: {dropped}")
        return kept

    def _eliminate(
        self,
        variables: Dict[str, Variable],
        factors: List[Factor],
        counter: OperationCounter,
    ) -> List[Factor]:
        for name in self.query.elimination_order:
            mentioning = [f for f in factors if f.contains(name)]
            if not mentioning:
                logger.debug(f"Skipping '{name}': no remaining factor mentions it")
                continue

            merged = multiply_all(mentioning, counter)
            reduced = sum_out(merged, name, counter)
            consumed = {id(f) for f in mentioning}
            factors = [f for f in factors if id(f) not in consumed]
            factors.append(reduced)
            variables.pop(name, None)

            logger.debug(
                f"Eliminated '{name}' from {len(mentioning)} factor(s); "
                f"new factor over {reduced.names} with {len(reduced)} rows"
            )
        return factors

    def _finalize(self, factors: List[Factor], counter: OperationCounter) -> Factor:
        query_name = self.query.variable

        for factor in factors:
            if factor.width == 0 and not factor.total() > 0.0:
                raise ZeroProbabilityEvidenceError(
                    f"evidence {dict(self.query.evidence)} has probability zero"
                )

        selected = [f for f in factors if f.contains(query_name)]
        if not selected:
            raise QueryUnsatisfiableError(
                f"no factor mentions '{query_name}' after elimination; "
                "is it also observed or listed in the elimination order?"
            )

        # Variables missing from the elimination order can tie other factors to the query.
        leftover = {n for f in selected for n in f.variables} - {query_name}
        pending = [f for f in factors if not f.contains(query_name)]
        while leftover:
            joining = [f for f in pending if leftover & set(f.variables)]
            if not joining:
                break
            selected.extend(joining)
            pending = [f for f in pending if all(f is not j for j in joining)]
            leftover |= {n for f in joining for n in f.variables} - {query_name}
        self._check_evidence_components(pending)

        final = multiply_all(selected, counter)
        for name in [n for n in final.names if n != query_name]:
            logger.warning(f"'{name}' is not in the elimination order of {self.query}; summing it out")
            final = sum_out(final, name, counter)

        posterior = normalize(final, counter)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Posterior for {self.query}:\n{factor_to_ascii_table(posterior)}")
        return posterior

    def _check_evidence_components(self, factors: List[Factor]) -> None:
        """Raise if a group of factors unconnected to the query variable has total mass zero.

        These groups only exist when the elimination order leaves variables out. Their
        products are not part of the reported cost.
        """
        remaining = list(factors)
        while remaining:
            group = [remaining.pop(0)]
            names = set(group[0].variables)
            grew = True
            while grew:
                joining = [f for f in remaining if names & set(f.variables)]
                grew = bool(joining)
                for factor in joining:
                    group.append(factor)
                    names |= set(factor.variables)
                remaining = [f for f in remaining if all(f is not j for j in joining)]

            if not multiply_all(group).total() > 0.0:
                raise ZeroProbabilityEvidenceError(
                    f"evidence {dict(self.query.evidence)} has probability zero "
                    f"(factors over {sorted(names)})"
                )

    def _report(self, posterior: Factor, counter: OperationCounter) -> EliminationResult:
        query_name = self.query.variable
        rows = posterior.rows_matching(query_name, self.query.outcome)
        if not rows:
            raise QueryUnsatisfiableError(
                f"no row with {query_name}={self.query.outcome} in the final factor"
            )

        distribution = {row.states[query_name]: row.probability for row in posterior.rows}
        result = EliminationResult(
            query=self.query,
            probability=rows[0].probability,
            additions=counter.additions,
            multiplications=counter.multiplications,
            distribution=distribution,
        )
        logger.debug(f"{self.query} -> {result.format()}")
        return result


def eliminate(network: BayesianNetwork, query: EliminationQuery) -> Union[EliminationResult, QueryFailure]:
    """Convenience wrapper: answer ``query`` with a fresh engine."""
    return VariableEliminationEngine(network, query).execute()
