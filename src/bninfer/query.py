from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from bninfer.errors import QuerySyntaxError, UnknownOutcomeError
from bninfer.network import BayesianNetwork

_NAME = r"[\w']+"
_OUTCOME = r"[^,|=()\s]+"

_ASSIGNMENT_RE = re.compile(rf"^\s*(?P<name>{_NAME})\s*=\s*(?P<outcome>{_OUTCOME})\s*$")
_EVIDENCE_NAME_RE = re.compile(rf"^\s*(?P<name>{_NAME})\s*(?:=\s*(?P<outcome>{_OUTCOME}))?\s*$")
_ELIMINATION_RE = re.compile(r"^\s*P\((?P<body>[^()]*)\)(?P<order>[^()]*)$")
_INDEPENDENCE_RE = re.compile(
    rf"^\s*(?P<start>{_NAME})\s*-\s*(?P<end>{_NAME})\s*(?:\|(?P<evidence>.*))?$"
)


@dataclass
class EliminationQuery:
    """P(variable=outcome | evidence) with a caller-supplied elimination order."""
    variable: str
    outcome: str
    evidence: List[Tuple[str, str]] = field(default_factory=list)
    elimination_order: List[str] = field(default_factory=list)

    @property
    def evidence_names(self) -> List[str]:
        return [name for name, _ in self.evidence]

    def validate(self, network: BayesianNetwork) -> None:
        """Check every referenced variable and outcome against ``network``.

        Raises:
            VariableReferenceError: For an unknown variable
            UnknownOutcomeError: For an outcome label the variable does not define
            QuerySyntaxError: If a variable is given evidence twice
        """
        _check_assignment(network, self.variable, self.outcome)

        seen: Dict[str, str] = {}
        for name, outcome in self.evidence:
            _check_assignment(network, name, outcome)
            if name in seen:
                raise QuerySyntaxError(f"evidence for '{name}' is given more than once")
            seen[name] = outcome

        for name in self.elimination_order:
            network.get_variable(name)

    def __str__(self) -> str:
        text = f"P({self.variable}={self.outcome}"
        if self.evidence:
            text += "|" + ",".join(f"{name}={outcome}" for name, outcome in self.evidence)
        text += ")"
        if self.elimination_order:
            text += " " + "-".join(self.elimination_order)
        return text


@dataclass
class IndependenceQuery:
    """Is ``start`` independent of ``end`` given the observed variables in ``evidence``?

    Evidence maps each observed variable to its outcome label, or None when only the
    name was given; the structural test ignores the labels.
    """
    start: str
    end: str
    evidence: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def evidence_names(self) -> FrozenSet[str]:
        return frozenset(self.evidence)

    def validate(self, network: BayesianNetwork) -> None:
        network.get_variable(self.start)
        network.get_variable(self.end)
        for name, outcome in self.evidence.items():
            if outcome is None:
                network.get_variable(name)
            else:
                _check_assignment(network, name, outcome)

    def __str__(self) -> str:
        text = f"{self.start}-{self.end}"
        if self.evidence:
            parts = [name if outcome is None else f"{name}={outcome}" for name, outcome in self.evidence.items()]
            text += "|" + ",".join(parts)
        return text


Query = Union[EliminationQuery, IndependenceQuery]


def _check_assignment(network: BayesianNetwork, name: str, outcome: str) -> None:
    variable = network.get_variable(name)
    if outcome not in variable.outcomes:
        raise UnknownOutcomeError(name, outcome)


def _parse_assignment(text: str, line: str) -> Tuple[str, str]:
    match = _ASSIGNMENT_RE.match(text)
    if not match:
        raise QuerySyntaxError(f"expected 'name=outcome', got '{text.strip()}' in '{line}'")
    return match.group("name"), match.group("outcome")


def parse_elimination_query(line: str, network: Optional[BayesianNetwork] = None) -> EliminationQuery:
    """Parse ``P(Q=q|E1=e1,E2=e2) X1-X2`` into an EliminationQuery.

    The elimination order after the closing parenthesis may be empty. When ``network``
    is given the query is validated against it.
    """
    match = _ELIMINATION_RE.match(line.strip())
    if not match:
        raise QuerySyntaxError(f"malformed probability query: '{line.strip()}'")

    body = match.group("body")
    head, _, evidence_text = body.partition("|")
    variable, outcome = _parse_assignment(head, line)

    evidence: List[Tuple[str, str]] = []
    if evidence_text.strip():
        evidence = [_parse_assignment(part, line) for part in evidence_text.split(",")]

    order_text = match.group("order").strip()
    order: List[str] = []
    if order_text:
        order = [name.strip() for name in order_text.split("-")]
        if any(not re.fullmatch(_NAME, name) for name in order):
            raise QuerySyntaxError(f"malformed elimination order '{order_text}' in '{line.strip()}'")

    query = EliminationQuery(variable, outcome, evidence, order)
    if network is not None:
        query.validate(network)
    return query


def parse_independence_query(line: str, network: Optional[BayesianNetwork] = None) -> IndependenceQuery:
    """Parse ``A-B|E1=e1,E2=e2`` (or ``A-B``) into an IndependenceQuery."""
    match = _INDEPENDENCE_RE.match(line.strip())
    if not match:
        raise QuerySyntaxError(f"malformed independence query: '{line.strip()}'")

    evidence: Dict[str, Optional[str]] = {}
    evidence_text = match.group("evidence")
    if evidence_text and evidence_text.strip():
        for part in evidence_text.split(","):
            item = _EVIDENCE_NAME_RE.match(part)
            if not item:
                raise QuerySyntaxError(f"malformed evidence '{part.strip()}' in '{line.strip()}'")
            evidence[item.group("name")] = item.group("outcome")

    query = IndependenceQuery(match.group("start"), match.group("end"), evidence)
    if network is not None:
        query.validate(network)
    return query


def parse_query(line: str, network: Optional[BayesianNetwork] = None) -> Query:
    """Dispatch on the query syntax: ``P(...)`` is a probability query, anything else an
    independence query."""
    if line.strip().startswith("P("):
        return parse_elimination_query(line, network)
    return parse_independence_query(line, network)


__all__ = [
    "EliminationQuery",
    "IndependenceQuery",
    "Query",
    "parse_elimination_query",
    "parse_independence_query",
    "parse_query",
]
