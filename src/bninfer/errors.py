"""
Error taxonomy for network construction and query evaluation.

Every failure raised by this package derives from ``BayesNetError`` and carries a
``FailureKind``. Engines expose ``execute()`` as a per-query error boundary that turns
these exceptions into a ``QueryFailure`` value instead of a probability.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class FailureKind(Enum):
    """Categories of query and construction failures."""
    UNKNOWN_VARIABLE = "unknown_variable"
    UNKNOWN_OUTCOME = "unknown_outcome"
    QUERY_SYNTAX = "query_syntax"
    QUERY_UNSATISFIABLE = "query_unsatisfiable"
    ZERO_PROBABILITY_EVIDENCE = "zero_probability_evidence"
    INVALID_NETWORK_STRUCTURE = "invalid_network_structure"
    SEARCH_BUDGET_EXCEEDED = "search_budget_exceeded"


class BayesNetError(Exception):
    """Base class for all errors raised by bninfer."""

    kind: FailureKind = FailureKind.QUERY_UNSATISFIABLE

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")


class VariableReferenceError(BayesNetError):
    """A query or CPT names a variable that is not part of the network."""

    kind = FailureKind.UNKNOWN_VARIABLE

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"unknown variable '{name}'")


class UnknownOutcomeError(VariableReferenceError):
    """A query assigns an outcome label the variable does not define."""

    kind = FailureKind.UNKNOWN_OUTCOME

    def __init__(self, name: str, outcome: str):
        self.outcome = outcome
        super().__init__(name, f"variable '{name}' has no outcome '{outcome}'")


class QuerySyntaxError(BayesNetError):
    kind = FailureKind.QUERY_SYNTAX


class QueryUnsatisfiableError(BayesNetError):
    kind = FailureKind.QUERY_UNSATISFIABLE


class ZeroProbabilityEvidenceError(BayesNetError):
    """The evidence has probability zero, so the posterior is undefined."""

    kind = FailureKind.ZERO_PROBABILITY_EVIDENCE


class InvalidNetworkStructureError(BayesNetError):
    kind = FailureKind.INVALID_NETWORK_STRUCTURE


class SearchBudgetExceededError(BayesNetError):
    kind = FailureKind.SEARCH_BUDGET_EXCEEDED


@dataclass(frozen=True)
class QueryFailure:
    """
    Structured outcome of a query that aborted.

    Failures never carry a partial probability; the query that produced them is kept
    for reporting.
    """
    kind: FailureKind
    message: str
    query: Any = None

    ok = False

    @classmethod
    def from_error(cls, error: BayesNetError, query: Any = None) -> QueryFailure:
        """Create a QueryFailure from a raised BayesNetError."""
        return cls(kind=error.kind, message=error.message, query=query)

    def format(self) -> str:
        return f"error: {self.kind.value}: {self.message}"
