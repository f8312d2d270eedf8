"""Exact inference and structural independence tests for discrete Bayesian networks."""

from bninfer.bayes_ball import BayesBallEngine, IndependenceResult
from bninfer.elimination import EliminationResult, VariableEliminationEngine
from bninfer.errors import (
    BayesNetError,
    FailureKind,
    InvalidNetworkStructureError,
    QueryFailure,
    QuerySyntaxError,
    QueryUnsatisfiableError,
    SearchBudgetExceededError,
    UnknownOutcomeError,
    VariableReferenceError,
    ZeroProbabilityEvidenceError,
)
from bninfer.factor import Factor, FactorRow, OperationCounter
from bninfer.network import BayesianNetwork, Variable
from bninfer.query import EliminationQuery, IndependenceQuery, parse_query

__version__ = "0.1.0"

__all__ = [
    "BayesBallEngine",
    "BayesNetError",
    "BayesianNetwork",
    "EliminationQuery",
    "EliminationResult",
    "Factor",
    "FactorRow",
    "FailureKind",
    "IndependenceQuery",
    "IndependenceResult",
    "InvalidNetworkStructureError",
    "OperationCounter",
    "QueryFailure",
    "QuerySyntaxError",
    "QueryUnsatisfiableError",
    "SearchBudgetExceededError",
    "UnknownOutcomeError",
    "Variable",
    "VariableEliminationEngine",
    "VariableReferenceError",
    "ZeroProbabilityEvidenceError",
    "parse_query",
]
