"""Tests for bninfer/bayes_ball.py.

Expected answers on the trail and alarm networks are the textbook d-separation results;
random networks are cross-checked against networkx.is_d_separator.
"""

from __future__ import annotations

import itertools

import networkx as nx
import numpy as np
import pytest

from bninfer.bayes_ball import BayesBallEngine, IndependenceResult, is_independent
from bninfer.errors import FailureKind, QueryFailure, SearchBudgetExceededError, VariableReferenceError
from bninfer.generation import generate_network, random_dag
from bninfer.query import IndependenceQuery


def _independent(network, start, end, *evidence) -> bool:
    query = IndependenceQuery(start, end, {name: None for name in evidence})
    return BayesBallEngine(network, query).run().independent


# ------------------------------------------------------------------ #
#  L -> R -> D, R -> T <- B, T -> T'
# ------------------------------------------------------------------ #

class TestTrailNetwork:

    @pytest.mark.parametrize(
        "start, end, evidence, expected",
        [
            ("L", "T'", ["T"], True),
            ("L", "B", [], True),
            ("L", "B", ["T"], False),
            ("L", "B", ["T'"], False),
            ("L", "B", ["T", "R"], True),
            ("L", "D", ["T"], False),
            ("L", "T'", [], False),
            ("R", "D", [], False),
            ("D", "T'", ["T"], True),
            ("D", "B", [], True),
            ("D", "B", ["T'"], False),
            ("D", "B", ["T'", "R"], True),
            ("L", "D", ["R"], True),
        ],
    )
    def test_independence(self, trail, start, end, evidence, expected) -> None:
        assert _independent(trail, start, end, *evidence) is expected

    def test_symmetric(self, trail) -> None:
        names = list(trail.variables)
        for a, b in itertools.combinations(names, 2):
            for evidence in [[], ["T"], ["T'"], ["R"]]:
                if a in evidence or b in evidence:
                    continue
                assert _independent(trail, a, b, *evidence) == _independent(trail, b, a, *evidence)


# ------------------------------------------------------------------ #
#  Alarm network
# ------------------------------------------------------------------ #

class TestAlarmNetwork:

    @pytest.mark.parametrize(
        "start, end, evidence, expected",
        [
            ("B", "E", [], True),
            ("B", "J", [], False),
            ("B", "M", [], False),
            ("B", "M", ["A"], True),
            ("E", "J", ["A"], True),
            ("J", "M", [], False),
            ("J", "M", ["A"], True),
            ("J", "E", ["B"], False),
            ("A", "B", ["E"], False),
            ("J", "B", ["E", "A"], True),
            ("B", "E", ["A"], False),
            ("B", "E", ["J"], False),
        ],
    )
    def test_independence(self, alarm, start, end, evidence, expected) -> None:
        assert _independent(alarm, start, end, *evidence) is expected

    def test_variable_depends_on_itself(self, alarm) -> None:
        assert _independent(alarm, "J", "J") is False

    def test_adjacent_variables_are_dependent(self, alarm) -> None:
        assert _independent(alarm, "E", "A") is False
        assert _independent(alarm, "A", "E", "A") is False

    def test_outcome_labels_are_ignored(self, alarm) -> None:
        with_values = IndependenceQuery("J", "M", {"A": "T"})
        names_only = IndependenceQuery("J", "M", {"A": None})
        assert BayesBallEngine(alarm, with_values).run().independent
        assert BayesBallEngine(alarm, names_only).run().independent

    def test_network_is_not_modified(self, alarm) -> None:
        before = {name: (list(v.parents), list(v.children)) for name, v in alarm.variables.items()}
        _independent(alarm, "B", "E", "J")
        assert {name: (list(v.parents), list(v.children)) for name, v in alarm.variables.items()} == before


# ------------------------------------------------------------------ #
#  Results and failures
# ------------------------------------------------------------------ #

class TestResults:

    def test_format(self, alarm) -> None:
        query = IndependenceQuery("B", "E")
        result = is_independent(alarm, query)
        assert isinstance(result, IndependenceResult)
        assert result.ok
        assert result.format() == "yes"
        assert is_independent(alarm, IndependenceQuery("B", "J")).format() == "no"

    def test_unknown_variable(self, alarm) -> None:
        query = IndependenceQuery("B", "Z")
        with pytest.raises(VariableReferenceError):
            BayesBallEngine(alarm, query).run()
        failure = BayesBallEngine(alarm, query).execute()
        assert isinstance(failure, QueryFailure)
        assert failure.kind is FailureKind.UNKNOWN_VARIABLE

    def test_step_budget(self, alarm) -> None:
        query = IndependenceQuery("B", "E")
        with pytest.raises(SearchBudgetExceededError):
            BayesBallEngine(alarm, query, max_steps=2).run()
        failure = BayesBallEngine(alarm, query, max_steps=2).execute()
        assert failure.kind is FailureKind.SEARCH_BUDGET_EXCEEDED


# ------------------------------------------------------------------ #
#  Cross-check against networkx
# ------------------------------------------------------------------ #

class TestAgainstNetworkx:

    def test_random_dags(self) -> None:
        rng = np.random.default_rng(0)
        for seed in range(8):
            dag = random_dag(7, edge_probability=0.4, max_parents=3, seed=seed)
            bn, _ = generate_network(dag, {"type": "fixed", "fixed": 2}, seed=seed)
            G = bn.to_networkx()
            names = list(bn.variables)
            for a, b in itertools.combinations(names, 2):
                others = [n for n in names if n not in (a, b)]
                for size in range(3):
                    evidence = set(rng.choice(others, size=size, replace=False).tolist())
                    expected = nx.is_d_separator(G, {a}, {b}, evidence)
                    assert _independent(bn, a, b, *sorted(evidence)) == expected, (a, b, evidence)

    @pytest.mark.parametrize("n_nodes, edge_probability", [(20, 0.25), (30, 0.15), (40, 0.1)])
    def test_larger_dags_with_default_budget(self, n_nodes, edge_probability) -> None:
        rng = np.random.default_rng(n_nodes)
        for seed in range(3):
            dag = random_dag(n_nodes, edge_probability=edge_probability, max_parents=3, seed=seed)
            bn, _ = generate_network(dag, {"type": "fixed", "fixed": 2}, seed=seed)
            G = bn.to_networkx()
            names = list(bn.variables)
            for _ in range(40):
                a, b = rng.choice(names, size=2, replace=False).tolist()
                others = [n for n in names if n not in (a, b)]
                evidence = set(rng.choice(others, size=int(rng.integers(0, 4)), replace=False).tolist())
                query = IndependenceQuery(a, b, {name: None for name in sorted(evidence)})
                result = BayesBallEngine(bn, query).execute()
                assert isinstance(result, IndependenceResult), (a, b, evidence)
                assert result.independent == nx.is_d_separator(G, {a}, {b}, evidence), (a, b, evidence)

    def test_steps_are_linear_in_edges(self) -> None:
        dag = random_dag(40, edge_probability=0.15, max_parents=3, seed=11)
        bn, _ = generate_network(dag, {"type": "fixed", "fixed": 2}, seed=11)
        budget = 5 * bn.num_edges()
        names = list(bn.variables)
        for a, b in itertools.combinations(names[:12], 2):
            evidence = {name: None for name in names[-4:] if name not in (a, b)}
            BayesBallEngine(bn, IndependenceQuery(a, b, evidence), max_steps=budget).run()
