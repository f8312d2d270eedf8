"""Tests for bninfer/network.py."""

from __future__ import annotations

import networkx as nx
import pytest

from bninfer.errors import InvalidNetworkStructureError, VariableReferenceError
from bninfer.network import BayesianNetwork, Variable


def _two_nodes() -> BayesianNetwork:
    bn = BayesianNetwork()
    bn.add_variable("Rain", ["T", "F"])
    bn.add_variable("Wet", ["T", "F"])
    return bn


class TestVariable:

    def test_relations_by_name(self) -> None:
        v = Variable("A", ("T", "F"), parents=["P"], children=["C"])
        assert v.cardinality == 2
        assert v.is_parent_of("C")
        assert v.is_child_of("P")
        assert not v.is_parent_of("P")

    def test_copy_detaches_both_edge_lists(self) -> None:
        v = Variable("A", ("T", "F"), parents=["P"], children=["C"])
        w = v.copy()
        w.parents.append("Q")
        w.children.append("D")
        assert v.parents == ["P"]
        assert v.children == ["C"]


class TestConstruction:

    def test_add_cpt_wires_edges(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Rain", [], [0.2, 0.8])
        bn.add_cpt("Wet", ["Rain"], [0.9, 0.1, 0.1, 0.9])
        assert bn.get_variable("Wet").parents == ["Rain"]
        assert bn.get_variable("Rain").children == ["Wet"]
        assert bn.num_edges() == 1
        bn.validate()

    def test_duplicate_variable_rejected(self) -> None:
        bn = _two_nodes()
        with pytest.raises(InvalidNetworkStructureError, match="duplicate"):
            bn.add_variable("Rain", ["T", "F"])

    @pytest.mark.parametrize("outcomes", [[], ["T", "T"]])
    def test_bad_outcomes_rejected(self, outcomes) -> None:
        bn = BayesianNetwork()
        with pytest.raises(InvalidNetworkStructureError):
            bn.add_variable("X", outcomes)

    def test_unknown_parent_rejected(self) -> None:
        bn = _two_nodes()
        with pytest.raises(VariableReferenceError) as exc_info:
            bn.add_cpt("Wet", ["Sprinkler"], [0.5] * 4)
        assert exc_info.value.name == "Sprinkler"

    def test_second_cpt_rejected(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Rain", [], [0.2, 0.8])
        with pytest.raises(InvalidNetworkStructureError, match="already has a CPT"):
            bn.add_cpt("Rain", [], [0.2, 0.8])

    def test_self_parent_rejected(self) -> None:
        bn = _two_nodes()
        with pytest.raises(InvalidNetworkStructureError):
            bn.add_cpt("Rain", ["Rain"], [0.25] * 4)

    def test_cycle_rejected(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Wet", ["Rain"], [0.9, 0.1, 0.1, 0.9])
        with pytest.raises(InvalidNetworkStructureError, match="cycle"):
            bn.add_cpt("Rain", ["Wet"], [0.5, 0.5, 0.5, 0.5])
        # The rejected CPT leaves no trace
        assert bn.get_variable("Rain").parents == []
        assert bn.get_variable("Wet").children == []

    def test_table_size_mismatch_rejected(self) -> None:
        bn = _two_nodes()
        with pytest.raises(InvalidNetworkStructureError):
            bn.add_cpt("Wet", ["Rain"], [0.9, 0.1])


class TestValidate:

    def test_missing_cpt(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Rain", [], [0.2, 0.8])
        with pytest.raises(InvalidNetworkStructureError, match="Wet"):
            bn.validate()

    def test_column_must_sum_to_one(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Rain", [], [0.2, 0.8])
        bn.add_cpt("Wet", ["Rain"], [0.9, 0.1, 0.5, 0.4])
        with pytest.raises(InvalidNetworkStructureError, match="sums to"):
            bn.validate()

    def test_tolerance(self) -> None:
        bn = _two_nodes()
        bn.add_cpt("Rain", [], [0.2, 0.8001])
        bn.add_cpt("Wet", ["Rain"], [0.9, 0.1, 0.1, 0.9])
        with pytest.raises(InvalidNetworkStructureError):
            bn.validate()
        bn.validate(tolerance=1e-3)


class TestStructureQueries:

    def test_unknown_variable(self, alarm) -> None:
        with pytest.raises(VariableReferenceError):
            alarm.get_variable("Z")
        assert "A" in alarm
        assert "Z" not in alarm
        assert len(alarm) == 5

    def test_ancestors(self, alarm, trail) -> None:
        assert alarm.ancestors("J") == {"A", "B", "E"}
        assert alarm.ancestors("B") == set()
        assert trail.ancestors("T'") == {"T", "R", "L", "B"}

    def test_ancestors_match_networkx(self, random_networks) -> None:
        for bn in random_networks:
            G = bn.to_networkx()
            for name in bn.variables:
                assert bn.ancestors(name) == nx.ancestors(G, name)

    def test_to_networkx(self, alarm) -> None:
        G = alarm.to_networkx()
        assert nx.is_directed_acyclic_graph(G)
        assert set(G.edges()) == {("B", "A"), ("E", "A"), ("A", "J"), ("A", "M")}

    def test_cpt_table_round_trip(self, alarm) -> None:
        assert alarm.cpt_table("A") == [0.95, 0.05, 0.94, 0.06, 0.29, 0.71, 0.001, 0.999]

    def test_snapshot_is_isolated(self, alarm) -> None:
        variables, factors = alarm.snapshot()
        variables["A"].children.append("X")
        for factor in factors:
            factor.restrict("A", "T")
        assert alarm.get_variable("A").children == ["J", "M"]
        assert all(len(f) == 2 ** f.width for f in alarm.factors)
        assert sum(f.contains("A") for f in alarm.factors) == 3
