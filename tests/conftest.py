"""Shared fixtures: the burglary alarm network, a six-variable trail network and
randomly generated networks."""

from __future__ import annotations

from typing import List

import pytest

from bninfer.generation import generate_network, random_dag
from bninfer.network import BayesianNetwork
from bninfer.network_io import network_to_xml

ALARM_CPTS = {
    "B": ([], [0.001, 0.999]),
    "E": ([], [0.002, 0.998]),
    "A": (["B", "E"], [0.95, 0.05, 0.94, 0.06, 0.29, 0.71, 0.001, 0.999]),
    "J": (["A"], [0.9, 0.1, 0.05, 0.95]),
    "M": (["A"], [0.7, 0.3, 0.01, 0.99]),
}


def build_alarm_network() -> BayesianNetwork:
    """Burglary -> Alarm <- Earthquake, Alarm -> JohnCalls, Alarm -> MaryCalls."""
    bn = BayesianNetwork(name="alarm")
    for name in ALARM_CPTS:
        bn.add_variable(name, ["T", "F"])
    for name, (parents, table) in ALARM_CPTS.items():
        bn.add_cpt(name, parents, table)
    bn.validate()
    return bn


def build_trail_network() -> BayesianNetwork:
    """L -> R -> D, R -> T <- B, T -> T'."""
    bn = BayesianNetwork(name="trail")
    for name in ["L", "R", "D", "B", "T", "T'"]:
        bn.add_variable(name, ["T", "F"])
    bn.add_cpt("L", [], [0.5, 0.5])
    bn.add_cpt("R", ["L"], [0.7, 0.3, 0.2, 0.8])
    bn.add_cpt("D", ["R"], [0.6, 0.4, 0.1, 0.9])
    bn.add_cpt("B", [], [0.3, 0.7])
    bn.add_cpt("T", ["B", "R"], [0.9, 0.1, 0.6, 0.4, 0.5, 0.5, 0.05, 0.95])
    bn.add_cpt("T'", ["T"], [0.8, 0.2, 0.3, 0.7])
    bn.validate()
    return bn


def build_random_networks(count: int = 5, n_nodes: int = 7) -> List[BayesianNetwork]:
    networks = []
    for seed in range(count):
        dag = random_dag(n_nodes, edge_probability=0.35, max_parents=3, seed=seed)
        bn, _ = generate_network(
            dag,
            {"type": "range", "min": 2, "max": 3},
            dirichlet_alpha=1.0,
            seed=100 + seed,
            name=f"random-{seed}",
        )
        networks.append(bn)
    return networks


@pytest.fixture
def alarm() -> BayesianNetwork:
    return build_alarm_network()


@pytest.fixture
def trail() -> BayesianNetwork:
    return build_trail_network()


@pytest.fixture(scope="session")
def random_networks() -> List[BayesianNetwork]:
    return build_random_networks()


@pytest.fixture
def alarm_xml(tmp_path):
    path = tmp_path / "alarm.xml"
    path.write_text(network_to_xml(build_alarm_network()), encoding="utf-8")
    return path
