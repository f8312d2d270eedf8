"""
Random discrete networks and query workloads.

Networks are built from random DAGs with CPT columns sampled from a Dirichlet:

- Variable arity strategy (fixed or ranged)
- CPT skewness via Dirichlet(alpha)
- Determinism fraction: proportion of CPT columns set to 0/1

Queries mix probability queries (with an elimination order over every hidden variable)
and independence queries.

Example (API):
    >>> dag = random_dag(6, edge_probability=0.4, seed=1)
    >>> bn, meta = generate_network(dag, {"type": "range", "min": 2, "max": 3}, seed=2)
    >>> queries = generate_queries(bn, num_queries=5, seed=3)

CLI:
    bninfer-generate --n-nodes 8 --queries 20 --out-dir ./workload
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from bninfer.network import BayesianNetwork
from bninfer.network_io import write_network_xml
from bninfer.query import EliminationQuery, IndependenceQuery, Query

logger = logging.getLogger(__name__)


# ------------------------------
# Types and configuration models
# ------------------------------

@dataclass
class ArityStrategy:
    type: str  # "fixed" | "range"
    fixed: Optional[int] = None
    min: Optional[int] = None
    max: Optional[int] = None

    def draw_cardinalities(self, nodes: Sequence[str], rng: np.random.Generator) -> Dict[str, int]:
        if self.type == "fixed":
            if not self.fixed or self.fixed < 2:
                raise ValueError("fixed arity must be >= 2")
            return {n: int(self.fixed) for n in nodes}
        elif self.type == "range":
            if not self.min or not self.max or self.min < 2 or self.max < self.min:
                raise ValueError("range arity requires 2 <= min <= max")
            return {n: int(rng.integers(self.min, self.max + 1)) for n in nodes}
        else:
            raise ValueError("Unsupported arity strategy; use 'fixed' or 'range'")


# ------------------------------
# Structure
# ------------------------------

def random_dag(
    n_nodes: int,
    edge_probability: float = 0.3,
    max_parents: Optional[int] = None,
    seed: Optional[int] = None,
) -> nx.DiGraph:
    """Random DAG over nodes V0..V{n-1}.

    Edges of an Erdos-Renyi graph are oriented along a random node ordering, so the
    result is acyclic by construction. ``max_parents`` drops surplus incoming edges.
    """
    if n_nodes < 1:
        raise ValueError("n_nodes must be >= 1")

    rng = np.random.default_rng(seed)
    G = nx.gnp_random_graph(n_nodes, edge_probability, seed=int(rng.integers(0, 2**31 - 1)))

    order = list(G.nodes())
    rng.shuffle(order)
    rank = {node: i for i, node in enumerate(order)}

    dag = nx.DiGraph()
    dag.add_nodes_from(f"V{n}" for n in sorted(order, key=rank.get))
    for u, v in G.edges():
        if rank[u] > rank[v]:
            u, v = v, u
        dag.add_edge(f"V{u}", f"V{v}")

    if max_parents is not None:
        for node in list(dag.nodes()):
            parents = list(dag.predecessors(node))
            for parent in parents[max_parents:]:
                dag.remove_edge(parent, node)
    return dag


# ------------------------------
# CPTs
# ------------------------------

def _sample_cpt(
    var_card: int,
    num_columns: int,
    dirichlet_alpha: float,
    determinism_fraction: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Sample a CPT as an array of shape (num_columns, var_card), one row per parent
    assignment, so that flattening gives the variable-fastest table layout."""
    values = np.zeros((num_columns, var_card), dtype=float)

    deterministic_cols = set()
    if determinism_fraction > 0.0:
        num_deterministic = int(round(determinism_fraction * num_columns))
        if num_deterministic > 0:
            deterministic_cols = set(rng.choice(num_columns, size=num_deterministic, replace=False).tolist())

    for col in range(num_columns):
        if col in deterministic_cols:
            values[col, int(rng.integers(0, var_card))] = 1.0
        else:
            values[col, :] = rng.dirichlet([dirichlet_alpha] * var_card)
    return values


def generate_network(
    dag: nx.DiGraph,
    arity_strategy: Union[Dict[str, Any], ArityStrategy],
    dirichlet_alpha: float = 1.0,
    determinism_fraction: float = 0.0,
    seed: Optional[int] = None,
    name: Optional[str] = None,
) -> Tuple[BayesianNetwork, Dict[str, Any]]:
    """Build a BayesianNetwork with sampled CPTs for the given DAG.

    Args:
        dag: A NetworkX DiGraph (must be acyclic)
        arity_strategy: dict or ArityStrategy specifying node cardinalities
        dirichlet_alpha: Dirichlet concentration for CPT columns (<=1 skewed, 1 uniform, >1 flat)
        determinism_fraction: fraction of CPT columns set to deterministic 0/1
        seed: RNG seed
        name: Label for the network

    Returns:
        (network, metadata) where metadata records the arities and generation parameters.
    """
    if not nx.is_directed_acyclic_graph(dag):
        raise ValueError("Input graph must be a DAG")

    rng = np.random.default_rng(seed)
    if isinstance(arity_strategy, dict):
        strat = ArityStrategy(**arity_strategy)
    else:
        strat = arity_strategy

    order = [str(n) for n in nx.topological_sort(dag)]
    node_cards = strat.draw_cardinalities(order, rng)

    network = BayesianNetwork(name=name or "random")
    for node in order:
        network.add_variable(node, [f"s{i}" for i in range(node_cards[node])])

    for node in order:
        parents = [str(p) for p in dag.predecessors(node)]
        num_columns = int(np.prod([node_cards[p] for p in parents])) if parents else 1
        values = _sample_cpt(node_cards[node], num_columns, dirichlet_alpha, determinism_fraction, rng)
        network.add_cpt(node, parents, values.reshape(-1).tolist())

    network.validate()

    metadata: Dict[str, Any] = {
        "node_cardinalities": node_cards,
        "dirichlet_alpha": dirichlet_alpha,
        "determinism_fraction": determinism_fraction,
        "seed": seed,
    }
    return network, metadata


# ------------------------------
# Queries
# ------------------------------

def hidden_variables(network: BayesianNetwork, query_variable: str, evidence: Sequence[str]) -> List[str]:
    """Every variable that is neither queried nor observed, in reverse network order."""
    excluded = {query_variable, *evidence}
    return [name for name in reversed(list(network.variables)) if name not in excluded]


def generate_queries(
    network: BayesianNetwork,
    *,
    num_queries: int = 20,
    evidence_counts: Sequence[int] = (0, 1, 2),
    independence_fraction: float = 0.5,
    seed: Optional[int] = None,
) -> List[Query]:
    """Random query workload over ``network``.

    Probability queries eliminate every hidden variable. Evidence never includes the
    queried variables.
    """
    rng = np.random.default_rng(seed)
    nodes = list(network.variables)
    if len(nodes) < 2:
        raise ValueError("need at least two variables to generate queries")

    queries: List[Query] = []
    for _ in range(num_queries):
        ek = int(rng.choice(evidence_counts))
        if rng.random() < independence_fraction:
            start, end = (str(n) for n in rng.choice(nodes, 2, replace=False))
            pool = [n for n in nodes if n not in (start, end)]
            chosen = rng.choice(pool, size=min(ek, len(pool)), replace=False).tolist() if pool else []
            evidence = {n: str(rng.choice(network.variables[n].outcomes)) for n in chosen}
            queries.append(IndependenceQuery(start, end, evidence))
        else:
            target = str(rng.choice(nodes))
            outcome = str(rng.choice(network.variables[target].outcomes))
            pool = [n for n in nodes if n != target]
            chosen = rng.choice(pool, size=min(ek, len(pool)), replace=False).tolist()
            evidence_pairs = [(n, str(rng.choice(network.variables[n].outcomes))) for n in chosen]
            order = hidden_variables(network, target, chosen)
            queries.append(EliminationQuery(target, outcome, evidence_pairs, order))
    return queries


# ------------------------------
# CLI
# ------------------------------

def _parse_arity(arg: str) -> ArityStrategy:
    """Parse arity string like 'fixed:2' or 'range:2-4'."""
    if arg.startswith("fixed:"):
        val = int(arg.split(":", 1)[1])
        return ArityStrategy(type="fixed", fixed=val)
    if arg.startswith("range:"):
        span = arg.split(":", 1)[1]
        lo, hi = span.split("-", 1)
        return ArityStrategy(type="range", min=int(lo), max=int(hi))
    raise argparse.ArgumentTypeError("Arity must be 'fixed:<k>' or 'range:<min>-<max>'")


def main(argv: Optional[Sequence[str]] = None) -> int:
    from bninfer.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Generate a random network and a query workload for it")
    parser.add_argument("--n-nodes", type=int, default=8, help="Number of variables")
    parser.add_argument("--edge-prob", type=float, default=0.3, help="Edge probability of the underlying random graph")
    parser.add_argument("--max-parents", type=int, default=3, help="Cap on the number of parents per variable")
    parser.add_argument("--arity", type=_parse_arity, default=ArityStrategy(type="range", min=2, max=3), help="Variable arity strategy: fixed:k or range:min-max")
    parser.add_argument("--alpha", type=float, default=1.0, help="Dirichlet alpha for CPT sampling (<=1 skewed, 1 uniform, >1 flat)")
    parser.add_argument("--determinism", type=float, default=0.0, help="Deterministic fraction for CPT columns")
    parser.add_argument("--queries", type=int, default=20, help="Number of queries to generate")
    parser.add_argument("--seed", type=int, default=42, help="Base seed for reproducibility")
    parser.add_argument("--out-dir", type=Path, default=Path("."), help="Directory for network.xml and input.txt")
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    dag = random_dag(args.n_nodes, args.edge_prob, max_parents=args.max_parents, seed=args.seed)
    network, meta = generate_network(
        dag,
        args.arity,
        dirichlet_alpha=args.alpha,
        determinism_fraction=args.determinism,
        seed=args.seed + 1,
    )
    queries = generate_queries(network, num_queries=args.queries, seed=args.seed + 2)

    network_path = args.out_dir / "network.xml"
    write_network_xml(network, network_path)
    input_path = args.out_dir / "input.txt"
    lines = [network_path.name] + [str(q) for q in queries]
    input_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    cards = meta["node_cardinalities"]
    card_str = ", ".join(f"{n}:{c}" for n, c in list(cards.items())[:6])
    if len(cards) > 6:
        card_str += ", ..."
    logger.info(f"Generated {network} | cards: {card_str}")
    logger.info(f"Wrote {len(queries)} queries to {input_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
