"""
Discrete Bayesian network data model.

The network is the single long-lived owner of its Variables. Variables reference their
parents and children by name, and every name is resolved through the network, so a
per-query snapshot is a cheap copy of name lists plus fresh factor tables.

Example:
    >>> bn = BayesianNetwork()
    >>> bn.add_variable("Rain", ["T", "F"])
    >>> bn.add_variable("WetGrass", ["T", "F"])
    >>> bn.add_cpt("Rain", [], [0.2, 0.8])
    >>> bn.add_cpt("WetGrass", ["Rain"], [0.9, 0.1, 0.1, 0.9])
    >>> bn.validate()
    >>> sorted(bn.ancestors("WetGrass"))
    ['Rain']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import product
from typing import Dict, List, Optional, Sequence, Set, Tuple

import networkx as nx

from bninfer.errors import InvalidNetworkStructureError, VariableReferenceError
from bninfer.factor import Factor

logger = logging.getLogger(__name__)


@dataclass
class Variable:
    """A discrete random variable node.

    ``parents`` and ``children`` hold variable names in the order the edges were added.
    """
    name: str
    outcomes: Tuple[str, ...]
    parents: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)

    @property
    def cardinality(self) -> int:
        return len(self.outcomes)

    def is_parent_of(self, name: str) -> bool:
        return name in self.children

    def is_child_of(self, name: str) -> bool:
        return name in self.parents

    def copy(self) -> Variable:
        return Variable(self.name, tuple(self.outcomes), list(self.parents), list(self.children))


class BayesianNetwork:
    """Container of Variables (by name) and one Factor per conditional probability table.

    Args:
        name: Optional label used in log messages
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or "network"
        self.variables: Dict[str, Variable] = {}
        self.factors: List[Factor] = []

    # ------------------------------
    # Construction
    # ------------------------------

    def add_variable(self, name: str, outcomes: Sequence[str]) -> Variable:
        """Register a variable with its ordered outcome labels.

        Raises:
            InvalidNetworkStructureError: On a duplicate name, an empty outcome list or
                repeated outcome labels
        """
        if not name:
            raise InvalidNetworkStructureError("variable name must be non-empty")
        if name in self.variables:
            raise InvalidNetworkStructureError(f"duplicate variable name '{name}'")
        outcomes = tuple(outcomes)
        if not outcomes:
            raise InvalidNetworkStructureError(f"variable '{name}' has no outcomes")
        if len(set(outcomes)) != len(outcomes):
            raise InvalidNetworkStructureError(f"variable '{name}' repeats an outcome label: {outcomes}")

        variable = Variable(name, outcomes)
        self.variables[name] = variable
        return variable

    def add_cpt(self, name: str, parents: Sequence[str], table: Sequence[float]) -> Factor:
        """Attach P(name | parents) and wire the parent/child edges.

        Args:
            name: The child variable
            parents: Parent variable names, slowest-varying first in ``table``
            table: Flat probabilities, row-major over (parents..., name), ``name`` fastest

        Returns:
            The Factor built for this CPT

        Raises:
            VariableReferenceError: If ``name`` or a parent is not in the network
            InvalidNetworkStructureError: On a second CPT for ``name``, a table of the wrong
                size, a repeated parent, or an edge that would close a cycle
        """
        variable = self.get_variable(name)
        parent_vars = [self.get_variable(p) for p in parents]

        if any(f.owner == name for f in self.factors):
            raise InvalidNetworkStructureError(f"variable '{name}' already has a CPT")
        if len(set(parents)) != len(parents):
            raise InvalidNetworkStructureError(f"CPT for '{name}' repeats a parent: {list(parents)}")
        if name in parents:
            raise InvalidNetworkStructureError(f"variable '{name}' cannot be its own parent")

        factor = Factor.from_cpt(variable, parent_vars, table)

        graph = self.to_networkx()
        graph.add_edges_from((p, name) for p in parents)
        if not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            raise InvalidNetworkStructureError(
                f"parents {list(parents)} of '{name}' would create a cycle: {cycle}"
            )

        for parent in parent_vars:
            variable.parents.append(parent.name)
            parent.children.append(name)
        self.factors.append(factor)
        return factor

    def validate(self, tolerance: float = 1e-6) -> None:
        """Check that the network is complete and well formed.

        Every variable must have exactly one CPT, the graph must be acyclic and every CPT
        column (a fixed parent assignment) must sum to one within ``tolerance``.

        Raises:
            InvalidNetworkStructureError: On the first violation found
        """
        owners = [f.owner for f in self.factors]
        missing = [name for name in self.variables if name not in owners]
        if missing:
            raise InvalidNetworkStructureError(f"variables without a CPT: {missing}")

        if not nx.is_directed_acyclic_graph(self.to_networkx()):
            raise InvalidNetworkStructureError(f"network '{self.name}' is not a DAG")

        for factor in self.factors:
            columns: Dict[Tuple[Tuple[str, str], ...], float] = {}
            for row in factor.rows:
                column = tuple((k, v) for k, v in sorted(row.states.items()) if k != factor.owner)
                columns[column] = columns.get(column, 0.0) + row.probability
            for column, total in columns.items():
                if abs(total - 1.0) > tolerance:
                    raise InvalidNetworkStructureError(
                        f"CPT for '{factor.owner}' sums to {total:.6f} for parent assignment {dict(column)}"
                    )

        logger.debug(
            f"Validated network '{self.name}': {len(self.variables)} variables, "
            f"{len(self.factors)} CPTs"
        )

    # ------------------------------
    # Queries on the structure
    # ------------------------------

    def get_variable(self, name: str) -> Variable:
        try:
            return self.variables[name]
        except KeyError:
            raise VariableReferenceError(name) from None

    def has_variable(self, name: str) -> bool:
        return name in self.variables

    def ancestors(self, name: str) -> Set[str]:
        """All transitive parents of ``name`` (not including ``name`` itself)."""
        ancestors: Set[str] = set()
        stack = list(self.get_variable(name).parents)
        while stack:
            current = stack.pop()
            if current in ancestors:
                continue
            ancestors.add(current)
            stack.extend(self.variables[current].parents)
        return ancestors

    def cpt_table(self, name: str) -> List[float]:
        """The flat CPT of ``name`` in (parents..., name) row-major order, ``name`` fastest."""
        variable = self.get_variable(name)
        factor = next((f for f in self.factors if f.owner == name), None)
        if factor is None:
            raise InvalidNetworkStructureError(f"variable '{name}' has no CPT")
        order = variable.parents + [name]
        lookup = {tuple(row.states[n] for n in order): row.probability for row in factor.rows}
        scopes = [self.variables[n].outcomes for n in order]
        return [lookup[assignment] for assignment in product(*scopes)]

    def to_networkx(self) -> nx.DiGraph:
        G = nx.DiGraph()
        G.add_nodes_from(self.variables)
        for variable in self.variables.values():
            G.add_edges_from((parent, variable.name) for parent in variable.parents)
        return G

    def num_edges(self) -> int:
        return sum(len(v.parents) for v in self.variables.values())

    def snapshot(self) -> Tuple[Dict[str, Variable], List[Factor]]:
        """Working copies of the variables and factors for a single query.

        Factors get fresh row lists and variable maps, so restriction and elimination on
        the copies leave the network untouched.
        """
        variables = {name: v.copy() for name, v in self.variables.items()}
        factors = [f.copy() for f in self.factors]
        return variables, factors

    def __contains__(self, name: object) -> bool:
        return name in self.variables

    def __len__(self) -> int:
        return len(self.variables)

    def __repr__(self) -> str:
        return (
            f"BayesianNetwork(name={self.name!r}, variables={len(self.variables)}, "
            f"edges={self.num_edges()})"
        )
