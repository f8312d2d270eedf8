"""
Factor tables and the factor algebra used by variable elimination.

A Factor is a table over a named set of variables: one FactorRow per joint assignment,
each holding a probability. Factors built from a CPT remember the variable whose CPT they
came from (their owner), which lets the elimination engine drop CPTs that are irrelevant
to a query.

The algebra functions (multiply, multiply_all, sum_out, normalize) never mutate their
inputs. Each accepts an optional OperationCounter that accumulates the number of
arithmetic operations performed, so callers can report the cost of a query.

Example:
    >>> counter = OperationCounter()
    >>> joint = multiply(prior, likelihood, counter)
    >>> marginal = sum_out(joint, "A", counter)
    >>> counter.multiplications, counter.additions
    (4, 2)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import product
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

from bninfer.errors import InvalidNetworkStructureError, ZeroProbabilityEvidenceError

if TYPE_CHECKING:
    from bninfer.network import Variable


@dataclass
class OperationCounter:
    """Accumulates arithmetic operation counts across factor operations."""
    additions: int = 0
    multiplications: int = 0


@dataclass
class FactorRow:
    """One assignment of outcomes to the factor's variables, plus its probability."""
    states: Dict[str, str]
    probability: float

    def copy(self) -> FactorRow:
        return FactorRow(dict(self.states), self.probability)

    def agrees_with(self, other: FactorRow, names: Iterable[str]) -> bool:
        return all(self.states[name] == other.states[name] for name in names)

    def key(self) -> Tuple[Tuple[str, str], ...]:
        """Hashable, order-independent view of the state assignment."""
        return tuple(sorted(self.states.items()))


class Factor:
    """
    A probability table over a set of variables.

    Args:
        variables: Mapping from variable name to Variable (the table's scope)
        rows: One FactorRow per joint assignment of ``variables``
        owner: Name of the variable whose CPT this factor represents, if any
    """

    def __init__(
        self,
        variables: Dict[str, Variable],
        rows: List[FactorRow],
        owner: Optional[str] = None,
    ) -> None:
        self.variables = variables
        self.rows = rows
        self.owner = owner

    @classmethod
    def from_cpt(
        cls,
        variable: Variable,
        parents: Sequence[Variable],
        table: Sequence[float],
    ) -> Factor:
        """Build the factor for P(variable | parents) from a flat probability table.

        The table is row-major over (parents..., variable): parents[0] changes slowest
        and the variable itself changes fastest. For parents [P1, P2] this is

            (p1_0, p2_0, v_0), (p1_0, p2_0, v_1), ..., (p1_0, p2_1, v_0), ...

        Raises:
            InvalidNetworkStructureError: If the table length does not match the scope
        """
        scope = list(parents) + [variable]
        names = [v.name for v in scope]
        expected = math.prod(v.cardinality for v in scope)
        if len(table) != expected:
            raise InvalidNetworkStructureError(
                f"CPT for '{variable.name}' has {len(table)} entries, expected {expected}"
            )

        rows = [
            FactorRow(dict(zip(names, assignment)), float(probability))
            for assignment, probability in zip(product(*(v.outcomes for v in scope)), table)
        ]
        return cls({v.name: v for v in scope}, rows, owner=variable.name)

    @property
    def names(self) -> List[str]:
        return list(self.variables)

    @property
    def width(self) -> int:
        return len(self.variables)

    def contains(self, name: str) -> bool:
        return name in self.variables

    def copy(self) -> Factor:
        """Fresh row list and variable map; Variable objects themselves are shared."""
        return Factor(dict(self.variables), [row.copy() for row in self.rows], owner=self.owner)

    def restrict(self, name: str, outcome: str) -> None:
        """Keep only rows where ``name`` equals ``outcome`` and drop ``name`` from the table.

        Does nothing if the factor does not mention ``name``, so it can be applied to every
        factor of a network.
        """
        if name not in self.variables:
            return
        self.rows = [row for row in self.rows if row.states[name] == outcome]
        self.remove_variable(name)

    def remove_variable(self, name: str) -> None:
        for row in self.rows:
            row.states.pop(name, None)
        self.variables.pop(name, None)

    def rows_matching(self, name: str, outcome: str) -> List[FactorRow]:
        return [row for row in self.rows if row.states.get(name) == outcome]

    def total(self) -> float:
        return sum(row.probability for row in self.rows)

    def as_dict(self) -> Dict[Tuple[Tuple[str, str], ...], float]:
        """Map of row key to probability, independent of row order."""
        return {row.key(): row.probability for row in self.rows}

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self) -> str:
        owner = f", owner={self.owner!r}" if self.owner else ""
        return f"Factor(variables={self.names}, rows={len(self.rows)}{owner})"


def multiply(f1: Factor, f2: Factor, counter: Optional[OperationCounter] = None) -> Factor:
    """Pointwise product of two factors.

    Rows are paired in nested (f1.rows x f2.rows) order and kept when they agree on
    every shared variable. Each emitted row costs one multiplication.
    """
    common = [name for name in f1.variables if name in f2.variables]

    rows: List[FactorRow] = []
    for r1 in f1.rows:
        for r2 in f2.rows:
            if r1.agrees_with(r2, common):
                states = dict(r1.states)
                states.update(r2.states)
                rows.append(FactorRow(states, r1.probability * r2.probability))

    if counter is not None:
        counter.multiplications += len(rows)

    variables = dict(f1.variables)
    variables.update(f2.variables)
    return Factor(variables, rows)


def multiply_all(factors: Sequence[Factor], counter: Optional[OperationCounter] = None) -> Factor:
    """Multiply factors together, narrowest first to keep intermediate tables small.

    A single factor is returned unchanged.
    """
    if not factors:
        raise ValueError("multiply_all needs at least one factor")

    ordered = sorted(factors, key=lambda f: f.width)
    result = ordered[0]
    for factor in ordered[1:]:
        result = multiply(result, factor, counter)
    return result


def sum_out(factor: Factor, name: str, counter: Optional[OperationCounter] = None) -> Factor:
    """Marginalize ``name`` out of ``factor``.

    Rows that coincide once ``name`` is dropped are merged by adding their
    probabilities; every merge costs one addition. Output rows keep the order in
    which each remaining assignment was first seen.
    """
    grouped: Dict[Tuple[Tuple[str, str], ...], FactorRow] = {}
    additions = 0
    for row in factor.rows:
        states = {k: v for k, v in row.states.items() if k != name}
        merged = FactorRow(states, row.probability)
        key = merged.key()
        if key in grouped:
            grouped[key].probability += row.probability
            additions += 1
        else:
            grouped[key] = merged

    if counter is not None:
        counter.additions += additions

    variables = {k: v for k, v in factor.variables.items() if k != name}
    return Factor(variables, list(grouped.values()))


def normalize(factor: Factor, counter: Optional[OperationCounter] = None) -> Factor:
    """Scale the rows of ``factor`` so that they sum to one.

    Computing the normalizing constant costs ``len(rows) - 1`` additions; the divisions
    are not counted.

    Raises:
        ZeroProbabilityEvidenceError: If the rows sum to zero (or to NaN)
    """
    total = factor.total()
    if not total > 0.0:
        raise ZeroProbabilityEvidenceError(
            f"factor over {factor.names} sums to {total}; the evidence is impossible"
        )

    if counter is not None:
        counter.additions += max(len(factor.rows) - 1, 0)

    rows = [FactorRow(dict(row.states), row.probability / total) for row in factor.rows]
    return Factor(dict(factor.variables), rows, owner=factor.owner)
