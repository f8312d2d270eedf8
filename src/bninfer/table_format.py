from __future__ import annotations

from itertools import product
from typing import List

from bninfer.factor import Factor
from bninfer.network import BayesianNetwork


def _format_table(rows: List[List[str]]) -> str:
    widths: List[int] = []
    for row in rows:
        for i, cell in enumerate(row):
            if i >= len(widths):
                widths.append(len(cell))
            else:
                widths[i] = max(widths[i], len(cell))

    def horiz() -> str:
        parts = ["+" + "-" * (w + 2) for w in widths]
        return "".join(parts) + "+"

    def fmt_row(row: List[str]) -> str:
        cells = [f" {cell.ljust(w)} " for cell, w in zip(row, widths)]
        return "|" + "|".join(cells) + "|"

    out: List[str] = [horiz()]
    for r in rows:
        out.append(fmt_row(r))
        out.append(horiz())
    return "\n".join(out)


def factor_to_ascii_table(factor: Factor, precision: int = 4) -> str:
    """One line per factor row: the state of every variable, then the probability."""
    names = factor.names
    rows: List[List[str]] = [names + ["Probability"]]
    for row in factor.rows:
        rows.append([row.states[n] for n in names] + [f"{row.probability:.{precision}f}"])
    return _format_table(rows)


def cpt_to_ascii_table(network: BayesianNetwork, name: str, precision: int = 4) -> str:
    """Render P(name | parents) with one column per parent assignment.

    Header rows list the parent assignments; each following row is one outcome of
    ``name``.
    """
    variable = network.get_variable(name)
    parents = list(variable.parents)
    table = network.cpt_table(name)
    card = variable.cardinality

    rows: List[List[str]] = []

    if not parents:
        rows.append(["Node(Value)", "Probability"])
        for s_idx, s in enumerate(variable.outcomes):
            rows.append([f"{name}({s})", f"{table[s_idx]:.{precision}f}"])
        return _format_table(rows)

    parent_assigns = list(product(*(network.get_variable(p).outcomes for p in parents)))

    for p_idx, p in enumerate(parents):
        rows.append([p] + [f"{p}({assign[p_idx]})" for assign in parent_assigns])

    # Column c of the table holds entries [c * card, (c + 1) * card)
    for s_idx, s in enumerate(variable.outcomes):
        row = [f"{name}({s})"]
        for col in range(len(parent_assigns)):
            row.append(f"{table[col * card + s_idx]:.{precision}f}")
        rows.append(row)

    return _format_table(rows)


__all__ = ["cpt_to_ascii_table", "factor_to_ascii_table"]
