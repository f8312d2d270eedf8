"""
Reading and writing networks.

Networks are stored as XML:

    <NETWORK>
      <VARIABLE>
        <NAME>A</NAME>
        <OUTCOME>T</OUTCOME>
        <OUTCOME>F</OUTCOME>
      </VARIABLE>
      ...
      <DEFINITION>
        <FOR>A</FOR>
        <GIVEN>B</GIVEN>
        <TABLE>0.9 0.1 0.2 0.8</TABLE>
      </DEFINITION>
    </NETWORK>

TABLE is whitespace separated and row-major over (GIVEN..., FOR) with FOR varying
fastest, which is exactly the layout ``BayesianNetwork.add_cpt`` expects.

pgmpy models can be converted in both directions, which the tests use to cross-check
posteriors against pgmpy's own variable elimination.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Union

import networkx as nx
import numpy as np
from pgmpy.factors.discrete import TabularCPD
from pgmpy.models import DiscreteBayesianNetwork

from bninfer.errors import InvalidNetworkStructureError
from bninfer.network import BayesianNetwork

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# ------------------------------
# XML
# ------------------------------

def _get_text(element: ET.Element, tag: str) -> Optional[str]:
    child = element.find(tag)
    if child is not None and child.text:
        return child.text.strip()
    return None


def _require_text(element: ET.Element, tag: str, context: str) -> str:
    text = _get_text(element, tag)
    if not text:
        raise InvalidNetworkStructureError(f"{context} is missing <{tag}>")
    return text


def parse_network_xml(xml_content: Union[str, bytes], name: Optional[str] = None, tolerance: float = 1e-6) -> BayesianNetwork:
    """Build and validate a network from an XML string.

    Args:
        xml_content: The XML document
        name: Label for the network (used in log messages)
        tolerance: Allowed deviation of each CPT column sum from one

    Raises:
        InvalidNetworkStructureError: On malformed XML, missing elements, non-numeric
            tables, or any structural problem found while building the network
    """
    try:
        root = ET.fromstring(xml_content)
    except ET.ParseError as e:
        raise InvalidNetworkStructureError(f"invalid XML: {e}") from e

    network = BayesianNetwork(name=name)

    for element in root.iter("VARIABLE"):
        var_name = _require_text(element, "NAME", "<VARIABLE>")
        outcomes = [o.text.strip() for o in element.findall("OUTCOME") if o.text and o.text.strip()]
        network.add_variable(var_name, outcomes)

    for element in root.iter("DEFINITION"):
        child = _require_text(element, "FOR", "<DEFINITION>")
        parents = [g.text.strip() for g in element.findall("GIVEN") if g.text and g.text.strip()]
        table_text = _require_text(element, "TABLE", f"<DEFINITION> of '{child}'")
        try:
            table = [float(token) for token in table_text.split()]
        except ValueError as e:
            raise InvalidNetworkStructureError(f"non-numeric TABLE for '{child}': {e}") from e
        network.add_cpt(child, parents, table)

    network.validate(tolerance=tolerance)
    logger.info(
        f"Loaded network '{network.name}': {len(network)} variables, {network.num_edges()} edges"
    )
    return network


def read_network_xml(path: PathLike, tolerance: float = 1e-6) -> BayesianNetwork:
    """Read a network file from ``path``; see ``parse_network_xml``."""
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise InvalidNetworkStructureError(f"cannot read network file '{path}': {e}") from e
    return parse_network_xml(content, name=path.stem, tolerance=tolerance)


def _format_probability(value: float) -> str:
    return repr(float(value))


def network_to_xml(network: BayesianNetwork) -> str:
    """Serialize ``network`` to the XML layout read by ``parse_network_xml``."""
    root = ET.Element("NETWORK")
    for variable in network.variables.values():
        element = ET.SubElement(root, "VARIABLE")
        ET.SubElement(element, "NAME").text = variable.name
        for outcome in variable.outcomes:
            ET.SubElement(element, "OUTCOME").text = outcome

    for factor in network.factors:
        variable = network.get_variable(factor.owner)
        element = ET.SubElement(root, "DEFINITION")
        ET.SubElement(element, "FOR").text = variable.name
        for parent in variable.parents:
            ET.SubElement(element, "GIVEN").text = parent
        ET.SubElement(element, "TABLE").text = " ".join(
            _format_probability(p) for p in network.cpt_table(variable.name)
        )

    ET.indent(root)
    return ET.tostring(root, encoding="unicode") + "\n"


def write_network_xml(network: BayesianNetwork, path: PathLike) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(network_to_xml(network), encoding="utf-8")
    logger.info(f"Saved network '{network.name}' to {path}")


# ------------------------------
# pgmpy
# ------------------------------

def from_pgmpy(model: DiscreteBayesianNetwork, name: Optional[str] = None) -> BayesianNetwork:
    """Convert a pgmpy model with TabularCPDs into a BayesianNetwork.

    State names become outcome labels (as strings). pgmpy stores CPD values with shape
    (card(variable), card(parent_1), ..., card(parent_k)); moving the variable axis last
    and flattening yields the parents-first, variable-fastest table ``add_cpt`` expects.
    """
    network = BayesianNetwork(name=name)
    order = list(nx.topological_sort(model))

    cpds: Dict[str, TabularCPD] = {}
    for node in order:
        cpd = model.get_cpds(node)
        if cpd is None:
            raise InvalidNetworkStructureError(f"pgmpy model has no CPD for '{node}'")
        cpds[node] = cpd
        network.add_variable(str(node), [str(s) for s in cpd.state_names[node]])

    for node in order:
        cpd = cpds[node]
        parents = [str(p) for p in cpd.variables[1:]]
        values = np.asarray(cpd.values, dtype=float)
        table = np.moveaxis(values, 0, -1).reshape(-1)
        network.add_cpt(str(node), parents, table.tolist())

    network.validate()
    return network


def to_pgmpy(network: BayesianNetwork) -> DiscreteBayesianNetwork:
    """Convert a BayesianNetwork into a checked pgmpy DiscreteBayesianNetwork."""
    edges = [(parent, v.name) for v in network.variables.values() for parent in v.parents]
    model = DiscreteBayesianNetwork(edges)
    model.add_nodes_from(network.variables)

    cpds: List[TabularCPD] = []
    for name, variable in network.variables.items():
        card = variable.cardinality
        parents = list(variable.parents)
        flat = np.asarray(network.cpt_table(name), dtype=float)
        # (parent assignments, card) -> (card, parent assignments)
        values = flat.reshape(-1, card).T
        state_names = {name: list(variable.outcomes)}
        state_names.update({p: list(network.get_variable(p).outcomes) for p in parents})
        if parents:
            cpd = TabularCPD(
                variable=name,
                variable_card=card,
                values=values,
                evidence=parents,
                evidence_card=[network.get_variable(p).cardinality for p in parents],
                state_names=state_names,
            )
        else:
            cpd = TabularCPD(
                variable=name,
                variable_card=card,
                values=values.reshape(card, 1),
                state_names=state_names,
            )
        cpds.append(cpd)

    model.add_cpds(*cpds)
    model.check_model()
    return model


__all__ = [
    "from_pgmpy",
    "network_to_xml",
    "parse_network_xml",
    "read_network_xml",
    "to_pgmpy",
    "write_network_xml",
]
