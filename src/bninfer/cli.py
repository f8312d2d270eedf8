"""
Batch query driver.

The input file names a network file on its first line (relative paths are resolved
against the input file's directory) and lists one query per line after it:

    alarm.xml
    P(B=T|J=T,M=T) A-E
    B-E
    B-J|A=T

Every query produces one line in the output file: ``yes``/``no`` for independence
queries, ``probability,additions,multiplications`` for probability queries, or
``error: <kind>: <message>`` when the query fails.

CLI:
    bninfer input.txt -o output.txt --log-level DEBUG
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

from bninfer.bayes_ball import BayesBallEngine
from bninfer.config import load_config
from bninfer.elimination import VariableEliminationEngine
from bninfer.errors import BayesNetError, QueryFailure
from bninfer.logging_config import setup_logging
from bninfer.network import BayesianNetwork
from bninfer.network_io import read_network_xml
from bninfer.query import EliminationQuery, parse_query
from bninfer.table_format import cpt_to_ascii_table

logger = logging.getLogger(__name__)


def read_input(path: Path) -> Tuple[Path, List[str]]:
    """Split an input file into the network path and the query lines (blank lines skipped)."""
    lines = [line.strip() for line in path.read_text(encoding="utf-8").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        raise ValueError(f"input file {path} is empty")

    network_path = Path(lines[0])
    if not network_path.is_absolute():
        network_path = path.parent / network_path
    return network_path, lines[1:]


def answer_query(network: BayesianNetwork, line: str, config: Dict[str, Any]) -> str:
    """Evaluate one query line and render its output line."""
    try:
        query = parse_query(line, network)
    except BayesNetError as e:
        logger.warning(f"Rejected query '{line}': {e}")
        return QueryFailure.from_error(e, line).format()

    if isinstance(query, EliminationQuery):
        result = VariableEliminationEngine(network, query).execute()
        if isinstance(result, QueryFailure):
            return result.format()
        return result.format(decimals=config["output"]["decimals"])

    outcome = BayesBallEngine(network, query, max_steps=config["bayes_ball"]["max_steps"]).execute()
    return outcome.format()


def run_queries(
    network: BayesianNetwork,
    lines: Sequence[str],
    config: Dict[str, Any],
    progress: bool = True,
) -> List[str]:
    """Answer every query in order; a failing query never stops the batch."""
    answers: List[str] = []
    failed = 0
    with tqdm(total=len(lines), desc="Answering queries", disable=not progress) as pbar:
        for line in lines:
            answer = answer_query(network, line, config)
            if answer.startswith("error:"):
                failed += 1
                tqdm.write(f"✗ {line}: {answer}")
            answers.append(answer)
            pbar.update(1)
            pbar.set_postfix(failed=failed)
    return answers


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Answer probability and independence queries on a Bayesian network")
    parser.add_argument("input", type=Path, help="Input file: network path on the first line, then one query per line")
    parser.add_argument("-o", "--output", type=Path, default=Path("output.txt"), help="Where to write one answer per query")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured logging level")
    parser.add_argument("--max-steps", type=int, default=None, help="Override the Bayes-Ball step budget")
    parser.add_argument("--show-factors", action="store_true", help="Log every CPT as an ASCII table")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.log_level:
        config["logging"]["level"] = args.log_level
    if args.max_steps is not None:
        config["bayes_ball"]["max_steps"] = args.max_steps
    setup_logging(level=config["logging"]["level"], log_file=config["logging"]["file"])

    try:
        network_path, lines = read_input(args.input)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read input: {e}")
        return 2

    try:
        network = read_network_xml(network_path, tolerance=config["network"]["cpt_tolerance"])
    except BayesNetError as e:
        logger.error(f"Cannot load network {network_path}: {e}")
        return 1

    if args.show_factors:
        for name in network.variables:
            logger.info(f"CPT of {name}:\n{cpt_to_ascii_table(network, name)}")

    logger.info(f"Answering {len(lines)} queries against {network}")
    answers = run_queries(network, lines, config, progress=not args.no_progress)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text("".join(f"{answer}\n" for answer in answers), encoding="utf-8")
    logger.info(f"Wrote {len(answers)} answers to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
