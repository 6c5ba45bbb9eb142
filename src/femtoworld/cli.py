"""Command-line interface for the derived-table producer and the dN/deta task."""

from __future__ import annotations

import argparse
import importlib.util
import logging
from pathlib import Path
from typing import Any

from .config import MultiplicityConfig, ProducerConfig
from .dndeta import MultiplicityCounter
from .io import (
    load_bcs_json,
    load_collisions_json,
    load_conditions_json,
    load_mc_json,
    load_multiplicity_config_json,
    load_producer_config_json,
    write_derived_tables,
    write_histograms,
)
from .producer import CandidateProducer
from .records import DerivedTables

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Define and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="femtoworld",
        description="Select events, tracks, V0 and Phi candidates and write derived tables.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    produce = sub.add_parser("produce", help="Produce derived collision and particle tables.")
    produce.add_argument("--collisions", required=True, help="Input JSON with key 'collisions'.")
    produce.add_argument(
        "--conditions",
        required=True,
        help="Conditions JSON with key 'objects' (must provide GLO/GRP/GRP).",
    )
    produce.add_argument("--config", default=None, help="Optional producer configuration JSON.")
    produce.add_argument(
        "--out-collisions",
        required=True,
        help="Output collision table (.parquet, .csv, .pkl).",
    )
    produce.add_argument(
        "--out-particles",
        required=True,
        help="Output particle table (.parquet, .csv, .pkl).",
    )
    produce.add_argument("--qa-out", default=None, help="Optional pickle file for QA histograms.")
    produce.add_argument(
        "--custom-script",
        default=None,
        help="Path to Python file with process(tables, context) function.",
    )

    dndeta = sub.add_parser("dndeta", help="Fill pseudorapidity-density histograms.")
    dndeta.add_argument("--collisions", required=True, help="Input JSON with key 'collisions'.")
    dndeta.add_argument("--bcs", default=None, help="Optional bunch-crossing JSON (key 'bcs').")
    dndeta.add_argument("--mc", default=None, help="Optional MC JSON (key 'mc_collisions').")
    dndeta.add_argument("--config", default=None, help="Optional multiplicity configuration JSON.")
    dndeta.add_argument("--out", required=True, help="Output pickle file for the histograms.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "produce":
        return run_produce(args)
    return run_dndeta(args)


def run_produce(args: argparse.Namespace) -> int:
    config = load_producer_config_json(args.config) if args.config else ProducerConfig()
    collisions = load_collisions_json(args.collisions)
    conditions = load_conditions_json(args.conditions)
    producer = CandidateProducer(config, conditions)
    tables = producer.process_all(collisions)
    write_derived_tables(tables, args.out_collisions, args.out_particles)
    if args.qa_out:
        write_histograms(args.qa_out, producer.registry)
        producer.registry.log_summary()

    if args.custom_script:
        run_custom_script(
            script_path=args.custom_script,
            tables=tables,
            context={
                "collisions_path": args.collisions,
                "conditions_path": args.conditions,
                "config": config,
                "registry": producer.registry,
                "out_collisions": args.out_collisions,
                "out_particles": args.out_particles,
            },
        )
    return 0


def run_dndeta(args: argparse.Namespace) -> int:
    config = load_multiplicity_config_json(args.config) if args.config else MultiplicityConfig()
    counter = MultiplicityCounter(config)
    collisions = load_collisions_json(args.collisions)
    if args.bcs:
        counter.process_event_stat(load_bcs_json(args.bcs), collisions)
    for collision in collisions:
        counter.process_counting(collision)
    if args.mc:
        mc_collisions = load_mc_json(args.mc)
        counter.process_mc_counting(
            collisions, [p for mc in mc_collisions for p in mc.particles]
        )
        for mc_collision in mc_collisions:
            counter.process_gen(mc_collision)
    write_histograms(args.out, counter.registry)
    logger.info(
        "dN/deta: %d collisions, %d selected",
        counter.selection_count("All"),
        counter.selection_count("Selected"),
    )
    return 0


def run_custom_script(script_path: str, tables: DerivedTables, context: dict[str, Any]) -> None:
    """Execute user-supplied post-processing callback `process(tables, context)`."""
    module = _load_module(script_path)
    process = getattr(module, "process", None)
    if process is None or not callable(process):
        raise ValueError(
            f"Custom script {script_path} must define callable process(tables, context)."
        )
    process(tables, context)


def _load_module(script_path: str):
    """Import a Python module from an arbitrary file path."""
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise ValueError(f"Cannot import custom script: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


if __name__ == "__main__":
    raise SystemExit(main())
