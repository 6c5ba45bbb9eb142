"""Programmatic producer example using the bundled sample inputs.

Run from repository root without installation:
    PYTHONPATH=src python examples/produce_api.py
"""

from __future__ import annotations

from pathlib import Path

from femtoworld import CandidateProducer, ParticleType
from femtoworld.io import (
    load_collisions_json,
    load_conditions_json,
    load_producer_config_json,
    write_derived_tables,
)

DATA = Path("examples/data")


def main() -> int:
    """Produce derived tables for the sample collisions and write them as parquet."""
    config = load_producer_config_json(DATA / "config.json")
    producer = CandidateProducer(config, load_conditions_json(DATA / "conditions.json"))
    tables = producer.process_all(load_collisions_json(DATA / "collisions.json"))
    write_derived_tables(
        tables,
        DATA / "sample_collisions.parquet",
        DATA / "sample_particles.parquet",
    )
    for particle_type in ParticleType:
        print(f"{particle_type.name:10s} {len(tables.of_type(particle_type))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
