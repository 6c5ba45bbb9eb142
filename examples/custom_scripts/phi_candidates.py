"""Example custom callback: dump Phi candidates inside a narrow mass window."""

from __future__ import annotations

import json
from pathlib import Path

from femtoworld import ParticleType


def process(tables, context):
    """Write a compact JSON report of Phi candidates with both legs linked to tracks."""
    selected = []
    for row, particle in enumerate(tables.particles):
        if particle.particle_type != ParticleType.PHI or not 1.010 < particle.mass < 1.030:
            continue
        first, second = (tables.particles[i] for i in particle.children)
        selected.append(
            {
                "row": row,
                "collision": particle.collision_index,
                "mass": particle.mass,
                "pt": particle.pt,
                "tracks": [first.children[0], second.children[1]],
            }
        )
    payload = {"n_selected": len(selected), "selected": selected}
    out = Path(context["out_particles"]).with_name("phi_candidates.json")
    out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote {out}")
