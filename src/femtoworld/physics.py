"""Physics/math helpers for composite-candidate reconstruction and event shapes."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .models import LorentzVector, TrackInput, V0Input, Vector3
from .pid import make_pion, make_proton

# Returned when the transverse sphericity is undefined (too few tracks).
SPHERICITY_UNDEFINED = 2.0


def lorentz_from_momentum(momentum: Vector3, mass: float) -> LorentzVector:
    """Build a Lorentz 4-vector from a 3-momentum and a mass hypothesis."""
    px, py, pz = momentum
    energy = (px * px + py * py + pz * pz + mass * mass) ** 0.5
    return LorentzVector(px=px, py=py, pz=pz, e=energy)


def lorentz_from_pt_eta_phi(pt: float, eta: float, phi: float, mass: float) -> LorentzVector:
    """Build a Lorentz 4-vector from `(pt, eta, phi)` and a mass hypothesis."""
    return lorentz_from_momentum(
        (pt * math.cos(phi), pt * math.sin(phi), pt * math.sinh(eta)), mass
    )


def track_to_lorentz(track: TrackInput, mass: float) -> LorentzVector:
    """Convert a track plus mass hypothesis into a Lorentz 4-vector."""
    return lorentz_from_pt_eta_phi(track.pt, track.eta, track.phi, mass)


def two_body_mass(first: Vector3, second: Vector3, mass_first: float, mass_second: float) -> float:
    """Invariant mass of two daughters under fixed mass hypotheses."""
    return (
        lorentz_from_momentum(first, mass_first) + lorentz_from_momentum(second, mass_second)
    ).mass


def lambda_mass(v0: V0Input) -> float:
    """V0 mass under the (p, pi-) hypothesis."""
    return two_body_mass(v0.pos_momentum, v0.neg_momentum, make_proton().mass, make_pion().mass)


def anti_lambda_mass(v0: V0Input) -> float:
    """V0 mass under the (pi+, anti-p) hypothesis."""
    return two_body_mass(v0.pos_momentum, v0.neg_momentum, make_pion().mass, make_proton().mass)


def k0short_mass(v0: V0Input) -> float:
    """V0 mass under the (pi+, pi-) hypothesis."""
    return two_body_mass(v0.pos_momentum, v0.neg_momentum, make_pion().mass, make_pion().mass)


def cos_pointing_angle(decay_vertex: Vector3, primary_vertex: Vector3, momentum: Vector3) -> float:
    """Cosine of the angle between the flight direction and the candidate momentum."""
    flight = tuple(d - p for d, p in zip(decay_vertex, primary_vertex, strict=True))
    norm = norm3(flight) * norm3(momentum)
    if norm <= 0.0:
        return -1.0
    return dot3(flight, momentum) / norm


def v0_cos_pointing_angle(v0: V0Input, primary_vertex: Vector3) -> float:
    return cos_pointing_angle((v0.x, v0.y, v0.z), primary_vertex, v0.momentum)


def decay_vertex_max(v0: V0Input) -> float:
    """Largest absolute coordinate of the V0 decay vertex."""
    return max(abs(v0.x), abs(v0.y), abs(v0.z))


def transverse_sphericity(
    tracks: Sequence[TrackInput],
    min_pt: float = 0.5,
    max_abs_eta: float = 0.8,
) -> float:
    """Transverse sphericity `2*l2/(l1+l2)` of the pt-weighted momentum tensor.

    Only tracks with `pt >= min_pt` and `|eta| <= max_abs_eta` contribute.
    Returns `SPHERICITY_UNDEFINED` when fewer than two tracks contribute.
    """
    selected = [t for t in tracks if t.pt >= min_pt and abs(t.eta) <= max_abs_eta]
    if len(selected) < 2:
        return SPHERICITY_UNDEFINED
    pt = np.array([t.pt for t in selected])
    phi = np.array([t.phi for t in selected])
    px = pt * np.cos(phi)
    py = pt * np.sin(phi)
    # Linearised tensor: each entry weighted by 1/pt, normalised by sum pt.
    tensor = np.array(
        [
            [np.sum(px * px / pt), np.sum(px * py / pt)],
            [np.sum(px * py / pt), np.sum(py * py / pt)],
        ]
    ) / np.sum(pt)
    eigenvalues = np.linalg.eigvalsh(tensor)
    total = float(eigenvalues.sum())
    if total <= 0.0:
        return SPHERICITY_UNDEFINED
    return float(2.0 * eigenvalues.min() / total)


def dot3(a: Sequence[float], b: Sequence[float]) -> float:
    """3D dot product."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def norm3(a: Sequence[float]) -> float:
    """3D Euclidean norm."""
    return math.sqrt(dot3(a, a))
