"""Core input data models consumed by the producer and dN/deta tasks.

This module defines:
- immutable kinematic objects (`LorentzVector`, `ParticleHypothesis`)
- per-event inputs (`TrackInput`, `V0Input`, `CollisionInput`)
- bunch-crossing and Monte Carlo inputs for multiplicity counting
  (`BunchCrossing`, `AmbiguousTrack`, `McParticle`, `McCollision`).

Angles are in radians, momenta in GeV/c, lengths in cm. Azimuthal angles
follow the detector convention `[0, 2*pi)`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping

Vector3 = tuple[float, float, float]

# Value read for PID n-sigma when the detector gave no response.
NSIGMA_MISSING = -999.0

TRACKLET_TYPE = "Run2Tracklet"


def pseudorapidity(px: float, py: float, pz: float) -> float:
    """Pseudorapidity of a 3-momentum, clamped to +-1e9 along the beam axis."""
    p = math.sqrt(px * px + py * py + pz * pz)
    if p == abs(pz):
        return 1e9 if pz >= 0 else -1e9
    return 0.5 * math.log((p + pz) / (p - pz))


def azimuth(px: float, py: float) -> float:
    """Azimuthal angle mapped to `[0, 2*pi)`."""
    phi = math.atan2(py, px)
    if phi < 0.0:
        phi += 2.0 * math.pi
    return phi


@dataclass(frozen=True)
class ParticleHypothesis:
    """Named particle hypothesis used to derive mass-dependent observables."""

    name: str
    mass: float
    pdg_id: int | None = None


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with convenience properties and addition."""

    px: float
    py: float
    pz: float
    e: float

    def __add__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector addition."""
        return LorentzVector(
            self.px + other.px,
            self.py + other.py,
            self.pz + other.pz,
            self.e + other.e,
        )

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def p(self) -> float:
        return math.sqrt(self.p2)

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def eta(self) -> float:
        return pseudorapidity(self.px, self.py, self.pz)

    @property
    def phi(self) -> float:
        return azimuth(self.px, self.py)

    @property
    def mass2(self) -> float:
        """Invariant mass squared."""
        return self.e * self.e - self.p2

    @property
    def mass(self) -> float:
        """Invariant mass with signed handling for small negative mass2 values."""
        m2 = self.mass2
        return m2**0.5 if m2 >= 0.0 else -((-m2) ** 0.5)


@dataclass(frozen=True)
class TrackInput:
    """One reconstructed barrel track with kinematics and detector information.

    `tpc_nsigma` / `tof_nsigma` map species short names (`pi`, `ka`, ...) to
    the detector n-sigma; absent species read as `NSIGMA_MISSING`.
    """

    global_index: int
    pt: float
    eta: float
    phi: float
    sign: int
    track_type: str = "track"
    is_propagated: bool = True
    tpc_n_cls_found: int = 0
    tpc_n_cls_findable: int = 0
    tpc_n_cls_crossed_rows: int = 0
    tpc_n_cls_shared: int = 0
    tpc_chi2_ncl: float = 0.0
    tpc_inner_param: float = 0.0
    tpc_signal: float = 0.0
    its_n_cls: int = 0
    its_n_cls_inner_barrel: int = 0
    its_chi2_ncl: float = 0.0
    dca_xy: float = 0.0
    dca_z: float = 0.0
    beta: float = NSIGMA_MISSING
    tpc_nsigma: Mapping[str, float] = field(default_factory=dict)
    tof_nsigma: Mapping[str, float] = field(default_factory=dict)

    @property
    def p(self) -> float:
        """Momentum magnitude from pt and eta."""
        return self.pt * math.cosh(self.eta)

    @property
    def px(self) -> float:
        return self.pt * math.cos(self.phi)

    @property
    def py(self) -> float:
        return self.pt * math.sin(self.phi)

    @property
    def pz(self) -> float:
        return self.pt * math.sinh(self.eta)

    @property
    def tpc_crossed_rows_over_findable(self) -> float:
        if self.tpc_n_cls_findable <= 0:
            return 0.0
        return self.tpc_n_cls_crossed_rows / self.tpc_n_cls_findable

    @property
    def tpc_fraction_shared(self) -> float:
        if self.tpc_n_cls_found <= 0:
            return 0.0
        return self.tpc_n_cls_shared / self.tpc_n_cls_found

    @property
    def dca(self) -> float:
        """3D distance of closest approach to the primary vertex."""
        return math.hypot(self.dca_xy, self.dca_z)

    @property
    def is_tracklet(self) -> bool:
        return self.track_type == TRACKLET_TYPE

    def nsigma_tpc(self, species: str) -> float:
        return float(self.tpc_nsigma.get(species, NSIGMA_MISSING))

    def nsigma_tof(self, species: str) -> float:
        return float(self.tof_nsigma.get(species, NSIGMA_MISSING))


@dataclass(frozen=True)
class V0Input:
    """V0 candidate: two daughter tracks meeting at a secondary vertex."""

    pos_track_id: int
    neg_track_id: int
    x: float
    y: float
    z: float
    pos_momentum: Vector3
    neg_momentum: Vector3
    dca_v0_daughters: float
    global_index: int = -1

    @property
    def momentum(self) -> Vector3:
        return (
            self.pos_momentum[0] + self.neg_momentum[0],
            self.pos_momentum[1] + self.neg_momentum[1],
            self.pos_momentum[2] + self.neg_momentum[2],
        )

    @property
    def pt(self) -> float:
        px, py, _ = self.momentum
        return math.hypot(px, py)

    @property
    def eta(self) -> float:
        return pseudorapidity(*self.momentum)

    @property
    def phi(self) -> float:
        px, py, _ = self.momentum
        return azimuth(px, py)

    @property
    def v0_radius(self) -> float:
        """Transverse decay radius."""
        return math.hypot(self.x, self.y)

    @property
    def positive_pt(self) -> float:
        return math.hypot(self.pos_momentum[0], self.pos_momentum[1])

    @property
    def positive_eta(self) -> float:
        return pseudorapidity(*self.pos_momentum)

    @property
    def positive_phi(self) -> float:
        return azimuth(self.pos_momentum[0], self.pos_momentum[1])

    @property
    def negative_pt(self) -> float:
        return math.hypot(self.neg_momentum[0], self.neg_momentum[1])

    @property
    def negative_eta(self) -> float:
        return pseudorapidity(*self.neg_momentum)

    @property
    def negative_phi(self) -> float:
        return azimuth(self.neg_momentum[0], self.neg_momentum[1])


@dataclass(frozen=True)
class AmbiguousTrack:
    """Track reassigned to this collision by best-collision association."""

    track_id: int
    eta: float
    pt: float = 0.0
    best_dca_xy: float = 0.0
    best_dca_z: float = 0.0


@dataclass(frozen=True)
class CollisionInput:
    """One collision payload with its tracks, V0 candidates and event flags."""

    global_index: int
    run_number: int
    timestamp: int
    pos_z: float
    pos_x: float = 0.0
    pos_y: float = 0.0
    mult_fv0m: float = 0.0
    mult_ft0m: float = 0.0
    trigger_aliases: frozenset[int] = frozenset()
    sel7: bool = False
    sel8: bool = False
    tracks: tuple[TrackInput, ...] = ()
    v0s: tuple[V0Input, ...] = ()
    bc_index: int = -1
    found_bc_index: int | None = None
    ambiguous_tracks: tuple[AmbiguousTrack, ...] = ()
    mc_collision_index: int | None = None

    @property
    def primary_vertex(self) -> Vector3:
        return (self.pos_x, self.pos_y, self.pos_z)


@dataclass(frozen=True)
class BunchCrossing:
    """Bunch crossing with the T0 beam-beam decisions used for event statistics."""

    global_index: int
    global_bc: int
    bb_t0a: bool = False
    bb_t0c: bool = False


@dataclass(frozen=True)
class McParticle:
    """Generated particle; `track_ids` lists reconstructed tracks matched to it."""

    mc_collision_index: int
    eta: float
    charge: float
    physical_primary: bool = True
    track_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class McCollision:
    """Generated collision with its vertex and particles."""

    global_index: int
    pos_z: float
    particles: tuple[McParticle, ...] = ()
