"""Derived output records and the append-only tables holding them."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, ClassVar, Iterator

from .models import TrackInput
from .pid import STORED_SPECIES

ChildLinks = tuple[int | None, int | None]

NO_CHILDREN: ChildLinks = (None, None)


class ParticleType(IntEnum):
    TRACK = 0
    V0 = 1
    V0_CHILD = 2
    PHI = 3
    PHI_CHILD = 4


@dataclass(frozen=True)
class CollisionRecord:
    pos_z: float
    multiplicity: float
    sphericity: float
    mag_field: float


@dataclass(frozen=True)
class DetectorInfo:
    """Detector-level observables carried by track-like particle rows."""

    sign: int
    beta: float
    its_chi2_ncl: float
    tpc_chi2_ncl: float
    tpc_n_cls_found: int
    tpc_n_cls_findable: int
    tpc_n_cls_crossed_rows: int
    tpc_n_cls_shared: int
    tpc_inner_param: float
    its_n_cls: int
    its_n_cls_inner_barrel: int
    dca_xy: float
    dca_z: float
    tpc_signal: float
    tpc_nsigma: tuple[float, ...]
    tof_nsigma: tuple[float, ...]

    @classmethod
    def from_track(cls, track: TrackInput) -> "DetectorInfo":
        return cls(
            sign=track.sign,
            beta=track.beta,
            its_chi2_ncl=track.its_chi2_ncl,
            tpc_chi2_ncl=track.tpc_chi2_ncl,
            tpc_n_cls_found=track.tpc_n_cls_found,
            tpc_n_cls_findable=track.tpc_n_cls_findable,
            tpc_n_cls_crossed_rows=track.tpc_n_cls_crossed_rows,
            tpc_n_cls_shared=track.tpc_n_cls_shared,
            tpc_inner_param=track.tpc_inner_param,
            its_n_cls=track.its_n_cls,
            its_n_cls_inner_barrel=track.its_n_cls_inner_barrel,
            dca_xy=track.dca_xy,
            dca_z=track.dca_z,
            tpc_signal=track.tpc_signal,
            tpc_nsigma=tuple(track.nsigma_tpc(s) for s in STORED_SPECIES),
            tof_nsigma=tuple(track.nsigma_tof(s) for s in STORED_SPECIES),
        )

    def as_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("tpc_nsigma", "tof_nsigma")
        }
        for species, tpc, tof in zip(STORED_SPECIES, self.tpc_nsigma, self.tof_nsigma, strict=True):
            row[f"tpc_nsigma_{species}"] = tpc
            row[f"tof_nsigma_{species}"] = tof
        return row


@dataclass(frozen=True, kw_only=True)
class ParticleRecord:
    """Fields shared by every particle row.

    `children` holds the row indices of linked particles in the same table;
    `None` means not linked.
    """

    particle_type: ClassVar[ParticleType]

    collision_index: int
    pt: float
    eta: float
    phi: float
    p: float
    mass: float
    cut: int = 0
    pid_cut: int = 0
    children: ChildLinks = NO_CHILDREN

    def as_row(self) -> dict[str, Any]:
        """Flat column dictionary for table export."""
        row: dict[str, Any] = {
            "collision_index": self.collision_index,
            "particle_type": self.particle_type.name,
            "pt": self.pt,
            "eta": self.eta,
            "phi": self.phi,
            "p": self.p,
            "mass": self.mass,
            "cut": self.cut,
            "pid_cut": self.pid_cut,
            "child_0": self.children[0],
            "child_1": self.children[1],
        }
        row.update(self._extra_columns())
        return row

    def _extra_columns(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True, kw_only=True)
class _TrackLike(ParticleRecord):
    detector: DetectorInfo

    def _extra_columns(self) -> dict[str, Any]:
        return self.detector.as_row()


@dataclass(frozen=True, kw_only=True)
class TrackParticle(_TrackLike):
    particle_type: ClassVar[ParticleType] = ParticleType.TRACK


@dataclass(frozen=True, kw_only=True)
class V0ChildParticle(_TrackLike):
    particle_type: ClassVar[ParticleType] = ParticleType.V0_CHILD


@dataclass(frozen=True, kw_only=True)
class PhiChildParticle(_TrackLike):
    particle_type: ClassVar[ParticleType] = ParticleType.PHI_CHILD


@dataclass(frozen=True, kw_only=True)
class V0Particle(ParticleRecord):
    particle_type: ClassVar[ParticleType] = ParticleType.V0

    cos_pa: float
    m_lambda: float
    m_anti_lambda: float

    def _extra_columns(self) -> dict[str, Any]:
        return {
            "cos_pa": self.cos_pa,
            "m_lambda": self.m_lambda,
            "m_anti_lambda": self.m_anti_lambda,
        }


@dataclass(frozen=True, kw_only=True)
class PhiParticle(ParticleRecord):
    particle_type: ClassVar[ParticleType] = ParticleType.PHI


@dataclass
class DerivedTables:
    """Append-only collision and particle tables; indices assigned on append."""

    collisions: list[CollisionRecord] = field(default_factory=list)
    particles: list[ParticleRecord] = field(default_factory=list)

    def add_collision(self, record: CollisionRecord) -> int:
        self.collisions.append(record)
        return len(self.collisions) - 1

    def add_particle(self, record: ParticleRecord) -> int:
        self.particles.append(record)
        return len(self.particles) - 1

    def particles_of(self, collision_index: int) -> Iterator[tuple[int, ParticleRecord]]:
        for row, particle in enumerate(self.particles):
            if particle.collision_index == collision_index:
                yield row, particle

    def of_type(self, particle_type: ParticleType) -> list[ParticleRecord]:
        return [p for p in self.particles if p.particle_type == particle_type]

    def collision_rows(self) -> list[dict[str, Any]]:
        return [
            {
                "pos_z": c.pos_z,
                "multiplicity": c.multiplicity,
                "sphericity": c.sphericity,
                "mag_field": c.mag_field,
            }
            for c in self.collisions
        ]

    def particle_rows(self) -> list[dict[str, Any]]:
        return [p.as_row() for p in self.particles]
