"""Charged-particle pseudorapidity density (dN/deta) counting.

Histograms are filled with axes (event class, trigger class, centrality,
z-vertex, eta). Only the INEL event class and the MBAND trigger class are
produced at the moment; centrality is a fixed placeholder value.
"""

from __future__ import annotations

import logging
import math
from enum import IntEnum
from typing import Iterable, Sequence

import hist

from .config import MultiplicityConfig
from .models import (
    AmbiguousTrack,
    BunchCrossing,
    CollisionInput,
    McCollision,
    McParticle,
    TrackInput,
)
from .qa import HistogramRegistry

logger = logging.getLogger(__name__)

SELECTION_LABELS = (
    "All",
    "Selected",
    "Selected INEL>0",
    "Rejected",
    "Good BCs",
    "BCs with collisions",
    "BCs with pile-up/splitting",
)


class EventClass(IntEnum):
    DATA = 1
    INEL = 2


class TriggerClass(IntEnum):
    MBAND = 1


class MultiplicityCounter:
    """Fill event statistics and reconstructed / generated dN/deta histograms."""

    def __init__(
        self,
        config: MultiplicityConfig = MultiplicityConfig(),
        registry: HistogramRegistry | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else HistogramRegistry("registry")
        self._book()

    def _book(self) -> None:
        cfg = self.config
        event_class = hist.axis.IntCategory([int(c) for c in EventClass], name="eventclass")
        trigger_class = hist.axis.IntCategory([int(c) for c in TriggerClass], name="triggclass")
        centrality = hist.axis.Variable(list(cfg.centrality_edges), name="centrality")
        z = hist.axis.Regular(*cfg.z_bins, name="zaxis")
        eta = hist.axis.Regular(*cfg.eta_bins, name="etaaxis")

        self.registry.add("Events/Selection", hist.axis.StrCategory(list(SELECTION_LABELS), name="status"))
        self.registry.add("hrecdndeta", event_class, trigger_class, centrality, z, eta)
        self.registry.add("hreczvtx", event_class, trigger_class, centrality, z)
        self.registry.add("hgendndeta", event_class, centrality, z, eta)
        self.registry.add("hgenzvtx", event_class, centrality, z)

    def is_selected(self, collision: CollisionInput) -> bool:
        return not self.config.use_event_selection or collision.sel8

    def accepts_track(self, track: TrackInput) -> bool:
        """Global-track DCA cuts: pt-dependent DCAxy and a fixed DCAz limit."""
        if not self.config.apply_dca_cuts:
            return True
        if abs(track.dca_z) > self.config.dcaz_max:
            return False
        return abs(track.dca_xy) <= max_dca_xy(track.pt)

    def accepts_ambiguous(self, track: AmbiguousTrack) -> bool:
        """Same cuts on the DCA to the best-associated collision."""
        if not self.config.apply_dca_cuts:
            return True
        if abs(track.best_dca_z) > self.config.dcaz_max:
            return False
        return abs(track.best_dca_xy) <= max_dca_xy(track.pt)

    def process_event_stat(
        self, bcs: Sequence[BunchCrossing], collisions: Sequence[CollisionInput]
    ) -> None:
        """Count good bunch crossings and how many collisions each one holds."""
        for bc in bcs:
            if self.config.use_event_selection and not (bc.bb_t0a and bc.bb_t0c):
                continue
            self._count("Good BCs")
            matched = [c for c in collisions if _bc_of(c) == bc.global_index]
            logger.debug("BC %d has %d collisions", bc.global_bc, len(matched))
            if matched:
                self._count("BCs with collisions")
                if len(matched) > 1:
                    self._count("BCs with pile-up/splitting")

    def process_counting(self, collision: CollisionInput) -> None:
        """Reconstructed z-vertex and dN/deta of one collision.

        Ambiguous tracks enter with their reassigned eta; a track listed as
        ambiguous is not counted a second time.
        """
        self._count("All")
        if not self.is_selected(collision):
            return
        self._count("Selected")
        z = collision.pos_z
        centrality = self.config.default_centrality
        self.registry.fill(
            "hreczvtx", int(EventClass.DATA), int(TriggerClass.MBAND), centrality, z
        )
        used = {t.track_id for t in collision.ambiguous_tracks}
        etas = [t.eta for t in collision.ambiguous_tracks if self.accepts_ambiguous(t)]
        etas.extend(
            t.eta
            for t in collision.tracks
            if t.global_index not in used and self.accepts_track(t)
        )
        for eta in etas:
            self.registry.fill(
                "hrecdndeta", int(EventClass.INEL), int(TriggerClass.MBAND), centrality, z, eta
            )

    def process_mc_counting(
        self, collisions: Iterable[CollisionInput], mc_particles: Iterable[McParticle]
    ) -> None:
        """Reconstructed tracks matched to generated primaries, at their generated eta."""
        estimator = self.config.estimator_eta
        by_track: dict[int, McParticle] = {}
        for particle in mc_particles:
            if not particle.physical_primary:
                continue
            for track_id in particle.track_ids:
                by_track[track_id] = particle
        centrality = self.config.default_centrality
        for collision in collisions:
            if not self.is_selected(collision) or collision.mc_collision_index is None:
                continue
            z = collision.pos_z
            self.registry.fill(
                "hreczvtx", int(EventClass.INEL), int(TriggerClass.MBAND), centrality, z
            )
            used = {t.track_id for t in collision.ambiguous_tracks}
            track_ids = [t.track_id for t in collision.ambiguous_tracks]
            track_ids.extend(
                t.global_index
                for t in collision.tracks
                if t.global_index not in used
                and abs(t.eta) < estimator
                and self.accepts_track(t)
            )
            for track_id in track_ids:
                particle = by_track.get(track_id)
                if particle is None:
                    continue
                self.registry.fill(
                    "hrecdndeta",
                    int(EventClass.INEL),
                    int(TriggerClass.MBAND),
                    centrality,
                    z,
                    particle.eta,
                )

    def process_gen(
        self, mc_collision: McCollision, particles: Iterable[McParticle] | None = None
    ) -> None:
        """Generated z-vertex and dN/deta of charged physical primaries."""
        estimator = self.config.estimator_eta
        centrality = self.config.default_centrality
        z = mc_collision.pos_z
        self.registry.fill("hgenzvtx", int(EventClass.INEL), centrality, z)
        for particle in mc_collision.particles if particles is None else particles:
            if not particle.physical_primary or abs(particle.eta) >= estimator:
                continue
            if abs(particle.charge) < 1.0:
                continue
            self.registry.fill("hgendndeta", int(EventClass.INEL), centrality, z, particle.eta)

    def selection_count(self, label: str) -> float:
        return self.registry.bin_content("Events/Selection", label)

    def _count(self, label: str) -> None:
        self.registry.fill("Events/Selection", label)


def _bc_of(collision: CollisionInput) -> int:
    if collision.found_bc_index is not None:
        return collision.found_bc_index
    return collision.bc_index


def max_dca_xy(pt: float) -> float:
    """pt-dependent DCAxy limit (cm); the constant term alone when pt is unknown."""
    if pt <= 0.0:
        return 0.0105
    return 0.0105 + 0.0350 / math.pow(pt, 1.1)
