"""Derived-table production: event, track, V0 and Phi candidate rows.

Rows are appended to `DerivedTables` in a fixed order per collision: the
collision row, then accepted tracks in input order, then V0 candidates in
input order, then Phi candidates in pair order. Composite candidates are
written as two child rows followed by the parent row that references them.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable, Mapping

from .config import (
    ProducerConfig,
    build_collision_selector,
    build_phi_selector,
    build_track_selector,
    build_v0_selector,
)
from .conditions import ConditionsDatabase, MagneticFieldCache
from .models import CollisionInput, TrackInput
from .phi_selection import iter_track_pairs
from .physics import anti_lambda_mass, lambda_mass, norm3, v0_cos_pointing_angle
from .qa import HistogramRegistry
from .records import (
    CollisionRecord,
    DerivedTables,
    DetectorInfo,
    PhiChildParticle,
    PhiParticle,
    TrackParticle,
    V0ChildParticle,
    V0Particle,
)

logger = logging.getLogger(__name__)


class CandidateProducer:
    """Apply the configured selections to collisions and fill the derived tables.

    All selectors are configured once at construction; a configuration
    error surfaces here, before the first collision is processed.
    """

    def __init__(
        self,
        config: ProducerConfig,
        conditions: ConditionsDatabase,
        registry: HistogramRegistry | None = None,
        tables: DerivedTables | None = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else HistogramRegistry()
        self.tables = tables if tables is not None else DerivedTables()
        self.field_cache = MagneticFieldCache(conditions)
        self.counts: Counter[str] = Counter()
        # Global track index -> track, over every collision indexed so far.
        self.track_index: dict[int, TrackInput] = {}

        self.collision_selector = build_collision_selector(config.event)
        self.collision_selector.init_qa(self.registry)
        self.track_selector = build_track_selector(config.track)
        self.track_selector.init_qa(self.registry)
        self.v0_selector = None
        if config.store_v0:
            self.v0_selector = build_v0_selector(config.v0, config.reject_not_propagated)
            self.v0_selector.init_qa(self.registry)
        self.phi_selector = None
        if config.store_phi:
            self.phi_selector = build_phi_selector(config.phi)
            self.phi_selector.init_qa(self.registry)

    def index_tracks(self, collisions: Iterable[CollisionInput]) -> None:
        """Make the tracks of `collisions` resolvable as V0 daughters of any collision."""
        for collision in collisions:
            for track in collision.tracks:
                self.track_index[track.global_index] = track

    def process_all(self, collisions: Iterable[CollisionInput]) -> DerivedTables:
        collisions = list(collisions)
        self.index_tracks(collisions)
        for collision in collisions:
            self.process(collision)
        logger.info(
            "Processed %d collisions: %d stored, %d tracks, %d V0s, %d Phi candidates",
            self.counts["collisions"],
            self.counts["stored_collisions"],
            self.counts["tracks"],
            self.counts["v0s"],
            self.counts["phis"],
        )
        if self.counts["v0s_missing_daughter"]:
            logger.warning(
                "Skipped %d V0s with a daughter track absent from the input",
                self.counts["v0s_missing_daughter"],
            )
        return self.tables

    def process(self, collision: CollisionInput) -> int | None:
        """Process one collision; return its row in the collision table, if stored."""
        self.counts["collisions"] += 1
        mag_field = self.field_cache.resolve(collision.run_number, collision.timestamp)
        selector = self.collision_selector
        sphericity = selector.compute_sphericity(collision)
        record = CollisionRecord(
            pos_z=collision.pos_z,
            multiplicity=selector.multiplicity(collision),
            sphericity=sphericity,
            mag_field=mag_field,
        )

        if not selector.is_selected(collision):
            if not self.config.store_all_events:
                return None
            self.counts["stored_collisions"] += 1
            # Rejected collisions always carry FV0M, in Run 3 as well.
            return self.tables.add_collision(replace(record, multiplicity=collision.mult_fv0m))

        selector.fill_qa(collision, sphericity)
        collision_row = self.tables.add_collision(record)
        self.counts["stored_collisions"] += 1

        daughter_rows = self._write_tracks(collision, collision_row)
        n_v0 = self._write_v0s(collision, collision_row, daughter_rows)
        n_phi = self._write_phis(collision, collision_row, daughter_rows)
        logger.debug(
            "Collision %d: %d tracks, %d V0s, %d Phi candidates",
            collision.global_index,
            len(daughter_rows),
            n_v0,
            n_phi,
        )
        return collision_row

    def _write_tracks(self, collision: CollisionInput, collision_row: int) -> dict[int, int]:
        """Write accepted tracks; return global track index -> particle row."""
        daughter_rows: dict[int, int] = {}
        for track in collision.tracks:
            if not self.track_selector.is_selected_minimal(track):
                continue
            self.track_selector.fill_qa(track)
            container = self.track_selector.cut_container(track)
            row = self.tables.add_particle(
                TrackParticle(
                    collision_index=collision_row,
                    pt=track.pt,
                    eta=track.eta,
                    phi=track.phi,
                    p=track.p,
                    mass=0.0,
                    cut=int(container.selection),
                    pid_cut=int(container.pid),
                    detector=DetectorInfo.from_track(track),
                )
            )
            daughter_rows[track.global_index] = row
        self.counts["tracks"] += len(daughter_rows)
        return daughter_rows

    def _write_v0s(
        self, collision: CollisionInput, collision_row: int, daughter_rows: Mapping[int, int]
    ) -> int:
        if self.v0_selector is None:
            return 0
        selector = self.v0_selector
        tracks = {t.global_index: t for t in collision.tracks}
        written = 0
        for v0 in collision.v0s:
            pos = self._daughter(tracks, v0.pos_track_id)
            neg = self._daughter(tracks, v0.neg_track_id)
            if pos is None or neg is None:
                logger.warning(
                    "Collision %d: skipping V0 with daughters (%d, %d), track not found",
                    collision.global_index,
                    v0.pos_track_id,
                    v0.neg_track_id,
                )
                self.counts["v0s_missing_daughter"] += 1
                continue
            selector.fill_lambda_qa(collision, v0, pos, neg)
            if not selector.is_selected_minimal(collision, v0, pos, neg):
                continue
            selector.fill_qa(collision, v0, pos, neg)
            container = selector.cut_container(collision, v0, pos, neg)
            if not container.is_accepted():
                continue

            pos_cuts, neg_cuts = container.children
            pos_row = self.tables.add_particle(
                V0ChildParticle(
                    collision_index=collision_row,
                    pt=v0.positive_pt,
                    eta=v0.positive_eta,
                    phi=v0.positive_phi,
                    p=norm3(v0.pos_momentum),
                    mass=0.0,
                    cut=int(pos_cuts.selection),
                    pid_cut=int(pos_cuts.pid),
                    children=(daughter_rows.get(pos.global_index), None),
                    detector=DetectorInfo.from_track(pos),
                )
            )
            neg_row = self.tables.add_particle(
                V0ChildParticle(
                    collision_index=collision_row,
                    pt=v0.negative_pt,
                    eta=v0.negative_eta,
                    phi=v0.negative_phi,
                    p=norm3(v0.neg_momentum),
                    mass=0.0,
                    cut=int(neg_cuts.selection),
                    pid_cut=int(neg_cuts.pid),
                    children=(None, daughter_rows.get(neg.global_index)),
                    detector=DetectorInfo.from_track(neg),
                )
            )
            m_lambda = lambda_mass(v0)
            m_anti_lambda = anti_lambda_mass(v0)
            self.tables.add_particle(
                V0Particle(
                    collision_index=collision_row,
                    pt=v0.pt,
                    eta=v0.eta,
                    phi=v0.phi,
                    p=norm3(v0.momentum),
                    mass=m_lambda if selector.v0_sign(v0) >= 0 else m_anti_lambda,
                    cut=int(container.parent),
                    children=(pos_row, neg_row),
                    cos_pa=v0_cos_pointing_angle(v0, collision.primary_vertex),
                    m_lambda=m_lambda,
                    m_anti_lambda=m_anti_lambda,
                )
            )
            written += 1
        self.counts["v0s"] += written
        return written

    def _daughter(self, tracks: Mapping[int, TrackInput], global_index: int) -> TrackInput | None:
        """Daughter from this collision, else from any indexed collision."""
        track = tracks.get(global_index)
        if track is None:
            track = self.track_index.get(global_index)
        return track

    def _write_phis(
        self, collision: CollisionInput, collision_row: int, daughter_rows: Mapping[int, int]
    ) -> int:
        if self.phi_selector is None:
            return 0
        selector = self.phi_selector
        written = 0
        for first, second in iter_track_pairs(collision.tracks):
            p4 = selector.select_pair(collision, first, second)
            if p4 is None:
                continue
            selector.fill_qa(p4, first, second)
            container = selector.cut_container(collision, first, second, p4)
            if self.config.phi.require_selection_bits and not container.is_accepted():
                continue

            first_cuts, second_cuts = container.children
            first_row = self.tables.add_particle(
                PhiChildParticle(
                    collision_index=collision_row,
                    pt=first.pt,
                    eta=first.eta,
                    phi=first.phi,
                    p=first.p,
                    mass=selector.masses[0],
                    cut=int(first_cuts.selection),
                    pid_cut=int(first_cuts.pid),
                    children=(daughter_rows.get(first.global_index), None),
                    detector=DetectorInfo.from_track(first),
                )
            )
            second_row = self.tables.add_particle(
                PhiChildParticle(
                    collision_index=collision_row,
                    pt=second.pt,
                    eta=second.eta,
                    phi=second.phi,
                    p=second.p,
                    mass=selector.masses[1],
                    cut=int(second_cuts.selection),
                    pid_cut=int(second_cuts.pid),
                    children=(None, daughter_rows.get(second.global_index)),
                    detector=DetectorInfo.from_track(second),
                )
            )
            self.tables.add_particle(
                PhiParticle(
                    collision_index=collision_row,
                    pt=p4.pt,
                    eta=p4.eta,
                    phi=p4.phi,
                    p=p4.p,
                    mass=p4.mass,
                    cut=int(container.parent),
                    children=(first_row, second_row),
                )
            )
            written += 1
        self.counts["phis"] += written
        return written
