"""Phi -> K+K- candidates built from pairs of same-event tracks.

Unlike V0s there is no secondary vertex: every unique unordered pair of
tracks is a candidate. Per pair, the cheap per-leg kinematic gates run first,
then the kaon PID of each leg, then the invariant mass of the summed
4-momenta is required inside the configured window.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Iterator, Sequence

import hist

from .exceptions import ConfigurationError
from .models import CollisionInput, LorentzVector, TrackInput
from .physics import track_to_lorentz
from .pid import hypothesis_from_pdg
from .qa import HistogramRegistry, eta_axis, phi_axis, pt_axis
from .selection import (
    CUT_CONTAINER_BITS,
    CompositeCutContainer,
    ObjectSelection,
    SelectionCriterion,
)
from .track_selection import TrackSelector


@dataclass(frozen=True)
class PhiLegCuts:
    """Per-leg gates applied before PID and mass reconstruction.

    Kinematic windows are inclusive; quality cuts left at `None` are not applied.
    """

    pdg_code: int = 321
    pt_min: float = 0.14
    pt_max: float = 1.5
    p_min: float = 0.14
    p_max: float = 1.5
    eta_min: float = -0.8
    eta_max: float = 0.8
    dca_xy_max: float | None = None
    dca_z_max: float | None = None
    tpc_cls_min: int | None = None
    tpc_crossed_rows_min: int | None = None
    tpc_chi2_max: float | None = None
    its_chi2_max: float | None = None

    def accepts(self, track: TrackInput) -> bool:
        if track.pt < self.pt_min or track.pt > self.pt_max:
            return False
        p = track.p
        if p < self.p_min or p > self.p_max:
            return False
        if track.eta < self.eta_min or track.eta > self.eta_max:
            return False
        if self.dca_xy_max is not None and abs(track.dca_xy) > self.dca_xy_max:
            return False
        if self.dca_z_max is not None and abs(track.dca_z) > self.dca_z_max:
            return False
        if self.tpc_cls_min is not None and track.tpc_n_cls_found < self.tpc_cls_min:
            return False
        if (
            self.tpc_crossed_rows_min is not None
            and track.tpc_n_cls_crossed_rows < self.tpc_crossed_rows_min
        ):
            return False
        if self.tpc_chi2_max is not None and track.tpc_chi2_ncl > self.tpc_chi2_max:
            return False
        if self.its_chi2_max is not None and track.its_chi2_ncl > self.its_chi2_max:
            return False
        return True


@dataclass(frozen=True)
class KaonPID:
    """Kaon hypothesis test combining TPC and TOF n-sigma.

    Below `momentum_threshold` only the TPC n-sigma is used; above it the
    quadratic sum of TPC and TOF n-sigma. At exactly the threshold, and when
    `use_tpc_tof` is off, no track is identified as a kaon.
    """

    use_tpc_tof: bool = True
    nsigma_tpc: float = 5.0
    nsigma_combined: float = 5.0
    momentum_threshold: float = 0.4

    def is_kaon(self, momentum: float, nsigma_tpc: float, nsigma_tof: float) -> bool:
        if not self.use_tpc_tof:
            return False
        if momentum < self.momentum_threshold:
            return abs(nsigma_tpc) < self.nsigma_tpc
        if momentum > self.momentum_threshold:
            return math.hypot(nsigma_tof, nsigma_tpc) < self.nsigma_combined
        return False

    def accepts(self, track: TrackInput) -> bool:
        return self.is_kaon(track.p, track.nsigma_tpc("ka"), track.nsigma_tof("ka"))


class PhiObservable(str, Enum):
    """Observables a Phi-candidate criterion can be configured on."""

    PT_PHI_MIN = "pt_phi_min"
    ETA_PHI_MAX = "eta_phi_max"


def iter_track_pairs(tracks: Sequence[TrackInput]) -> Iterator[tuple[TrackInput, TrackInput]]:
    """Yield every strictly-increasing index pair, skipping tracklets and self-pairs."""
    for first, second in combinations(tracks, 2):
        if first.is_tracklet or second.is_tracklet:
            continue
        if first.global_index == second.global_index:
            continue
        yield first, second


class PhiSelector(ObjectSelection):
    """Selection of Phi candidates from two kaon legs."""

    Observable = PhiObservable

    def __init__(
        self,
        legs: tuple[PhiLegCuts, PhiLegCuts] = (PhiLegCuts(), PhiLegCuts()),
        kaon_pid: KaonPID = KaonPID(),
        width: int = CUT_CONTAINER_BITS,
    ) -> None:
        super().__init__(width)
        self.legs = legs
        self.kaon_pid = kaon_pid
        self.masses = tuple(hypothesis_from_pdg(leg.pdg_code).mass for leg in legs)
        self.children = (
            TrackSelector(width, name="PhiChildren/first"),
            TrackSelector(width, name="PhiChildren/second"),
        )
        self.inv_mass_limits: tuple[float, float] | None = None
        self._registry: HistogramRegistry | None = None

    def set_child_cuts(self, child: int, thresholds, observable, mode) -> SelectionCriterion:
        return self.children[child].set_selection(thresholds, observable, mode)

    def set_child_pid_species(self, child: int, species: Sequence[str | int]) -> None:
        self.children[child].set_pid_species(species)

    def set_inv_mass_limits(self, low: float, high: float) -> None:
        if not low < high:
            raise ConfigurationError(f"Phi invariant mass window [{low}, {high}] is empty.")
        self.inv_mass_limits = (float(low), float(high))

    def passes_legs(self, first: TrackInput, second: TrackInput) -> bool:
        return self.legs[0].accepts(first) and self.legs[1].accepts(second)

    def passes_pid(self, first: TrackInput, second: TrackInput) -> bool:
        return self.kaon_pid.accepts(first) and self.kaon_pid.accepts(second)

    def reconstruct(self, first: TrackInput, second: TrackInput) -> LorentzVector:
        """Summed 4-momentum of both legs under their mass hypotheses."""
        return track_to_lorentz(first, self.masses[0]) + track_to_lorentz(second, self.masses[1])

    def in_mass_window(self, mass: float) -> bool:
        if self.inv_mass_limits is None:
            return True
        low, high = self.inv_mass_limits
        return low <= mass <= high

    def select_pair(
        self, collision: CollisionInput, first: TrackInput, second: TrackInput
    ) -> LorentzVector | None:
        """Return the candidate 4-momentum, or `None` if any stage rejects the pair."""
        if not self.passes_legs(first, second):
            return None
        if not self.passes_pid(first, second):
            return None
        p4 = self.reconstruct(first, second)
        self.fill_mass_qa(p4.mass)
        if not self.in_mass_window(p4.mass):
            return None
        return p4

    def phi_observables(self, p4: LorentzVector) -> dict[str, float]:
        return {
            PhiObservable.PT_PHI_MIN.value: p4.pt,
            PhiObservable.ETA_PHI_MAX.value: p4.eta,
        }

    def cut_container(
        self,
        collision: CollisionInput,
        first: TrackInput,
        second: TrackInput,
        p4: LorentzVector,
    ) -> CompositeCutContainer:
        return CompositeCutContainer(
            parent=self.selection_bits(self.phi_observables(p4)),
            children=(
                self.children[0].cut_container(first),
                self.children[1].cut_container(second),
            ),
        )

    def init_qa(self, registry: HistogramRegistry) -> None:
        registry.add(
            "PhiQA/invMass",
            hist.axis.Regular(300, 0.9, 1.2, name="m", label="m_{KK} (GeV/c^{2})"),
            exist_ok=True,
        )
        registry.add("Phi/pt", pt_axis(), exist_ok=True)
        registry.add("Phi/eta", eta_axis(), exist_ok=True)
        registry.add("Phi/phi", phi_axis(), exist_ok=True)
        for child in self.children:
            child.init_qa(registry)
        self._registry = registry

    def fill_mass_qa(self, mass: float) -> None:
        if self._registry is not None:
            self._registry.fill("PhiQA/invMass", mass)

    def fill_qa(self, p4: LorentzVector, first: TrackInput, second: TrackInput) -> None:
        if self._registry is None:
            return
        self._registry.fill("Phi/pt", p4.pt)
        self._registry.fill("Phi/eta", p4.eta)
        self._registry.fill("Phi/phi", p4.phi)
        self.children[0].fill_qa(first)
        self.children[1].fill_qa(second)
