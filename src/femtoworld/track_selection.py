"""Track selection: minimal pre-filter, full cut container and track QA."""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence

import hist

from .exceptions import ConfigurationError
from .models import TrackInput
from .pid import normalize_species
from .qa import HistogramRegistry, eta_axis, phi_axis, pt_axis
from .selection import (
    CUT_CONTAINER_BITS,
    CutBits,
    CutContainer,
    ObjectSelection,
    SelectionCriterion,
    SelectionType,
)


class TrackObservable(str, Enum):
    """Observables a track criterion can be configured on."""

    SIGN = "sign"
    PT_MIN = "pt_min"
    ETA_MAX = "eta_max"
    TPC_NCLS_MIN = "tpc_ncls_min"
    TPC_FCLS_MIN = "tpc_fcls_min"
    TPC_CROWS_MIN = "tpc_crows_min"
    TPC_SCLS_MAX = "tpc_scls_max"
    TPC_CHI2_MAX = "tpc_chi2_max"
    ITS_NCLS_MIN = "its_ncls_min"
    ITS_NCLS_IB_MIN = "its_ncls_ib_min"
    ITS_CHI2_MAX = "its_chi2_max"
    DCAXY_MAX = "dcaxy_max"
    DCAZ_MAX = "dcaz_max"
    DCA_MIN = "dca_min"
    PID_NSIGMA_MAX = "pid_nsigma_max"


def track_observables(track: TrackInput) -> dict[str, float]:
    """Observed value of every track observable, keyed by observable name."""
    return {
        TrackObservable.SIGN.value: float(track.sign),
        TrackObservable.PT_MIN.value: track.pt,
        TrackObservable.ETA_MAX.value: track.eta,
        TrackObservable.TPC_NCLS_MIN.value: float(track.tpc_n_cls_found),
        TrackObservable.TPC_FCLS_MIN.value: track.tpc_crossed_rows_over_findable,
        TrackObservable.TPC_CROWS_MIN.value: float(track.tpc_n_cls_crossed_rows),
        TrackObservable.TPC_SCLS_MAX.value: track.tpc_fraction_shared,
        TrackObservable.TPC_CHI2_MAX.value: track.tpc_chi2_ncl,
        TrackObservable.ITS_NCLS_MIN.value: float(track.its_n_cls),
        TrackObservable.ITS_NCLS_IB_MIN.value: float(track.its_n_cls_inner_barrel),
        TrackObservable.ITS_CHI2_MAX.value: track.its_chi2_ncl,
        TrackObservable.DCAXY_MAX.value: track.dca_xy,
        TrackObservable.DCAZ_MAX.value: track.dca_z,
        TrackObservable.DCA_MIN.value: track.dca,
    }


class TrackSelector(ObjectSelection):
    """Selection of primary tracks and of composite-candidate daughters.

    The PID n-sigma criterion is kept apart from the other criteria: its
    tiers are evaluated per configured species into the PID bit-set, one TPC
    bit and one combined TPC+TOF bit per (species, tier).
    """

    Observable = TrackObservable

    def __init__(self, width: int = CUT_CONTAINER_BITS, name: str = "Tracks") -> None:
        super().__init__(width)
        self.name = name
        self._pid: SelectionCriterion | None = None
        self.pid_species: tuple[str, ...] = ()
        self.reject_not_propagated = False
        self._registry: HistogramRegistry | None = None
        self._qa_group = name

    def set_selection(self, thresholds, observable, mode) -> SelectionCriterion:
        obs = self._coerce_observable(observable)
        if obs is TrackObservable.PID_NSIGMA_MAX:
            criterion = SelectionCriterion(obs.value, SelectionType.parse(mode), tuple(thresholds))
            self._check_pid_width(self.pid_species, criterion)
            self._pid = criterion
            return criterion
        return super().set_selection(thresholds, obs, mode)

    def set_pid_species(self, species: Sequence[str | int]) -> None:
        parsed = tuple(normalize_species(s) for s in species)
        self._check_pid_width(parsed, self._pid)
        self.pid_species = parsed

    def pid_labels(self) -> tuple[str, ...]:
        if self._pid is None:
            return ()
        return tuple(
            f"{species}_{detector}[{tier}]"
            for species in self.pid_species
            for tier in range(self._pid.n_tiers)
            for detector in ("tpc", "comb")
        )

    def init_qa(self, registry: HistogramRegistry, prefix: str | None = None) -> None:
        """Book the track QA histograms under `prefix` (default: selector name)."""
        group = prefix or self.name
        registry.add(f"{group}/pt", pt_axis(), exist_ok=True)
        registry.add(f"{group}/eta", eta_axis(), exist_ok=True)
        registry.add(f"{group}/phi", phi_axis(), exist_ok=True)
        registry.add(
            f"{group}/tpcNCls", hist.axis.Regular(163, -0.5, 162.5, name="ncls"), exist_ok=True
        )
        registry.add(
            f"{group}/itsNCls", hist.axis.Regular(10, -0.5, 9.5, name="ncls"), exist_ok=True
        )
        registry.add(
            f"{group}/dcaXYvsPt",
            pt_axis(),
            hist.axis.Regular(500, -5.0, 5.0, name="dcaxy", label="DCA_{xy} (cm)"),
            exist_ok=True,
        )
        self._registry = registry
        self._qa_group = group

    def is_selected_minimal(self, track: TrackInput) -> bool:
        """Cheap pre-filter: every criterion at its loosest tier, plus PID."""
        if self.reject_not_propagated and not track.is_propagated:
            return False
        if not self.passes_minimal(track_observables(track)):
            return False
        if self._pid is not None and self.pid_species:
            loosest = self._pid.loosest
            if not any(abs(track.nsigma_tpc(s)) <= loosest for s in self.pid_species):
                return False
        return True

    def cut_container(self, track: TrackInput) -> CutContainer:
        """Full selection and PID bit-sets for one track."""
        return CutContainer(
            selection=self.selection_bits(track_observables(track)),
            pid=self.pid_bits(track),
        )

    def empty_container(self) -> CutContainer:
        return CutContainer(
            selection=self.empty_selection_bits(),
            pid=CutBits.empty(self.pid_labels(), self.width),
        )

    def pid_bits(self, track: TrackInput) -> CutBits:
        flags: list[bool] = []
        if self._pid is not None:
            for species in self.pid_species:
                tpc = track.nsigma_tpc(species)
                combined = math.hypot(tpc, track.nsigma_tof(species))
                for tier in range(self._pid.n_tiers):
                    flags.append(self._pid.passes(tpc, tier))
                    flags.append(self._pid.passes(combined, tier))
        return CutBits.from_flags(flags, self.pid_labels(), self.width)

    def fill_qa(self, track: TrackInput) -> None:
        if self._registry is None:
            return
        group = self._qa_group
        self._registry.fill(f"{group}/pt", track.pt)
        self._registry.fill(f"{group}/eta", track.eta)
        self._registry.fill(f"{group}/phi", track.phi)
        self._registry.fill(f"{group}/tpcNCls", track.tpc_n_cls_found)
        self._registry.fill(f"{group}/itsNCls", track.its_n_cls)
        self._registry.fill(f"{group}/dcaXYvsPt", track.pt, track.dca_xy)

    def _check_pid_width(self, species: Sequence[str], criterion: SelectionCriterion | None) -> None:
        if criterion is None:
            return
        needed = len(species) * criterion.n_tiers * 2
        if needed > self.width:
            raise ConfigurationError(
                f"{self.name}: {needed} PID bits exceed the {self.width}-bit PID container."
            )
