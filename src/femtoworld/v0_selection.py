"""V0 (Lambda / anti-Lambda) selection with per-daughter track selections.

A V0 is evaluated in three stages, cheapest first:
1. V0 transverse momentum and the minimal selection of both daughters.
2. Topology: daughter DCA, cosine of pointing angle, transverse decay
   radius window and decay-vertex extent.
3. Invariant mass: Lambda or anti-Lambda mass inside the configured window,
   with an optional K0s mass window acting as an independent veto.

Only candidates passing all three stages get non-zero bits.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Sequence

import hist

from .exceptions import ConfigurationError
from .models import CollisionInput, TrackInput, V0Input
from .physics import (
    anti_lambda_mass,
    decay_vertex_max,
    k0short_mass,
    lambda_mass,
    v0_cos_pointing_angle,
)
from .qa import HistogramRegistry, eta_axis, phi_axis, pt_axis
from .selection import (
    CUT_CONTAINER_BITS,
    CompositeCutContainer,
    ObjectSelection,
    SelectionCriterion,
)
from .track_selection import TrackSelector


class V0Observable(str, Enum):
    """Observables a V0 criterion can be configured on."""

    V0_SIGN = "v0_sign"
    PT_V0_MIN = "pt_v0_min"
    DCA_V0_DAUGH_MAX = "dca_v0_daugh_max"
    CPA_V0_MIN = "cpa_v0_min"
    TRAN_RAD_V0_MIN = "tran_rad_v0_min"
    TRAN_RAD_V0_MAX = "tran_rad_v0_max"
    DEC_VTX_MAX = "dec_vtx_max"


class V0Child(IntEnum):
    POS = 0
    NEG = 1


_TOPOLOGY = (
    V0Observable.DCA_V0_DAUGH_MAX,
    V0Observable.CPA_V0_MIN,
    V0Observable.TRAN_RAD_V0_MIN,
    V0Observable.TRAN_RAD_V0_MAX,
    V0Observable.DEC_VTX_MAX,
)


def _mass_axis(name: str) -> hist.axis.Regular:
    return hist.axis.Regular(400, 1.0, 1.2, name=name, label="m (GeV/c^{2})")


class V0Selector(ObjectSelection):
    """Selection of Lambda candidates reconstructed at a secondary vertex."""

    Observable = V0Observable

    def __init__(self, width: int = CUT_CONTAINER_BITS) -> None:
        super().__init__(width)
        self.children = (
            TrackSelector(width, name="V0Children/pos"),
            TrackSelector(width, name="V0Children/neg"),
        )
        self.inv_mass_limits: tuple[float, float] | None = None
        self.kaon_inv_mass_limits: tuple[float, float] | None = None
        self._registry: HistogramRegistry | None = None

    def set_child_cuts(
        self,
        child: V0Child | int,
        thresholds: Sequence[float],
        observable,
        mode,
    ) -> SelectionCriterion:
        return self.children[V0Child(child)].set_selection(thresholds, observable, mode)

    def set_child_pid_species(self, child: V0Child | int, species: Sequence[str | int]) -> None:
        self.children[V0Child(child)].set_pid_species(species)

    def set_inv_mass_limits(self, low: float, high: float) -> None:
        self.inv_mass_limits = _checked_window("V0 invariant mass", low, high)

    def set_kaon_inv_mass_limits(self, low: float, high: float) -> None:
        self.kaon_inv_mass_limits = _checked_window("K0s rejection", low, high)

    def v0_sign(self, v0: V0Input) -> int:
        """+1 for a Lambda in the mass window, -1 for an anti-Lambda, 0 for neither."""
        if self.inv_mass_limits is None:
            return 1
        low, high = self.inv_mass_limits
        if low <= lambda_mass(v0) <= high:
            return 1
        if low <= anti_lambda_mass(v0) <= high:
            return -1
        return 0

    def v0_observables(self, collision: CollisionInput, v0: V0Input) -> dict[str, float]:
        return {
            V0Observable.V0_SIGN.value: float(self.v0_sign(v0)),
            V0Observable.PT_V0_MIN.value: v0.pt,
            V0Observable.DCA_V0_DAUGH_MAX.value: v0.dca_v0_daughters,
            V0Observable.CPA_V0_MIN.value: v0_cos_pointing_angle(v0, collision.primary_vertex),
            V0Observable.TRAN_RAD_V0_MIN.value: v0.v0_radius,
            V0Observable.TRAN_RAD_V0_MAX.value: v0.v0_radius,
            V0Observable.DEC_VTX_MAX.value: decay_vertex_max(v0),
        }

    def passes_mass_window(self, v0: V0Input) -> bool:
        if self.kaon_inv_mass_limits is not None:
            low, high = self.kaon_inv_mass_limits
            if low <= k0short_mass(v0) <= high:
                return False
        return self.v0_sign(v0) != 0

    def is_selected_minimal(
        self,
        collision: CollisionInput,
        v0: V0Input,
        pos: TrackInput,
        neg: TrackInput,
    ) -> bool:
        values = self.v0_observables(collision, v0)
        if not self._passes(V0Observable.PT_V0_MIN, values):
            return False
        if not (
            self.children[V0Child.POS].is_selected_minimal(pos)
            and self.children[V0Child.NEG].is_selected_minimal(neg)
        ):
            return False
        if not all(self._passes(obs, values) for obs in _TOPOLOGY):
            return False
        if not self.passes_mass_window(v0):
            return False
        return self._passes(V0Observable.V0_SIGN, values)

    def cut_container(
        self,
        collision: CollisionInput,
        v0: V0Input,
        pos: TrackInput,
        neg: TrackInput,
    ) -> CompositeCutContainer:
        """Bits of the V0 and of both daughters; all zero unless every stage passes."""
        if not self.is_selected_minimal(collision, v0, pos, neg):
            return CompositeCutContainer(
                parent=self.empty_selection_bits(),
                children=(
                    self.children[V0Child.POS].empty_container(),
                    self.children[V0Child.NEG].empty_container(),
                ),
            )
        return CompositeCutContainer(
            parent=self.selection_bits(self.v0_observables(collision, v0)),
            children=(
                self.children[V0Child.POS].cut_container(pos),
                self.children[V0Child.NEG].cut_container(neg),
            ),
        )

    def init_qa(self, registry: HistogramRegistry) -> None:
        registry.add("LambdaQA/invMassLambda", _mass_axis("m"), exist_ok=True)
        registry.add("LambdaQA/invMassAntiLambda", _mass_axis("m"), exist_ok=True)
        registry.add(
            "LambdaQA/invMassK0s",
            hist.axis.Regular(200, 0.4, 0.6, name="m", label="m_{#pi#pi} (GeV/c^{2})"),
            exist_ok=True,
        )
        registry.add("V0/pt", pt_axis(), exist_ok=True)
        registry.add("V0/eta", eta_axis(), exist_ok=True)
        registry.add("V0/phi", phi_axis(), exist_ok=True)
        registry.add(
            "V0/dcaDaughters", hist.axis.Regular(100, 0.0, 2.0, name="dca"), exist_ok=True
        )
        registry.add("V0/cpa", hist.axis.Regular(100, 0.9, 1.0, name="cpa"), exist_ok=True)
        registry.add(
            "V0/transRadius", hist.axis.Regular(200, 0.0, 100.0, name="r"), exist_ok=True
        )
        for child in self.children:
            child.init_qa(registry)
        self._registry = registry

    def fill_lambda_qa(
        self, collision: CollisionInput, v0: V0Input, pos: TrackInput, neg: TrackInput
    ) -> None:
        """Mass spectra of every candidate, before any selection."""
        if self._registry is None:
            return
        self._registry.fill("LambdaQA/invMassLambda", lambda_mass(v0))
        self._registry.fill("LambdaQA/invMassAntiLambda", anti_lambda_mass(v0))
        self._registry.fill("LambdaQA/invMassK0s", k0short_mass(v0))

    def fill_qa(
        self, collision: CollisionInput, v0: V0Input, pos: TrackInput, neg: TrackInput
    ) -> None:
        if self._registry is None:
            return
        self._registry.fill("V0/pt", v0.pt)
        self._registry.fill("V0/eta", v0.eta)
        self._registry.fill("V0/phi", v0.phi)
        self._registry.fill("V0/dcaDaughters", v0.dca_v0_daughters)
        self._registry.fill("V0/cpa", v0_cos_pointing_angle(v0, collision.primary_vertex))
        self._registry.fill("V0/transRadius", v0.v0_radius)
        self.children[V0Child.POS].fill_qa(pos)
        self.children[V0Child.NEG].fill_qa(neg)

    def _passes(self, observable: V0Observable, values: dict[str, float]) -> bool:
        criterion = self.criterion(observable)
        return criterion is None or criterion.passes_minimal(values[criterion.observable])


def _checked_window(name: str, low: float, high: float) -> tuple[float, float]:
    if not low < high:
        raise ConfigurationError(f"{name} window [{low}, {high}] is empty.")
    return (float(low), float(high))
