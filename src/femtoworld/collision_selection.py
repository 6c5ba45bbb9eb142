"""Event selection: vertex, trigger and offline acceptance plus event shape."""

from __future__ import annotations

import logging
from typing import Sequence

import hist

from .models import CollisionInput, TrackInput
from .physics import transverse_sphericity
from .qa import HistogramRegistry

logger = logging.getLogger(__name__)

# Trigger alias of the Run 2 minimum-bias trigger.
K_INT7 = 1


class CollisionSelector:
    """Accept or reject a collision and compute its event-level observables.

    Run 2 data is checked against a trigger alias and the `sel7` offline flag
    and uses the FV0M multiplicity. Run 3 data is checked against `sel8` and
    uses FT0M.
    """

    def __init__(
        self,
        zvtx_max: float = 10.0,
        check_trigger: bool = True,
        trigger_sel: int = K_INT7,
        check_offline: bool = False,
        is_run3: bool = False,
    ) -> None:
        self.zvtx_max = zvtx_max
        self.check_trigger = check_trigger
        self.trigger_sel = trigger_sel
        self.check_offline = check_offline
        self.is_run3 = is_run3
        self._registry: HistogramRegistry | None = None

    def init_qa(self, registry: HistogramRegistry) -> None:
        registry.add(
            "Event/zvtxhist", hist.axis.Regular(300, -15.0, 15.0, name="z", label="v_{z} (cm)"),
            exist_ok=True,
        )
        mult_name = "MultT0M" if self.is_run3 else "MultV0M"
        registry.add(
            f"Event/{mult_name}", hist.axis.Regular(1000, 0.0, 1000.0, name="mult"), exist_ok=True
        )
        registry.add(
            "Event/Sphericity", hist.axis.Regular(100, 0.0, 3.0, name="sph"), exist_ok=True
        )
        self._registry = registry

    def is_selected(self, collision: CollisionInput) -> bool:
        if abs(collision.pos_z) > self.zvtx_max:
            return False
        if self.is_run3:
            if self.check_offline and not collision.sel8:
                return False
        else:
            if self.check_trigger and self.trigger_sel not in collision.trigger_aliases:
                return False
            if self.check_offline and not collision.sel7:
                return False
        return True

    def multiplicity(self, collision: CollisionInput) -> float:
        return collision.mult_ft0m if self.is_run3 else collision.mult_fv0m

    def compute_sphericity(
        self, collision: CollisionInput, tracks: Sequence[TrackInput] | None = None
    ) -> float:
        """Transverse sphericity of `tracks` (default: all tracks of the collision)."""
        return transverse_sphericity(collision.tracks if tracks is None else tracks)

    def fill_qa(self, collision: CollisionInput, sphericity: float | None = None) -> None:
        if self._registry is None:
            return
        if sphericity is None:
            sphericity = self.compute_sphericity(collision)
        self._registry.fill("Event/zvtxhist", collision.pos_z)
        mult_name = "MultT0M" if self.is_run3 else "MultV0M"
        self._registry.fill(f"Event/{mult_name}", self.multiplicity(collision))
        self._registry.fill("Event/Sphericity", sphericity)
