"""Named QA histogram registry backed by `hist.Hist`.

Tasks book their histograms once at construction and fill them as a side
effect while processing; nothing in the selection logic reads them back.
"""

from __future__ import annotations

import logging
import math
from typing import Iterator

import hist

logger = logging.getLogger(__name__)


def pt_axis(bins: int = 100, stop: float = 10.0) -> hist.axis.Regular:
    return hist.axis.Regular(bins, 0.0, stop, name="pt", label="p_{T} (GeV/c)")


def eta_axis() -> hist.axis.Regular:
    return hist.axis.Regular(100, -2.0, 2.0, name="eta", label="#eta")


def phi_axis() -> hist.axis.Regular:
    return hist.axis.Regular(100, 0.0, 2.0 * math.pi, name="phi", label="#phi")


class HistogramRegistry:
    """Dictionary-like store of histograms addressed by `"Group/name"` paths."""

    def __init__(self, name: str = "QAHistos") -> None:
        self.name = name
        self._hists: dict[str, hist.Hist] = {}

    def add(self, path: str, *axes: hist.axis.AxesMixin, exist_ok: bool = False) -> hist.Hist:
        """Book a histogram. Re-booking an existing path returns it when `exist_ok`."""
        if path in self._hists:
            if exist_ok:
                return self._hists[path]
            raise ValueError(f"Histogram '{path}' is already booked in registry '{self.name}'.")
        h = hist.Hist(*axes, storage=hist.storage.Double())
        self._hists[path] = h
        return h

    def fill(self, path: str, *values, weight: float | None = None) -> None:
        h = self.get(path)
        if weight is None:
            h.fill(*values)
        else:
            h.fill(*values, weight=weight)

    def get(self, path: str) -> hist.Hist:
        try:
            return self._hists[path]
        except KeyError as exc:
            raise KeyError(f"Histogram '{path}' is not booked in registry '{self.name}'.") from exc

    def bin_content(self, path: str, label: str | int) -> float:
        """Content of the bin `label` of a one-dimensional category histogram."""
        h = self.get(path)
        return float(h.values()[h.axes[0].index(label)])

    def total(self, path: str) -> float:
        return float(self.get(path).sum(flow=True))

    def __contains__(self, path: object) -> bool:
        return path in self._hists

    def __iter__(self) -> Iterator[str]:
        return iter(self._hists)

    def __len__(self) -> int:
        return len(self._hists)

    def items(self):
        return self._hists.items()

    def log_summary(self) -> None:
        for path, h in self._hists.items():
            logger.info("%s/%s: %g entries", self.name, path, float(h.sum(flow=True)))
