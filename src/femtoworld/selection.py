"""Configurable selection criteria and bit-packed cut containers.

A `SelectionCriterion` tests one observable against one or more threshold
tiers. An `ObjectSelection` owns an ordered list of criteria and packs the
per-tier results into a fixed-width `CutBits`, one bit per (criterion, tier)
in configuration order. The bit layout is exposed through labels of the form
`"<observable>[<tier>]"` so a stored integer can be decoded without knowing
the configuration that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Iterable, Mapping, Sequence

from .exceptions import ConfigurationError

# Width of the cut columns of the derived particle table (unsigned 32 bit).
CUT_CONTAINER_BITS = 32


class SelectionType(IntEnum):
    """Comparison applied between an observed value and a threshold."""

    EQUAL = 0
    LOWER_LIMIT = 1
    UPPER_LIMIT = 2
    ABS_LOWER_LIMIT = 3
    ABS_UPPER_LIMIT = 4

    @classmethod
    def parse(cls, value: "SelectionType | int | str") -> "SelectionType":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError as exc:
                raise ConfigurationError(f"Unknown selection type '{value}'.") from exc
        try:
            return cls(int(value))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown selection type {value!r}.") from exc


@dataclass(frozen=True)
class SelectionCriterion:
    """One observable tested against threshold tiers ordered loosest first."""

    observable: str
    mode: SelectionType
    thresholds: tuple[float, ...]

    def __post_init__(self) -> None:
        if not self.thresholds:
            raise ConfigurationError(
                f"Selection '{self.observable}' needs at least one threshold."
            )
        object.__setattr__(self, "mode", SelectionType.parse(self.mode))
        object.__setattr__(
            self, "thresholds", _order_by_strictness(self.mode, self.thresholds)
        )

    @property
    def n_tiers(self) -> int:
        return len(self.thresholds)

    @property
    def loosest(self) -> float:
        return self.thresholds[0]

    def passes(self, value: float, tier: int = 0) -> bool:
        """Evaluate the criterion for one threshold tier."""
        threshold = self.thresholds[tier]
        if self.mode == SelectionType.EQUAL:
            return value == threshold
        if self.mode == SelectionType.LOWER_LIMIT:
            return value >= threshold
        if self.mode == SelectionType.UPPER_LIMIT:
            return value <= threshold
        if self.mode == SelectionType.ABS_LOWER_LIMIT:
            return abs(value) >= threshold
        return abs(value) <= threshold

    def passes_minimal(self, value: float) -> bool:
        """Loosest test: any configured value for EQUAL, first tier otherwise."""
        if self.mode == SelectionType.EQUAL:
            return any(value == t for t in self.thresholds)
        return self.passes(value, 0)

    def labels(self) -> tuple[str, ...]:
        return tuple(bit_label(self.observable, tier) for tier in range(self.n_tiers))


def bit_label(observable: str | Enum, tier: int) -> str:
    """Label of the bit holding `observable` at threshold `tier`."""
    name = observable.value if isinstance(observable, Enum) else observable
    return f"{name}[{tier}]"


def _order_by_strictness(mode: SelectionType, thresholds: Iterable[float]) -> tuple[float, ...]:
    values = tuple(float(t) for t in thresholds)
    if mode in (SelectionType.LOWER_LIMIT, SelectionType.ABS_LOWER_LIMIT):
        return tuple(sorted(values))
    if mode in (SelectionType.UPPER_LIMIT, SelectionType.ABS_UPPER_LIMIT):
        return tuple(sorted(values, reverse=True))
    return values


@dataclass(frozen=True)
class CutBits:
    """Fixed-width bit-set with one named bit per selection tier."""

    value: int
    labels: tuple[str, ...]
    width: int = CUT_CONTAINER_BITS

    def __post_init__(self) -> None:
        if len(self.labels) > self.width:
            raise ConfigurationError(
                f"Bit layout needs {len(self.labels)} bits, container holds {self.width}."
            )
        if self.value < 0 or self.value >> len(self.labels):
            raise ValueError(f"Bit value {self.value} does not fit layout of {len(self.labels)} bits.")

    @classmethod
    def from_flags(
        cls, flags: Sequence[bool], labels: Sequence[str], width: int = CUT_CONTAINER_BITS
    ) -> "CutBits":
        if len(flags) != len(labels):
            raise ValueError("Number of flags does not match the bit layout.")
        value = 0
        for position, flag in enumerate(flags):
            if flag:
                value |= 1 << position
        return cls(value=value, labels=tuple(labels), width=width)

    @classmethod
    def empty(cls, labels: Sequence[str] = (), width: int = CUT_CONTAINER_BITS) -> "CutBits":
        return cls(value=0, labels=tuple(labels), width=width)

    def __int__(self) -> int:
        return self.value

    def __bool__(self) -> bool:
        return self.value != 0

    def count(self) -> int:
        """Number of set bits."""
        return bin(self.value).count("1")

    def position(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError as exc:
            raise KeyError(f"No bit labelled '{label}' in layout.") from exc

    def is_set(self, label: str) -> bool:
        return bool(self.value >> self.position(label) & 1)

    def passed(self, observable: str | Enum, tier: int = 0) -> bool:
        """Whether `observable` passed threshold `tier`."""
        return self.is_set(bit_label(observable, tier))

    def as_dict(self) -> dict[str, bool]:
        return {label: bool(self.value >> i & 1) for i, label in enumerate(self.labels)}


@dataclass(frozen=True)
class CutContainer:
    """Selection and PID bits computed for one track-like candidate."""

    selection: CutBits
    pid: CutBits

    def is_selected(self) -> bool:
        return self.selection.count() > 0


@dataclass(frozen=True)
class CompositeCutContainer:
    """Bits for a two-daughter composite: its own selection plus both daughters."""

    parent: CutBits
    children: tuple[CutContainer, CutContainer]

    def is_accepted(self) -> bool:
        """Parent and both daughters passed at least their loosest tier."""
        return self.parent.count() > 0 and all(c.selection.count() > 0 for c in self.children)


class ObjectSelection:
    """Ordered set of criteria over the observables named by `Observable`."""

    Observable: ClassVar[type[Enum]]

    def __init__(self, width: int = CUT_CONTAINER_BITS) -> None:
        self.width = width
        self._criteria: list[SelectionCriterion] = []

    @property
    def criteria(self) -> tuple[SelectionCriterion, ...]:
        return tuple(self._criteria)

    def set_selection(
        self,
        thresholds: Sequence[float],
        observable: Enum | str,
        mode: SelectionType | int | str,
    ) -> SelectionCriterion:
        """Add (or replace) the criterion for one observable."""
        obs = self._coerce_observable(observable)
        criterion = SelectionCriterion(obs.value, SelectionType.parse(mode), tuple(thresholds))
        criteria = [c for c in self._criteria if c.observable != criterion.observable]
        criteria.append(criterion)
        labels = [label for c in criteria for label in c.labels()]
        if len(labels) > self.width:
            raise ConfigurationError(
                f"{type(self).__name__}: {len(labels)} selection bits exceed "
                f"the {self.width}-bit cut container."
            )
        self._criteria = criteria
        return criterion

    def criterion(self, observable: Enum | str) -> SelectionCriterion | None:
        name = self._coerce_observable(observable).value
        for c in self._criteria:
            if c.observable == name:
                return c
        return None

    def selection_labels(self) -> tuple[str, ...]:
        return tuple(label for c in self._criteria for label in c.labels())

    def passes_minimal(self, values: Mapping[str, float]) -> bool:
        """Every configured criterion passes at its loosest tier."""
        return all(c.passes_minimal(values[c.observable]) for c in self._criteria)

    def selection_bits(self, values: Mapping[str, float]) -> CutBits:
        flags = [
            c.passes(values[c.observable], tier)
            for c in self._criteria
            for tier in range(c.n_tiers)
        ]
        return CutBits.from_flags(flags, self.selection_labels(), self.width)

    def empty_selection_bits(self) -> CutBits:
        return CutBits.empty(self.selection_labels(), self.width)

    @classmethod
    def _coerce_observable(cls, observable: Enum | str) -> Enum:
        if isinstance(observable, cls.Observable):
            return observable
        try:
            return cls.Observable(observable)
        except ValueError as exc:
            supported = ", ".join(o.value for o in cls.Observable)
            raise ConfigurationError(
                f"Unknown observable '{observable}' for {cls.__name__}. Supported: {supported}"
            ) from exc
