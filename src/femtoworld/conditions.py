"""Conditions-database access and the run-keyed magnetic-field cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .exceptions import ConditionsError

logger = logging.getLogger(__name__)

GRP_PATH = "GLO/GRP/GRP"

# Nominal L3 field is stored in kG; 1 kG = 0.1 T.
KILOGAUSS_TO_TESLA = 0.1


class ConditionsDatabase(Protocol):
    """Lookup of versioned calibration objects by path and timestamp."""

    def get_object_for_timestamp(self, path: str, timestamp: int) -> Any | None:
        ...


@dataclass(frozen=True)
class GRPObject:
    """General run parameters; only the nominal L3 field (kG) is used."""

    nominal_l3_field: float


@dataclass(frozen=True)
class ValidityInterval:
    """Object valid for timestamps in `[start, end)` (ms since epoch)."""

    start: int
    end: int
    payload: Any

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp < self.end


class LocalConditionsDatabase:
    """In-memory conditions store with per-path validity intervals."""

    def __init__(self) -> None:
        self._objects: dict[str, list[ValidityInterval]] = {}

    def add(self, path: str, start: int, end: int, payload: Any) -> None:
        if end <= start:
            raise ValueError(f"Validity interval [{start}, {end}) for '{path}' is empty.")
        self._objects.setdefault(path, []).append(ValidityInterval(start, end, payload))

    def get_object_for_timestamp(self, path: str, timestamp: int) -> Any | None:
        # Latest registration wins when intervals overlap.
        for interval in reversed(self._objects.get(path, [])):
            if interval.contains(timestamp):
                return interval.payload
        return None

    def paths(self) -> tuple[str, ...]:
        return tuple(self._objects)


class MagneticFieldCache:
    """Magnetic field in tesla, looked up once per new run number.

    The cache is never reset. A missing GRP object is fatal: the error is
    logged and `ConditionsError` is raised without retrying.
    """

    def __init__(self, conditions: ConditionsDatabase, path: str = GRP_PATH) -> None:
        self.conditions = conditions
        self.path = path
        self.run_number: int | None = None
        self.field: float = 0.0
        self.lookups = 0

    def resolve(self, run_number: int, timestamp: int) -> float:
        if run_number == self.run_number:
            return self.field
        self.field = self.lookup(timestamp)
        self.run_number = run_number
        return self.field

    def lookup(self, timestamp: int) -> float:
        self.lookups += 1
        grp = self.conditions.get_object_for_timestamp(self.path, timestamp)
        if grp is None:
            logger.error("GRP object not found for timestamp %d", timestamp)
            raise ConditionsError(self.path, timestamp)
        logger.info(
            "Retrieved GRP for timestamp %d with magnetic field of %g kG",
            timestamp,
            grp.nominal_l3_field,
        )
        return KILOGAUSS_TO_TESLA * grp.nominal_l3_field
