"""Particle-species helpers used for mass assignment and PID bookkeeping.

Species are addressed by the short names used as n-sigma keys on tracks
(`el`, `mu`, `pi`, `ka`, `pr`, `de`). Mass hypotheses are exposed through
named builders and a PDG-code lookup so configurations can stay numeric.
"""

from __future__ import annotations

from .exceptions import ConfigurationError
from .models import ParticleHypothesis

_ELECTRON = ParticleHypothesis(name="e", mass=0.00051099895, pdg_id=11)
_MUON = ParticleHypothesis(name="mu", mass=0.1056583755, pdg_id=13)
_PION = ParticleHypothesis(name="pi", mass=0.13957039, pdg_id=211)
_KAON = ParticleHypothesis(name="K", mass=0.493677, pdg_id=321)
_PROTON = ParticleHypothesis(name="p", mass=0.93827208816, pdg_id=2212)
_DEUTERON = ParticleHypothesis(name="d", mass=1.87561294257, pdg_id=1000010020)

# Short names used for n-sigma maps, in the detector-response index order.
PID_SPECIES: tuple[str, ...] = ("el", "mu", "pi", "ka", "pr", "de")

# Species stored in the derived particle table.
STORED_SPECIES: tuple[str, ...] = ("el", "pi", "ka", "pr", "de")

_SPECIES_ALIASES: dict[str, str] = {
    "e": "el",
    "el": "el",
    "electron": "el",
    "mu": "mu",
    "muon": "mu",
    "pi": "pi",
    "pion": "pi",
    "k": "ka",
    "ka": "ka",
    "kaon": "ka",
    "p": "pr",
    "pr": "pr",
    "proton": "pr",
    "d": "de",
    "de": "de",
    "deuteron": "de",
}

_SPECIES_TO_HYPOTHESIS: dict[str, ParticleHypothesis] = {
    "el": _ELECTRON,
    "mu": _MUON,
    "pi": _PION,
    "ka": _KAON,
    "pr": _PROTON,
    "de": _DEUTERON,
}

_PDG_TO_HYPOTHESIS: dict[int, ParticleHypothesis] = {
    abs(h.pdg_id): h for h in _SPECIES_TO_HYPOTHESIS.values() if h.pdg_id is not None
}


def make_pion() -> ParticleHypothesis:
    """Return the standard charged-pion mass hypothesis."""
    return _PION


def make_kaon() -> ParticleHypothesis:
    """Return the standard charged-kaon mass hypothesis."""
    return _KAON


def make_proton() -> ParticleHypothesis:
    """Return the proton mass hypothesis."""
    return _PROTON


def normalize_species(name: str | int) -> str:
    """Resolve a species alias or detector-response index to its short name."""
    if isinstance(name, int):
        if not 0 <= name < len(PID_SPECIES):
            raise ConfigurationError(f"Unknown PID species index {name}.")
        return PID_SPECIES[name]
    key = name.strip().lower()
    try:
        return _SPECIES_ALIASES[key]
    except KeyError as exc:
        supported = ", ".join(sorted(_SPECIES_ALIASES))
        raise ConfigurationError(
            f"Unknown PID species '{name}'. Supported names: {supported}"
        ) from exc


def hypothesis_from_pdg(pdg_code: int) -> ParticleHypothesis:
    """Resolve a PDG code (sign ignored) into a mass hypothesis."""
    try:
        return _PDG_TO_HYPOTHESIS[abs(int(pdg_code))]
    except KeyError as exc:
        supported = ", ".join(str(k) for k in sorted(_PDG_TO_HYPOTHESIS))
        raise ConfigurationError(
            f"Unknown PDG code {pdg_code}. Supported codes: {supported}"
        ) from exc
