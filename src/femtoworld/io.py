"""Input/output helpers for JSON inputs, configuration and table export."""

from __future__ import annotations

import dataclasses
import json
import pickle
import types
import typing
from pathlib import Path
from typing import Any

from .conditions import GRP_PATH, GRPObject, LocalConditionsDatabase
from .config import MultiplicityConfig, ProducerConfig
from .exceptions import ConfigurationError, InputFormatError
from .models import (
    AmbiguousTrack,
    BunchCrossing,
    CollisionInput,
    McCollision,
    McParticle,
    TrackInput,
    V0Input,
)
from .pid import normalize_species
from .qa import HistogramRegistry
from .records import DerivedTables


def load_collisions_json(path: str | Path) -> list[CollisionInput]:
    """Load collisions with their tracks and V0 candidates.

    Expected shape:
    {
      "collisions": [
        {"global_index": 0, "run_number": ..., "timestamp": ..., "pos_z": ...,
         "tracks": [...], "v0s": [...], "ambiguous_tracks": [...]},
        ...
      ]
    }
    """
    data = _load_json(path)
    collisions_data = data.get("collisions")
    if not isinstance(collisions_data, list):
        raise InputFormatError("Collisions JSON must contain a list under key 'collisions'.")
    return [
        _parse_collision_item(item=item, idx=idx, context=f"{path}")
        for idx, item in enumerate(collisions_data)
    ]


def load_conditions_json(path: str | Path) -> LocalConditionsDatabase:
    """Load conditions objects with validity intervals.

    Entries look like `{"path": "GLO/GRP/GRP", "start": 0, "end": 1e13,
    "payload": {"nominal_l3_field": 5.0}}`. GRP payloads become `GRPObject`;
    any other payload is stored as given.
    """
    data = _load_json(path)
    objects = data.get("objects")
    if not isinstance(objects, list):
        raise InputFormatError("Conditions JSON must contain a list under key 'objects'.")
    db = LocalConditionsDatabase()
    for idx, entry in enumerate(objects):
        if not isinstance(entry, dict):
            raise InputFormatError(f"Conditions entry at index {idx} must be an object.")
        ctx = f"conditions entry {idx}"
        obj_path = str(_require(entry, "path", ctx))
        payload = _require(entry, "payload", ctx)
        if obj_path == GRP_PATH:
            if not isinstance(payload, dict):
                raise InputFormatError(f"GRP payload in {ctx} must be an object.")
            payload = GRPObject(nominal_l3_field=float(_require(payload, "nominal_l3_field", ctx)))
        try:
            db.add(obj_path, int(entry.get("start", 0)), int(entry.get("end", 2**63 - 1)), payload)
        except ValueError as exc:
            raise InputFormatError(str(exc)) from exc
    return db


def load_bcs_json(path: str | Path) -> list[BunchCrossing]:
    data = _load_json(path)
    bcs_data = data.get("bcs")
    if not isinstance(bcs_data, list):
        raise InputFormatError("Bunch-crossing JSON must contain a list under key 'bcs'.")
    out: list[BunchCrossing] = []
    for idx, item in enumerate(bcs_data):
        if not isinstance(item, dict):
            raise InputFormatError(f"BC entry at index {idx} must be an object.")
        out.append(
            BunchCrossing(
                global_index=int(item.get("global_index", idx)),
                global_bc=int(item.get("global_bc", idx)),
                bb_t0a=bool(item.get("bb_t0a", False)),
                bb_t0c=bool(item.get("bb_t0c", False)),
            )
        )
    return out


def load_mc_json(path: str | Path) -> list[McCollision]:
    """Load generated collisions: `{"mc_collisions": [{"pos_z": ..., "particles": [...]}]}`."""
    data = _load_json(path)
    mc_data = data.get("mc_collisions")
    if not isinstance(mc_data, list):
        raise InputFormatError("MC JSON must contain a list under key 'mc_collisions'.")
    out: list[McCollision] = []
    for idx, item in enumerate(mc_data):
        if not isinstance(item, dict):
            raise InputFormatError(f"MC collision at index {idx} must be an object.")
        index = int(item.get("global_index", idx))
        particles = tuple(
            McParticle(
                mc_collision_index=index,
                eta=float(_require(p, "eta", f"MC collision {index}")),
                charge=float(p.get("charge", 0.0)),
                physical_primary=bool(p.get("physical_primary", True)),
                track_ids=tuple(int(t) for t in p.get("track_ids", ())),
            )
            for p in _list_of_objects(item, "particles", f"MC collision {index}")
        )
        out.append(
            McCollision(
                global_index=index,
                pos_z=float(_require(item, "pos_z", f"MC collision {index}")),
                particles=particles,
            )
        )
    return out


def load_producer_config_json(path: str | Path) -> ProducerConfig:
    """Load a `ProducerConfig`; keys left out keep their defaults, unknown keys are errors."""
    return _build_dataclass(ProducerConfig, _load_json(path), "config")


def load_multiplicity_config_json(path: str | Path) -> MultiplicityConfig:
    return _build_dataclass(MultiplicityConfig, _load_json(path), "config")


def write_table(
    path: str | Path, rows: list[dict[str, Any]], dtypes: dict[str, str] | None = None
) -> None:
    """Write row dictionaries into a Parquet/CSV/Pickle table."""
    pd = _require_pandas()
    df = pd.DataFrame(rows)
    if dtypes and not df.empty:
        df = df.astype(dtypes)
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )


_LINK_DTYPES = {"child_0": "Int64", "child_1": "Int64"}


def write_derived_tables(
    tables: DerivedTables, collisions_path: str | Path, particles_path: str | Path
) -> None:
    write_table(collisions_path, tables.collision_rows())
    # Unlinked children are written as <NA> in a nullable integer column.
    write_table(particles_path, tables.particle_rows(), dtypes=_LINK_DTYPES)


def write_histograms(path: str | Path, registry: HistogramRegistry) -> None:
    """Pickle the registry content as a `{path: hist.Hist}` dictionary."""
    with Path(path).open("wb") as fh:
        pickle.dump(dict(registry.items()), fh)


def read_histograms(path: str | Path) -> dict[str, Any]:
    with Path(path).open("rb") as fh:
        return pickle.load(fh)


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_collision_item(item: Any, idx: int, context: str) -> CollisionInput:
    if not isinstance(item, dict):
        raise InputFormatError(f"Collision entry at index {idx} in {context} must be an object.")
    index = int(item.get("global_index", idx))
    ctx = f"collision {index} in {context}"
    tracks = tuple(
        _parse_track_item(t, tidx, ctx)
        for tidx, t in enumerate(_list_of_objects(item, "tracks", ctx))
    )
    v0s = tuple(
        _parse_v0_item(v, vidx, ctx) for vidx, v in enumerate(_list_of_objects(item, "v0s", ctx))
    )
    ambiguous = tuple(
        AmbiguousTrack(
            track_id=int(_require(a, "track_id", ctx)),
            eta=float(_require(a, "eta", ctx)),
            pt=float(a.get("pt", 0.0)),
            best_dca_xy=float(a.get("best_dca_xy", 0.0)),
            best_dca_z=float(a.get("best_dca_z", 0.0)),
        )
        for a in _list_of_objects(item, "ambiguous_tracks", ctx)
    )
    found_bc = item.get("found_bc_index")
    mc_index = item.get("mc_collision_index")
    return CollisionInput(
        global_index=index,
        run_number=int(_require(item, "run_number", ctx)),
        timestamp=int(_require(item, "timestamp", ctx)),
        pos_z=float(_require(item, "pos_z", ctx)),
        pos_x=float(item.get("pos_x", 0.0)),
        pos_y=float(item.get("pos_y", 0.0)),
        mult_fv0m=float(item.get("mult_fv0m", 0.0)),
        mult_ft0m=float(item.get("mult_ft0m", 0.0)),
        trigger_aliases=frozenset(int(a) for a in item.get("trigger_aliases", ())),
        sel7=bool(item.get("sel7", False)),
        sel8=bool(item.get("sel8", False)),
        tracks=tracks,
        v0s=v0s,
        bc_index=int(item.get("bc_index", -1)),
        found_bc_index=None if found_bc is None else int(found_bc),
        ambiguous_tracks=ambiguous,
        mc_collision_index=None if mc_index is None else int(mc_index),
    )


_TRACK_INT_FIELDS = (
    "tpc_n_cls_found",
    "tpc_n_cls_findable",
    "tpc_n_cls_crossed_rows",
    "tpc_n_cls_shared",
    "its_n_cls",
    "its_n_cls_inner_barrel",
)
_TRACK_FLOAT_FIELDS = (
    "tpc_chi2_ncl",
    "tpc_inner_param",
    "tpc_signal",
    "its_chi2_ncl",
    "dca_xy",
    "dca_z",
    "beta",
)


def _parse_track_item(item: dict[str, Any], idx: int, context: str) -> TrackInput:
    ctx = f"track {idx} of {context}"
    kwargs: dict[str, Any] = {
        "global_index": int(_require(item, "global_index", ctx)),
        "pt": float(_require(item, "pt", ctx)),
        "eta": float(_require(item, "eta", ctx)),
        "phi": float(_require(item, "phi", ctx)),
        "sign": int(_require(item, "sign", ctx)),
        "track_type": str(item.get("track_type", "track")),
        "is_propagated": bool(item.get("is_propagated", True)),
        "tpc_nsigma": _parse_nsigma(item.get("tpc_nsigma", {}), ctx),
        "tof_nsigma": _parse_nsigma(item.get("tof_nsigma", {}), ctx),
    }
    for name in _TRACK_INT_FIELDS:
        if name in item:
            kwargs[name] = int(item[name])
    for name in _TRACK_FLOAT_FIELDS:
        if name in item:
            kwargs[name] = float(item[name])
    return TrackInput(**kwargs)


def _parse_v0_item(item: dict[str, Any], idx: int, context: str) -> V0Input:
    ctx = f"V0 {idx} of {context}"
    return V0Input(
        pos_track_id=int(_require(item, "pos_track_id", ctx)),
        neg_track_id=int(_require(item, "neg_track_id", ctx)),
        x=float(_require(item, "x", ctx)),
        y=float(_require(item, "y", ctx)),
        z=float(_require(item, "z", ctx)),
        pos_momentum=_parse_vector3(_require(item, "pos_momentum", ctx), ctx),
        neg_momentum=_parse_vector3(_require(item, "neg_momentum", ctx), ctx),
        dca_v0_daughters=float(_require(item, "dca_v0_daughters", ctx)),
        global_index=int(item.get("global_index", idx)),
    )


def _parse_nsigma(value: Any, context: str) -> dict[str, float]:
    if not isinstance(value, dict):
        raise InputFormatError(f"n-sigma map of {context} must be an object.")
    try:
        return {normalize_species(k): float(v) for k, v in value.items()}
    except ConfigurationError as exc:
        raise InputFormatError(f"{context}: {exc}") from exc


def _parse_vector3(value: Any, context: str) -> tuple[float, float, float]:
    if not isinstance(value, list) or len(value) != 3:
        raise InputFormatError(f"Momentum of {context} must be a list of 3 numbers.")
    return (float(value[0]), float(value[1]), float(value[2]))


def _build_dataclass(cls: type, data: Any, context: str):
    """Instantiate a (nested) config dataclass from a JSON object."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{context}' must be a JSON object.")
    hints = typing.get_type_hints(cls)
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in '{context}': {', '.join(unknown)}")
    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        nested = _nested_dataclass(hints[name])
        if nested is not None and value is not None:
            kwargs[name] = _build_dataclass(nested, value, f"{context}.{name}")
        elif isinstance(value, list):
            kwargs[name] = tuple(value)
        else:
            kwargs[name] = value
    return cls(**kwargs)


def _nested_dataclass(hint: Any) -> type | None:
    if dataclasses.is_dataclass(hint):
        return hint
    if isinstance(hint, types.UnionType) or typing.get_origin(hint) is typing.Union:
        for arg in typing.get_args(hint):
            if dataclasses.is_dataclass(arg):
                return arg
    return None


def _list_of_objects(item: dict[str, Any], key: str, context: str) -> list[dict[str, Any]]:
    value = item.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise InputFormatError(f"Key '{key}' of {context} must be a list of objects.")
    return value


def _require(item: dict[str, Any], key: str, context: str) -> Any:
    try:
        return item[key]
    except KeyError as exc:
        raise InputFormatError(f"Missing key '{key}' in {context}.") from exc


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise InputFormatError(f"JSON document at {path} must be an object.")
    return data
