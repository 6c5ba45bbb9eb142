"""Unit tests for JSON loaders, configuration overrides and table writers."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from femtoworld import (
    ConfigurationError,
    GRPObject,
    HistogramRegistry,
    InputFormatError,
    PhiLegCuts,
)
from femtoworld.conditions import GRP_PATH
from femtoworld.io import (
    load_bcs_json,
    load_collisions_json,
    load_conditions_json,
    load_mc_json,
    load_multiplicity_config_json,
    load_producer_config_json,
    read_histograms,
    write_derived_tables,
    write_histograms,
    write_table,
)
from femtoworld.qa import pt_axis
from femtoworld.records import NO_CHILDREN, CollisionRecord, DerivedTables, PhiParticle


def _write_json(directory: str, name: str, payload) -> Path:
    path = Path(directory) / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


COLLISION_PAYLOAD = {
    "collisions": [
        {
            "global_index": 7,
            "run_number": 250,
            "timestamp": 1234,
            "pos_z": -2.5,
            "trigger_aliases": [1],
            "sel8": True,
            "found_bc_index": 3,
            "tracks": [
                {
                    "global_index": 70,
                    "pt": 0.8,
                    "eta": 0.2,
                    "phi": 1.1,
                    "sign": -1,
                    "tpc_n_cls_found": 95,
                    "dca_xy": 0.02,
                    "tpc_nsigma": {"kaon": 0.7, "p": 4.0},
                    "tof_nsigma": {"K": -0.3},
                }
            ],
            "v0s": [
                {
                    "pos_track_id": 70,
                    "neg_track_id": 71,
                    "x": 1.0,
                    "y": 0.5,
                    "z": 0.1,
                    "pos_momentum": [0.5, 0.1, 0.0],
                    "neg_momentum": [0.3, -0.1, 0.2],
                    "dca_v0_daughters": 0.4,
                }
            ],
            "ambiguous_tracks": [{"track_id": 71, "eta": 0.4, "pt": 1.5, "best_dca_z": -0.3}],
        }
    ]
}


class TestInputLoaders(unittest.TestCase):
    def test_load_collisions(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_json(tmpdir, "collisions.json", COLLISION_PAYLOAD)
            [collision] = load_collisions_json(path)
        self.assertEqual(collision.global_index, 7)
        self.assertEqual(collision.trigger_aliases, frozenset({1}))
        self.assertTrue(collision.sel8)
        self.assertEqual(collision.found_bc_index, 3)
        [track] = collision.tracks
        self.assertEqual(track.tpc_n_cls_found, 95)
        self.assertEqual(track.nsigma_tpc("ka"), 0.7)
        self.assertEqual(track.nsigma_tpc("pr"), 4.0)
        self.assertEqual(track.nsigma_tof("ka"), -0.3)
        self.assertEqual(track.nsigma_tof("pi"), -999.0)
        [v0] = collision.v0s
        self.assertEqual(v0.neg_momentum, (0.3, -0.1, 0.2))
        [ambiguous] = collision.ambiguous_tracks
        self.assertEqual(ambiguous.track_id, 71)
        self.assertEqual(ambiguous.pt, 1.5)
        self.assertEqual(ambiguous.best_dca_z, -0.3)
        self.assertEqual(ambiguous.best_dca_xy, 0.0)

    def test_missing_key_is_reported(self) -> None:
        payload = {"collisions": [{"run_number": 1, "timestamp": 0}]}
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_json(tmpdir, "bad.json", payload)
            with self.assertRaisesRegex(InputFormatError, "pos_z"):
                load_collisions_json(path)

    def test_unknown_species_is_an_input_error(self) -> None:
        payload = json.loads(json.dumps(COLLISION_PAYLOAD))
        payload["collisions"][0]["tracks"][0]["tpc_nsigma"] = {"unicorn": 1.0}
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_json(tmpdir, "bad.json", payload)
            with self.assertRaises(InputFormatError):
                load_collisions_json(path)

    def test_load_conditions(self) -> None:
        payload = {
            "objects": [
                {"path": GRP_PATH, "start": 0, "end": 100, "payload": {"nominal_l3_field": -5.0}},
                {"path": GRP_PATH, "start": 100, "payload": {"nominal_l3_field": 2.0}},
            ]
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            db = load_conditions_json(_write_json(tmpdir, "ccdb.json", payload))
        self.assertEqual(db.get_object_for_timestamp(GRP_PATH, 50), GRPObject(-5.0))
        self.assertEqual(db.get_object_for_timestamp(GRP_PATH, 10**9), GRPObject(2.0))
        self.assertIsNone(db.get_object_for_timestamp("GLO/Other", 50))

    def test_load_bcs_and_mc(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            bcs = load_bcs_json(
                _write_json(tmpdir, "bcs.json", {"bcs": [{"global_bc": 11, "bb_t0a": True}]})
            )
            mc = load_mc_json(
                _write_json(
                    tmpdir,
                    "mc.json",
                    {"mc_collisions": [{"pos_z": 1.0, "particles": [{"eta": 0.1, "charge": 3.0}]}]},
                )
            )
        self.assertEqual(bcs[0].global_index, 0)
        self.assertTrue(bcs[0].bb_t0a)
        self.assertFalse(bcs[0].bb_t0c)
        self.assertEqual(mc[0].particles[0].mc_collision_index, 0)
        self.assertTrue(mc[0].particles[0].physical_primary)


class TestConfigLoaders(unittest.TestCase):
    def test_partial_override_keeps_defaults(self) -> None:
        payload = {
            "store_all_events": True,
            "event": {"zvtx_max": 8.0, "is_run3": True},
            "track": {"pt_min": [0.2, 0.3], "dca_min": None},
            "phi": {"first_leg": {"pt_max": 2.0}, "leg_selection": {"pid_species": ["ka"]}},
        }
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_producer_config_json(_write_json(tmpdir, "config.json", payload))
        self.assertTrue(config.store_all_events)
        self.assertEqual(config.event.zvtx_max, 8.0)
        self.assertTrue(config.event.check_trigger)
        self.assertEqual(config.track.pt_min, (0.2, 0.3))
        self.assertEqual(config.track.eta_max, (0.8, 0.7, 0.9))
        self.assertEqual(config.phi.first_leg, PhiLegCuts(pt_max=2.0))
        self.assertEqual(config.phi.leg_selection.pid_species, ("ka",))

    def test_unknown_key_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_json(tmpdir, "config.json", {"track": {"pt_minimum": [0.2]}})
            with self.assertRaisesRegex(ConfigurationError, "pt_minimum"):
                load_producer_config_json(path)

    def test_multiplicity_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write_json(tmpdir, "mult.json", {"use_event_selection": False, "z_bins": [30, -15, 15]})
            config = load_multiplicity_config_json(path)
        self.assertFalse(config.use_event_selection)
        self.assertEqual(config.z_bins, (30, -15, 15))


class TestWriters(unittest.TestCase):
    def test_unsupported_suffix(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ValueError):
                write_table(Path(tmpdir) / "out.root", [{"a": 1}])

    def test_derived_tables_keep_unlinked_children_missing(self) -> None:
        tables = DerivedTables()
        row = tables.add_collision(CollisionRecord(pos_z=0.0, multiplicity=1.0, sphericity=2.0, mag_field=0.5))
        tables.add_particle(
            PhiParticle(collision_index=row, pt=1.0, eta=0.0, phi=0.0, p=1.0, mass=1.02, children=(3, None))
        )
        tables.add_particle(
            PhiParticle(collision_index=row, pt=1.0, eta=0.0, phi=0.0, p=1.0, mass=1.02, children=NO_CHILDREN)
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            collisions_path = Path(tmpdir) / "collisions.pkl"
            particles_path = Path(tmpdir) / "particles.pkl"
            write_derived_tables(tables, collisions_path, particles_path)
            collisions = pd.read_pickle(collisions_path)
            particles = pd.read_pickle(particles_path)
        self.assertEqual(collisions["mag_field"].tolist(), [0.5])
        self.assertEqual(str(particles["child_0"].dtype), "Int64")
        self.assertEqual(particles["child_0"].iloc[0], 3)
        self.assertTrue(pd.isna(particles["child_1"].iloc[0]))
        self.assertTrue(pd.isna(particles["child_0"].iloc[1]))
        self.assertEqual(particles["particle_type"].tolist(), ["PHI", "PHI"])

    def test_histogram_pickle(self) -> None:
        registry = HistogramRegistry()
        registry.add("Tracks/pt", pt_axis())
        registry.fill("Tracks/pt", 1.5)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "qa.pkl"
            write_histograms(path, registry)
            restored = read_histograms(path)
        self.assertEqual(set(restored), {"Tracks/pt"})
        self.assertEqual(restored["Tracks/pt"].sum(), 1.0)


if __name__ == "__main__":
    unittest.main()
