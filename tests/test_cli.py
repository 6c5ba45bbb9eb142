"""Command-line runs over the bundled sample inputs."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from femtoworld.cli import main, run_custom_script
from femtoworld.io import read_histograms
from femtoworld.records import DerivedTables

ROOT = Path(__file__).resolve().parents[1]
DATA = ROOT / "examples" / "data"
PHI_SCRIPT = ROOT / "examples" / "custom_scripts" / "phi_candidates.py"


class TestProduceCommand(unittest.TestCase):
    def test_produce_writes_tables_qa_and_runs_custom_script(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            out = Path(tmpdir)
            code = main(
                [
                    "--log-level",
                    "WARNING",
                    "produce",
                    "--collisions",
                    str(DATA / "collisions.json"),
                    "--conditions",
                    str(DATA / "conditions.json"),
                    "--config",
                    str(DATA / "config.json"),
                    "--out-collisions",
                    str(out / "collisions.pkl"),
                    "--out-particles",
                    str(out / "particles.pkl"),
                    "--qa-out",
                    str(out / "qa.pkl"),
                    "--custom-script",
                    str(PHI_SCRIPT),
                ]
            )
            collisions = pd.read_pickle(out / "collisions.pkl")
            particles = pd.read_pickle(out / "particles.pkl")
            histograms = read_histograms(out / "qa.pkl")
            report = json.loads((out / "phi_candidates.json").read_text(encoding="utf-8"))

        self.assertEqual(code, 0)
        self.assertEqual(len(collisions), 1)
        self.assertAlmostEqual(collisions["mag_field"].iloc[0], -0.5)
        self.assertEqual(
            particles["particle_type"].tolist(),
            ["TRACK", "TRACK", "TRACK", "V0_CHILD", "V0_CHILD", "V0", "PHI_CHILD", "PHI_CHILD", "PHI"],
        )
        self.assertEqual(particles["child_0"].iloc[5], 3)
        self.assertEqual(particles["child_1"].iloc[5], 4)
        self.assertTrue(pd.isna(particles["child_1"].iloc[4]))
        self.assertEqual(histograms["Event/zvtxhist"].sum(), 1.0)
        self.assertEqual(report["n_selected"], 1)
        self.assertEqual(report["selected"][0]["tracks"], [1, 2])

    def test_custom_script_needs_process_function(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            script = Path(tmpdir) / "empty.py"
            script.write_text("VALUE = 1\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                run_custom_script(str(script), DerivedTables(), {})


class TestDndetaCommand(unittest.TestCase):
    def test_dndeta_writes_histograms(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            out = Path(tmpdir) / "dndeta.pkl"
            code = main(
                [
                    "dndeta",
                    "--collisions",
                    str(DATA / "collisions.json"),
                    "--out",
                    str(out),
                ]
            )
            histograms = read_histograms(out)
        self.assertEqual(code, 0)
        selection = histograms["Events/Selection"]
        self.assertEqual(selection.values()[selection.axes[0].index("All")], 2.0)
        self.assertEqual(selection.values()[selection.axes[0].index("Selected")], 1.0)
        # Only the two tracks with a small DCA to the vertex are counted.
        self.assertEqual(histograms["hrecdndeta"].sum(), 2.0)


if __name__ == "__main__":
    unittest.main()
