"""Unit tests for the V0 (Lambda) selection stages and cut containers."""

from __future__ import annotations

import math
import unittest

from femtoworld import (
    CollisionInput,
    ConfigurationError,
    HistogramRegistry,
    TrackInput,
    V0Input,
    V0SelectionConfig,
)
from femtoworld.config import build_v0_selector
from femtoworld.physics import k0short_mass, lambda_mass
from femtoworld.v0_selection import V0Child, V0Selector

POS_MOMENTUM = (1.0, 0.1, 0.0)
NEG_MOMENTUM = (0.5, -0.05, 0.0)


def make_v0(**overrides) -> V0Input:
    px = POS_MOMENTUM[0] + NEG_MOMENTUM[0]
    py = POS_MOMENTUM[1] + NEG_MOMENTUM[1]
    values = dict(
        pos_track_id=10,
        neg_track_id=11,
        x=2.0 * px,
        y=2.0 * py,
        z=0.0,
        pos_momentum=POS_MOMENTUM,
        neg_momentum=NEG_MOMENTUM,
        dca_v0_daughters=0.5,
    )
    values.update(overrides)
    return V0Input(**values)


def make_daughter(global_index: int, momentum, sign: int, species: str, **overrides) -> TrackInput:
    values = dict(
        global_index=global_index,
        pt=math.hypot(momentum[0], momentum[1]),
        eta=0.0,
        phi=math.atan2(momentum[1], momentum[0]) % (2.0 * math.pi),
        sign=sign,
        tpc_n_cls_found=90,
        tpc_n_cls_findable=100,
        tpc_n_cls_crossed_rows=95,
        its_n_cls=5,
        dca_xy=0.5,
        dca_z=0.2,
        tpc_nsigma={species: 1.0},
        tof_nsigma={species: 1.0},
    )
    values.update(overrides)
    return TrackInput(**values)


def lambda_window_config(**overrides) -> V0SelectionConfig:
    mass = lambda_mass(make_v0())
    values = dict(inv_mass_low=mass - 0.01, inv_mass_high=mass + 0.01)
    values.update(overrides)
    return V0SelectionConfig(**values)


class TestV0Selector(unittest.TestCase):
    """Three-stage V0 selection with daughter track selections."""

    def setUp(self) -> None:
        self.collision = CollisionInput(global_index=0, run_number=1, timestamp=0, pos_z=0.0)
        self.pos = make_daughter(10, POS_MOMENTUM, +1, "pr")
        self.neg = make_daughter(11, NEG_MOMENTUM, -1, "pi")
        self.selector = build_v0_selector(lambda_window_config())

    def test_lambda_candidate_accepted(self) -> None:
        v0 = make_v0()
        self.assertEqual(self.selector.v0_sign(v0), 1)
        self.assertTrue(self.selector.is_selected_minimal(self.collision, v0, self.pos, self.neg))
        container = self.selector.cut_container(self.collision, v0, self.pos, self.neg)
        self.assertTrue(container.is_accepted())
        self.assertTrue(container.parent.passed("v0_sign", 1))
        self.assertFalse(container.parent.passed("v0_sign", 0))
        self.assertTrue(container.parent.passed("cpa_v0_min", 1))
        self.assertTrue(container.children[V0Child.POS].pid.is_set("pr_tpc[0]"))
        self.assertTrue(container.children[V0Child.NEG].pid.is_set("pi_comb[1]"))

    def test_mass_outside_window_has_no_sign(self) -> None:
        selector = build_v0_selector(V0SelectionConfig(inv_mass_low=1.3, inv_mass_high=1.4))
        v0 = make_v0()
        self.assertEqual(selector.v0_sign(v0), 0)
        self.assertFalse(selector.is_selected_minimal(self.collision, v0, self.pos, self.neg))

    def test_k0s_window_vetoes_candidate(self) -> None:
        v0 = make_v0()
        k0s = k0short_mass(v0)
        selector = build_v0_selector(
            lambda_window_config(
                reject_kaons=True, kaon_inv_mass_low=k0s - 0.01, kaon_inv_mass_high=k0s + 0.01
            )
        )
        self.assertFalse(selector.is_selected_minimal(self.collision, v0, self.pos, self.neg))
        container = selector.cut_container(self.collision, v0, self.pos, self.neg)
        self.assertEqual(int(container.parent), 0)
        self.assertFalse(container.is_accepted())

    def test_rejected_daughter_zeroes_every_bit(self) -> None:
        neg = make_daughter(11, NEG_MOMENTUM, -1, "pi", dca_xy=0.0, dca_z=0.0)
        v0 = make_v0()
        self.assertFalse(self.selector.is_selected_minimal(self.collision, v0, self.pos, neg))
        container = self.selector.cut_container(self.collision, v0, self.pos, neg)
        self.assertEqual(int(container.parent), 0)
        self.assertEqual(int(container.children[0].selection), 0)
        self.assertEqual(int(container.children[1].pid), 0)

    def test_topology_cuts(self) -> None:
        backwards = make_v0(x=-3.0, y=-0.1)
        self.assertFalse(
            self.selector.is_selected_minimal(self.collision, backwards, self.pos, self.neg)
        )
        too_close = make_v0(x=0.1, y=0.0)
        self.assertFalse(
            self.selector.is_selected_minimal(self.collision, too_close, self.pos, self.neg)
        )
        wide_daughters = make_v0(dca_v0_daughters=2.0)
        self.assertFalse(
            self.selector.is_selected_minimal(self.collision, wide_daughters, self.pos, self.neg)
        )

    def test_empty_mass_window_rejected(self) -> None:
        selector = V0Selector()
        with self.assertRaises(ConfigurationError):
            selector.set_inv_mass_limits(1.2, 1.1)
        with self.assertRaises(ConfigurationError):
            selector.set_kaon_inv_mass_limits(0.5, 0.5)

    def test_lambda_qa_filled_before_selection(self) -> None:
        registry = HistogramRegistry()
        self.selector.init_qa(registry)
        backwards = make_v0(x=-3.0, y=-0.1)
        self.selector.fill_lambda_qa(self.collision, backwards, self.pos, self.neg)
        self.assertEqual(registry.total("LambdaQA/invMassLambda"), 1.0)
        self.assertEqual(registry.total("LambdaQA/invMassK0s"), 1.0)
        self.assertEqual(registry.total("V0/pt"), 0.0)
        self.assertIn("V0Children/pos/pt", registry)


if __name__ == "__main__":
    unittest.main()
