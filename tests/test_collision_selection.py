"""Unit tests for event selection and event-shape observables."""

from __future__ import annotations

import math
import unittest

from femtoworld import CollisionInput, CollisionSelector, HistogramRegistry, TrackInput
from femtoworld.collision_selection import K_INT7
from femtoworld.physics import SPHERICITY_UNDEFINED


def make_collision(**overrides) -> CollisionInput:
    values = dict(
        global_index=0,
        run_number=1,
        timestamp=0,
        pos_z=1.0,
        mult_fv0m=120.0,
        mult_ft0m=80.0,
        trigger_aliases=frozenset({K_INT7}),
    )
    values.update(overrides)
    return CollisionInput(**values)


def track_at(phi: float, pt: float = 1.0, eta: float = 0.0) -> TrackInput:
    return TrackInput(global_index=0, pt=pt, eta=eta, phi=phi, sign=1)


class TestCollisionSelector(unittest.TestCase):
    def test_vertex_cut(self) -> None:
        selector = CollisionSelector(zvtx_max=10.0)
        self.assertTrue(selector.is_selected(make_collision(pos_z=-10.0)))
        self.assertFalse(selector.is_selected(make_collision(pos_z=10.5)))

    def test_run2_trigger_and_offline_flags(self) -> None:
        selector = CollisionSelector(check_trigger=True, check_offline=True)
        self.assertFalse(selector.is_selected(make_collision(sel7=False)))
        self.assertTrue(selector.is_selected(make_collision(sel7=True)))
        self.assertFalse(selector.is_selected(make_collision(sel7=True, trigger_aliases=frozenset())))
        relaxed = CollisionSelector(check_trigger=False)
        self.assertTrue(relaxed.is_selected(make_collision(trigger_aliases=frozenset())))

    def test_run3_uses_sel8_only(self) -> None:
        selector = CollisionSelector(check_trigger=True, check_offline=True, is_run3=True)
        no_trigger = make_collision(trigger_aliases=frozenset(), sel8=True)
        self.assertTrue(selector.is_selected(no_trigger))
        self.assertFalse(selector.is_selected(make_collision(sel8=False)))

    def test_multiplicity_estimator_by_run_period(self) -> None:
        collision = make_collision()
        self.assertEqual(CollisionSelector().multiplicity(collision), 120.0)
        self.assertEqual(CollisionSelector(is_run3=True).multiplicity(collision), 80.0)

    def test_qa_histograms(self) -> None:
        registry = HistogramRegistry()
        selector = CollisionSelector(is_run3=True)
        selector.init_qa(registry)
        selector.fill_qa(make_collision(), sphericity=0.5)
        self.assertEqual(registry.total("Event/zvtxhist"), 1.0)
        self.assertEqual(registry.total("Event/MultT0M"), 1.0)
        self.assertNotIn("Event/MultV0M", registry)


class TestSphericity(unittest.TestCase):
    def setUp(self) -> None:
        self.selector = CollisionSelector()

    def test_undefined_with_too_few_tracks(self) -> None:
        collision = make_collision(tracks=(track_at(0.0), track_at(1.0, pt=0.2)))
        self.assertEqual(self.selector.compute_sphericity(collision), SPHERICITY_UNDEFINED)

    def test_back_to_back_is_pencil_like(self) -> None:
        collision = make_collision(tracks=(track_at(0.0), track_at(math.pi)))
        self.assertAlmostEqual(self.selector.compute_sphericity(collision), 0.0, places=9)

    def test_isotropic_tracks(self) -> None:
        tracks = tuple(track_at(k * math.pi / 2.0) for k in range(4))
        collision = make_collision(tracks=tracks)
        self.assertAlmostEqual(self.selector.compute_sphericity(collision), 1.0, places=9)

    def test_forward_tracks_ignored(self) -> None:
        tracks = (track_at(0.0), track_at(math.pi), track_at(math.pi / 2.0, eta=1.5))
        self.assertAlmostEqual(
            self.selector.compute_sphericity(make_collision(), tracks), 0.0, places=9
        )


if __name__ == "__main__":
    unittest.main()
