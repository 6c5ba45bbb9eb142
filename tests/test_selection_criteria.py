"""Unit tests for selection criteria and bit-packed cut containers."""

from __future__ import annotations

import unittest

from femtoworld import ConfigurationError, CutBits, CutContainer, SelectionCriterion, SelectionType
from femtoworld.selection import CompositeCutContainer, bit_label
from femtoworld.track_selection import TrackObservable, TrackSelector


class TestSelectionCriterion(unittest.TestCase):
    """Threshold ordering, comparison modes and tier monotonicity."""

    def test_thresholds_sorted_loosest_first(self) -> None:
        lower = SelectionCriterion("pt_min", SelectionType.LOWER_LIMIT, (0.4, 0.6, 0.5))
        upper = SelectionCriterion("dcaxy_max", SelectionType.ABS_UPPER_LIMIT, (0.1, 3.5))
        equal = SelectionCriterion("sign", SelectionType.EQUAL, (1.0, -1.0))
        self.assertEqual(lower.thresholds, (0.4, 0.5, 0.6))
        self.assertEqual(upper.thresholds, (3.5, 0.1))
        self.assertEqual(equal.thresholds, (1.0, -1.0))
        self.assertEqual(lower.loosest, 0.4)
        self.assertEqual(upper.loosest, 3.5)

    def test_comparison_modes(self) -> None:
        self.assertTrue(SelectionCriterion("x", SelectionType.EQUAL, (1.0,)).passes(1.0))
        self.assertFalse(SelectionCriterion("x", SelectionType.EQUAL, (1.0,)).passes(-1.0))
        self.assertTrue(SelectionCriterion("x", SelectionType.LOWER_LIMIT, (0.5,)).passes(0.5))
        self.assertFalse(SelectionCriterion("x", SelectionType.LOWER_LIMIT, (0.5,)).passes(0.49))
        self.assertTrue(SelectionCriterion("x", SelectionType.UPPER_LIMIT, (2.0,)).passes(2.0))
        self.assertTrue(SelectionCriterion("x", SelectionType.UPPER_LIMIT, (2.0,)).passes(-3.0))
        self.assertFalse(SelectionCriterion("x", SelectionType.UPPER_LIMIT, (2.0,)).passes(2.1))
        self.assertTrue(SelectionCriterion("x", SelectionType.ABS_LOWER_LIMIT, (0.05,)).passes(-0.06))
        self.assertFalse(SelectionCriterion("x", SelectionType.ABS_LOWER_LIMIT, (0.05,)).passes(0.01))
        self.assertTrue(SelectionCriterion("x", SelectionType.ABS_UPPER_LIMIT, (0.8,)).passes(-0.8))
        self.assertFalse(SelectionCriterion("x", SelectionType.ABS_UPPER_LIMIT, (0.8,)).passes(-0.81))

    def test_passing_a_tight_tier_implies_passing_looser_tiers(self) -> None:
        criteria = [
            SelectionCriterion("a", SelectionType.LOWER_LIMIT, (80.0, 70.0, 60.0)),
            SelectionCriterion("b", SelectionType.UPPER_LIMIT, (0.1, 160.0)),
            SelectionCriterion("c", SelectionType.ABS_UPPER_LIMIT, (0.8, 0.7, 0.9)),
            SelectionCriterion("d", SelectionType.ABS_LOWER_LIMIT, (0.05, 0.06)),
        ]
        values = [-200.0, -1.0, -0.75, -0.055, 0.0, 0.055, 0.65, 0.85, 65.0, 75.0, 85.0, 200.0]
        for criterion in criteria:
            for value in values:
                for tier in range(criterion.n_tiers):
                    if criterion.passes(value, tier):
                        for looser in range(tier):
                            self.assertTrue(
                                criterion.passes(value, looser),
                                msg=f"{criterion.observable}: {value} tier {tier} vs {looser}",
                            )

    def test_minimal_equal_accepts_any_configured_value(self) -> None:
        sign = SelectionCriterion("sign", SelectionType.EQUAL, (-1.0, 1.0))
        self.assertTrue(sign.passes_minimal(1.0))
        self.assertTrue(sign.passes_minimal(-1.0))
        self.assertFalse(sign.passes_minimal(0.0))

    def test_empty_thresholds_are_a_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            SelectionCriterion("pt_min", SelectionType.LOWER_LIMIT, ())
        with self.assertRaises(ValueError):
            SelectionCriterion("pt_min", SelectionType.LOWER_LIMIT, ())

    def test_selection_type_parse(self) -> None:
        self.assertIs(SelectionType.parse("abs_upper_limit"), SelectionType.ABS_UPPER_LIMIT)
        self.assertIs(SelectionType.parse(1), SelectionType.LOWER_LIMIT)
        with self.assertRaises(ConfigurationError):
            SelectionType.parse("between")
        with self.assertRaises(ConfigurationError):
            SelectionType.parse(9)


class TestCutBits(unittest.TestCase):
    def test_named_bit_access(self) -> None:
        labels = ("pt_min[0]", "pt_min[1]", "sign[0]")
        bits = CutBits.from_flags([True, False, True], labels)
        self.assertEqual(int(bits), 0b101)
        self.assertEqual(bits.count(), 2)
        self.assertTrue(bits.is_set("sign[0]"))
        self.assertTrue(bits.passed("pt_min", 0))
        self.assertFalse(bits.passed(TrackObservable.PT_MIN, 1))
        self.assertEqual(bits.as_dict(), {"pt_min[0]": True, "pt_min[1]": False, "sign[0]": True})
        with self.assertRaises(KeyError):
            bits.is_set("eta_max[0]")

    def test_layout_wider_than_container_is_rejected(self) -> None:
        labels = tuple(bit_label("x", i) for i in range(33))
        with self.assertRaises(ConfigurationError):
            CutBits.empty(labels)
        self.assertEqual(CutBits.empty(labels[:32]).count(), 0)

    def test_value_must_fit_layout(self) -> None:
        with self.assertRaises(ValueError):
            CutBits(value=0b100, labels=("a[0]", "b[0]"))
        with self.assertRaises(ValueError):
            CutBits(value=-1, labels=("a[0]",))

    def test_composite_acceptance_needs_parent_and_both_children(self) -> None:
        one = CutBits.from_flags([True], ("a[0]",))
        zero = CutBits.empty(("a[0]",))
        child = CutContainer(selection=one, pid=CutBits.empty())
        dead_child = CutContainer(selection=zero, pid=one)
        self.assertTrue(CompositeCutContainer(one, (child, child)).is_accepted())
        self.assertFalse(CompositeCutContainer(zero, (child, child)).is_accepted())
        self.assertFalse(CompositeCutContainer(one, (child, dead_child)).is_accepted())


class TestObjectSelectionLayout(unittest.TestCase):
    def test_bits_follow_configuration_order(self) -> None:
        selector = TrackSelector()
        selector.set_selection((0.5, 0.4), TrackObservable.PT_MIN, SelectionType.LOWER_LIMIT)
        selector.set_selection((-1, 1), "sign", "equal")
        self.assertEqual(
            selector.selection_labels(), ("pt_min[0]", "pt_min[1]", "sign[0]", "sign[1]")
        )

    def test_reconfiguring_an_observable_replaces_it(self) -> None:
        selector = TrackSelector()
        selector.set_selection((0.5, 0.4), TrackObservable.PT_MIN, SelectionType.LOWER_LIMIT)
        selector.set_selection((0.3,), TrackObservable.PT_MIN, SelectionType.LOWER_LIMIT)
        self.assertEqual(selector.selection_labels(), ("pt_min[0]",))

    def test_width_overflow_keeps_previous_layout(self) -> None:
        selector = TrackSelector(width=4)
        selector.set_selection((0.4, 0.5, 0.6), TrackObservable.PT_MIN, SelectionType.LOWER_LIMIT)
        with self.assertRaises(ConfigurationError):
            selector.set_selection((0.8, 0.9), TrackObservable.ETA_MAX, SelectionType.ABS_UPPER_LIMIT)
        self.assertEqual(len(selector.selection_labels()), 3)

    def test_unknown_observable(self) -> None:
        with self.assertRaises(ConfigurationError):
            TrackSelector().set_selection((1.0,), "cpa_v0_min", SelectionType.LOWER_LIMIT)


if __name__ == "__main__":
    unittest.main()
