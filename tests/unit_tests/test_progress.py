"""
Unit tests for progress parsing and tracking.
"""

import threading
import unittest

from errors import InvalidCategoryError, ParseError
from models import ProgressSample
from progress import ProgressTracker, parse_sample, total_steps_for


class TestTotalSteps(unittest.TestCase):
    """Test category to total step lookup."""

    def test_known_categories(self):
        """Test every known category resolves."""
        self.assertEqual(total_steps_for("zen00az180_OS_2ms"), 24000)
        self.assertEqual(total_steps_for("zen00az180_OS_7ms"), 18000)
        self.assertEqual(total_steps_for("zen30az090_OS_12ms"), 18000)
        self.assertEqual(total_steps_for("17ms"), 18000)

    def test_unknown_category_fails(self):
        """Test an unknown suffix never falls back to a default."""
        with self.assertRaises(InvalidCategoryError) as ctx:
            total_steps_for("zen00az180_OS_5ms")
        self.assertEqual(ctx.exception.label, "5ms")

    def test_only_last_token_counts(self):
        """Test a known token earlier in the name is ignored."""
        with self.assertRaises(InvalidCategoryError):
            total_steps_for("case_2ms_rerun")


class TestParseSample(unittest.TestCase):
    """Test progress line parsing."""

    def test_parse_valid_line(self):
        """Test a well-formed line becomes a sample."""
        sample = parse_sample("zen00az180_OS_2ms", "TimeStep    1234: Time   56.78")
        self.assertEqual(sample, ProgressSample(step=1234, elapsed=56.78, total_steps=24000))

    def test_parse_without_padding(self):
        """Test minimal spacing still parses."""
        sample = parse_sample("case_7ms", "TimeStep 5: Time 0.5")
        self.assertEqual(sample.step, 5)
        self.assertEqual(sample.elapsed, 0.5)
        self.assertEqual(sample.total_steps, 18000)

    def test_missing_colon(self):
        """Test a line without a colon is a parse error."""
        with self.assertRaises(ParseError):
            parse_sample("case_2ms", "TimeStep 1234 Time 56.78")

    def test_empty_line(self):
        """Test an empty probe output is a parse error."""
        with self.assertRaises(ParseError):
            parse_sample("case_2ms", "")

    def test_non_numeric_step(self):
        """Test a non-numeric step is rejected."""
        with self.assertRaises(ParseError):
            parse_sample("case_2ms", "TimeStep abc: Time 56.78")

    def test_negative_step(self):
        """Test a signed step is rejected."""
        with self.assertRaises(ParseError):
            parse_sample("case_2ms", "TimeStep -4: Time 56.78")

    def test_non_numeric_time(self):
        """Test a non-numeric time is rejected."""
        with self.assertRaises(ParseError):
            parse_sample("case_2ms", "TimeStep 12: Time soon")

    def test_category_checked_before_fields(self):
        """Test an unknown category wins over a malformed line."""
        with self.assertRaises(InvalidCategoryError):
            parse_sample("case_9ms", "garbage")


class TestProgressTracker(unittest.TestCase):
    """Test per-instance progress state."""

    def setUp(self):
        """Set up test fixtures."""
        self.tracker = ProgressTracker()

    def sample(self, step):
        return ProgressSample(step=step, elapsed=float(step), total_steps=18000)

    def test_first_observation_has_no_delta(self):
        """Test the first sample is not yet rate-capable."""
        state = self.tracker.advance("inst", self.sample(100))
        self.assertIsNone(state.step_delta)
        self.assertEqual(state.latest.step, 100)

    def test_delta_between_samples(self):
        """Test the delta is the step increase."""
        self.tracker.advance("inst", self.sample(100))
        state = self.tracker.advance("inst", self.sample(160))
        self.assertEqual(state.step_delta, 60)

    def test_span_follows_timestamps(self):
        """Test the span covers the time since the previous sample."""
        first = self.tracker.advance("inst", self.sample(100), observed_at=1000.0)
        self.assertIsNone(first.span_minutes)
        state = self.tracker.advance("inst", self.sample(300), observed_at=1720.0)
        self.assertEqual(state.step_delta, 200)
        self.assertAlmostEqual(state.span_minutes, 12.0)
        self.assertEqual(state.observed_at, 1720.0)

    def test_delta_is_not_accumulated(self):
        """Test each delta covers one interval only."""
        self.tracker.advance("inst", self.sample(100))
        self.tracker.advance("inst", self.sample(160))
        state = self.tracker.advance("inst", self.sample(170))
        self.assertEqual(state.step_delta, 10)

    def test_regression_clamps_to_zero(self):
        """Test going backwards never yields a negative delta."""
        self.tracker.advance("inst", self.sample(500))
        state = self.tracker.advance("inst", self.sample(400))
        self.assertEqual(state.step_delta, 0)
        self.assertEqual(self.tracker.get("inst").latest.step, 400)

    def test_delta_non_negative_for_any_order(self):
        """Test max(0, s2 - s1) over a spread of pairs."""
        for s1, s2 in [(0, 0), (0, 7), (7, 0), (10, 10), (999, 1000), (1000, 999)]:
            tracker = ProgressTracker()
            tracker.advance("k", self.sample(s1))
            state = tracker.advance("k", self.sample(s2))
            self.assertEqual(state.step_delta, max(0, s2 - s1))

    def test_instances_are_independent(self):
        """Test keys do not share state."""
        self.tracker.advance("a", self.sample(100))
        state = self.tracker.advance("b", self.sample(300))
        self.assertIsNone(state.step_delta)
        self.assertEqual(sorted(self.tracker.keys()), ["a", "b"])
        self.assertEqual(len(self.tracker), 2)

    def test_reset(self):
        """Test reset forgets all instances."""
        self.tracker.advance("a", self.sample(100))
        self.tracker.reset()
        self.assertIsNone(self.tracker.get("a"))
        self.assertEqual(len(self.tracker), 0)

    def test_concurrent_writers(self):
        """Test distinct keys written from many threads all land."""
        threads = [
            threading.Thread(target=self.tracker.advance, args=(f"k{i}", self.sample(i)))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(self.tracker), 20)


if __name__ == "__main__":
    unittest.main()
