import unittest
from datetime import date, timedelta
from decimal import Decimal

from mediapace.mediaplan import Burst
from mediapace.pacing.proration import (
    compute_to_date,
    expected_daily_series,
    expected_spend_from_schedule,
    time_elapsed_pct,
)


def _burst(start, end, budget, deliverables=0):
    return Burst(start, end, Decimal(str(budget)), Decimal(str(deliverables)))


class ComputeToDateTests(unittest.TestCase):
    def setUp(self):
        self.burst = _burst(date(2025, 1, 1), date(2025, 1, 10), 1000, 200)

    def test_midpoint_uses_inclusive_day_count(self):
        self.assertEqual(compute_to_date([self.burst], date(2025, 1, 5)), Decimal("500"))

    def test_end_date_returns_exact_total(self):
        self.assertEqual(compute_to_date([self.burst], date(2025, 1, 10)), Decimal("1000"))

    def test_before_start_is_zero_and_after_end_is_total(self):
        self.assertEqual(compute_to_date([self.burst], date(2024, 12, 31)), Decimal("0"))
        self.assertEqual(compute_to_date([self.burst], date(2025, 3, 1)), Decimal("1000"))

    def test_monotonic_over_burst(self):
        previous = Decimal("-1")
        day = date(2024, 12, 28)
        while day <= date(2025, 1, 14):
            value = compute_to_date([self.burst], day)
            self.assertGreaterEqual(value, previous)
            self.assertLessEqual(value, Decimal("1000"))
            previous = value
            day += timedelta(days=1)

    def test_single_day_burst(self):
        burst = _burst(date(2025, 2, 3), date(2025, 2, 3), 75)
        self.assertEqual(compute_to_date([burst], date(2025, 2, 2)), Decimal("0"))
        self.assertEqual(compute_to_date([burst], date(2025, 2, 3)), Decimal("75"))
        self.assertEqual(compute_to_date([burst], date(2025, 2, 4)), Decimal("75"))

    def test_deliverable_field_and_multiple_bursts(self):
        second = _burst(date(2025, 2, 1), date(2025, 2, 4), 400, 40)
        as_of = date(2025, 2, 2)
        self.assertEqual(compute_to_date([self.burst, second], as_of), Decimal("1200"))
        self.assertEqual(compute_to_date([second, self.burst], as_of, field="deliverable"), Decimal("220"))

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValueError):
            compute_to_date([self.burst], date(2025, 1, 5), field="bogus")


class TimeElapsedTests(unittest.TestCase):
    def test_after_end_is_exactly_hundred(self):
        pct = time_elapsed_pct(date(2025, 1, 1), date(2025, 1, 31), date(2025, 2, 1))
        self.assertEqual(pct, Decimal("100"))

    def test_before_start_is_zero(self):
        self.assertEqual(time_elapsed_pct(date(2025, 1, 1), date(2025, 1, 31), date(2024, 12, 1)), Decimal("0"))

    def test_inclusive_progress(self):
        pct = time_elapsed_pct(date(2025, 1, 1), date(2025, 1, 10), date(2025, 1, 5))
        self.assertEqual(pct, Decimal("50"))
        self.assertEqual(time_elapsed_pct(date(2025, 1, 1), date(2025, 1, 10), date(2025, 1, 10)), Decimal("100"))


class ExpectedSeriesTests(unittest.TestCase):
    def test_overlapping_bursts_accumulate(self):
        bursts = [
            _burst(date(2025, 1, 1), date(2025, 1, 2), 20, 2),
            _burst(date(2025, 1, 2), date(2025, 1, 3), 40, 4),
        ]
        points = expected_daily_series(bursts)
        self.assertEqual([p.day for p in points], [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)])
        self.assertEqual(points[1].daily_spend, Decimal("30"))
        self.assertEqual(points[-1].cumulative_spend, Decimal("60"))
        self.assertEqual(points[-1].cumulative_deliverables, Decimal("6"))


class ScheduleExpectedSpendTests(unittest.TestCase):
    schedule = [
        {"monthYear": "January 2025", "mediaTypes": [{"mediaType": "Search", "lineItems": [{"amount": "$310.00"}]}]},
        {"monthYear": "February 2025", "mediaTypes": [{"mediaType": "Search", "lineItems": [{"amount": "$280.00"}]}], "feeTotal": "$28.00"},
    ]

    def test_past_months_full_and_current_month_prorated(self):
        value = expected_spend_from_schedule(self.schedule, "2025-01-01", "2025-02-28", date(2025, 2, 14))
        self.assertEqual(value, Decimal("464.0000"))

    def test_before_start_and_after_end(self):
        self.assertEqual(expected_spend_from_schedule(self.schedule, "2025-01-01", "2025-02-28", date(2024, 12, 1)), 0)
        self.assertEqual(
            expected_spend_from_schedule({"months": self.schedule}, "2025-01-01", "2025-02-28", date(2025, 3, 1)),
            Decimal("618.0000"),
        )


if __name__ == "__main__":
    unittest.main()
