import unittest
from datetime import date
from decimal import Decimal

from mediapace.billing import (
    allocate_bursts_monthly,
    build_billing_schedule,
    build_monthly_inputs,
    schedule_headers,
    validate_overrides,
)
from mediapace.mediaplan import Burst, normalize


def _line(line_item_id, amounts, header1="Meta", header2="Prospecting"):
    return {"lineItemId": line_item_id, "header1": header1, "header2": header2, "monthlyAmounts": amounts}


class BuildScheduleTests(unittest.TestCase):
    def test_zero_month_bucket_is_pruned(self):
        line = _line("sm1", {"January 2025": 0, "February 2025": 50})
        months = [
            {"monthYear": "January 2025", "lineItems": {"socialMedia": [line]}},
            {"monthYear": "February 2025", "lineItems": {"socialMedia": [line]}},
        ]

        schedule = build_billing_schedule(months)

        self.assertEqual(len(schedule), 1)
        self.assertEqual(schedule[0]["monthYear"], "February 2025")
        bucket = schedule[0]["mediaTypes"][0]
        self.assertEqual(bucket["mediaType"], "Social Media")
        self.assertEqual(bucket["lineItems"][0]["amount"], "$50.00")

    def test_fee_only_month_is_kept_with_fee_fields(self):
        schedule = build_billing_schedule([{"monthYear": "March 2025", "lineItems": {}, "feeTotal": "1234.5", "production": 0}])
        self.assertEqual(schedule, [{"monthYear": "March 2025", "mediaTypes": [], "feeTotal": "$1,234.50"}])

    def test_all_zero_input_yields_empty_schedule_and_is_idempotent(self):
        months = [{"monthYear": "April 2025", "lineItems": {"search": [_line("se1", {"April 2025": "0"})]}}]
        self.assertEqual(build_billing_schedule(months), [])

        live = [{"monthYear": "May 2025", "lineItems": {"search": [_line("se1", {"May 2025": "$10"})]}}]
        self.assertEqual(build_billing_schedule(live), build_billing_schedule(live))

    def test_unparsable_amount_is_treated_as_zero(self):
        months = [
            {
                "monthYear": "June 2025",
                "lineItems": {"search": [_line("bad", {"June 2025": "n/a"}), _line("ok", {"June 2025": 5})]},
            }
        ]
        schedule = build_billing_schedule(months)
        self.assertEqual([li["lineItemId"] for li in schedule[0]["mediaTypes"][0]["lineItems"]], ["ok"])

    def test_month_order_follows_input(self):
        months = [
            {"monthYear": "March 2025", "feeTotal": 1},
            {"monthYear": "January 2025", "feeTotal": 1},
        ]
        self.assertEqual([m["monthYear"] for m in build_billing_schedule(months)], ["March 2025", "January 2025"])

    def test_malformed_media_bucket_is_skipped(self):
        months = [
            {
                "monthYear": "July 2025",
                "lineItems": {"search": 5, "radio": "n/a", "socialMedia": [_line("sm1", {"July 2025": 20})]},
            }
        ]
        schedule = build_billing_schedule(months)
        self.assertEqual([m["mediaType"] for m in schedule[0]["mediaTypes"]], ["Social Media"])


class HeaderTests(unittest.TestCase):
    def test_platform_types_use_targeting(self):
        self.assertEqual(schedule_headers("search", {"platform": "Google", "creative_targeting": "Brand"}), ("Google", "Brand"))

    def test_broadcast_and_default(self):
        self.assertEqual(schedule_headers("television", {"network": "Seven", "station": "7MEL"}), ("Seven", "7MEL"))
        self.assertEqual(schedule_headers("integration", {}), ("Item", "Details"))
        self.assertEqual(schedule_headers("production", {}), ("Production", "Total"))


class AllocationTests(unittest.TestCase):
    def test_burst_split_across_months_sums_to_total(self):
        burst = Burst(date(2025, 1, 22), date(2025, 2, 9), Decimal("1900"))
        allocations = allocate_bursts_monthly([burst], "search")
        self.assertEqual([a.month_year for a in allocations], ["2025-01", "2025-02"])
        self.assertEqual(allocations[0].media, Decimal("1000"))
        self.assertEqual(allocations[1].media, Decimal("900"))
        self.assertEqual(sum(a.media for a in allocations), Decimal("1900"))

    def test_fee_modes(self):
        burst = Burst(date(2025, 3, 1), date(2025, 3, 31), Decimal("1000"))
        inclusive = allocate_bursts_monthly([burst], "search", fee_pct=10, budget_includes_fees=True)[0]
        self.assertEqual((inclusive.media, inclusive.fee), (Decimal("900"), Decimal("100")))

        exclusive = allocate_bursts_monthly([burst], "search", fee_pct=10)[0]
        self.assertEqual((exclusive.media, exclusive.fee), (Decimal("1000"), Decimal("100")))

        client_paid = allocate_bursts_monthly([burst], "search", fee_pct=10, client_pays_for_media=True)[0]
        self.assertEqual((client_paid.media, client_paid.fee), (Decimal("0"), Decimal("100")))

    def test_monthly_inputs_feed_the_builder(self):
        items = normalize(
            [
                {
                    "line_item_id": "se1",
                    "platform": "Google",
                    "targeting": "Brand",
                    "bursts": [{"startDate": "2025-01-22", "endDate": "2025-02-09", "budget": 1900}],
                }
            ],
            "search",
        )
        inputs = build_monthly_inputs({"search": items}, fee_pct_by_type={"search": 10})
        schedule = build_billing_schedule(inputs)

        self.assertEqual([m["monthYear"] for m in schedule], ["January 2025", "February 2025"])
        january = schedule[0]
        self.assertEqual(january["mediaTypes"][0]["lineItems"][0]["amount"], "$1,000.00")
        self.assertEqual(january["mediaTypes"][0]["lineItems"][0]["header1"], "Google")
        self.assertEqual(january["feeTotal"], "$100.00")

    def test_override_validation(self):
        self.assertTrue(validate_overrides([100, 200], [150, 150.005]).is_valid)
        check = validate_overrides([{"totalAmount": 100}], [{"totalAmount": 90}])
        self.assertFalse(check.is_valid)
        self.assertIn("less than original", check.error_message)


if __name__ == "__main__":
    unittest.main()
