import json
import unittest
from datetime import date
from decimal import Decimal

from mediapace.mediaplan import (
    MediaTypeAdapter,
    adapter_for,
    build_line_item_id,
    build_line_item_identity,
    normalize,
    resolve_channel,
    sort_channels,
)


class AdapterTests(unittest.TestCase):
    def test_first_non_empty_key_wins(self):
        adapter = adapter_for("search")
        record = {"line_item_id": "", "lineItemId": "SE-1", "id": "other"}
        self.assertEqual(adapter.pick(record, "id"), "SE-1")

    def test_television_overrides_title_keys(self):
        tv = adapter_for("television")
        digital = adapter_for("digiDisplay")
        record = {"placement": "Prime", "creative": "Hero 30s"}
        self.assertEqual(tv.pick(record, "title"), "Prime")
        self.assertEqual(digital.pick(record, "title"), "Hero 30s")

    def test_media_type_aliases(self):
        self.assertEqual(adapter_for("TV").media_type, "television")
        self.assertEqual(adapter_for("social_media").media_type, "socialMedia")


class NormalizeTests(unittest.TestCase):
    def test_merges_records_sharing_an_id_in_any_order(self):
        first = {
            "line_item_id": "ABC123TV1",
            "bursts_json": json.dumps([{"startDate": "2025-01-01", "endDate": "2025-01-10", "budget": "1000"}]),
        }
        second = {
            "lineItemId": "abc123tv1",
            "bursts": [
                {"start_date": "2025-02-01", "end_date": "2025-02-10", "budget": 500},
                {"startDate": "2025-01-01", "endDate": "2025-01-10", "budget": 1000},
            ],
        }

        forward = normalize([first, second], "television")
        backward = normalize([second, first], "television")

        self.assertEqual(len(forward), 1)
        self.assertEqual(forward[0].line_item_id, "abc123tv1")
        self.assertEqual(len(forward[0].bursts), 2)
        self.assertEqual(forward[0].bursts, backward[0].bursts)
        self.assertEqual(forward[0].total_budget, Decimal("1500"))

    def test_missing_id_falls_back_to_position(self):
        items = normalize([{"startDate": "2025-03-01", "budget": 10}, {"startDate": "2025-03-02", "budget": 20}], "radio")
        self.assertEqual([i.line_item_id for i in items], ["__idx_0", "__idx_1"])

    def test_fallback_burst_from_direct_fields(self):
        items = normalize(
            [{"line_item_id": "x1", "placement_date": "2025-04-05", "totalMedia": "$2,500.00", "spots": 12}],
            "newspaper",
        )
        burst = items[0].bursts[0]
        self.assertEqual((burst.start_date, burst.end_date), (date(2025, 4, 5), date(2025, 4, 5)))
        self.assertEqual(burst.budget_amount, Decimal("2500.00"))
        self.assertEqual(burst.deliverable_amount, Decimal("12"))

    def test_undatable_record_is_kept_without_bursts(self):
        items = normalize([{"line_item_id": "x2", "bursts": "not json", "network": "Seven"}], "television")
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].bursts, [])
        self.assertEqual(items[0].attributes.publisher, "Seven")

    def test_lower_line_item_number_then_created_at_picks_representative(self):
        records = [
            {"line_item_id": "a", "line_item": 3, "creative": "Late", "startDate": "2025-01-01"},
            {"line_item_id": "a", "line_item": 1, "created_at": "2025-01-02T00:00:00Z", "creative": "Second"},
            {"line_item_id": "a", "line_item": 1, "created_at": "2025-01-01T00:00:00Z", "creative": "First"},
        ]
        item = normalize(records, "socialMedia")[0]
        self.assertEqual(item.title, "First")
        self.assertEqual(item.line_item_number, 1)

    def test_title_targeting_and_labels(self):
        tv = normalize(
            [{"line_item_id": "t", "placement": "auto", "creative": "Hero", "buyingDemo": "P25-54", "network": "Nine"}],
            "television",
        )[0]
        self.assertEqual(tv.title, "Hero")
        self.assertEqual(tv.attributes.targeting, "P25-54")
        self.assertEqual(tv.attributes.publisher, "Nine")

        untitled = normalize([{"line_item_id": "d9"}], "digiDisplay")[0]
        self.assertEqual(untitled.title, "Line item d9")
        self.assertEqual(untitled.attributes.market, "")

    def test_bad_amounts_and_reversed_dates_are_coerced(self):
        item = normalize(
            [{"line_item_id": "z", "bursts": [{"startDate": "2025-05-10", "endDate": "2025-05-01", "budget": "abc"}]}],
            "search",
        )[0]
        burst = item.bursts[0]
        self.assertEqual(burst.start_date, date(2025, 5, 1))
        self.assertEqual(burst.budget_amount, Decimal("0"))

    def test_non_finite_numbers_do_not_break_ordering(self):
        records = [
            {"line_item_id": "a", "lineItem": "inf", "created_at": "nan", "creative": "Infinite", "start_date": "2025-01-01", "budget": 1},
            {"line_item_id": "a", "lineItem": 1e400, "created_at": float("inf"), "creative": "Overflow"},
            {"line_item_id": "a", "lineItem": 2, "created_at": "2025-01-01T00:00:00Z", "creative": "Numbered"},
        ]
        item = normalize(records, "search")[0]
        self.assertEqual(item.line_item_number, 2)
        self.assertEqual(item.title, "Numbered")
        self.assertEqual(len(item.bursts), 1)

        lone = normalize([{"line_item_id": "b", "lineItem": "-inf", "start_date": "2025-01-01", "budget": 1}], "search")[0]
        self.assertIsNone(lone.line_item_number)

    def test_custom_adapter_table(self):
        adapter = MediaTypeAdapter(
            media_type="influencers",
            fields={**adapter_for("influencers").fields, "id": ("handle",), "title": ("campaign_title",)},
        )
        items = normalize([{"handle": "@Creator", "campaign_title": "Launch"}], "influencers", adapter=adapter)
        self.assertEqual(items[0].line_item_id, "@creator")
        self.assertEqual(items[0].title, "Launch")


class LineItemIdTests(unittest.TestCase):
    def test_id_format(self):
        self.assertEqual(build_line_item_id("MBA123", "TV", 3), "MBA123TV3")
        self.assertEqual(build_line_item_id("  ", "SE", 0), "SESE1")

    def test_identity_prefers_record_number(self):
        self.assertEqual(build_line_item_identity({"lineItem": "4"}, "MBA1", "television", 0), ("MBA1TV4", 4))
        self.assertEqual(build_line_item_identity({}, "MBA1", "search", 2), ("MBA1SE3", 3))

    def test_normalize_derives_ids_when_mba_given(self):
        records = [
            {"line_item": 2, "start_date": "2025-01-01", "end_date": "2025-01-31", "budget": 100},
            {"start_date": "2025-02-01", "end_date": "2025-02-28", "budget": 50},
        ]
        # second record has no number, so its 1-based position (2) collides with the first
        items = normalize(records, "search", mba_number="MBA9")
        self.assertEqual([item.line_item_id for item in items], ["mba9se2"])
        self.assertEqual(len(items[0].bursts), 2)

    def test_without_mba_records_fall_back_to_position(self):
        records = [{"start_date": "2025-01-01", "end_date": "2025-01-31", "budget": 100}]
        self.assertEqual(normalize(records, "search")[0].line_item_id, "__idx_0")


class ChannelTests(unittest.TestCase):
    def test_resolve_channel(self):
        self.assertEqual(resolve_channel("socialMedia"), "Social")
        self.assertEqual(resolve_channel("prog_display"), "Programmatic")
        self.assertEqual(resolve_channel("radio"), "Radio")
        self.assertEqual(resolve_channel("out_of_home"), "Out Of Home")

    def test_sort_channels_uses_fixed_order_then_name(self):
        self.assertEqual(sort_channels(["Search", "Radio", "TV", "Cinema", "Social"]), ["TV", "Social", "Search", "Cinema", "Radio"])

    def test_normalized_items_carry_channel(self):
        item = normalize([{"line_item_id": "x", "start_date": "2025-01-01", "budget": 1}], "television")[0]
        self.assertEqual(item.channel, "TV")


if __name__ == "__main__":
    unittest.main()
