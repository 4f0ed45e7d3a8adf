import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from mediapace.app import app, create_app
from mediapace.errors import FatalInfraError, WarehouseTimeoutError
from mediapace.pacing.cache import PacingCache
from mediapace.services import build_services
from mediapace.utils.config_loader import EngineSettings
from fakes import FakeClock, FakeConnector

WAREHOUSE_ROWS = [
    {
        "CHANNEL": "meta",
        "DATE_DAY": "2025-01-02",
        "LINE_ITEM_ID": "li1",
        "AMOUNT_SPENT": "200",
        "IMPRESSIONS": "20000",
        "CLICKS": "40",
        "RESULTS": "2",
        "VIDEO_3S_VIEWS": "0",
        "CAMPAIGN_NAME": "Summer",
        "ENTITY_NAME": "Brand",
    },
    {
        "CHANNEL": "meta",
        "DATE_DAY": "2025-01-04",
        "LINE_ITEM_ID": "li1",
        "AMOUNT_SPENT": "250",
        "IMPRESSIONS": "25000",
        "CLICKS": "50",
        "RESULTS": "3",
        "VIDEO_3S_VIEWS": "0",
        "CAMPAIGN_NAME": "Summer",
        "ENTITY_NAME": "Brand",
    },
]

PACING_BODY = {"mbaNumber": "MBA1", "lineItemIds": ["LI1"]}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.connector = FakeConnector(script=[list(WAREHOUSE_ROWS)])
        self.services = build_services(
            EngineSettings(),
            connect=self.connector,
            cache=PacingCache(clock=self.clock),
        )
        app.state.services = self.services
        self.client = TestClient(app)

    def tearDown(self):
        app.state.services = None


class HealthTests(ApiTestCase):
    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")

    def test_ready_reports_pool_and_cache(self):
        body = self.client.get("/ready").json()
        self.assertTrue(body["ready"])
        self.assertEqual(body["checks"]["pool"]["max"], 8)
        self.assertEqual(body["checks"]["cache"]["entries"], 0)

    def test_not_ready_without_services(self):
        app.state.services = None
        self.assertEqual(self.client.get("/ready").status_code, 503)
        self.assertEqual(self.client.post("/api/pacing/line-items", json=PACING_BODY).status_code, 503)


class LineItemPacingTests(ApiTestCase):
    def test_missing_mba_number_is_400(self):
        resp = self.client.post("/api/pacing/line-items", json={"lineItemIds": ["li1"]})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"]["error"], "validation_error")

    def test_miss_then_hit(self):
        first = self.client.post("/api/pacing/line-items", json=PACING_BODY)
        second = self.client.post("/api/pacing/line-items", json=PACING_BODY)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.headers["X-Pacing-Cache"], "MISS")
        self.assertEqual(second.headers["X-Pacing-Cache"], "HIT")
        body = first.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(body["rows"][0]["date"], "2025-01-02")
        self.assertEqual(body["rows"][0]["amount_spent"], 200.0)
        self.assertEqual(len(self.connector.created[0].executed), 1)

    def test_failed_refresh_serves_stale(self):
        self.connector.script.append(RuntimeError("SQL compilation error"))
        self.client.post("/api/pacing/line-items", json=PACING_BODY)
        self.clock.advance(120)

        resp = self.client.post("/api/pacing/line-items", json=PACING_BODY)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["X-Pacing-Cache"], "STALE")
        self.assertEqual(resp.json()["count"], 2)

    def test_search_pacing(self):
        self.connector.script[0] = [
            {"LINE_ITEM_ID": "se1", "LINE_ITEM_NAME": "Brand", "DATE_DAY": "2025-01-02", "COST": "12.5", "IMPRESSIONS": 100, "TOP_IMPRESSION_PCT": "0.4"}
        ]
        resp = self.client.post("/api/pacing/search", json={"lineItemIds": ["SE1"]})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.headers["X-Pacing-Cache"], "MISS")
        body = resp.json()
        self.assertEqual(body["totals"]["cost"], 12.5)
        self.assertEqual(body["lineItems"][0]["lineItemName"], "Brand")
        self.assertEqual(body["daily"][0]["topImpressionPct"], 0.4)

    def test_search_without_ids_is_400(self):
        resp = self.client.post("/api/pacing/search", json={"lineItemIds": []})
        self.assertEqual(resp.status_code, 400)

    def test_timeout_is_504(self):
        with patch.object(self.services.pacing, "fetch_cached", side_effect=WarehouseTimeoutError("SELECT 1")):
            resp = self.client.post("/api/pacing/line-items", json=PACING_BODY)
        self.assertEqual(resp.status_code, 504)
        self.assertTrue(resp.json()["detail"]["retryable"])

    def test_fatal_infra_error_is_502(self):
        with patch.object(self.services.pacing, "fetch_cached", side_effect=FatalInfraError("retries exhausted")):
            resp = self.client.post("/api/pacing/line-items", json=PACING_BODY)
        self.assertEqual(resp.status_code, 502)
        self.assertIn("[warehouse]", resp.json()["detail"]["message"])


class ExpectedAndPlanTests(ApiTestCase):
    def test_expected_to_date(self):
        body = {
            "bursts": [{"startDate": "2025-01-01", "endDate": "2025-01-10", "budget": 1000, "deliverables": 200}],
            "asOfDate": "2025-01-05",
        }
        resp = self.client.post("/api/pacing/expected", json=body)
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["expectedSpendToDate"], 500.0)
        self.assertEqual(data["expectedDeliverablesToDate"], 100.0)
        self.assertEqual(data["timeElapsedPct"], 50.0)

    def test_invalid_as_of_is_400(self):
        resp = self.client.post("/api/pacing/expected", json={"bursts": [], "asOfDate": "soon"})
        self.assertEqual(resp.status_code, 400)

    def test_plan_vs_actual(self):
        body = {
            "mbaNumber": "MBA1",
            "mediaType": "socialMedia",
            "asOfDate": "2025-01-05",
            "records": [
                {
                    "line_item_id": "LI1",
                    "buy_type": "CPM",
                    "bursts": [{"startDate": "2025-01-01", "endDate": "2025-01-10", "budget": 1000}],
                }
            ],
        }
        resp = self.client.post("/api/pacing/plan-vs-actual", json=body)

        self.assertEqual(resp.status_code, 200)
        result = resp.json()["lineItems"][0]
        self.assertEqual(result["spend"]["expectedToDate"], 500.0)
        self.assertEqual(result["spend"]["actualToDate"], 450.0)
        self.assertEqual(result["status"], "on_track")
        self.assertEqual(result["series"][0], {"date": "2025-01-01", "expectedSpend": 100.0, "actualSpend": 0.0, "expectedDeliverable": 0.0, "actualDeliverable": 0.0})
        self.assertEqual(result["series"][1]["actualSpend"], 200.0)


class BillingApiTests(ApiTestCase):
    def test_normalize_across_containers(self):
        body = {
            "mbaNumber": "MBA7",
            "lineItemsByType": {
                "search": [{"line_item": 1, "start_date": "2025-01-01", "end_date": "2025-01-31", "budget": 300}],
                "television": [{"line_item_id": "MBA7TV1", "placement": "Prime", "start_date": "2025-01-01", "budget": 900}],
            },
        }
        data = self.client.post("/api/mediaplans/normalize", json=body).json()

        self.assertEqual(data["channels"], ["TV", "Search"])
        self.assertEqual([li["lineItemId"] for li in data["lineItems"]], ["mba7se1", "mba7tv1"])
        self.assertEqual(data["lineItems"][1]["title"], "Prime")

    def test_schedule_prunes_zero_months(self):
        line = {"lineItemId": "sm1", "header1": "Meta", "header2": "Prospecting", "monthlyAmounts": {"January 2025": 0, "February 2025": 50}}
        body = {
            "months": [
                {"monthYear": "January 2025", "lineItems": {"socialMedia": [line]}},
                {"monthYear": "February 2025", "lineItems": {"socialMedia": [line]}},
            ]
        }
        months = self.client.post("/api/billing/schedule", json=body).json()["months"]
        self.assertEqual([m["monthYear"] for m in months], ["February 2025"])

    def test_schedule_skips_malformed_buckets(self):
        line = {"lineItemId": "sm1", "monthlyAmounts": {"January 2025": 50}}
        body = {"months": [{"monthYear": "January 2025", "lineItems": {"search": 5, "socialMedia": [line]}}]}
        resp = self.client.post("/api/billing/schedule", json=body)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["months"][0]["mediaTypes"][0]["mediaType"], "Social Media")

    def test_finance_line_items(self):
        schedule = [
            {
                "monthYear": "November 2025",
                "mediaTypes": [
                    {
                        "mediaType": "Search",
                        "lineItems": [
                            {"lineItemId": "se1", "header1": "Google", "header2": "brand", "amount": "$100.00"},
                            {"lineItemId": "se2", "header1": "Google", "header2": "brand", "amount": "$50.25"},
                        ],
                    }
                ],
                "feeTotal": "$15.00",
            }
        ]
        resp = self.client.post("/api/finance/line-items", json={"schedule": schedule, "year": 2025, "month": 11})

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(len(data["lineItems"]), 1)
        self.assertEqual(data["lineItems"][0]["itemCode"], "D.Search")
        self.assertEqual(data["lineItems"][0]["amount"], 150.25)
        self.assertEqual(data["serviceAmounts"]["assembledFee"], 15.0)

    def test_finance_invalid_month_is_400(self):
        resp = self.client.post("/api/finance/line-items", json={"schedule": [], "year": 2025, "month": 13})
        self.assertEqual(resp.status_code, 400)

    def test_accrual(self):
        version = {
            "clientName": "Acme",
            "campaignName": "Summer",
            "mbaNumber": "MBA1",
            "versionNumber": 1,
            "deliverySchedule": [{"monthYear": "November 2025", "mediaTypes": [{"mediaType": "Search", "lineItems": [{"lineItemId": "se1", "amount": "$100"}]}]}],
            "billingSchedule": [{"monthYear": "November 2025", "mediaTypes": [{"mediaType": "Search", "lineItems": [{"lineItemId": "se1", "amount": "$80"}]}]}],
        }
        resp = self.client.post("/api/finance/accrual", json={"versions": [version], "months": ["November 2025", "bad"]})

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["months"], ["2025-11"])
        self.assertEqual(data["rows"][0]["difference"], 20.0)


class AppFactoryTests(unittest.TestCase):
    def test_cors_exposes_cache_header(self):
        with patch.dict(os.environ, {"MEDIAPACE_CORS_ORIGINS": "https://dash.example.com"}):
            client = TestClient(create_app())
        resp = client.get("/health", headers={"Origin": "https://dash.example.com"})

        self.assertEqual(resp.headers["access-control-allow-origin"], "https://dash.example.com")
        self.assertIn("X-Pacing-Cache", resp.headers["access-control-expose-headers"])

    def test_no_cors_headers_without_origins(self):
        with patch.dict(os.environ, {"MEDIAPACE_CORS_ORIGINS": ""}):
            client = TestClient(create_app())
        resp = client.get("/health", headers={"Origin": "https://dash.example.com"})
        self.assertNotIn("access-control-allow-origin", resp.headers)


if __name__ == "__main__":
    unittest.main()
