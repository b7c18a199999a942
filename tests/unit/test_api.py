"""
Unit Tests - Reporting API
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from retail_reports.serving.api.main import create_api_app
from retail_reports.serving.api.middleware import RateLimitMiddleware


class BrokenStore:
    """Store whose backend is unreachable"""

    async def aggregate(self, query):
        raise ConnectionError("connection refused")

    async def stock_items(self, category=None):
        raise ConnectionError("connection refused")

    async def check_health(self):
        raise ConnectionError("connection refused")


@pytest.fixture
def client(frame_store, clock):
    app = create_api_app(report_store=frame_store, clock=clock)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def broken_client(clock):
    app = create_api_app(report_store=BrokenStore(), clock=clock)
    with TestClient(app) as client:
        yield client


class TestReportEndpoints:
    """Tests for the report routes"""

    def test_sales_by_period(self, client):
        """Test the period report with default dates"""
        response = client.get("/api/v1/reports/sales/period")

        assert response.status_code == 200
        assert response.json()["total_sales"] == 229.0

    def test_camel_case_dates(self, client):
        """Test startDate and endDate query parameters"""
        response = client.get(
            "/api/v1/reports/sales/period",
            params={"startDate": "2025-03-01", "endDate": "2025-03-12"},
        )

        assert response.status_code == 200
        assert response.json()["total_sales"] == 219.0

    def test_daily_summary(self, client):
        """Test the daily summary for an explicit date"""
        response = client.get("/api/v1/reports/sales/daily", params={"date": "2025-03-11"})

        assert response.status_code == 200
        assert response.json()["summary"]["total_sales"] == 15.0

    def test_top_products_with_limit(self, client):
        """Test the limit parameter truncates the ranking"""
        response = client.get("/api/v1/reports/sales/top-products", params={"limit": 2})

        body = response.json()
        assert response.status_code == 200
        assert len(body["top_products"]) == 2
        assert body["total_products"] == 6

    def test_customer_sales(self, client):
        response = client.get("/api/v1/reports/sales/customers")

        assert response.status_code == 200
        assert response.json()["total_customers"] == 3

    def test_inventory_routes(self, client):
        """Test every inventory report answers"""
        levels = client.get("/api/v1/reports/inventory/stock-levels", params={"category": "Snacks"})
        low = client.get("/api/v1/reports/inventory/low-stock")
        valuation = client.get("/api/v1/reports/inventory/valuation")
        movements = client.get(
            "/api/v1/reports/inventory/movements",
            params={"startDate": "2025-03-11", "endDate": "2025-03-12"},
        )

        assert levels.json()["summary"]["total_products"] == 2
        assert low.json()["summary"]["critical_items"] == 2
        assert valuation.json()["summary"]["total_cost"] == 236.0
        assert movements.json()["summary"]["total_movements"] == 8

    def test_dashboard(self, client):
        response = client.get("/api/v1/reports/dashboard")

        assert response.status_code == 200
        assert len(response.json()["alerts"]) == 4

    def test_business_summary(self, client):
        response = client.get("/api/v1/reports/summary", params={"period": "weekly"})

        assert response.status_code == 200
        assert response.json()["business_metrics"]["sales"]["total"] == 77.0


class TestErrorMapping:
    """Tests for reporting error responses"""

    def test_malformed_date_is_bad_request(self, client):
        """Test malformed dates map to 400"""
        response = client.get("/api/v1/reports/sales/period", params={"startDate": "03/01/2025"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidDateError"
        assert body["message"] == "Invalid start_date format. Use YYYY-MM-DD"

    def test_reversed_range_is_bad_request(self, client):
        response = client.get(
            "/api/v1/reports/sales/period",
            params={"startDate": "2025-03-12", "endDate": "2025-03-01"},
        )

        assert response.status_code == 400

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_out_of_range_is_bad_request(self, client, limit):
        """Test limits outside 1-100 map to 400"""
        response = client.get("/api/v1/reports/sales/top-products", params={"limit": limit})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidFilterError"

    def test_non_integer_limit_is_bad_request(self, client):
        """Test a non-integer limit gets the same 400 body as a range error"""
        response = client.get("/api/v1/reports/sales/top-products", params={"limit": "ten"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidFilterError"
        assert body["details"]["errors"][0]["field"] == "limit"

    def test_store_failure_is_bad_gateway(self, broken_client):
        """Test store failures map to 502"""
        response = broken_client.get("/api/v1/reports/sales/period")

        assert response.status_code == 502
        assert response.json()["error"] == "QueryExecutionError"

    def test_dashboard_failure_is_bad_gateway(self, broken_client):
        """Test a failing dashboard branch fails the whole dashboard"""
        response = broken_client.get("/api/v1/reports/dashboard")

        assert response.status_code == 502


class TestHealthEndpoints:
    """Tests for health and readiness probes"""

    def test_health(self, client):
        response = client.get("/api/v1/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["checks"]["report_store"]["backend"] == "frame"

    def test_liveness(self, client):
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}

    def test_readiness(self, client):
        assert client.get("/api/v1/health/ready").json() == {"status": "ready"}

    def test_not_ready_when_store_fails(self, broken_client):
        """Test readiness reports 503 while the store is unreachable"""
        response = broken_client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert broken_client.get("/api/v1/health").json()["status"] == "degraded"

    def test_metrics(self, client):
        """Test report counters are exported for Prometheus"""
        client.get("/api/v1/reports/sales/customers")
        response = client.get("/metrics/")

        assert response.status_code == 200
        assert 'retail_reports_generated_total{report="customer_sales",status="success"}' in response.text

    def test_info(self, client):
        assert client.get("/api/v1/info").json()["store"] == "FrameReportStore"

    def test_response_headers(self, client):
        """Test request ID and security headers are set"""
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Response-Time" in response.headers


class TestRateLimit:
    """Tests for RateLimitMiddleware"""

    @pytest.fixture
    def limited_client(self):
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60)

        @app.get("/api/v1/reports/summary")
        async def summary():
            return {"ok": True}

        @app.get("/api/v1/health/live")
        async def live():
            return {"status": "alive"}

        with TestClient(app) as client:
            yield client

    def test_requests_over_limit_are_rejected(self, limited_client):
        """Test the third request in the window gets 429"""
        first = limited_client.get("/api/v1/reports/summary")
        limited_client.get("/api/v1/reports/summary")
        third = limited_client.get("/api/v1/reports/summary")

        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert third.status_code == 429
        assert third.headers["Retry-After"] == "60"

    def test_probes_are_not_limited(self, limited_client):
        """Test health probes pass once the limit is spent"""
        for _ in range(3):
            limited_client.get("/api/v1/reports/summary")

        assert limited_client.get("/api/v1/health/live").status_code == 200

    async def test_idle_clients_are_forgotten(self):
        """Test clients without hits in the last window are dropped"""
        now = [1000.0]
        limiter = RateLimitMiddleware(FastAPI(), max_requests=2, window_seconds=60, clock=lambda: now[0])

        await limiter._admit("10.0.0.1")
        now[0] += 61
        await limiter._admit("10.0.0.2")

        assert set(limiter._hits) == {"10.0.0.2"}
