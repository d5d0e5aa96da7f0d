"""Tests for app-level endpoints, error envelopes and security headers."""


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness_reports_integrations(self, client):
        data = client.get("/health/ready").json()
        assert set(data["checks"]) == {"database", "payment_gateway", "storage", "email"}


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        response = client.get("/api/v1/nope")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_malformed_json(self, client):
        response = client.post(
            "/api/v1/coupons/validate",
            content=b"{oops",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert set(response.json()) == {"error"}


class TestSecurityHeaders:
    def test_headers_present(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "checkout.razorpay.com" in response.headers["Content-Security-Policy"]
