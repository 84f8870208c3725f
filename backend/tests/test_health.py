from coverdesk.api.routes import health


def test_health_endpoints(client):
    live = client.get("/api/health")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    payload = ready.json()
    assert payload["database_ok"] is True
    assert payload["schema_gaps"] == []
    assert payload["smtp_configured"] is False
    assert payload["auto_assign_minimum_score"] == 100
    assert "smtp" not in payload


def test_readiness_degrades_when_schema_is_incomplete(client, monkeypatch):
    monkeypatch.setattr(health, "find_schema_gaps", lambda connection: ["absences.status"])

    ready = client.get("/api/health/ready")

    assert ready.status_code == 503
    assert ready.json()["status"] == "degraded"
    assert ready.json()["schema_gaps"] == ["absences.status"]


def test_security_headers_and_request_size_limit(client, auth_headers):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"

    oversized = client.post(
        "/api/absences",
        content=b"x" * 2_000_000,
        headers={**auth_headers(), "Content-Type": "application/json"},
    )
    assert oversized.status_code == 413
    assert oversized.json()["details"]["max_bytes"] == 1_000_000
