def test_health_reports_database(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


def test_metrics_endpoint_is_disabled_by_default(client):
    assert client.get("/metrics").status_code == 404


def test_unknown_route_uses_error_shape(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert "error" in response.json()


def test_security_headers_are_set(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_token_urls_are_not_indexed(client):
    response = client.post("/t/alpha/api/form-links/NOPE0000NOPE0000/submit", json={"email": "a@example.com"})
    assert response.status_code == 404
    assert response.headers["Referrer-Policy"] == "no-referrer"
    assert response.headers["X-Robots-Tag"] == "noindex, nofollow"
    assert response.headers["Cache-Control"] == "no-store"


def test_oversized_submission_is_rejected(client):
    response = client.post(
        "/t/alpha/api/form-links/NOPE0000NOPE0000/submit",
        content=b"{" + b" " * 20_000 + b"}",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 413
    assert response.json() == {"error": "Payload too large", "code": "payload_too_large"}


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
