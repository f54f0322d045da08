"""Health, readiness and root endpoint tests."""


def test_health(client):
    response = client.get("/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ready_checks_database(client):
    response = client.get("/v1/ready", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["checks"]["db"]["status"] == "ok"
    assert data["request_id"] == "req-123"
    assert response.headers["X-Request-ID"] == "req-123"


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "LMS Attempt API"


def test_request_id_generated_when_missing(client):
    response = client.get("/v1/health")
    assert response.headers["X-Request-ID"]
