"""Health and Prometheus scrape endpoints."""

from app.monitoring.prometheus_metrics import prometheus_metrics


def test_health_reports_service_and_environment(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "medtik-api"
    assert body["timestamp"].endswith("Z")


def test_health_lite(client):
    assert client.get("/api/v1/health/lite").json() == {"status": "ok"}


def test_metrics_endpoint_exposes_custom_registry(client):
    prometheus_metrics.record_sweep_item("expired_slots", "reclaimed")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "medtik_sweep_items_total" in response.text
