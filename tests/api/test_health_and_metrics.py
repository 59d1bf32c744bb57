"""Tests pour l'endpoint de santé et l'exposition des métriques."""

from portal.core.http_constants import HTTP_OK
from tests.api.helpers import APPROVER, create_asset


def test_health(client):
    """Teste que l'endpoint de santé retourne un statut OK."""
    r = client.get("/health")
    assert r.status_code == HTTP_OK
    assert r.json()["status"] == "ok"
    assert r.json()["storage"] in {"memory", "sql"}


def test_metrics_exposes_lifecycle_counters(client):
    version_id = create_asset(client)["version"]["version_id"]
    client.post(f"/v1/versions/{version_id}/publish", headers=APPROVER)
    r = client.get("/metrics")
    assert r.status_code == HTTP_OK
    assert "lifecycle_transitions_total" in r.text
    assert "http_requests_total" in r.text


def test_responses_carry_request_id(client):
    r = client.get("/health")
    assert r.headers.get("X-Request-ID")
