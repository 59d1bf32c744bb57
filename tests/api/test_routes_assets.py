"""Tests des routes `/v1/assets`."""

from portal.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_CREATED,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_UNPROCESSABLE_ENTITY,
)
from tests.api.helpers import APPROVER, OWNER, VIEWER, create_asset


def test_create_asset_returns_asset_and_first_draft(client):
    data = create_asset(client)
    asset, version = data["asset"], data["version"]
    assert asset["owner_id"] == "owner_1"
    assert asset["asset_type"] == "deck"
    assert asset["current_published_version_id"] is None
    assert version["version_number"] == 1
    assert version["status"] == "draft"
    assert version["storage_key"].endswith("deck.pdf")


def test_create_asset_requires_contributor(client):
    r = client.post("/v1/assets", json={"title": "T", "asset_type": "deck"}, headers=VIEWER)
    assert r.status_code == HTTP_FORBIDDEN
    assert r.json()["code"] == "FORBIDDEN"


def test_missing_user_header_is_forbidden(client):
    r = client.post("/v1/assets", json={"title": "T", "asset_type": "deck"})
    assert r.status_code == HTTP_FORBIDDEN


def test_invalid_asset_type_is_rejected(client):
    r = client.post("/v1/assets", json={"title": "T", "asset_type": "spreadsheet"}, headers=OWNER)
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_get_unknown_asset_returns_404(client):
    r = client.get("/v1/assets/asset_missing", headers=VIEWER)
    assert r.status_code == HTTP_NOT_FOUND
    assert r.json()["code"] == "NOT_FOUND"


def test_new_versions_are_numbered_and_listed_newest_first(client):
    asset_id = create_asset(client)["asset"]["asset_id"]
    r = client.post(f"/v1/assets/{asset_id}/versions", json={"filename": "v2.pdf"}, headers=OWNER)
    assert r.status_code == HTTP_CREATED
    assert r.json()["version_number"] == 2

    r = client.get(f"/v1/assets/{asset_id}/versions", headers=VIEWER)
    assert r.status_code == HTTP_OK
    assert [v["version_number"] for v in r.json()] == [2, 1]


def test_viewer_cannot_add_version_to_foreign_asset(client):
    asset_id = create_asset(client)["asset"]["asset_id"]
    r = client.post(f"/v1/assets/{asset_id}/versions", json={}, headers=VIEWER)
    assert r.status_code == HTTP_FORBIDDEN


def test_list_assets_with_filters(client):
    deck = create_asset(client)["asset"]["asset_id"]
    doc = create_asset(client, title="Pricing FAQ", asset_type="doc")["asset"]["asset_id"]

    r = client.get("/v1/assets", headers=VIEWER)
    assert r.status_code == HTTP_OK
    assert {a["asset_id"] for a in r.json()} == {deck, doc}

    r = client.get("/v1/assets", params={"asset_type": "doc"}, headers=VIEWER)
    assert [a["asset_id"] for a in r.json()] == [doc]
    r = client.get("/v1/assets", params={"owner_id": "someone_else"}, headers=VIEWER)
    assert r.json() == []


def test_update_asset_metadata(client):
    data = create_asset(client)
    asset_id, version_id = data["asset"]["asset_id"], data["version"]["version_id"]
    client.post(f"/v1/versions/{version_id}/publish", headers=APPROVER)

    r = client.patch(
        f"/v1/assets/{asset_id}",
        json={"title": "Q4 Sales Deck", "asset_type": "doc"},
        headers=OWNER,
    )
    assert r.status_code == HTTP_OK, r.text
    body = r.json()
    assert body["title"] == "Q4 Sales Deck"
    assert body["asset_type"] == "doc"
    assert body["owner_id"] == "owner_1"
    assert body["current_published_version_id"] == version_id


def test_update_asset_requires_contributor(client):
    asset_id = create_asset(client)["asset"]["asset_id"]
    r = client.patch(f"/v1/assets/{asset_id}", json={"title": "x"}, headers=VIEWER)
    assert r.status_code == HTTP_FORBIDDEN


def test_update_asset_rejects_pointer_fields(client):
    asset_id = create_asset(client)["asset"]["asset_id"]
    r = client.patch(
        f"/v1/assets/{asset_id}",
        json={"current_published_version_id": "version_x"},
        headers=OWNER,
    )
    assert r.status_code == HTTP_UNPROCESSABLE_ENTITY
    asset = client.get(f"/v1/assets/{asset_id}", headers=VIEWER).json()
    assert asset["current_published_version_id"] is None


def test_publish_after_blanking_title_is_validation_error(client):
    data = create_asset(client)
    asset_id, version_id = data["asset"]["asset_id"], data["version"]["version_id"]
    client.patch(f"/v1/assets/{asset_id}", json={"title": "   "}, headers=OWNER)

    r = client.post(f"/v1/versions/{version_id}/publish", headers=APPROVER)
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert r.json()["details"] == {"missing": ["title"]}


def test_version_number_collision_returns_409(client, api_container, monkeypatch):
    asset_id = create_asset(client)["asset"]["asset_id"]
    # Numéro lu avant l'insert concurrent de la version 1
    monkeypatch.setattr(api_container.version_repo, "max_version_number", lambda asset_id: None)
    r = client.post(f"/v1/assets/{asset_id}/versions", json={}, headers=OWNER)
    assert r.status_code == HTTP_CONFLICT
    assert r.json()["code"] == "CONFLICT"
