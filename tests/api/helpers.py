"""Helpers HTTP partagés par les tests de routes."""

OWNER = {"X-User-Id": "owner_1", "X-User-Role": "Contributor"}
APPROVER = {"X-User-Id": "approver_1", "X-User-Role": "Approver"}
ADMIN = {"X-User-Id": "admin_1", "X-User-Role": "Admin"}
VIEWER = {"X-User-Id": "viewer_1", "X-User-Role": "Viewer"}


def create_asset(client, **overrides) -> dict:
    body = {"title": "Q3 Sales Deck", "asset_type": "deck", "filename": "deck.pdf"}
    body.update(overrides)
    r = client.post("/v1/assets", json=body, headers=OWNER)
    assert r.status_code == 201, r.text
    return r.json()
