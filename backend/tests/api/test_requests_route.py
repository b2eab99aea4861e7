"""Request Route — HTTP envelope, identity headers and error mapping."""

import pytest
from httpx import ASGITransport, AsyncClient

from agora.main import app
from agora.services.request_dispatch import build_dispatch

ALICE = {"X-User-Id": "alice"}
MOD = {"X-User-Id": "mod", "X-User-Roles": "moderator"}


@pytest.fixture
async def client(ctx):
    app.state.dispatch = build_dispatch(ctx)
    app.state.db_manager = None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.state.dispatch = None


async def _post(client, headers, **payload):
    return await client.post("/api/v1/requests", json=payload, headers=headers)


async def test_ok_envelope(client):
    response = await _post(client, ALICE, kind="publish_content", target_kind="post", body="hi")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["result"]["owner_id"] == "alice"
    assert body["result"]["score"] == 0


async def test_user_id_header_required(client):
    response = await client.post("/api/v1/requests", json={"kind": "get_target"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_unknown_role_rejected(client):
    response = await _post(
        client, {"X-User-Id": "alice", "X-User-Roles": "wizard"},
        kind="get_auth_status", user_id="alice",
    )
    assert response.status_code == 400
    assert response.json()["error"]["field"] == "X-User-Roles"


async def test_bad_payload_is_validation_error(client):
    response = await _post(client, ALICE, kind="cast_vote", target_kind="post", target_id="p1")
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["field"].endswith("value")


async def test_not_found_envelope(client):
    response = await _post(client, ALICE, kind="get_target", target_kind="post", target_id="nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_denial_carries_reason(client):
    response = await _post(client, {"X-User-Id": "bob"}, kind="get_auth_status", user_id="alice")
    assert response.status_code == 403
    assert response.json()["error"]["reason"] == "not_owner"


async def test_staff_role_from_header(client):
    report = await _post(
        client, ALICE, kind="submit_report",
        content_type="user", content_id="bob", reason="spam", reported_user_id="bob",
    )
    report_id = report.json()["result"]["report_id"]
    denied = await _post(client, ALICE, kind="claim_report", report_id=report_id)
    assert denied.status_code == 403
    claimed = await _post(client, MOD, kind="claim_report", report_id=report_id)
    assert claimed.json()["result"]["status"] == "under_review"


async def test_kinds_listed(client):
    response = await client.get("/api/v1/requests/kinds")
    assert len(response.json()["kinds"]) == 43
    assert "cast_vote" in response.json()["kinds"]


async def test_health_and_readiness(client):
    assert (await client.get("/api/v1/health/")).json()["status"] == "healthy"
    ready = await client.get("/api/v1/health/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"] == {"repository": "memory"}


async def test_not_ready_without_dispatch(client):
    app.state.dispatch = None
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
