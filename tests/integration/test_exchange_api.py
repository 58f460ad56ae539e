"""
Integration tests for the HTTP API

Exercises the routes end to end through the ASGI app: camelCase payloads,
status codes, the error envelope and bearer/actor authentication.
"""
from datetime import timedelta
import pytest

from swap import config
from swap.database import utcnow


def error_code(response) -> str:
    return response.json()["error"]["code"]


@pytest.fixture
async def funded_pair(make_user):
    alice = await make_user("alice@example.com", tokens=1, name="Alice")
    bob = await make_user("bob@example.com", tokens=0, name="Bob")
    return alice, bob


async def send(client, from_email="alice@example.com", to_email="bob@example.com", **extra):
    body = {"fromEmail": from_email, "toEmail": to_email, "courseCode": "CS101", "minutes": 60}
    body.update(extra)
    return await client.post("/requests", json=body)


@pytest.mark.asyncio
@pytest.mark.integration
class TestUserEndpoints:

    async def test_first_upsert_grants_initial_tokens(self, client, monkeypatch):
        monkeypatch.setattr(config, "INITIAL_TOKEN_GRANT", 1)

        response = await client.post("/users", json={"email": "Ada@Example.com", "name": "Ada"})

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "ada@example.com"
        assert data["tokenBalance"] == 1

        again = await client.post("/users", json={"email": "ada@example.com", "university": "UBC"})
        assert again.json()["tokenBalance"] == 1
        assert again.json()["university"] == "UBC"

    async def test_get_unknown_user(self, client):
        response = await client.get("/users/ghost@example.com")
        assert response.status_code == 404
        assert error_code(response) == "NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
class TestRequestFlow:

    async def test_send_accept_schedule_complete(self, client, funded_pair):
        response = await send(client, note="Recursion")
        assert response.status_code == 201
        request = response.json()
        assert request["status"] == "PENDING"
        assert request["courseCode"] == "CS101"

        inbox = await client.get("/requests", params={"email": "bob@example.com"})
        assert [r["id"] for r in inbox.json()] == [request["id"]]
        assert inbox.json()[0]["fromEmail"] == "alice@example.com"

        sent = await client.get("/requests", params={"email": "alice@example.com", "box": "sent"})
        assert [r["id"] for r in sent.json()] == [request["id"]]

        accepted = await client.post(
            f"/requests/{request['id']}/accept", json={"actingEmail": "bob@example.com"}
        )
        assert accepted.status_code == 200
        body = accepted.json()
        assert body["status"] == "ACCEPTED"
        assert body["fromEmail"] == "alice@example.com"
        assert body["toEmail"] == "bob@example.com"
        session = body["session"]
        assert session["teacherEmail"] == "bob@example.com"
        assert session["learnerEmail"] == "alice@example.com"
        assert body["sessionId"] == session["id"]
        assert session["status"] == "scheduled"

        scheduled = await client.post(
            f"/sessions/{session['id']}/schedule",
            json={"actingEmail": "alice@example.com", "startAt": "2026-11-02T15:00:00Z"},
        )
        assert scheduled.status_code == 200
        assert scheduled.json()["endAt"].startswith("2026-11-02T16:00:00")

        listed = await client.get("/sessions", params={"email": "bob@example.com"})
        assert listed.json()[0]["teacherEmail"] == "bob@example.com"
        assert listed.json()[0]["learnerEmail"] == "alice@example.com"

        done = await client.post(f"/sessions/{session['id']}/done", json={"actingEmail": "bob@example.com"})
        assert done.status_code == 200
        assert done.json()["status"] == "done"

        again = await client.post(f"/sessions/{session['id']}/done", json={"actingEmail": "bob@example.com"})
        assert again.status_code == 409
        assert error_code(again) == "ALREADY_COMPLETED"

        ledger = await client.get("/ledger", params={"email": "bob@example.com"})
        assert ledger.json()["balance"] == 60
        assert ledger.json()["entries"][0]["reason"] == "SESSION_TAUGHT"
        assert ledger.json()["entries"][0]["sessionId"] == session["id"]

        tokens = await client.get("/tokens", params={"email": "bob@example.com"})
        assert tokens.json()["tokens"] == 1
        assert tokens.json()["entries"][0]["reason"] == "SESSION_TAUGHT"

        # Finished exchanges drop out of the inbox
        inbox = await client.get("/requests", params={"email": "bob@example.com"})
        assert inbox.json() == []

    async def test_insufficient_tokens_envelope(self, client, make_user):
        await make_user("alice@example.com", tokens=0)
        await make_user("bob@example.com", tokens=0)

        response = await send(client)

        assert response.status_code == 400
        payload = response.json()
        assert payload["error"]["code"] == "INSUFFICIENT_TOKENS"
        assert payload["message"] == "You need at least 1 token to send a request."

    async def test_self_request(self, client, funded_pair):
        response = await send(client, to_email="alice@example.com")
        assert response.status_code == 400
        assert error_code(response) == "SELF_REQUEST"

    async def test_duplicate_request(self, client, make_user):
        await make_user("alice@example.com", tokens=2)
        await make_user("bob@example.com", tokens=0)
        assert (await send(client)).status_code == 201

        response = await send(client)

        assert response.status_code == 409
        assert error_code(response) == "DUPLICATE_REQUEST"

    async def test_broke_sender_with_pending_request_gets_balance_message(self, client, funded_pair):
        assert (await send(client)).status_code == 201

        response = await send(client)

        assert response.status_code == 400
        assert error_code(response) == "INSUFFICIENT_TOKENS"
        assert response.json()["message"] == "You need at least 1 token to send a request."

    async def test_decline_and_cancel_name_both_parties(self, client, make_user):
        await make_user("alice@example.com", tokens=2)
        await make_user("bob@example.com", tokens=0)
        await make_user("carol@example.com", tokens=0)
        first = (await send(client)).json()["id"]
        second = (await send(client, to_email="carol@example.com")).json()["id"]

        declined = await client.post(f"/requests/{first}/decline", json={"actingEmail": "bob@example.com"})
        cancelled = await client.post(f"/requests/{second}/cancel", json={"actingEmail": "alice@example.com"})

        assert (declined.json()["fromEmail"], declined.json()["toEmail"]) == ("alice@example.com", "bob@example.com")
        assert (cancelled.json()["fromEmail"], cancelled.json()["toEmail"]) == ("alice@example.com", "carol@example.com")

    async def test_decline_twice(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]

        first = await client.post(f"/requests/{request_id}/decline", json={"actingEmail": "bob@example.com"})
        second = await client.post(f"/requests/{request_id}/decline", json={"actingEmail": "bob@example.com"})

        assert first.json()["status"] == "DECLINED"
        assert second.status_code == 409
        assert error_code(second) == "ALREADY_RESOLVED"
        tokens = await client.get("/tokens", params={"email": "alice@example.com"})
        assert tokens.json()["tokens"] == 1

    async def test_sender_cannot_accept(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]
        response = await client.post(f"/requests/{request_id}/accept", json={"actingEmail": "alice@example.com"})
        assert response.status_code == 403
        assert error_code(response) == "NOT_AUTHORIZED"

    async def test_cancel_by_sender(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]
        response = await client.post(f"/requests/{request_id}/cancel", json={"actingEmail": "alice@example.com"})
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    async def test_malformed_id_is_not_found(self, client, funded_pair):
        response = await client.post("/requests/nope/accept", json={"actingEmail": "bob@example.com"})
        assert response.status_code == 404

    async def test_missing_body_field_is_validation_envelope(self, client):
        response = await client.post("/requests", json={"fromEmail": "alice@example.com"})
        assert response.status_code == 422
        assert error_code(response) == "VALIDATION_ERROR"
        assert response.json()["message"] == "Request validation failed"

    async def test_actor_header_mismatch(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]
        response = await client.post(
            f"/requests/{request_id}/accept",
            json={"actingEmail": "bob@example.com"},
            headers={"X-User-Email": "mallory@example.com"},
        )
        assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
class TestLedgerAndNotifications:

    async def test_ledger_views_for_unknown_email(self, client):
        ledger = await client.get("/ledger", params={"email": "ghost@example.com"})
        tokens = await client.get("/tokens", params={"email": "ghost@example.com"})
        assert ledger.json() == {"balance": 0, "entries": []}
        assert tokens.json() == {"tokens": 0, "entries": []}

    async def test_adjust(self, client, make_user, monkeypatch):
        monkeypatch.setattr(config, "SWAP_API_TOKEN", "s3cret")
        admin = {"Authorization": "Bearer s3cret"}
        await make_user("ada@example.com", tokens=0)

        response = await client.post(
            "/ledger/adjust", json={"email": "ada@example.com", "delta": 3, "note": "promo"}, headers=admin
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 3
        assert response.json()["entry"]["reason"] == "ADMIN_ADJUST"

        overdraw = await client.post(
            "/ledger/adjust", json={"email": "ada@example.com", "delta": -4}, headers=admin
        )
        assert overdraw.status_code == 400
        assert error_code(overdraw) == "INSUFFICIENT_BALANCE"

    async def test_adjust_refused_when_no_token_configured(self, client, make_user, monkeypatch):
        monkeypatch.setattr(config, "SWAP_API_TOKEN", None)
        await make_user("eve@example.com", tokens=0)

        response = await client.post("/ledger/adjust", json={"email": "eve@example.com", "delta": 1000})

        assert response.status_code == 503
        assert response.json()["detail"]["error"]["code"] == "AUTH_003"
        tokens = await client.get("/tokens", params={"email": "eve@example.com"})
        assert tokens.json()["tokens"] == 0

    async def test_minute_ledger_tracks_time_traded(self, client, funded_pair):
        request_id = (await send(client, minutes=90)).json()["id"]
        accepted = await client.post(f"/requests/{request_id}/accept", json={"actingEmail": "bob@example.com"})
        session_id = accepted.json()["session"]["id"]
        await client.post(f"/sessions/{session_id}/done", json={"actingEmail": "bob@example.com"})

        teacher = await client.get("/ledger", params={"email": "bob@example.com"})
        learner = await client.get("/ledger", params={"email": "alice@example.com"})
        tokens = await client.get("/tokens", params={"email": "bob@example.com"})

        assert teacher.json()["balance"] == 90
        assert [e["deltaMinutes"] for e in teacher.json()["entries"]] == [90]
        assert learner.json()["balance"] == -90
        assert learner.json()["entries"][0]["reason"] == "SESSION_TAKEN"
        assert tokens.json()["tokens"] == 1

    async def test_notification_counts(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]

        counts = await client.get("/notifications", params={"email": "bob@example.com"})
        assert counts.json() == {"requests": 1, "sessions": 0, "chat": 0, "total": 1}

        await client.post(f"/requests/{request_id}/accept", json={"actingEmail": "bob@example.com"})

        # Accepted: no longer pending, and the new session is unscheduled
        counts = await client.get("/notifications", params={"email": "bob@example.com"})
        assert counts.json() == {"requests": 0, "sessions": 1, "chat": 0, "total": 1}

    async def test_notifications_for_unknown_email(self, client):
        counts = await client.get("/notifications", params={"email": "ghost@example.com"})
        assert counts.status_code == 200
        assert counts.json()["total"] == 0

    async def test_reminders(self, client, funded_pair):
        request_id = (await send(client)).json()["id"]
        accepted = await client.post(f"/requests/{request_id}/accept", json={"actingEmail": "bob@example.com"})
        session_id = accepted.json()["session"]["id"]
        start = (utcnow() + timedelta(hours=2)).replace(microsecond=0)
        await client.post(
            f"/sessions/{session_id}/schedule",
            json={"actingEmail": "bob@example.com", "startAt": start.isoformat()},
        )

        response = await client.get("/notifications/reminders", params={"email": "alice@example.com"})

        reminders = response.json()
        assert len(reminders) == 1
        assert reminders[0]["sessionId"] == session_id
        assert reminders[0]["message"] == f"CS101 starts in {config.REMINDER_LEAD_MINUTES} minutes"


@pytest.mark.asyncio
@pytest.mark.integration
class TestAuthentication:

    async def test_token_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(config, "SWAP_API_TOKEN", "s3cret")

        missing = await client.get("/ledger", params={"email": "ada@example.com"})
        wrong = await client.get(
            "/ledger", params={"email": "ada@example.com"}, headers={"Authorization": "Bearer nope"}
        )
        ok = await client.get(
            "/ledger", params={"email": "ada@example.com"}, headers={"Authorization": "Bearer s3cret"}
        )

        assert missing.status_code == 401
        assert missing.json()["detail"]["error"]["code"] == "AUTH_001"
        assert wrong.status_code == 401
        assert wrong.json()["detail"]["error"]["code"] == "AUTH_002"
        assert ok.status_code == 200

    async def test_health_is_public(self, client, monkeypatch):
        monkeypatch.setattr(config, "SWAP_API_TOKEN", "s3cret")
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
