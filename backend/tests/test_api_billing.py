"""API tests for credit balance, history, adjustments, audit and purchase webhooks."""

import hashlib
import hmac
import json

from hirecredits.domains.billing_webhooks import webhook_routes
from tests.conftest import admin_headers, candidate_headers, recruiter_headers


# ---------------------------------------------------------------------------
# GET /api/v1/billing/credits
# ---------------------------------------------------------------------------


def test_get_credits_new_company_zero(client):
    headers, _, company_id = recruiter_headers(client)
    resp = client.get("/api/v1/billing/credits", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["company_id"] == company_id
    assert data["credits_balance"] == 0
    assert data["totals"] == {"purchased": 0, "consumed": 0, "refunded": 0, "adjusted": 0}
    assert "basic_20" in data["packs"]


def test_get_credits_after_purchase_and_invite(client):
    headers, _, _ = recruiter_headers(client, credits=5)
    client.post(
        "/api/v1/invitations",
        json={"job_id": "job-1", "template_id": "tpl-1", "candidate_email": "a@example.com"},
        headers=headers,
    )
    data = client.get("/api/v1/billing/credits", headers=headers).json()
    assert data["credits_balance"] == 4
    assert data["totals"]["purchased"] == 5
    assert data["totals"]["consumed"] == 1


def test_get_credits_no_auth_401(client):
    resp = client.get("/api/v1/billing/credits")
    assert resp.status_code == 401


def test_get_credits_candidate_403(client):
    headers, _, _ = candidate_headers(client)
    resp = client.get("/api/v1/billing/credits", headers=headers)
    assert resp.status_code == 403


def test_recruiter_cannot_read_other_company(client):
    headers, _, _ = recruiter_headers(client)
    _, _, other_company_id = recruiter_headers(client)
    resp = client.get(f"/api/v1/billing/credits?company_id={other_company_id}", headers=headers)
    assert resp.status_code == 403


def test_admin_reads_any_company(client):
    _, _, company_id = recruiter_headers(client, credits=3)
    headers, _ = admin_headers(client)
    resp = client.get(f"/api/v1/billing/credits?company_id={company_id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["credits_balance"] == 3


def test_admin_without_company_id_400(client):
    headers, _ = admin_headers(client)
    resp = client.get("/api/v1/billing/credits", headers=headers)
    assert resp.status_code == 400


def test_admin_unknown_company_404(client):
    headers, _ = admin_headers(client)
    resp = client.get("/api/v1/billing/credits?company_id=98765", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "not_found"


# ---------------------------------------------------------------------------
# GET /api/v1/billing/credits/history
# ---------------------------------------------------------------------------


def test_history_newest_first(client):
    headers, _, _ = recruiter_headers(client, credits=2)
    client.post(
        "/api/v1/invitations",
        json={"job_id": "job-1", "template_id": "tpl-1", "candidate_email": "a@example.com"},
        headers=headers,
    )
    resp = client.get("/api/v1/billing/credits/history", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["limit"] == 50
    reasons = [e["reason"] for e in data["entries"]]
    assert reasons == ["INVITE_CONSUMED", "PURCHASE"]
    assert data["entries"][0]["amount"] == -1
    assert data["entries"][0]["balance_after"] == 1
    assert data["entries"][0]["related_invitation_id"] is not None


def test_history_limit_clamped(client):
    headers, _, _ = recruiter_headers(client)
    resp = client.get("/api/v1/billing/credits/history?limit=5000", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["limit"] == 100


# ---------------------------------------------------------------------------
# POST /api/v1/billing/credits/adjustments, GET /api/v1/billing/credits/audit
# ---------------------------------------------------------------------------


def test_admin_adjustment_and_audit(client):
    _, _, company_id = recruiter_headers(client, credits=2)
    headers, _ = admin_headers(client)

    resp = client.post(
        "/api/v1/billing/credits/adjustments",
        json={"company_id": company_id, "amount": 3, "note": "Goodwill for outage"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["reason"] == "ADJUSTMENT"
    assert resp.json()["balance_after"] == 5

    audit = client.get(f"/api/v1/billing/credits/audit?company_id={company_id}", headers=headers)
    assert audit.status_code == 200
    assert audit.json() == {
        "company_id": company_id,
        "balance": 5,
        "ledger_sum": 5,
        "entry_count": 2,
        "consistent": True,
    }


def test_negative_adjustment_cannot_overdraw_402(client):
    _, _, company_id = recruiter_headers(client, credits=1)
    headers, _ = admin_headers(client)
    resp = client.post(
        "/api/v1/billing/credits/adjustments",
        json={"company_id": company_id, "amount": -2, "note": "Chargeback"},
        headers=headers,
    )
    assert resp.status_code == 402
    assert resp.json()["detail"]["code"] == "insufficient_credits"


def test_zero_adjustment_rejected(client):
    _, _, company_id = recruiter_headers(client)
    headers, _ = admin_headers(client)
    resp = client.post(
        "/api/v1/billing/credits/adjustments",
        json={"company_id": company_id, "amount": 0, "note": "Nothing"},
        headers=headers,
    )
    assert resp.status_code == 422


def test_recruiter_cannot_adjust(client):
    headers, _, company_id = recruiter_headers(client)
    resp = client.post(
        "/api/v1/billing/credits/adjustments",
        json={"company_id": company_id, "amount": 100, "note": "Free credits"},
        headers=headers,
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# POST /api/v1/webhooks/lemon
# ---------------------------------------------------------------------------


def _signed_post(client, payload, secret="lemon-secret"):
    raw = json.dumps(payload).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    return client.post(
        "/api/v1/webhooks/lemon",
        content=raw,
        headers={"X-Signature": signature, "Content-Type": "application/json"},
    )


def _order_payload(company_id, order_id="1001", pack_id="pro_75"):
    return {
        "meta": {"event_name": "order_created", "custom_data": {"company_id": str(company_id), "pack_id": pack_id}},
        "data": {"id": order_id, "attributes": {"status": "paid"}},
    }


def test_lemon_webhook_credits_once(client, monkeypatch):
    monkeypatch.setattr(webhook_routes.settings, "MVP_DISABLE_LEMON", False)
    monkeypatch.setattr(webhook_routes.settings, "LEMON_WEBHOOK_SECRET", "lemon-secret")
    headers, _, company_id = recruiter_headers(client)

    first = _signed_post(client, _order_payload(company_id))
    assert first.status_code == 200, first.text
    assert first.json()["credited"] is True
    assert first.json()["credits"] == 75

    duplicate = _signed_post(client, _order_payload(company_id))
    assert duplicate.status_code == 200
    assert duplicate.json()["credited"] is False

    balance = client.get("/api/v1/billing/credits", headers=headers).json()
    assert balance["credits_balance"] == 75
    assert balance["totals"]["purchased"] == 75


def test_lemon_webhook_bad_signature_401(client, monkeypatch):
    monkeypatch.setattr(webhook_routes.settings, "MVP_DISABLE_LEMON", False)
    monkeypatch.setattr(webhook_routes.settings, "LEMON_WEBHOOK_SECRET", "lemon-secret")
    _, _, company_id = recruiter_headers(client)
    resp = _signed_post(client, _order_payload(company_id), secret="wrong")
    assert resp.status_code == 401


def test_lemon_webhook_disabled_503(client):
    resp = client.post("/api/v1/webhooks/lemon", json={})
    assert resp.status_code == 503


def test_lemon_webhook_ignores_other_events(client, monkeypatch):
    monkeypatch.setattr(webhook_routes.settings, "MVP_DISABLE_LEMON", False)
    monkeypatch.setattr(webhook_routes.settings, "LEMON_WEBHOOK_SECRET", "lemon-secret")
    resp = _signed_post(client, {"meta": {"event_name": "subscription_created"}, "data": {"attributes": {}}})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ignored"


def test_lemon_webhook_unknown_company_404(client, monkeypatch):
    monkeypatch.setattr(webhook_routes.settings, "MVP_DISABLE_LEMON", False)
    monkeypatch.setattr(webhook_routes.settings, "LEMON_WEBHOOK_SECRET", "lemon-secret")
    resp = _signed_post(client, _order_payload(424242))
    assert resp.status_code == 404
