"""API tests for recruiter invitation management and candidate completion."""

from hirecredits.models.credit_ledger import CreditLedgerEntry
from hirecredits.models.invitation import AssessmentInvitation
from tests.conftest import (
    TestingSessionLocal,
    admin_headers,
    age_invitation,
    candidate_headers,
    recruiter_headers,
)


def _invite(client, headers, **overrides):
    payload = {"job_id": "job-1", "template_id": "tpl-1", "candidate_email": "cand@example.com"}
    payload.update(overrides)
    return client.post("/api/v1/invitations", json=payload, headers=headers)


# ---------------------------------------------------------------------------
# POST /api/v1/invitations
# ---------------------------------------------------------------------------


def test_create_invitation_201(client):
    headers, _, company_id = recruiter_headers(client, credits=2)
    resp = _invite(client, headers)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["company_id"] == company_id
    assert data["credit_debited"] is True
    assert data["credit_amount"] == 1
    assert "token=" in data["invite_url"]
    assert "/assessments/tpl-1" in data["invite_url"]


def test_create_invitation_insufficient_credits_402(client):
    headers, _, _ = recruiter_headers(client)
    resp = _invite(client, headers)
    assert resp.status_code == 402
    detail = resp.json()["detail"]
    assert detail["code"] == "insufficient_credits"
    assert "Buy more credits" in detail["message"]
    assert detail["balance"] == 0

    db = TestingSessionLocal()
    try:
        assert db.query(AssessmentInvitation).count() == 0
        assert db.query(CreditLedgerEntry).count() == 0
    finally:
        db.close()


def test_repeat_invitation_returns_existing_200(client):
    headers, _, _ = recruiter_headers(client, credits=2)
    first = _invite(client, headers)
    second = _invite(client, headers)
    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    balance = client.get("/api/v1/billing/credits", headers=headers).json()
    assert balance["credits_balance"] == 1


def test_create_requires_candidate(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    resp = client.post("/api/v1/invitations", json={"job_id": "j", "template_id": "t"}, headers=headers)
    assert resp.status_code == 422


def test_create_time_limit_out_of_range_422(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    resp = _invite(client, headers, time_limit_days=45)
    assert resp.status_code == 422


def test_create_unknown_candidate_id_404(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    resp = client.post(
        "/api/v1/invitations",
        json={"job_id": "j", "template_id": "t", "candidate_id": 99999},
        headers=headers,
    )
    assert resp.status_code == 404


def test_candidate_cannot_create_invitation(client):
    headers, _, _ = candidate_headers(client)
    resp = _invite(client, headers)
    assert resp.status_code == 403


def test_create_no_auth_401(client):
    resp = client.post("/api/v1/invitations", json={"job_id": "j", "template_id": "t", "candidate_email": "a@b.com"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# GET /api/v1/invitations
# ---------------------------------------------------------------------------


def test_list_and_get_company_scoped(client):
    headers, _, _ = recruiter_headers(client, credits=2)
    other_headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers).json()
    _invite(client, headers, candidate_email="second@example.com")
    _invite(client, other_headers)

    listing = client.get("/api/v1/invitations", headers=headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 2

    assert client.get(f"/api/v1/invitations/{inv['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/v1/invitations/{inv['id']}", headers=other_headers).status_code == 404


def test_list_filter_by_status(client):
    headers, _, _ = recruiter_headers(client, credits=2)
    inv = _invite(client, headers).json()
    _invite(client, headers, candidate_email="second@example.com")
    client.post(f"/api/v1/invitations/{inv['id']}/expire", json={}, headers=headers)

    resp = client.get("/api/v1/invitations?status=EXPIRED", headers=headers)
    assert resp.status_code == 200
    assert [item["id"] for item in resp.json()["items"]] == [inv["id"]]


# ---------------------------------------------------------------------------
# POST /api/v1/invitations/{id}/expire
# ---------------------------------------------------------------------------


def test_expire_without_refund(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers).json()

    resp = client.post(
        f"/api/v1/invitations/{inv['id']}/expire",
        json={"note": "Role filled"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "EXPIRED"
    assert resp.json()["status_note"] == "Role filled"
    assert client.get("/api/v1/billing/credits", headers=headers).json()["credits_balance"] == 0

    again = client.post(f"/api/v1/invitations/{inv['id']}/expire", json={}, headers=headers)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "invalid_state_transition"


def test_admin_can_expire_any_invitation(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers).json()
    admin, _ = admin_headers(client)
    resp = client.post(f"/api/v1/invitations/{inv['id']}/expire", json={}, headers=admin)
    assert resp.status_code == 200


def test_other_recruiter_cannot_expire(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    other_headers, _, _ = recruiter_headers(client)
    inv = _invite(client, headers).json()
    resp = client.post(f"/api/v1/invitations/{inv['id']}/expire", json={}, headers=other_headers)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Candidate routes
# ---------------------------------------------------------------------------


def test_candidate_lists_and_completes_own_invitation(client):
    cand_headers, cand_email, cand_id = candidate_headers(client)
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers, candidate_email=cand_email).json()
    assert inv["candidate_id"] == cand_id

    listing = client.get("/api/v1/candidate/invitations", headers=cand_headers)
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [inv["id"]]
    assert "token" not in listing.json()[0]

    done = client.post(f"/api/v1/candidate/invitations/{inv['id']}/complete", headers=cand_headers)
    assert done.status_code == 200
    assert done.json()["status"] == "COMPLETED"

    repeat = client.post(f"/api/v1/candidate/invitations/{inv['id']}/complete", headers=cand_headers)
    assert repeat.status_code == 200
    assert repeat.json()["status"] == "COMPLETED"


def test_candidate_cannot_complete_someone_elses_invitation(client):
    cand_headers, _, _ = candidate_headers(client)
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers, candidate_email="not-me@example.com").json()

    resp = client.post(f"/api/v1/candidate/invitations/{inv['id']}/complete", headers=cand_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Could not submit the assessment, please try again."


def test_candidate_completion_of_refunded_invitation_generic_error(client, db):
    cand_headers, cand_email, _ = candidate_headers(client)
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers, candidate_email=cand_email).json()
    client.post(f"/api/v1/invitations/{inv['id']}/expire", json={}, headers=headers)

    resp = client.post(f"/api/v1/candidate/invitations/{inv['id']}/complete", headers=cand_headers)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Could not submit the assessment, please try again."


def test_complete_by_token_without_account(client):
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers, candidate_email="guest@example.com").json()
    token = inv["invite_url"].split("token=", 1)[1]

    resp = client.post(f"/api/v1/candidate/invitations/token/{token}/complete")
    assert resp.status_code == 200
    assert resp.json()["status"] == "COMPLETED"


def test_complete_by_bad_token_generic_error(client):
    resp = client.post("/api/v1/candidate/invitations/token/not-a-token/complete")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Could not submit the assessment, please try again."


def test_recruiter_cannot_use_candidate_routes(client):
    headers, _, _ = recruiter_headers(client)
    resp = client.get("/api/v1/candidate/invitations", headers=headers)
    assert resp.status_code == 403


def test_completion_after_deadline_before_reclaim(client, db):
    cand_headers, cand_email, _ = candidate_headers(client)
    headers, _, _ = recruiter_headers(client, credits=1)
    inv = _invite(client, headers, candidate_email=cand_email).json()
    age_invitation(db, inv["id"])

    resp = client.post(f"/api/v1/candidate/invitations/{inv['id']}/complete", headers=cand_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "COMPLETED"
