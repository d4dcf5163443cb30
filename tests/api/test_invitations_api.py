from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

from fastapi.testclient import TestClient

from app.repos.store import InMemoryStore
from tests.helpers import (
    auth,
    get_invitation,
    get_subscription,
    seed_member,
    seed_org,
    seed_user,
)


def _invite(client: TestClient, org, inviter, emails: list[str]):
    return client.post(
        f"/v1/organizations/{org.id}/invitations",
        json={"emails": emails},
        headers=auth(inviter),
    )


def test_invite_validate_accept_flow(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner, max_seats=2)

    resp = _invite(client, org, owner, ["Teacher@School.test"])
    assert resp.status_code == 201
    body = resp.json()
    assert body["invited_count"] == 1
    invitation = body["invitations"][0]
    assert invitation["email"] == "teacher@school.test"
    assert invitation["status"] == "pending"
    assert invitation["invited_by"] == str(owner.id)

    check = client.get("/v1/invitations/validate", params={"token": invitation["token"]})
    assert check.status_code == 200
    assert check.json()["organization_id"] == str(org.id)

    teacher = seed_user(store, "teacher@school.test")
    accepted = client.post(
        "/v1/invitations/accept",
        json={"token": invitation["token"]},
        headers=auth(teacher),
    )
    assert accepted.status_code == 200
    assert accepted.json() == {
        "message": "Invitation accepted successfully",
        "organization_id": str(org.id),
    }
    assert get_subscription(store, org).active_seats == 2

    # Org is full now: the next batch is rejected as a whole
    full = _invite(client, org, owner, ["next@school.test"])
    assert full.status_code == 400
    assert "Upgrade to add more" in full.json()["detail"]["message"]


def test_invite_reports_skipped_emails(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)

    resp = _invite(client, org, owner, ["bad-address", "ok@school.test"])

    assert resp.status_code == 201
    assert resp.json()["errors"] == ["Invalid email format: bad-address"]


def test_invite_with_no_valid_emails_is_400(
    client: TestClient, store: InMemoryStore
) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)

    resp = _invite(client, org, owner, ["bad-address"])

    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "No valid emails provided"


def test_invite_empty_list_is_422(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)

    assert _invite(client, org, owner, []).status_code == 422


def test_validate_unknown_token_is_404(client: TestClient) -> None:
    resp = client.get("/v1/invitations/validate", params={"token": "0" * 64})

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Invalid invitation token"


def test_validate_expired_token(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)
    invitation = _invite(client, org, owner, ["late@school.test"]).json()["invitations"][0]

    async def _backdate() -> None:
        async with store.transaction() as uow:
            key = UUID(invitation["id"])
            stored = uow.invitations._store[key]
            uow.invitations._store[key] = replace(
                stored, expires_at=datetime.now(UTC) - timedelta(seconds=1)
            )

    asyncio.run(_backdate())

    resp = client.get("/v1/invitations/validate", params={"token": invitation["token"]})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Invitation has expired"
    assert get_invitation(store, UUID(invitation["id"])).status == "expired"


def test_accept_requires_authentication(client: TestClient) -> None:
    resp = client.post("/v1/invitations/accept", json={"token": "0" * 64})

    assert resp.status_code == 401


def test_accept_when_org_filled_is_400_and_invitation_stays_pending(
    client: TestClient, store: InMemoryStore
) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner, max_seats=2)
    invitation = _invite(client, org, owner, ["late@school.test"]).json()["invitations"][0]
    seed_member(store, org, seed_user(store, "quick@school.test"))
    late = seed_user(store, "late@school.test")

    resp = client.post(
        "/v1/invitations/accept",
        json={"token": invitation["token"]},
        headers=auth(late),
    )

    assert resp.status_code == 400
    assert get_invitation(store, UUID(invitation["id"])).status == "pending"


def test_list_and_cancel_invitations(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)
    created = _invite(client, org, owner, ["a@school.test", "b@school.test"]).json()
    first_id = created["invitations"][0]["id"]
    url = f"/v1/organizations/{org.id}/invitations"

    resp = client.delete(f"{url}/{first_id}", headers=auth(owner))
    assert resp.status_code == 204
    again = client.delete(f"{url}/{first_id}", headers=auth(owner))
    assert again.status_code == 409

    pending = client.get(url, params={"status": "pending"}, headers=auth(owner)).json()
    canceled = client.get(url, params={"status": "canceled"}, headers=auth(owner)).json()
    assert [i["email"] for i in pending] == [created["invitations"][1]["email"]]
    assert [i["id"] for i in canceled] == [first_id]
    assert canceled[0]["invited_by"] == str(owner.id)

    bad_filter = client.get(url, params={"status": "bogus"}, headers=auth(owner))
    assert bad_filter.status_code == 422


def test_cancel_invitation_of_another_org_is_404(
    client: TestClient, store: InMemoryStore
) -> None:
    owner_a = seed_user(store, "a@school.test")
    owner_b = seed_user(store, "b@school.test")
    org_a = seed_org(store, owner_a, name="School A")
    org_b = seed_org(store, owner_b, name="School B")
    invitation = _invite(client, org_b, owner_b, ["x@school.test"]).json()["invitations"][0]

    resp = client.delete(
        f"/v1/organizations/{org_a.id}/invitations/{invitation['id']}",
        headers=auth(owner_a),
    )

    assert resp.status_code == 404
