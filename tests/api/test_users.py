from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from app.repos.store import InMemoryStore
from tests.helpers import (
    auth,
    get_subscription,
    list_members,
    mint_token,
    seed_member,
    seed_org,
    seed_user,
)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---- 401: missing token ----


def test_profile_rejects_missing_token(client: TestClient) -> None:
    assert client.get("/v1/users/me").status_code == 401


def test_register_rejects_missing_token(client: TestClient) -> None:
    resp = client.post("/v1/users/me", json={"email": "no-auth@school.test"})
    assert resp.status_code == 401


# ---- profile registration ----


def test_register_profile_uses_token_subject(client: TestClient) -> None:
    subject = uuid4()
    headers = _bearer(mint_token(subject))

    resp = client.post(
        "/v1/users/me",
        json={"email": "New@School.test", "full_name": "Nia New"},
        headers=headers,
    )

    assert resp.status_code == 201
    assert resp.json() == {
        "id": str(subject),
        "email": "new@school.test",
        "full_name": "Nia New",
        "onboarding_status": "incomplete",
    }
    assert client.get("/v1/users/me", headers=headers).json()["id"] == str(subject)


def test_register_twice_is_409(client: TestClient) -> None:
    headers = _bearer(mint_token(uuid4()))
    client.post("/v1/users/me", json={"email": "twice@school.test"}, headers=headers)

    resp = client.post("/v1/users/me", json={"email": "again@school.test"}, headers=headers)

    assert resp.status_code == 409


def test_register_blank_email_is_422(client: TestClient) -> None:
    resp = client.post(
        "/v1/users/me", json={"email": "  "}, headers=_bearer(mint_token(uuid4()))
    )
    assert resp.status_code == 422


def test_profile_missing_is_404(client: TestClient) -> None:
    resp = client.get("/v1/users/me", headers=_bearer(mint_token(uuid4())))
    assert resp.status_code == 404


# ---- account deletion hook ----


def test_release_membership_frees_seat(client: TestClient, store: InMemoryStore) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)
    teacher = seed_user(store, "teacher@school.test")
    seed_member(store, org, teacher)

    resp = client.delete("/v1/users/me/membership", headers=auth(teacher))

    assert resp.status_code == 200
    assert resp.json() == {"message": "Membership released"}
    assert get_subscription(store, org).active_seats == 1
    assert [m.user_id for m in list_members(store, org)] == [owner.id]


def test_release_membership_without_org_is_noop(
    client: TestClient, store: InMemoryStore
) -> None:
    loner = seed_user(store, "loner@school.test")

    resp = client.delete("/v1/users/me/membership", headers=auth(loner))

    assert resp.status_code == 200
    assert resp.json() == {"message": "User was not part of an organization"}


def test_release_membership_blocked_for_owner(
    client: TestClient, store: InMemoryStore
) -> None:
    owner = seed_user(store, "owner@school.test")
    org = seed_org(store, owner)

    resp = client.delete("/v1/users/me/membership", headers=auth(owner))

    assert resp.status_code == 409
    assert get_subscription(store, org).active_seats == 1
