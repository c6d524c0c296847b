"""HTTP surface of /invitations"""
import pytest
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.security import create_access_token
from app.services.trips.invitation_service import InvitationService


@pytest.fixture
async def guest(make_user):
    return await make_user("guest")


async def test_health_endpoint(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_get_link_requires_authentication(client, trip):
    response = await client.get(f"/invitations/trips/{trip.id}/link")
    assert response.status_code in (401, 403)


async def test_get_link_rejects_a_forged_token(client, trip):
    response = await client.get(
        f"/invitations/trips/{trip.id}/link",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


async def test_get_link_rejects_token_for_unknown_user(client, trip):
    token = create_access_token({"sub": "424242"})
    response = await client.get(
        f"/invitations/trips/{trip.id}/link",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


async def test_get_link_response_shape(client, trip, owner, auth_headers):
    response = await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"token", "code", "expires_at", "link", "max_uses", "current_uses", "exhausted"}
    assert body["exhausted"] is False
    assert body["link"].endswith(f"/invitations/join/{body['token']}")

    again = await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))
    assert (again.json()["token"], again.json()["code"]) == (body["token"], body["code"])


async def test_management_by_outsider_is_forbidden(client, trip, guest, auth_headers):
    for method, path in [
        ("GET", f"/invitations/trips/{trip.id}/link"),
        ("POST", f"/invitations/trips/{trip.id}/link"),
        ("DELETE", f"/invitations/trips/{trip.id}/link"),
        ("GET", f"/invitations/trips/{trip.id}"),
    ]:
        response = await client.request(method, path, headers=auth_headers(guest))
        assert response.status_code == 403, path
        assert response.json()["error"] == "forbidden"


async def test_rotate_accepts_options_and_validates_them(client, trip, owner, auth_headers):
    response = await client.post(
        f"/invitations/trips/{trip.id}/link",
        json={"custom_message": "See you there", "expires_in_days": 10, "max_uses": 4},
        headers=auth_headers(owner),
    )
    assert response.status_code == 200
    assert response.json()["max_uses"] == 4

    preview = await client.get(f"/invitations/join/{response.json()['token']}")
    assert preview.json()["invitation"]["custom_message"] == "See you there"

    bad = await client.post(
        f"/invitations/trips/{trip.id}/link",
        json={"max_uses": 0},
        headers=auth_headers(owner),
    )
    assert bad.status_code == 422


async def test_rotate_without_body(client, trip, owner, auth_headers):
    first = await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))
    second = await client.post(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))

    assert second.status_code == 200
    assert second.json()["token"] != first.json()["token"]


async def test_validate_is_public(client, trip, owner, auth_headers):
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()

    response = await client.get(f"/invitations/join/{link['token']}")

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["trip"]["id"] == trip.id
    assert body["trip"]["owner"] == {"id": owner.id, "username": "owner"}
    assert body["invitation"]["current_uses"] == 0


async def test_validate_unknown_token_is_404(client):
    response = await client.get("/invitations/join/NoSuchTokenX")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_accept_twice_reports_already_participant(client, trip, owner, guest, auth_headers):
    link = (await client.post(
        f"/invitations/trips/{trip.id}/link",
        json={"max_uses": 5},
        headers=auth_headers(owner),
    )).json()

    joined = await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))
    again = await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))

    assert joined.status_code == 200
    assert again.status_code == 400
    assert again.json()["error"] == "already_participant"


async def test_accept_requires_authentication(client, trip, owner, auth_headers):
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()

    response = await client.post(f"/invitations/join/{link['token']}/accept")

    assert response.status_code in (401, 403)


async def test_exhausted_invitation_is_rejected(client, trip, owner, guest, make_user, auth_headers):
    latecomer = await make_user("latecomer")
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()
    await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))

    response = await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(latecomer))

    assert response.status_code == 400
    assert response.json()["error"] == "invitation_exhausted"


async def test_unexpected_integrity_error_is_a_storage_failure(client, trip, owner, auth_headers, monkeypatch):
    async def trip_vanished(self, *args):
        raise IntegrityError("INSERT INTO invitations", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(InvitationService, "_mint", trip_vanished)

    response = await client.post(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))

    assert response.status_code == 500
    assert response.json()["error"] == "storage_failure"


async def test_get_link_reports_a_spent_link(client, trip, owner, guest, auth_headers):
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()
    await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))

    again = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()

    assert again["token"] == link["token"]
    assert again["exhausted"] is True


async def test_find_by_code_rejects_malformed_code(client, guest, auth_headers):
    response = await client.get("/invitations/find-by-code/12ab56", headers=auth_headers(guest))
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_code"


async def test_find_by_code_unknown_code(client, guest, auth_headers):
    response = await client.get("/invitations/find-by-code/654321", headers=auth_headers(guest))
    assert response.status_code == 404


async def test_find_by_code_is_rate_limited(client, guest, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "CODE_LOOKUP_RATE_LIMIT", 3)

    statuses = [
        (await client.get("/invitations/find-by-code/654321", headers=auth_headers(guest))).status_code
        for _ in range(4)
    ]

    assert statuses == [404, 404, 404, 429]


async def test_revoke_and_list(client, trip, owner, auth_headers):
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()

    revoked = await client.delete(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))
    assert revoked.status_code == 200
    assert revoked.json()["revoked"] == 1

    listing = await client.get(f"/invitations/trips/{trip.id}", headers=auth_headers(owner))
    assert listing.status_code == 200
    [row] = listing.json()["invitations"]
    assert row["token"] == link["token"]
    assert row["status"] == "revoked"


async def test_join_by_code_then_rotate_end_to_end(client, trip, owner, guest, auth_headers):
    # owner shares the code
    link = (await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))).json()

    # guest types it in
    found = await client.get(f"/invitations/find-by-code/{link['code']}", headers=auth_headers(guest))
    assert found.status_code == 200
    assert found.json() == {"token": link["token"], "trip_id": trip.id}

    accepted = await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))
    assert accepted.status_code == 200
    assert accepted.json()["trip"]["id"] == trip.id
    assert accepted.json()["message"]

    # the new participant can now share the trip too
    member_view = await client.get(f"/invitations/trips/{trip.id}/link", headers=auth_headers(guest))
    assert member_view.status_code == 200

    rotated = await client.post(f"/invitations/trips/{trip.id}/link", headers=auth_headers(owner))
    assert rotated.json()["token"] != link["token"]

    stale = await client.get(f"/invitations/join/{link['token']}")
    assert stale.status_code == 400
    assert stale.json()["error"] == "invitation_revoked"

    retry = await client.post(f"/invitations/join/{link['token']}/accept", headers=auth_headers(guest))
    assert retry.status_code == 400
    assert retry.json()["error"] == "invitation_revoked"
