"""
Integration tests for /api/notifications.
"""

import uuid

from sayso.api.services.notifications import create_notification


def test_requires_authentication(client):
    response = client.get("/api/notifications")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_list_and_unread_count(client, db_session, make_profile, auth):
    user = make_profile()
    first = create_notification(db_session, user.user_id, "review", "One", "First")
    create_notification(db_session, user.user_id, "user", "Two", "Second")

    client.patch(f"/api/notifications/{first}", json={"read": True}, headers=auth(user))

    response = client.get("/api/notifications", headers=auth(user))
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["unreadCount"] == 1

    unread = client.get("/api/notifications", params={"unread": True}, headers=auth(user)).json()
    assert [n["title"] for n in unread["notifications"]] == ["Two"]


def test_business_owner_uses_business_feed(client, db_session, make_profile, auth):
    owner = make_profile(account_role="business_owner")
    create_notification(db_session, owner.user_id, "business", "Listing", "Update")

    response = client.get("/api/notifications", headers=auth(owner))
    assert response.status_code == 403
    assert response.json()["error"] == "Business account should use /api/notifications/business"

    response = client.get("/api/notifications/business", headers=auth(owner))
    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_regular_user_cannot_read_business_feed(client, make_profile, auth):
    response = client.get("/api/notifications/business", headers=auth(make_profile()))
    assert response.status_code == 403


def test_create_for_self(client, make_profile, auth):
    user = make_profile()
    response = client.post(
        "/api/notifications",
        json={"type": "message", "title": "Hello", "message": "Welcome to SaySo"},
        headers=auth(user),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["notification"]["read"] is False
    assert body["notification"]["user_id"] == str(user.user_id)


def test_create_validation(client, make_profile, auth):
    user = make_profile()

    missing = client.post("/api/notifications", json={"type": "message"}, headers=auth(user))
    assert missing.status_code == 400

    bad_type = client.post(
        "/api/notifications",
        json={"type": "carrier_pigeon", "title": "T", "message": "M"},
        headers=auth(user),
    )
    assert bad_type.status_code == 400
    assert "Invalid notification type" in bad_type.json()["error"]


def test_only_admins_notify_other_users(client, make_profile, auth):
    user, other, admin = make_profile(), make_profile(), make_profile(role="admin")
    payload = {"type": "message", "title": "Hi", "message": "Hello", "user_id": str(other.user_id)}

    assert client.post("/api/notifications", json=payload, headers=auth(user)).status_code == 403
    assert client.post("/api/notifications", json=payload, headers=auth(admin)).status_code == 201

    payload["user_id"] = str(uuid.uuid4())
    assert client.post("/api/notifications", json=payload, headers=auth(admin)).status_code == 404


def test_read_all_and_delete(client, db_session, make_profile, auth):
    user, other = make_profile(), make_profile()
    for i in range(3):
        create_notification(db_session, user.user_id, "user", f"N{i}", "M")
    foreign = create_notification(db_session, other.user_id, "user", "Theirs", "M")

    response = client.post("/api/notifications/read-all", headers=auth(user))
    assert response.json() == {"success": True, "updated": 3}

    listing = client.get("/api/notifications", headers=auth(user)).json()
    assert listing["unreadCount"] == 0

    assert client.delete(f"/api/notifications/{foreign}", headers=auth(user)).status_code == 404
    own_id = listing["notifications"][0]["id"]
    assert client.delete(f"/api/notifications/{own_id}", headers=auth(user)).status_code == 200
    assert client.get("/api/notifications", headers=auth(user)).json()["count"] == 2
