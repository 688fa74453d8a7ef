"""
Integration tests for onboarding and the user profile routes.
"""

import uuid
from datetime import timedelta

from sayso.api.security import create_access_token
from sayso.db.models import (
    Business,
    BusinessClaim,
    BusinessClaimDocument,
    Notification,
    Profile,
    Review,
    ReviewHelpfulVote,
    SavedBusiness,
    utcnow,
)

INTERESTS = ["food-drink", "beauty-wellness", "arts-culture"]


def _headers_for_new_user(email="new@example.com"):
    token = create_access_token(uuid.uuid4(), email=email)
    return {"Authorization": f"Bearer {token}"}


class TestStepFlow:
    def test_full_flow(self, client, db_session, make_profile, auth):
        user = make_profile()
        headers = auth(user)

        state = client.get("/api/onboarding", headers=headers).json()
        assert state["step"] == "interests"
        assert state["redirect"] == "/interests"

        saved = client.post("/api/onboarding/interests", json={"interests": INTERESTS}, headers=headers)
        assert saved.status_code == 200
        assert saved.json()["next"] == "/subcategories"

        saved = client.post("/api/onboarding/subcategories",
                            json={"subcategories": ["cafes", "spas"]}, headers=headers)
        assert saved.json()["saved"] == ["cafes", "spas"]

        saved = client.post("/api/onboarding/deal-breakers",
                            json={"dealbreakers": ["slow-service"]}, headers=headers)
        assert saved.json()["next"] == "/complete"

        done = client.post("/api/onboarding/complete", headers=headers)
        assert done.json() == {"success": True, "onboarding_complete": True, "redirect": "/home"}

        state = client.get("/api/onboarding", headers=headers).json()
        assert state["onboarding_complete"] is True
        assert state["redirect"] == "/home"
        assert sorted(state["interests"]) == sorted(INTERESTS)
        assert state["dealbreakers"] == ["slow-service"]

        db_session.expire_all()
        assert db_session.get(Profile, user.user_id).onboarding_completed_at is not None

    def test_cannot_skip_ahead(self, client, make_profile, auth):
        headers = auth(make_profile())
        response = client.post("/api/onboarding/deal-breakers",
                               json={"dealbreakers": ["cash-only"]}, headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "STEP_NOT_REACHABLE"
        assert body["details"]["redirect"] == "/interests"

    def test_invalid_selection(self, client, make_profile, auth):
        response = client.post("/api/onboarding/interests", json={"interests": ["food-drink"]},
                               headers=auth(make_profile()))
        assert response.status_code == 400
        assert response.json()["error"] == "Please select at least 3 interests"

    def test_subcategories_outside_interests(self, client, make_profile, auth):
        headers = auth(make_profile())
        client.post("/api/onboarding/interests", json={"interests": INTERESTS}, headers=headers)

        response = client.post("/api/onboarding/subcategories", json={"subcategories": ["hiking"]},
                               headers=headers)
        assert response.status_code == 400
        assert "do not match" in response.json()["error"]

    def test_completed_profile_cannot_resave(self, client, make_profile, auth):
        headers = auth(make_profile(onboarding_step="complete", onboarding_complete=True))
        response = client.post("/api/onboarding/interests", json={"interests": INTERESTS}, headers=headers)
        assert response.status_code == 409
        assert response.json()["code"] == "ONBOARDING_COMPLETE"


class TestAccess:
    def test_later_step_redirects(self, client, make_profile, auth):
        body = client.get("/api/onboarding/access", params={"path": "/deal-breakers"},
                          headers=auth(make_profile())).json()
        assert body["allowed"] is False
        assert body["redirect"] == "/interests"

    def test_finished_profile_goes_home(self, client, make_profile, auth):
        profile = make_profile(onboarding_step="complete", onboarding_complete=True)
        body = client.get("/api/onboarding/access", params={"path": "/interests"},
                          headers=auth(profile)).json()
        assert body == {"allowed": False, "redirect": "/home", "step": "complete",
                        "current_route": "/interests"}

    def test_requires_login(self, client):
        assert client.get("/api/onboarding/access", params={"path": "/interests"}).status_code == 401


class TestLegacyOnboarding:
    def test_saves_everything_at_once(self, client, db_session, make_profile, auth):
        user = make_profile()
        response = client.post(
            "/api/user/onboarding",
            json={"step": "complete", "interests": INTERESTS, "subcategories": ["cafes"],
                  "dealbreakers": ["no-parking", "cash-only"]},
            headers=auth(user),
        )

        assert response.status_code == 200
        assert response.json()["onboarding_complete"] is True
        db_session.expire_all()
        assert db_session.get(Profile, user.user_id).onboarding_step == "complete"

    def test_invalid_payload_saves_nothing(self, client, db_session, make_profile, auth):
        user = make_profile()
        response = client.post(
            "/api/user/onboarding",
            json={"step": "complete", "interests": INTERESTS, "subcategories": ["hiking"],
                  "dealbreakers": ["cash-only"]},
            headers=auth(user),
        )

        assert response.status_code == 400
        state = client.get("/api/onboarding", headers=auth(user)).json()
        assert state["interests"] == []
        assert state["onboarding_complete"] is False

    def test_only_complete_step(self, client, make_profile, auth):
        headers = auth(make_profile())
        response = client.post("/api/user/onboarding", json={"step": "interests"}, headers=headers)
        assert response.json()["error"] == "Only the complete step is supported"

        response = client.post("/api/user/onboarding", json={"step": "complete"}, headers=headers)
        assert response.json()["error"] == "interests, subcategories and dealbreakers are required"


class TestProfile:
    def test_profile_is_created_on_first_request(self, client, db_session):
        body = client.get("/api/user/me", headers=_headers_for_new_user()).json()

        assert body["email"] == "new@example.com"
        assert body["account_role"] == "user"
        assert body["onboarding_step"] == "interests"
        db_session.expire_all()
        assert db_session.query(Profile).count() == 1

    def test_invalid_token(self, client):
        response = client.get("/api/user/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_update_profile(self, client, make_profile, auth):
        user = make_profile()
        response = client.patch("/api/user/me", json={"display_name": "Thandi", "username": "Thandi.M"},
                                headers=auth(user))
        assert response.status_code == 200
        assert response.json()["username"] == "thandi.m"
        assert response.json()["display_name"] == "Thandi"

    def test_username_conflict(self, client, make_profile, auth):
        make_profile(username="taken_name")
        response = client.patch("/api/user/me", json={"username": "taken_name"},
                                headers=auth(make_profile()))
        assert response.status_code == 409
        assert response.json()["code"] == "USERNAME_TAKEN"

    def test_bad_username(self, client, make_profile, auth):
        response = client.patch("/api/user/me", json={"username": "no spaces!"}, headers=auth(make_profile()))
        assert response.status_code == 400


def _onboard(client, headers):
    client.post(
        "/api/user/onboarding",
        json={"step": "complete", "interests": INTERESTS, "subcategories": ["cafes", "spas"],
              "dealbreakers": ["cash-only"]},
        headers=headers,
    )


class TestPreferences:
    def test_anonymous_gets_empty_lists(self, client):
        response = client.get("/api/user/preferences")
        assert response.status_code == 200
        assert response.json() == {"interests": [], "subcategories": [], "dealbreakers": [],
                                    "privacy_settings": None}

    def test_saved_selections_have_names(self, client, make_profile, auth):
        headers = auth(make_profile())
        _onboard(client, headers)

        body = client.get("/api/user/preferences", headers=headers).json()

        assert {"id": "food-drink", "name": "Food & Drink"} in body["interests"]
        assert {"id": "cafes", "name": "Cafes"} in body["subcategories"]
        assert body["dealbreakers"] == [{"id": "cash-only", "name": "Cash Only"}]
        assert body["privacy_settings"] == {"showActivity": True, "showStats": True,
                                            "showSavedBusinesses": False}

    def test_changing_interests_drops_orphaned_subcategories(self, client, make_profile, auth):
        headers = auth(make_profile())
        _onboard(client, headers)

        response = client.put(
            "/api/user/preferences",
            json={"interests": ["beauty-wellness", "arts-culture", "family-pets"],
                  "dealBreakers": ["no-parking", "slow-service"],
                  "privacy_settings": {"showSavedBusinesses": True}},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert [s["id"] for s in body["subcategories"]] == ["spas"]
        assert sorted(d["id"] for d in body["dealbreakers"]) == ["no-parking", "slow-service"]
        assert body["privacy_settings"] == {"showActivity": True, "showStats": True,
                                            "showSavedBusinesses": True}

    def test_invalid_update_changes_nothing(self, client, make_profile, auth):
        headers = auth(make_profile())
        _onboard(client, headers)

        response = client.put("/api/user/preferences",
                              json={"interests": ["arts-culture"], "dealbreakers": ["no-parking"]},
                              headers=headers)

        assert response.status_code == 400
        body = client.get("/api/user/preferences", headers=headers).json()
        assert len(body["interests"]) == 3
        assert [d["id"] for d in body["dealbreakers"]] == ["cash-only"]

    def test_update_requires_login(self, client):
        assert client.put("/api/user/preferences", json={"interests": INTERESTS}).status_code == 401


class TestDeleteAccount:
    def test_removes_everything_the_user_owns(self, client, db_session, storage, make_profile,
                                              make_business, auth):
        user = make_profile()
        other = make_profile()
        reviewed = make_business(name="Reviewed Cafe", review_count=1, average_rating=5.0)
        owned = make_business(name="Owned Cafe", owner_id=user.user_id)

        review = Review(business_id=reviewed.id, user_id=user.user_id, rating=5, content="Great coffee and cake.")
        liked = Review(business_id=owned.id, user_id=other.user_id, rating=4, content="Lovely spot for lunch.",
                       helpful_count=1)
        db_session.add_all([review, liked])
        db_session.commit()
        db_session.add(ReviewHelpfulVote(review_id=liked.id, user_id=user.user_id))
        db_session.add(SavedBusiness(user_id=user.user_id, business_id=reviewed.id))
        db_session.add(Notification(user_id=user.user_id, type="system", title="Hi", message="Welcome"))
        claim = BusinessClaim(business_id=reviewed.id, claimant_user_id=user.user_id, status="action_required",
                              verification_data={})
        db_session.add(claim)
        db_session.commit()
        path = f"claims/{claim.id}/lease_first_page/doc.pdf"
        storage.upload_bytes(path, b"%PDF", "application/pdf")
        db_session.add(BusinessClaimDocument(claim_id=claim.id, doc_type="lease_first_page", storage_path=path,
                                             delete_after=utcnow() + timedelta(days=30)))
        db_session.commit()
        _onboard(client, auth(user))

        response = client.delete("/api/user/delete-account", headers=auth(user))

        assert response.status_code == 200
        assert response.json() == {"success": True}
        db_session.expire_all()
        assert db_session.get(Profile, user.user_id) is None
        assert db_session.query(Review).filter(Review.user_id == user.user_id).count() == 0
        assert db_session.query(BusinessClaim).count() == 0
        assert db_session.query(BusinessClaimDocument).count() == 0
        assert db_session.query(SavedBusiness).count() == 0
        assert db_session.query(Notification).count() == 0
        assert db_session.query(ReviewHelpfulVote).count() == 0
        assert db_session.get(Review, liked.id).helpful_count == 0
        assert db_session.get(Business, reviewed.id).review_count == 0
        assert db_session.get(Business, owned.id).owner_id is None
        assert path not in storage.stored_objects
        assert db_session.get(Profile, other.user_id) is not None

    def test_requires_login(self, client):
        assert client.delete("/api/user/delete-account").status_code == 401
