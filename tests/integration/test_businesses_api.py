"""
Integration tests for business listings and saved businesses.
"""

import uuid

from sayso.db.models import Business


class TestSearch:
    def test_only_public_listings(self, client, make_business):
        make_business(name="Visible Cafe")
        make_business(name="Hidden Cafe", is_hidden=True)
        make_business(name="Pending Cafe", status="pending_approval", is_hidden=True)

        body = client.get("/api/businesses").json()

        assert body["total"] == 1
        assert [b["name"] for b in body["businesses"]] == ["Visible Cafe"]

    def test_text_search_and_category(self, client, make_business):
        make_business(name="Mama's Kitchen", category="Restaurants")
        make_business(name="Bean There", category="Cafes")

        by_text = client.get("/api/businesses", params={"q": "kitchen"}).json()
        assert [b["name"] for b in by_text["businesses"]] == ["Mama's Kitchen"]

        by_category = client.get("/api/businesses", params={"category": "cafes"}).json()
        assert [b["name"] for b in by_category["businesses"]] == ["Bean There"]

    def test_sort_by_rating(self, client, make_business):
        make_business(name="Okay", average_rating=3.1, review_count=4)
        make_business(name="Great", average_rating=4.8, review_count=2)

        names = [b["name"] for b in client.get("/api/businesses", params={"sort": "rating"}).json()["businesses"]]
        assert names == ["Great", "Okay"]

        by_name = client.get("/api/businesses", params={"sort": "name"}).json()["businesses"]
        assert [b["name"] for b in by_name] == ["Great", "Okay"]

    def test_unknown_sort_is_rejected(self, client):
        assert client.get("/api/businesses", params={"sort": "random"}).status_code == 400


class TestDetail:
    def test_lookup_by_id_and_slug(self, client, make_business):
        business = make_business()
        assert client.get(f"/api/businesses/{business.id}").json()["slug"] == business.slug
        assert client.get(f"/api/businesses/{business.slug}").json()["id"] == str(business.id)
        assert client.get("/api/businesses/no-such-place").status_code == 404

    def test_pending_listing_visibility(self, client, make_business, make_profile, auth):
        submitter = make_profile()
        business = make_business(status="pending_approval", is_hidden=True, owner_id=submitter.user_id)
        url = f"/api/businesses/{business.id}"

        assert client.get(url).status_code == 404
        assert client.get(url, headers=auth(make_profile())).status_code == 404
        assert client.get(url, headers=auth(submitter)).status_code == 200
        assert client.get(url, headers=auth(make_profile(role="admin"))).status_code == 200

    def test_similar_listings(self, client, make_business):
        target = make_business(name="Target Cafe")
        make_business(name="Near Cafe", average_rating=4.5, review_count=6)
        make_business(name="Pop-up Cafe", lat=None, lng=None)
        make_business(name="Joburg Cafe", lat=-26.2, lng=28.04)
        make_business(name="Bistro", category="Restaurants")
        make_business(name="Hidden Cafe", is_hidden=True)

        response = client.get(f"/api/businesses/{target.slug}/similar")

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "public, s-maxage=3600, stale-while-revalidate=86400"
        businesses = response.json()["businesses"]
        assert [b["name"] for b in businesses] == ["Near Cafe", "Pop-up Cafe"]
        assert businesses[0]["similarity_score"] == 74.0

        limited = client.get(f"/api/businesses/{target.id}/similar", params={"limit": 1}).json()
        assert [b["name"] for b in limited["businesses"]] == ["Near Cafe"]

    def test_similar_needs_a_public_listing(self, client, make_business):
        hidden = make_business(is_hidden=True)
        assert client.get(f"/api/businesses/{hidden.id}/similar").status_code == 404
        assert client.get("/api/businesses/no-such-place/similar").status_code == 404


class TestCreateAndEdit:
    def test_new_listing_waits_for_approval(self, client, db_session, make_profile, auth):
        submitter = make_profile()
        response = client.post(
            "/api/businesses",
            json={"name": "  Saturday Market ", "category": "Markets", "address": "Old Biscuit Mill",
                  "lat": -33.93, "lng": 18.45},
            headers=auth(submitter),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Saturday Market"
        assert body["slug"] == "saturday-market"
        assert body["status"] == "pending_approval"
        assert body["owner_id"] == str(submitter.user_id)

        db_session.expire_all()
        assert db_session.get(Business, uuid.UUID(body["id"])).is_hidden is True
        assert client.get("/api/businesses").json()["total"] == 0

    def test_slugs_stay_unique(self, client, make_profile, auth):
        headers = auth(make_profile())
        payload = {"name": "Corner Shop", "category": "Shops"}
        first = client.post("/api/businesses", json=payload, headers=headers).json()["slug"]
        second = client.post("/api/businesses", json=payload, headers=headers).json()["slug"]
        assert (first, second) == ("corner-shop", "corner-shop-2")

    def test_create_requires_login(self, client):
        assert client.post("/api/businesses", json={"name": "Nope", "category": "x"}).status_code == 401

    def test_only_owner_or_admin_edits(self, client, make_business, make_profile, auth):
        owner = make_profile()
        business = make_business(owner_id=owner.user_id)
        url = f"/api/businesses/{business.id}"

        stranger = client.patch(url, json={"phone": "021 000 0000"}, headers=auth(make_profile()))
        assert stranger.status_code == 403

        mine = client.patch(url, json={"phone": "021 000 0000"}, headers=auth(owner))
        assert mine.status_code == 200
        assert mine.json()["phone"] == "021 000 0000"
        assert mine.json()["website"] == "https://www.cornercafe.co.za"

        admin = client.patch(url, json={"description": "Cosy"}, headers=auth(make_profile(role="admin")))
        assert admin.json()["description"] == "Cosy"


class TestSavedBusinesses:
    def test_save_is_idempotent(self, client, make_business, make_profile, auth):
        user = make_profile()
        business = make_business()
        payload = {"business_id": str(business.id)}

        first = client.post("/api/saved/businesses", json=payload, headers=auth(user))
        assert first.status_code == 201
        assert "alreadySaved" not in first.json()

        second = client.post("/api/saved/businesses", json=payload, headers=auth(user))
        assert second.json()["alreadySaved"] is True

        listing = client.get("/api/saved/businesses", headers=auth(user)).json()
        assert listing["total"] == 1
        assert listing["businesses"][0]["business"]["id"] == str(business.id)

    def test_cannot_save_hidden_listing(self, client, make_business, make_profile, auth):
        hidden = make_business(status="pending_approval", is_hidden=True)
        response = client.post("/api/saved/businesses", json={"business_id": str(hidden.id)},
                               headers=auth(make_profile()))
        assert response.status_code == 404

    def test_unsave(self, client, make_business, make_profile, auth):
        user = make_profile()
        business = make_business()
        client.post("/api/saved/businesses", json={"business_id": str(business.id)}, headers=auth(user))

        assert client.delete(f"/api/saved/businesses/{business.id}", headers=auth(user)).json()["saved"] is False

        missing = client.delete(f"/api/saved/businesses/{business.id}", headers=auth(user))
        assert missing.status_code == 404
        assert missing.json()["error"] == "Saved business not found"

    def test_pagination(self, client, make_business, make_profile, auth):
        user = make_profile()
        for i in range(3):
            business = make_business(name=f"Spot {i}")
            client.post("/api/saved/businesses", json={"business_id": str(business.id)}, headers=auth(user))

        first = client.get("/api/saved/businesses", params={"limit": 2}, headers=auth(user)).json()
        assert len(first["businesses"]) == 2
        assert first["has_more"] is True

        last = client.get("/api/saved/businesses", params={"page": 2, "limit": 2}, headers=auth(user)).json()
        assert len(last["businesses"]) == 1
        assert last["has_more"] is False
