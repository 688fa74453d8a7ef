"""
Integration tests for reviews, flags, helpful votes and replies.
"""

import pytest

from sayso.db.models import Business, Notification, Review, ReviewFlag

GOOD_REVIEW = "Friendly staff and the best flat white in Observatory."


@pytest.fixture
def business(make_business, make_profile):
    return make_business(owner_id=make_profile().user_id)


def _post_review(client, headers, business, **overrides):
    payload = {"business_id": str(business.id), "rating": 5, "title": "Lovely",
               "content": GOOD_REVIEW, "tags": ["coffee"]}
    payload.update(overrides)
    return client.post("/api/reviews", json=payload, headers=headers)


def _stored_review(db, make_profile, business, **kwargs):
    review = Review(business_id=business.id, user_id=kwargs.pop("user_id", None) or make_profile().user_id,
                    rating=kwargs.pop("rating", 4), content=GOOD_REVIEW, **kwargs)
    db.add(review)
    db.commit()
    return review


class TestCreateReview:
    def test_anonymous_cannot_review(self, client, business):
        response = _post_review(client, {}, business)
        assert response.status_code == 401
        assert response.json()["error"] == "You must be logged in to write a review"

    def test_create_updates_stats(self, client, db_session, business, make_profile, auth):
        author = make_profile()
        response = _post_review(client, auth(author), business, rating=4)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["review"]["rating"] == 4
        assert body["review"]["tags"] == ["coffee"]

        db_session.expire_all()
        stored = db_session.get(Business, business.id)
        assert stored.review_count == 1
        assert stored.average_rating == 4.0

    def test_business_can_be_referenced_by_slug(self, client, business, make_profile, auth):
        response = _post_review(client, auth(make_profile()), business, business_id=business.slug)
        assert response.status_code == 201

    def test_validation_failure(self, client, business, make_profile, auth):
        response = _post_review(client, auth(make_profile()), business, rating=9, content="meh")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert len(body["details"]["errors"]) == 2

    def test_markup_only_content_fails_after_sanitizing(self, client, business, make_profile, auth):
        response = _post_review(client, auth(make_profile()), business,
                                content="<b></b><i></i><u>ok</u><p></p>")
        assert response.status_code == 400

    def test_moderation_failure(self, client, business, make_profile, auth):
        response = _post_review(client, auth(make_profile()), business,
                                content="Click here to win a free phone today")
        assert response.status_code == 400
        assert response.json()["error"] == "Content moderation failed"

    def test_pending_business_cannot_be_reviewed(self, client, make_business, make_profile, auth):
        pending = make_business(status="pending_approval", is_hidden=True)
        assert _post_review(client, auth(make_profile()), pending).status_code == 404


class TestReviewLifecycle:
    def test_list_hides_hidden_reviews(self, client, db_session, business, make_profile):
        _stored_review(db_session, make_profile, business)
        _stored_review(db_session, make_profile, business, is_hidden=True)

        body = client.get("/api/reviews", params={"business_id": str(business.id)}).json()
        assert body["total"] == 1

    def test_hidden_review_visible_to_author_only(self, client, db_session, business, make_profile, auth):
        author = make_profile()
        review = _stored_review(db_session, make_profile, business, user_id=author.user_id, is_hidden=True)

        assert client.get(f"/api/reviews/{review.id}").status_code == 404
        assert client.get(f"/api/reviews/{review.id}", headers=auth(make_profile())).status_code == 404
        assert client.get(f"/api/reviews/{review.id}", headers=auth(author)).status_code == 200

    def test_only_author_edits(self, client, business, make_profile, auth):
        author = make_profile()
        review_id = _post_review(client, auth(author), business).json()["review"]["id"]

        other = client.put(f"/api/reviews/{review_id}", json={"rating": 1}, headers=auth(make_profile()))
        assert other.status_code == 403

        mine = client.put(f"/api/reviews/{review_id}", json={"rating": 2}, headers=auth(author))
        assert mine.status_code == 200
        assert mine.json()["review"]["rating"] == 2
        assert mine.json()["review"]["content"] == GOOD_REVIEW

    def test_delete_recomputes_stats(self, client, db_session, business, make_profile, auth):
        author = make_profile()
        review_id = _post_review(client, auth(author), business).json()["review"]["id"]

        assert client.delete(f"/api/reviews/{review_id}", headers=auth(author)).status_code == 200

        db_session.expire_all()
        assert db_session.get(Business, business.id).review_count == 0


class TestFlags:
    def test_placeholder_id_is_optimistic(self, client):
        response = client.post("/api/reviews/temp-123/flag", json={"reason": "spam"})
        assert response.status_code == 200
        assert response.json()["optimistic"] is True

    def test_placeholder_id_withdraw_is_optimistic(self, client):
        response = client.delete("/api/reviews/temp-123/flag")
        assert response.status_code == 200
        assert response.json() == {"success": True, "flagged": False, "optimistic": True}

    def test_flag_rules(self, client, db_session, business, make_profile, auth):
        author, flagger = make_profile(), make_profile()
        review = _stored_review(db_session, make_profile, business, user_id=author.user_id)
        url = f"/api/reviews/{review.id}/flag"

        assert client.post(url, json={"reason": "spam"}).status_code == 401

        own = client.post(url, json={"reason": "spam"}, headers=auth(author))
        assert own.json()["error"] == "You cannot flag your own review"

        other = client.post(url, json={"reason": "other"}, headers=auth(flagger))
        assert other.json()["error"] == "Please provide details when selecting 'other' as the reason"

        ok = client.post(url, json={"reason": "spam"}, headers=auth(flagger))
        assert ok.status_code == 200
        assert ok.json()["flagged"] is True
        assert ok.headers["X-RateLimit-Limit"] == "10"
        assert ok.headers["X-RateLimit-Remaining"] == "9"

        again = client.post(url, json={"reason": "spam"}, headers=auth(flagger))
        assert again.status_code == 400
        assert again.json()["error"] == "You have already flagged this review"

        status = client.get(url, headers=auth(flagger)).json()
        assert status["flagged"] is True
        assert status["flag"]["reason"] == "spam"

    def test_withdraw_flag(self, client, db_session, business, make_profile, auth):
        flagger = make_profile()
        review = _stored_review(db_session, make_profile, business)
        url = f"/api/reviews/{review.id}/flag"

        assert client.delete(url, headers=auth(flagger)).status_code == 404
        client.post(url, json={"reason": "harassment"}, headers=auth(flagger))
        assert client.delete(url, headers=auth(flagger)).status_code == 200

        client.post(url, json={"reason": "harassment"}, headers=auth(flagger))
        db_session.query(ReviewFlag).filter(ReviewFlag.status == "pending").update(
            {ReviewFlag.status: "dismissed"}
        )
        db_session.commit()
        reviewed = client.delete(url, headers=auth(flagger))
        assert reviewed.status_code == 400
        assert reviewed.json()["error"] == "Cannot remove a flag that has already been reviewed"

    def test_rate_limit(self, client, db_session, business, make_profile, auth):
        flagger = make_profile()
        reviews = [_stored_review(db_session, make_profile, business) for _ in range(11)]

        for review in reviews[:10]:
            response = client.post(f"/api/reviews/{review.id}/flag", json={"reason": "spam"},
                                   headers=auth(flagger))
            assert response.status_code == 200

        limited = client.post(f"/api/reviews/{reviews[10].id}/flag", json={"reason": "spam"},
                              headers=auth(flagger))
        assert limited.status_code == 429
        assert limited.headers["X-RateLimit-Remaining"] == "0"

    def test_withdrawn_flags_still_count_toward_limit(self, client, db_session, business, make_profile, auth):
        flagger = make_profile()
        review = _stored_review(db_session, make_profile, business)
        url = f"/api/reviews/{review.id}/flag"

        for _ in range(10):
            assert client.post(url, json={"reason": "spam"}, headers=auth(flagger)).status_code == 200
            assert client.delete(url, headers=auth(flagger)).status_code == 200

        assert client.post(url, json={"reason": "spam"}, headers=auth(flagger)).status_code == 429
        assert client.get(url, headers=auth(flagger)).json()["flagged"] is False

        db_session.expire_all()
        assert {f.status for f in db_session.query(ReviewFlag).all()} == {"withdrawn"}

    def test_auto_hide_after_five_flags(self, client, db_session, business, make_profile, auth):
        review = _stored_review(db_session, make_profile, business)
        url = f"/api/reviews/{review.id}/flag"

        results = [
            client.post(url, json={"reason": "inappropriate"}, headers=auth(make_profile())).json()
            for _ in range(5)
        ]

        assert [r["autoHidden"] for r in results] == [False, False, False, False, True]
        db_session.expire_all()
        assert db_session.get(Review, review.id).is_hidden is True


class TestHelpful:
    def test_vote_is_idempotent_and_notifies_author(self, client, db_session, business, make_profile, auth):
        author, voter = make_profile(), make_profile()
        review = _stored_review(db_session, make_profile, business, user_id=author.user_id)
        url = f"/api/reviews/{review.id}/helpful"

        first = client.post(url, headers=auth(voter)).json()
        assert first["helpful_count"] == 1
        second = client.post(url, headers=auth(voter)).json()
        assert second["alreadyVoted"] is True
        assert second["helpful_count"] == 1

        assert client.get(url, headers=auth(voter)).json()["helpful"] is True

        db_session.expire_all()
        notes = db_session.query(Notification).filter(Notification.user_id == author.user_id).all()
        assert [n.type for n in notes] == ["review_helpful"]

        removed = client.delete(url, headers=auth(voter)).json()
        assert removed["helpful_count"] == 0

    def test_self_vote_does_not_notify(self, client, db_session, business, make_profile, auth):
        author = make_profile()
        review = _stored_review(db_session, make_profile, business, user_id=author.user_id)

        client.post(f"/api/reviews/{review.id}/helpful", headers=auth(author))

        db_session.expire_all()
        assert db_session.query(Notification).count() == 0


class TestReplies:
    def test_reply_notifies_author_and_owner(self, client, db_session, business, make_profile, auth):
        author, replier = make_profile(), make_profile()
        review = _stored_review(db_session, make_profile, business, user_id=author.user_id)

        response = client.post(f"/api/reviews/{review.id}/replies",
                               json={"content": "Agreed, great spot!"}, headers=auth(replier))
        assert response.status_code == 201

        db_session.expire_all()
        types = sorted(n.type for n in db_session.query(Notification).all())
        assert types == ["comment_reply", "review"]

        listing = client.get(f"/api/reviews/{review.id}/replies").json()
        assert [r["content"] for r in listing["replies"]] == ["Agreed, great spot!"]

    def test_reply_rules(self, client, db_session, business, make_profile, auth):
        replier, other = make_profile(), make_profile()
        review = _stored_review(db_session, make_profile, business)
        url = f"/api/reviews/{review.id}/replies"

        assert client.post(url, json={"content": "hi"}).json()["error"] == "You must be logged in to reply"
        assert client.post(url, json={"content": "  "}, headers=auth(replier)).json()["error"] == \
            "Reply content is required"
        assert client.post(url, json={"content": "x" * 2001}, headers=auth(replier)).status_code == 400

        reply_id = client.post(url, json={"content": "Nice"}, headers=auth(replier)).json()["reply"]["id"]

        edit = client.put(f"{url}/{reply_id}", json={"content": "Nicer"}, headers=auth(other))
        assert edit.status_code == 403
        assert edit.json()["error"] == "You can only edit your own replies"

        assert client.put(f"{url}/{reply_id}", json={"content": "Nicer"},
                          headers=auth(replier)).json()["reply"]["content"] == "Nicer"
        assert client.delete(f"{url}/{reply_id}", headers=auth(other)).status_code == 403
        assert client.delete(f"{url}/{reply_id}", headers=auth(replier)).status_code == 200
        assert client.delete(f"{url}/{reply_id}", headers=auth(replier)).json()["error"] == "Reply not found"
