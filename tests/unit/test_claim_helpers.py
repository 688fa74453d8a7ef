"""
Tests for claim status helpers and OTP utilities.
"""

from datetime import timedelta

import pytest

from sayso.api.errors import ConflictError
from sayso.api.services import otp
from sayso.api.services.claims import (
    choose_method,
    email_domain_matches_website,
    grant_ownership,
    is_business_owner,
    is_valid_phone,
    next_step_key,
    start_claim,
    to_display_status,
)
from sayso.api.services.sms import mask_phone
from sayso.db.models import BusinessClaim, BusinessClaimOtp, BusinessOwner, utcnow


class TestDomainMatch:
    @pytest.mark.parametrize("email,website,expected", [
        ("info@cornercafe.co.za", "https://www.cornercafe.co.za", True),
        ("info@cornercafe.co.za", "cornercafe.co.za/menu", True),
        ("owner@cornercafe.co.za", "http://shop.cornercafe.co.za", True),
        ("someone@gmail.com", "https://www.cornercafe.co.za", False),
        ("info@cafe.co.za", "https://www.cornercafe.co.za", False),
        ("not-an-email", "https://www.cornercafe.co.za", False),
        ("info@cornercafe.co.za", "", False),
    ])
    def test_matching(self, email, website, expected):
        assert email_domain_matches_website(email, website) is expected


class TestDisplayStatus:
    @pytest.mark.parametrize("status,method,expected", [
        ("verified", "email", "Verified"),
        ("rejected", None, "Rejected"),
        ("under_review", "phone", "Under Review"),
        ("action_required", "documents", "Action Required"),
        ("pending", "cipc", "Under Review"),
        ("pending", "phone", "Action Required"),
        ("pending", "email", "Action Required"),
        ("pending", "documents", "Pending Verification"),
        ("pending", None, "Pending Verification"),
    ])
    def test_display(self, status, method, expected):
        assert to_display_status(status, method) == expected

    def test_next_step_keys(self):
        assert next_step_key("cipc") == "under_review"
        assert next_step_key("phone") == "action_required"
        assert next_step_key("documents") == "pending_verification"


def test_method_priority():
    assert choose_method("2019/123456/07", "Corner Cafe (Pty) Ltd", "0215550123", "a@b.co") == "cipc"
    assert choose_method("2019/123456/07", None, "0215550123", "a@b.co") == "phone"
    assert choose_method(None, None, None, "a@b.co") == "email"
    assert choose_method(None, None, None, None) == "documents"


def test_phone_needs_eight_digits():
    assert is_valid_phone("021 555 0123")
    assert not is_valid_phone("555-01")


class TestClaimLifecycle:
    def test_draft_is_reused_and_open_claim_conflicts(self, db_session, make_profile, make_business):
        claimant = make_profile()
        business = make_business()

        draft = start_claim(db_session, business, claimant)
        db_session.commit()
        assert start_claim(db_session, business, claimant).id == draft.id

        draft.status = "pending"
        db_session.commit()
        with pytest.raises(ConflictError) as exc:
            start_claim(db_session, business, claimant)
        assert exc.value.code == "DUPLICATE_CLAIM"

    def test_rejected_claim_allows_a_new_one(self, db_session, make_profile, make_business):
        claimant = make_profile()
        business = make_business()
        db_session.add(BusinessClaim(business_id=business.id, claimant_user_id=claimant.user_id,
                                     status="rejected"))
        db_session.commit()

        claim = start_claim(db_session, business, claimant)
        assert claim.status == "draft"

    def test_grant_ownership(self, db_session, make_profile, make_business):
        claimant = make_profile()
        business = make_business()
        claim = start_claim(db_session, business, claimant)

        grant_ownership(db_session, claim, method="email")
        db_session.commit()

        assert claim.status == "verified"
        assert business.owner_id == claimant.user_id
        assert business.verified is True
        assert claimant.account_role == "business_owner"
        assert is_business_owner(db_session, business, claimant.user_id)
        assert db_session.query(BusinessOwner).count() == 1

    def test_admin_keeps_admin_role(self, db_session, make_profile, make_business):
        admin = make_profile(role="admin")
        business = make_business()
        claim = start_claim(db_session, business, admin)

        grant_ownership(db_session, claim)
        db_session.commit()

        assert admin.account_role == "admin"


class TestOtp:
    def test_code_format(self):
        for _ in range(20):
            assert otp.CODE_RE.match(otp.generate_code())

    def test_hash_uses_pepper(self):
        assert otp.hash_code("123456", "a") != otp.hash_code("123456", "b")
        assert otp.code_matches("123456", otp.hash_code("123456", "a"), "a")
        assert not otp.code_matches("654321", otp.hash_code("123456", "a"), "a")

    @pytest.mark.parametrize("raw,expected", [
        ("021 555 0123", "+27215550123"),
        ("+27 82 123 4567", "+27821234567"),
        ("0044 20 7946 0958", "+442079460958"),
        ("27821234567", "+27821234567"),
    ])
    def test_to_e164(self, raw, expected):
        assert otp.to_e164(raw) == expected

    def test_mask_phone(self):
        assert mask_phone("+27821234567") == "*** *** *567"
        assert mask_phone("12") == "***"

    def test_issuing_invalidates_previous_code(self, db_session, make_profile, make_business):
        claimant = make_profile()
        claim = start_claim(db_session, make_business(), claimant)
        now = utcnow()

        otp.issue_code(db_session, claim.id, "+27215550123", "pepper", 600, now)
        otp.issue_code(db_session, claim.id, "+27215550123", "pepper", 600, now + timedelta(seconds=5))
        db_session.commit()

        rows = db_session.query(BusinessClaimOtp).all()
        assert len(rows) == 2
        assert sum(1 for r in rows if r.invalidated_at is None) == 1
        assert otp.count_recent_sends(db_session, claim.id, 30, now + timedelta(seconds=10)) == 2

        active = otp.latest_active_code(db_session, claim.id, now + timedelta(seconds=10))
        assert active.invalidated_at is None

    def test_expired_code_is_not_active(self, db_session, make_profile, make_business):
        claim = start_claim(db_session, make_business(), make_profile())
        now = utcnow()
        otp.issue_code(db_session, claim.id, "+27215550123", "pepper", 600, now)
        db_session.commit()

        assert otp.latest_active_code(db_session, claim.id, now + timedelta(seconds=601)) is None
