"""
Dealer lifecycle tests.

Verifies:
- Registration is all-or-nothing with OTP delivery
- Uniqueness of mobile / email / GST comes back as DuplicateEntity
- Login gate order: credentials -> approval -> verification
- Review transitions are idempotency-guarded (AlreadyInState)
- Password reset tokens are hashed, single use, and expire
- Email change needs an OTP sent to the new address
"""

from datetime import timedelta

import pytest

from conftest import TEST_PASSWORD, pending_code, registration_payload
from dealerhub.errors import (
    AlreadyInState,
    DeliveryFailed,
    DuplicateEntity,
    Expired,
    InvalidCode,
    InvalidCredentials,
    NotApproved,
    NotFound,
    NotVerified,
    ValidationError,
)
from dealerhub.extensions import db
from dealerhub.models import Dealer, OtpCode
from dealerhub.services import dealer_service, token_service
from dealerhub.services.credentials import verify_password
from dealerhub.time_utils import utcnow


class TestRegistration:

    def test_register_creates_pending_dealer_and_sends_both_otps(self, app, outbox):
        dealer = dealer_service.register_dealer(registration_payload())

        assert dealer.account_status == "pending"
        assert dealer.is_mobile_verified is False
        assert dealer.is_email_verified is False
        assert dealer.is_first_time_user is True
        assert verify_password(TEST_PASSWORD, dealer.password_hash)

        assert outbox.sms[-1]["to"] == "9876543210"
        assert pending_code(dealer.id, "mobile_verify") in outbox.sms[-1]["body"]
        email_codes = [m for m in outbox.emails_to("asha@acme.example.com") if "verification code" in m["body"]]
        assert pending_code(dealer.id, "email_verify") in email_codes[-1]["body"]

    def test_register_normalizes_email_and_gst(self, app):
        dealer = dealer_service.register_dealer(
            registration_payload(email="  Asha@ACME.example.com ", gst="27abcde1234f1z5")
        )
        assert dealer.email == "asha@acme.example.com"
        assert dealer.gst == "27ABCDE1234F1Z5"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"mobile": "12345"},
            {"mobile": "98765abcde"},
            {"email": "not-an-email"},
            {"gst": "SHORT"},
            {"pin_code": "12"},
            {"company_name": ""},
            {"password": "weak"},
            {"password": None},
        ],
    )
    def test_register_rejects_invalid_fields(self, app, overrides):
        with pytest.raises(ValidationError):
            dealer_service.register_dealer(registration_payload(**overrides))
        assert db.session.query(Dealer).count() == 0

    def test_register_rejects_unknown_fields(self, app):
        with pytest.raises(ValidationError):
            dealer_service.register_dealer(registration_payload(account_status="approved"))

    @pytest.mark.parametrize("field", ["mobile", "email", "gst"])
    def test_duplicate_identity_field(self, app, field):
        first = registration_payload()
        dealer_service.register_dealer(first)

        second = registration_payload(mobile="9000000001", email="other@example.com", gst="29ZZZZZ9999Z1Z9")
        second[field] = first[field]
        with pytest.raises(DuplicateEntity) as exc:
            dealer_service.register_dealer(second)
        assert exc.value.fields == [field]
        assert exc.value.http_status == 409
        assert db.session.query(Dealer).count() == 1

    def test_sms_failure_rolls_back_registration(self, app, outbox):
        outbox.fail_sms = True
        with pytest.raises(DeliveryFailed):
            dealer_service.register_dealer(registration_payload())
        assert db.session.query(Dealer).count() == 0
        assert db.session.query(OtpCode).count() == 0

        outbox.fail_sms = False
        dealer = dealer_service.register_dealer(registration_payload())
        assert dealer.id is not None

    def test_email_failure_rolls_back_registration(self, app, outbox):
        outbox.fail_email = True
        with pytest.raises(DeliveryFailed):
            dealer_service.register_dealer(registration_payload())
        assert db.session.query(Dealer).count() == 0

    def test_register_without_delivery(self, app, outbox):
        outbox.fail_sms = True
        dealer = dealer_service.register_dealer(registration_payload(), send_otps=False)
        assert outbox.sms == []
        assert db.session.query(OtpCode).filter_by(owner_id=dealer.id).count() == 2


class TestVerification:

    def test_verify_registration_sets_both_flags(self, app):
        dealer = dealer_service.register_dealer(registration_payload())
        dealer_service.verify_registration(
            dealer.id, pending_code(dealer.id, "mobile_verify"), pending_code(dealer.id, "email_verify")
        )
        dealer = db.session.get(Dealer, dealer.id)
        assert dealer.is_mobile_verified and dealer.is_email_verified
        assert db.session.query(OtpCode).filter_by(owner_id=dealer.id).count() == 0

    def test_one_bad_code_consumes_neither(self, app):
        dealer = dealer_service.register_dealer(registration_payload())
        mobile_code = pending_code(dealer.id, "mobile_verify")
        email_code = pending_code(dealer.id, "email_verify")
        wrong = "000000" if email_code != "000000" else "111111"

        with pytest.raises(InvalidCode):
            dealer_service.verify_registration(dealer.id, mobile_code, wrong)

        dealer = db.session.get(Dealer, dealer.id)
        assert dealer.is_mobile_verified is False
        assert pending_code(dealer.id, "mobile_verify") == mobile_code

    def test_expired_code(self, app):
        dealer = dealer_service.register_dealer(registration_payload())
        otp = db.session.query(OtpCode).filter_by(owner_id=dealer.id, purpose="mobile_verify").one()
        otp.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

        with pytest.raises(Expired):
            dealer_service.verify_mobile(dealer.id, otp.code)

    def test_channels_verify_separately(self, app):
        dealer = dealer_service.register_dealer(registration_payload())
        dealer_service.verify_mobile(dealer.id, pending_code(dealer.id, "mobile_verify"))
        with pytest.raises(AlreadyInState):
            dealer_service.verify_mobile(dealer.id, "123456")
        dealer_service.verify_email(dealer.id, pending_code(dealer.id, "email_verify"))
        assert db.session.get(Dealer, dealer.id).is_verified

    def test_resend_replaces_code(self, app, outbox):
        dealer = dealer_service.register_dealer(registration_payload())
        sms_before = len(outbox.sms)
        dealer_service.resend_otp(dealer.id, "mobile")
        assert len(outbox.sms) == sms_before + 1
        assert db.session.query(OtpCode).filter_by(owner_id=dealer.id, purpose="mobile_verify").count() == 1
        assert pending_code(dealer.id, "mobile_verify") in outbox.sms[-1]["body"]

    def test_resend_rejects_bad_channel_and_verified_channel(self, app, make_dealer):
        dealer = make_dealer(status="pending")
        with pytest.raises(ValidationError):
            dealer_service.resend_otp(dealer.id, "pigeon")
        with pytest.raises(AlreadyInState):
            dealer_service.resend_otp(dealer.id, "email")

    def test_resend_unknown_dealer(self, app):
        with pytest.raises(NotFound):
            dealer_service.resend_otp(999, "mobile")


class TestReview:

    def test_approve_records_reviewer_and_notifies(self, app, admin, make_dealer, outbox):
        dealer = make_dealer(status="pending")
        approved = dealer_service.approve_dealer(dealer.id, admin.id)
        assert approved.account_status == "approved"
        assert approved.reviewed_by_admin_id == admin.id
        assert approved.reviewed_at is not None
        assert any("Approved" in m["subject"] for m in outbox.emails_to(dealer.email))

    def test_approve_twice(self, app, admin, make_dealer):
        dealer = make_dealer()
        with pytest.raises(AlreadyInState):
            dealer_service.approve_dealer(dealer.id, admin.id)

    def test_reject_requires_reason(self, app, admin, make_dealer):
        dealer = make_dealer(status="pending")
        with pytest.raises(ValidationError):
            dealer_service.reject_dealer(dealer.id, admin.id, "   ")

    def test_reject_then_reapprove_clears_reason(self, app, admin, make_dealer):
        dealer = make_dealer(status="rejected")
        assert dealer.rejection_reason == "Incomplete documents"
        with pytest.raises(AlreadyInState):
            dealer_service.reject_dealer(dealer.id, admin.id, "again")
        approved = dealer_service.approve_dealer(dealer.id, admin.id)
        assert approved.rejection_reason is None

    def test_review_unknown_dealer(self, app, admin):
        with pytest.raises(NotFound):
            dealer_service.approve_dealer(12345, admin.id)

    def test_set_active_requires_bool(self, app, make_dealer):
        dealer = make_dealer()
        with pytest.raises(ValidationError):
            dealer_service.set_dealer_active(dealer.id, "no")
        assert dealer_service.set_dealer_active(dealer.id, False).is_active is False


class TestLogin:

    def test_full_onboarding_scenario(self, app, admin):
        """Register -> NotApproved -> verify -> approve -> login."""
        dealer = dealer_service.register_dealer(registration_payload())

        with pytest.raises(NotApproved):
            dealer_service.login_dealer("27ABCDE1234F1Z5", TEST_PASSWORD)

        dealer_service.verify_registration(
            dealer.id, pending_code(dealer.id, "mobile_verify"), pending_code(dealer.id, "email_verify")
        )
        dealer_service.approve_dealer(dealer.id, admin.id)

        result = dealer_service.login_dealer("27abcde1234f1z5", TEST_PASSWORD)
        assert result["first_login"] is True
        assert result["dealer"].is_first_time_user is False

        claims = token_service.verify(result["token"])
        assert claims.kind == "dealer"
        assert claims.principal_id == dealer.id

        again = dealer_service.login_dealer("27ABCDE1234F1Z5", TEST_PASSWORD)
        assert again["first_login"] is False

    def test_approved_but_unverified(self, app, make_dealer):
        dealer = make_dealer(verified=False, status="approved")
        with pytest.raises(NotVerified) as exc:
            dealer_service.login_dealer(dealer.gst, TEST_PASSWORD)
        assert exc.value.details["dealer_id"] == dealer.id

    def test_rejected_dealer(self, app, make_dealer):
        dealer = make_dealer(status="rejected")
        with pytest.raises(NotApproved) as exc:
            dealer_service.login_dealer(dealer.gst, TEST_PASSWORD)
        assert exc.value.details["account_status"] == "rejected"

    def test_failures_are_uniform(self, app, make_dealer):
        dealer = make_dealer()
        with pytest.raises(InvalidCredentials) as wrong_password:
            dealer_service.login_dealer(dealer.gst, "Wrong123")
        with pytest.raises(InvalidCredentials) as unknown_gst:
            dealer_service.login_dealer("29ZZZZZ9999Z1Z9", TEST_PASSWORD)

        dealer_service.set_dealer_active(dealer.id, False)
        with pytest.raises(InvalidCredentials) as inactive:
            dealer_service.login_dealer(dealer.gst, TEST_PASSWORD)

        assert str(wrong_password.value) == str(unknown_gst.value) == str(inactive.value)

    def test_missing_fields(self, app):
        with pytest.raises(ValidationError):
            dealer_service.login_dealer("", TEST_PASSWORD)


class TestProfile:

    def test_update_contact_details(self, app, dealer):
        updated = dealer_service.update_profile(dealer.id, {"company_name": "Acme Home", "pin_code": "560001"})
        assert updated.company_name == "Acme Home"
        assert updated.is_mobile_verified is True

    def test_mobile_change_requires_reverification(self, app, dealer):
        updated = dealer_service.update_profile(dealer.id, {"mobile": "9000000009"})
        assert updated.mobile == "9000000009"
        assert updated.is_mobile_verified is False

    def test_mobile_taken(self, app, make_dealer):
        first = make_dealer()
        second = make_dealer()
        with pytest.raises(DuplicateEntity) as exc:
            dealer_service.update_profile(second.id, {"mobile": first.mobile})
        assert exc.value.fields == ["mobile"]

    def test_email_and_gst_not_editable(self, app, dealer):
        with pytest.raises(ValidationError):
            dealer_service.update_profile(dealer.id, {"email": "x@example.com"})
        with pytest.raises(ValidationError):
            dealer_service.update_profile(dealer.id, {"gst": "29ZZZZZ9999Z1Z9"})

    def test_change_password(self, app, dealer):
        with pytest.raises(InvalidCredentials):
            dealer_service.change_password(dealer.id, "Wrong123", "Newpass9")
        dealer_service.change_password(dealer.id, TEST_PASSWORD, "Newpass9")
        assert dealer_service.login_dealer(dealer.gst, "Newpass9")["token"]


class TestPasswordReset:

    def test_reset_flow(self, app, dealer, outbox):
        token = dealer_service.request_password_reset(dealer.gst.lower())

        stored = db.session.get(Dealer, dealer.id)
        assert stored.reset_token_hash == token_service.hash_token(token)
        assert stored.reset_token_hash != token
        assert token in outbox.emails_to(dealer.email)[-1]["body"]

        dealer_service.reset_password(token, "Brandnew1")
        assert dealer_service.login_dealer(dealer.gst, "Brandnew1")["token"]

        with pytest.raises(InvalidCode):
            dealer_service.reset_password(token, "Another22")

    def test_unknown_gst(self, app):
        with pytest.raises(NotFound):
            dealer_service.request_password_reset("29ZZZZZ9999Z1Z9")

    def test_expired_token(self, app, dealer):
        token = dealer_service.request_password_reset(dealer.gst)
        stored = db.session.get(Dealer, dealer.id)
        stored.reset_token_expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        with pytest.raises(Expired):
            dealer_service.reset_password(token, "Brandnew1")
        assert dealer_service.login_dealer(dealer.gst, TEST_PASSWORD)["token"]

    def test_new_request_invalidates_old_token(self, app, dealer):
        old = dealer_service.request_password_reset(dealer.gst)
        new = dealer_service.request_password_reset(dealer.gst)
        with pytest.raises(InvalidCode):
            dealer_service.reset_password(old, "Brandnew1")
        dealer_service.reset_password(new, "Brandnew1")

    def test_weak_new_password(self, app, dealer):
        token = dealer_service.request_password_reset(dealer.gst)
        with pytest.raises(ValidationError):
            dealer_service.reset_password(token, "weak")
        dealer_service.reset_password(token, "Brandnew1")

    def test_delivery_failure(self, app, dealer, outbox):
        outbox.fail_email = True
        with pytest.raises(DeliveryFailed):
            dealer_service.request_password_reset(dealer.gst)


class TestEmailChange:

    def test_change_email_with_otp(self, app, dealer, outbox):
        dealer_service.request_email_change(dealer.id, "New.Address@Example.com")
        code = pending_code(dealer.id, "email_change")
        assert code in outbox.emails_to("new.address@example.com")[-1]["body"]

        updated = dealer_service.confirm_email_change(dealer.id, code)
        assert updated.email == "new.address@example.com"
        assert updated.is_email_verified is True
        assert outbox.emails_to("new.address@example.com")[-1]["subject"].startswith("Email Updated")

    def test_same_email_rejected(self, app, dealer):
        with pytest.raises(ValidationError):
            dealer_service.request_email_change(dealer.id, dealer.email.upper())

    def test_taken_email_rejected(self, app, make_dealer):
        first = make_dealer()
        second = make_dealer()
        with pytest.raises(DuplicateEntity):
            dealer_service.request_email_change(second.id, first.email)

    def test_email_taken_between_request_and_confirm(self, app, make_dealer):
        first = make_dealer()
        dealer_service.request_email_change(first.id, "contested@example.com")
        code = pending_code(first.id, "email_change")

        second = make_dealer()
        second.email = "contested@example.com"
        db.session.commit()

        with pytest.raises(DuplicateEntity):
            dealer_service.confirm_email_change(first.id, code)
        assert db.session.get(Dealer, first.id).email != "contested@example.com"

    def test_wrong_code(self, app, dealer):
        dealer_service.request_email_change(dealer.id, "new@example.com")
        code = pending_code(dealer.id, "email_change")
        with pytest.raises(InvalidCode):
            dealer_service.confirm_email_change(dealer.id, "000000" if code != "000000" else "111111")
        assert db.session.get(Dealer, dealer.id).email == dealer.email
