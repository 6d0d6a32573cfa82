# Overview: Dealer registration, verification, review, login and account recovery.

"""
Dealer Lifecycle Service

STATE MACHINE (account_status):
    pending  -> approved | rejected      (admin review)
    approved -> rejected, rejected -> approved   (re-review)

Orthogonal flags: is_mobile_verified, is_email_verified (OTP), is_active
(admin soft-disable), is_first_time_user (cleared on first login).

LOGIN GATE (checked in this order):
1. GST + password match an active dealer, else InvalidCredentials
2. account_status == approved, else NotApproved
3. both contact channels verified, else NotVerified

WHY: Uniqueness of mobile/email/GST is decided by the database constraints.
A pre-insert existence check would race with a concurrent registration, so
we insert and translate IntegrityError into DuplicateEntity.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import (
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
from ..extensions import db
from ..models import Dealer
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_dealer,
    normalize_email,
    validate_payload,
)
from . import notification_service, otp_service, token_service
from .concurrency import conditional_update, run_with_retry
from .credentials import hash_password, validate_password_strength, verify_password

OWNER_DEALER = "dealer"

CHANNEL_MOBILE = "mobile"
CHANNEL_EMAIL = "email"

REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={"company_name", "contact_person_name", "mobile", "email", "address", "pin_code", "gst"},
    required_on_create={"company_name", "contact_person_name", "mobile", "email", "address", "gst"},
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"company_name", "contact_person_name", "mobile", "address", "pin_code"},
)


def _get_dealer(dealer_id: int) -> Dealer:
    dealer = db.session.get(Dealer, dealer_id)
    if dealer is None:
        raise NotFound("Dealer not found")
    return dealer


def _conflicting_fields(email: str | None = None, mobile: str | None = None,
                        gst: str | None = None, exclude_id: int | None = None) -> list[str]:
    """Which of the given identity values already belong to another dealer."""
    checks = (("email", Dealer.email, email), ("mobile", Dealer.mobile, mobile), ("gst", Dealer.gst, gst))
    fields = []
    for name, column, value in checks:
        if value is None:
            continue
        query = db.session.query(Dealer.id).filter(column == value)
        if exclude_id is not None:
            query = query.filter(Dealer.id != exclude_id)
        if query.first() is not None:
            fields.append(name)
    return fields


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------

def register_dealer(payload: dict, *, send_otps: bool = True) -> Dealer:
    """
    Create a pending dealer and send mobile + email OTPs.

    send_otps=False still issues both codes but leaves delivery to the caller
    (resend_otp), e.g. for dealers imported by an operator.

    All-or-nothing: if either OTP cannot be delivered the dealer row is rolled
    back and DeliveryFailed is raised, so the same details can be resubmitted.

    Raises:
        ValidationError: bad or missing fields, weak password
        DuplicateEntity: mobile, email or GST already registered
        DeliveryFailed: OTP could not be sent
    """
    data = dict(payload or {})
    password = data.pop("password", None)
    if password in (None, ""):
        raise ValidationError("Missing required fields: password")

    patch = validate_payload(model=Dealer, payload=data, policy=REGISTRATION_POLICY, partial=False)
    enforce_rules_dealer(patch)
    validate_password_strength(password)

    dealer = Dealer(**patch)
    dealer.password = password
    db.session.add(dealer)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        fields = _conflicting_fields(email=patch["email"], mobile=patch["mobile"], gst=patch["gst"])
        raise DuplicateEntity(
            "Dealer with this email, mobile or GST already exists",
            fields=fields,
        )

    mobile_otp = otp_service.issue(OWNER_DEALER, dealer.id, otp_service.PURPOSE_MOBILE_VERIFY, target=dealer.mobile)
    email_otp = otp_service.issue(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_VERIFY, target=dealer.email)

    if send_otps:
        sms_sent = otp_service.dispatch(mobile_otp, otp_service.CHANNEL_SMS)
        email_sent = sms_sent and otp_service.dispatch(email_otp, otp_service.CHANNEL_EMAIL)
        if not (sms_sent and email_sent):
            db.session.rollback()
            current_app.logger.warning(
                "Registration rolled back: OTP delivery failed (sms=%s email=%s)", sms_sent, email_sent
            )
            raise DeliveryFailed("Failed to send OTP. Please try again.")

    db.session.commit()
    current_app.logger.info("Dealer %s registered (gst=%s)", dealer.id, dealer.gst)
    notification_service.notify_registration_received(dealer)
    return dealer


def resend_otp(dealer_id: int, channel: str) -> None:
    """Issue a fresh verification code on ``channel`` ("mobile" or "email")."""
    dealer = _get_dealer(dealer_id)

    if channel == CHANNEL_MOBILE:
        if dealer.is_mobile_verified:
            raise AlreadyInState("Mobile number is already verified")
        otp = otp_service.issue(OWNER_DEALER, dealer.id, otp_service.PURPOSE_MOBILE_VERIFY, target=dealer.mobile)
        send_via = otp_service.CHANNEL_SMS
    elif channel == CHANNEL_EMAIL:
        if dealer.is_email_verified:
            raise AlreadyInState("Email is already verified")
        otp = otp_service.issue(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_VERIFY, target=dealer.email)
        send_via = otp_service.CHANNEL_EMAIL
    else:
        raise ValidationError("type must be 'mobile' or 'email'")

    db.session.commit()
    if not otp_service.dispatch(otp, send_via):
        raise DeliveryFailed("Failed to send OTP. Please try again.")


def verify_mobile(dealer_id: int, code) -> Dealer:
    dealer = _get_dealer(dealer_id)
    if dealer.is_mobile_verified:
        raise AlreadyInState("Mobile number is already verified")
    otp_service.consume(OWNER_DEALER, dealer.id, otp_service.PURPOSE_MOBILE_VERIFY, code)
    dealer.is_mobile_verified = True
    db.session.commit()
    return dealer


def verify_email(dealer_id: int, code) -> Dealer:
    dealer = _get_dealer(dealer_id)
    if dealer.is_email_verified:
        raise AlreadyInState("Email is already verified")
    otp_service.consume(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_VERIFY, code)
    dealer.is_email_verified = True
    db.session.commit()
    return dealer


def verify_registration(dealer_id: int, mobile_code, email_code) -> Dealer:
    """
    Second registration step: both codes in one call.

    Either both channels end up verified or neither code is consumed.
    A channel that is already verified is skipped.
    """
    dealer = _get_dealer(dealer_id)
    if dealer.is_verified:
        raise AlreadyInState("Mobile number and email are already verified")

    try:
        if not dealer.is_mobile_verified:
            otp_service.consume(OWNER_DEALER, dealer.id, otp_service.PURPOSE_MOBILE_VERIFY, mobile_code)
        if not dealer.is_email_verified:
            otp_service.consume(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_VERIFY, email_code)
    except (InvalidCode, Expired):
        db.session.rollback()
        raise

    dealer.is_mobile_verified = True
    dealer.is_email_verified = True
    db.session.commit()
    return dealer


# ---------------------------------------------------------------------------
# Admin review
# ---------------------------------------------------------------------------

def _review(dealer_id: int, admin_id: int, target: str, values: dict) -> Dealer:
    _get_dealer(dealer_id)
    now = utcnow()
    values = dict(values)
    values.update({
        Dealer.account_status: target,
        Dealer.reviewed_by_admin_id: admin_id,
        Dealer.reviewed_at: now,
        Dealer.updated_at: now,
    })

    def _op():
        matched = conditional_update(
            Dealer, [Dealer.id == dealer_id, Dealer.account_status != target], values
        )
        db.session.commit()
        return matched

    if not run_with_retry(_op):
        raise AlreadyInState(f"Dealer is already {target}")

    dealer = _get_dealer(dealer_id)
    current_app.logger.info("Dealer %s %s by admin %s", dealer_id, target, admin_id)
    return dealer


def approve_dealer(dealer_id: int, admin_id: int) -> Dealer:
    """
    pending/rejected -> approved.

    Raises AlreadyInState when the dealer is approved already, including when
    a concurrent approval got there first.
    """
    dealer = _review(dealer_id, admin_id, "approved", {Dealer.rejection_reason: None})
    notification_service.notify_dealer_approved(dealer)
    return dealer


def reject_dealer(dealer_id: int, admin_id: int, reason: str) -> Dealer:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    dealer = _review(dealer_id, admin_id, "rejected", {Dealer.rejection_reason: reason})
    notification_service.notify_dealer_rejected(dealer, reason)
    return dealer


def set_dealer_active(dealer_id: int, is_active: bool) -> Dealer:
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be true or false")
    dealer = _get_dealer(dealer_id)
    dealer.is_active = is_active
    db.session.commit()
    current_app.logger.info("Dealer %s is_active=%s", dealer_id, is_active)
    return dealer


# ---------------------------------------------------------------------------
# Login and session
# ---------------------------------------------------------------------------

def login_dealer(gst: str, password: str) -> dict:
    """
    Authenticate by GST number and password.

    Returns {"dealer", "token", "expires_in", "first_login"}.
    Unknown GST, wrong password and inactive account all raise the same
    InvalidCredentials so callers cannot probe which part was wrong.
    """
    if not gst or not password:
        raise ValidationError("gst and password are required")

    dealer = db.session.query(Dealer).filter(Dealer.gst == str(gst).strip().upper()).first()
    if dealer is None or not verify_password(password, dealer.password_hash) or not dealer.is_active:
        raise InvalidCredentials("Invalid GST number or password")

    if dealer.account_status != "approved":
        raise NotApproved(
            "Your account is pending approval" if dealer.account_status == "pending"
            else "Your registration has been rejected",
            account_status=dealer.account_status,
        )

    if not dealer.is_verified:
        raise NotVerified(
            "Please verify your mobile number and email before logging in",
            dealer_id=dealer.id,
            is_mobile_verified=dealer.is_mobile_verified,
            is_email_verified=dealer.is_email_verified,
        )

    first_login = dealer.is_first_time_user
    if first_login:
        dealer.is_first_time_user = False
        db.session.commit()

    token, expires_in = token_service.issue_session_token(token_service.KIND_DEALER, dealer.id, "dealer")
    return {"dealer": dealer, "token": token, "expires_in": expires_in, "first_login": first_login}


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def update_profile(dealer_id: int, payload: dict) -> Dealer:
    """
    Patch contact details. A new mobile number must be verified again.

    Email and GST are not editable here (email goes through the OTP change flow).
    """
    dealer = _get_dealer(dealer_id)
    patch = validate_payload(model=Dealer, payload=payload, policy=PROFILE_POLICY, partial=True)
    enforce_rules_dealer(patch)

    if "mobile" in patch and patch["mobile"] != dealer.mobile:
        dealer.is_mobile_verified = False
        otp_service.discard(OWNER_DEALER, dealer.id, otp_service.PURPOSE_MOBILE_VERIFY)

    for key, value in patch.items():
        setattr(dealer, key, value)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEntity("Mobile number is already registered", fields=["mobile"])

    db.session.commit()
    return dealer


def change_password(dealer_id: int, current_password: str, new_password: str) -> None:
    dealer = _get_dealer(dealer_id)
    if not verify_password(current_password, dealer.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    dealer.password = new_password
    dealer.reset_token_hash = None
    dealer.reset_token_expires_at = None
    db.session.commit()


def request_password_reset(gst: str) -> str:
    """
    Issue a single-use reset token for the dealer with ``gst`` and email it.

    Only the SHA-256 digest is stored. Returns the raw token (for the caller's
    delivery pipeline; the HTTP layer never echoes it).
    """
    if not gst:
        raise ValidationError("gst is required")

    dealer = db.session.query(Dealer).filter(Dealer.gst == str(gst).strip().upper()).first()
    if dealer is None:
        raise NotFound("Dealer not found with this GST number")

    minutes = current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 60)
    token = secrets.token_hex(32)
    dealer.reset_token_hash = token_service.hash_token(token)
    dealer.reset_token_expires_at = utcnow() + timedelta(minutes=minutes)
    db.session.commit()

    if not notification_service.notify_password_reset(dealer, token, minutes):
        raise DeliveryFailed("Failed to send reset email. Please try again.")
    return token


def reset_password(token: str, new_password: str) -> None:
    """
    Set a new password using a reset token.

    The token check and the password write are one conditional UPDATE, so a
    token can be redeemed exactly once even under concurrent requests.

    Raises:
        InvalidCode: unknown or already-used token
        Expired: token is past its expiry
    """
    if not token:
        raise InvalidCode("Invalid reset token")
    new_hash = hash_password(new_password)
    token_hash = token_service.hash_token(token)
    now = utcnow()

    matched = conditional_update(
        Dealer,
        [Dealer.reset_token_hash == token_hash, Dealer.reset_token_expires_at >= now],
        {
            Dealer.password_hash: new_hash,
            Dealer.reset_token_hash: None,
            Dealer.reset_token_expires_at: None,
            Dealer.updated_at: now,
        },
    )
    if not matched:
        still_pending = db.session.query(Dealer.id).filter(Dealer.reset_token_hash == token_hash).first()
        db.session.rollback()
        if still_pending is not None:
            raise Expired("Reset token has expired")
        raise InvalidCode("Invalid reset token")

    db.session.commit()


def request_email_change(dealer_id: int, new_email: str) -> None:
    """Send a confirmation code to ``new_email``. The email changes on confirm."""
    dealer = _get_dealer(dealer_id)
    email = normalize_email(new_email)
    if email == dealer.email:
        raise ValidationError("New email must be different from current email")
    if _conflicting_fields(email=email, exclude_id=dealer.id):
        raise DuplicateEntity("Email is already registered", fields=["email"])

    otp = otp_service.issue(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_CHANGE, target=email)
    db.session.commit()
    if not otp_service.dispatch(otp, otp_service.CHANNEL_EMAIL):
        raise DeliveryFailed("Failed to send OTP. Please try again.")


def confirm_email_change(dealer_id: int, code) -> Dealer:
    dealer = _get_dealer(dealer_id)
    new_email = otp_service.consume(OWNER_DEALER, dealer.id, otp_service.PURPOSE_EMAIL_CHANGE, code)

    dealer.email = new_email
    dealer.is_email_verified = True
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEntity("Email is already registered", fields=["email"])

    db.session.commit()
    notification_service.notify_email_changed(new_email)
    return dealer


# ---------------------------------------------------------------------------
# Admin reads
# ---------------------------------------------------------------------------

def get_dealer(dealer_id: int) -> Dealer:
    return _get_dealer(dealer_id)


def list_dealers(*, status: str | None = None, search: str | None = None,
                 page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Dealer)
    if status:
        query = query.filter(Dealer.account_status == status)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Dealer.company_name.ilike(like),
            Dealer.contact_person_name.ilike(like),
            Dealer.email.ilike(like),
            Dealer.mobile.ilike(like),
            Dealer.gst.ilike(like),
        ))
    query = query.order_by(Dealer.created_at.desc(), Dealer.id.desc())
    return paginate(query, page=page, per_page=per_page)

