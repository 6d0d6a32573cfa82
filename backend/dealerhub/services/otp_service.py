# Overview: Issue, deliver, verify and sweep one-time codes.

"""
One-Time Code Service

PURPOSES:
- mobile_verify:  proves the registration mobile (SMS)
- email_verify:   proves the registration email
- email_change:   proves a new email before it replaces the old one
- password_reset: reserved for code-based reset flows

RULES:
- Codes are 6 decimal digits from the ``secrets`` CSPRNG (leading zeros kept)
- One live code per (owner, purpose); issuing again replaces the old code
- TTL per purpose from OTP_TTL_MINUTES (email_change 5 min, others 10)
- Verification consumes the code with a conditional DELETE, so two
  concurrent submissions of the same code cannot both succeed

None of the functions here commit; the caller owns the transaction so the
code consumption and the flag it unlocks land together.
"""

from __future__ import annotations

import hmac
import secrets
import string
from datetime import datetime, timedelta
from enum import Enum

from flask import current_app

from ..errors import Expired, InvalidCode, ValidationError
from ..extensions import db
from ..models import OtpCode
from ..time_utils import utcnow
from . import notification_service
from .concurrency import conditional_delete

OTP_LENGTH = 6

PURPOSE_MOBILE_VERIFY = "mobile_verify"
PURPOSE_EMAIL_VERIFY = "email_verify"
PURPOSE_EMAIL_CHANGE = "email_change"
PURPOSE_PASSWORD_RESET = "password_reset"
VALID_PURPOSES = {
    PURPOSE_MOBILE_VERIFY,
    PURPOSE_EMAIL_VERIFY,
    PURPOSE_EMAIL_CHANGE,
    PURPOSE_PASSWORD_RESET,
}

CHANNEL_SMS = "sms"
CHANNEL_EMAIL = "email"


class OtpOutcome(Enum):
    CONSUMED = "consumed"
    INVALID = "invalid"
    EXPIRED = "expired"


def _validate_purpose(purpose: str) -> None:
    if purpose not in VALID_PURPOSES:
        raise ValidationError(f"Unknown OTP purpose: {purpose}")


def generate_code(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def ttl_for(purpose: str) -> timedelta:
    minutes = current_app.config.get("OTP_TTL_MINUTES", {}).get(
        purpose, current_app.config.get("OTP_DEFAULT_TTL_MINUTES", 10)
    )
    return timedelta(minutes=minutes)


def _current(owner_kind: str, owner_id: int, purpose: str) -> OtpCode | None:
    return (
        db.session.query(OtpCode)
        .filter_by(owner_kind=owner_kind, owner_id=owner_id, purpose=purpose)
        .first()
    )


def issue(owner_kind: str, owner_id: int, purpose: str, *, target: str | None = None,
          now: datetime | None = None) -> OtpCode:
    """
    Create a fresh code for (owner, purpose), replacing any pending one.

    Flushes but does not commit.
    """
    _validate_purpose(purpose)
    now = now or utcnow()

    db.session.query(OtpCode).filter_by(
        owner_kind=owner_kind, owner_id=owner_id, purpose=purpose
    ).delete(synchronize_session=False)

    otp = OtpCode(
        owner_kind=owner_kind,
        owner_id=owner_id,
        purpose=purpose,
        code=generate_code(current_app.config.get("OTP_LENGTH", OTP_LENGTH)),
        target=target,
        expires_at=now + ttl_for(purpose),
        created_at=now,
    )
    db.session.add(otp)
    db.session.flush()
    return otp


def _check(owner_kind: str, owner_id: int, purpose: str, candidate,
           now: datetime | None) -> tuple[OtpOutcome, str | None]:
    _validate_purpose(purpose)
    now = now or utcnow()

    record = _current(owner_kind, owner_id, purpose)
    if record is None or candidate is None:
        return OtpOutcome.INVALID, None

    if now > record.expires_at:
        return OtpOutcome.EXPIRED, None

    if not hmac.compare_digest(record.code, str(candidate).strip()):
        return OtpOutcome.INVALID, None

    target = record.target
    expires_at = record.expires_at
    consumed = conditional_delete(
        OtpCode,
        [OtpCode.id == record.id, OtpCode.code == record.code, OtpCode.expires_at >= now],
    )
    db.session.expunge(record)
    if not consumed:
        # Row vanished: the expiry sweep removes only expired codes, anything
        # else is a concurrent verification of the same code
        if utcnow() > expires_at:
            return OtpOutcome.EXPIRED, None
        return OtpOutcome.INVALID, None
    return OtpOutcome.CONSUMED, target


def verify(owner_kind: str, owner_id: int, purpose: str, candidate, *,
           now: datetime | None = None) -> OtpOutcome:
    """
    Check ``candidate`` against the pending code.

    Order of checks: missing -> INVALID, past expiry -> EXPIRED,
    mismatch -> INVALID, otherwise the row is deleted and CONSUMED.
    """
    outcome, _ = _check(owner_kind, owner_id, purpose, candidate, now)
    return outcome


def consume(owner_kind: str, owner_id: int, purpose: str, candidate, *,
            now: datetime | None = None) -> str | None:
    """
    Like verify(), but raises on failure and returns the code's target.

    Raises:
        Expired: code is past its expiry
        InvalidCode: no pending code, or mismatch
    """
    outcome, target = _check(owner_kind, owner_id, purpose, candidate, now)
    if outcome is OtpOutcome.EXPIRED:
        raise Expired("OTP has expired. Please request a new one.")
    if outcome is OtpOutcome.INVALID:
        raise InvalidCode("Invalid OTP")
    return target


def discard(owner_kind: str, owner_id: int, purpose: str) -> None:
    db.session.query(OtpCode).filter_by(
        owner_kind=owner_kind, owner_id=owner_id, purpose=purpose
    ).delete(synchronize_session=False)


def dispatch(otp: OtpCode, channel: str) -> bool:
    """Send ``otp`` to its target over ``channel``. Best-effort; returns delivery result."""
    minutes = int(ttl_for(otp.purpose).total_seconds() // 60)
    if channel == CHANNEL_SMS:
        return notification_service.send_otp_sms(otp.target, otp.code, minutes)
    if channel == CHANNEL_EMAIL:
        return notification_service.send_otp_email(otp.target, otp.code, minutes, purpose=otp.purpose)
    raise ValidationError(f"Unknown OTP channel: {channel}")


def cleanup_expired(now: datetime | None = None) -> int:
    """Delete codes past their expiry. Returns rows removed. Does not commit."""
    now = now or utcnow()
    return (
        db.session.query(OtpCode)
        .filter(OtpCode.expires_at < now)
        .delete(synchronize_session=False)
    )
