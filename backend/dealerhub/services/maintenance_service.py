# Overview: Periodic cleanup of expired one-time codes and reset tokens.

from __future__ import annotations

import time
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Dealer
from ..time_utils import utcnow
from . import otp_service


def cleanup_expired_otps(*, now: datetime | None = None) -> int:
    """Delete OTP rows past their expiry."""
    deleted = otp_service.cleanup_expired(now)
    db.session.commit()
    return deleted


def cleanup_expired_reset_tokens(*, now: datetime | None = None) -> int:
    """Null out password reset tokens past their expiry."""
    now = now or utcnow()
    cleared = (
        db.session.query(Dealer)
        .filter(Dealer.reset_token_hash.isnot(None), Dealer.reset_token_expires_at < now)
        .update(
            {Dealer.reset_token_hash: None, Dealer.reset_token_expires_at: None},
            synchronize_session=False,
        )
    )
    db.session.commit()
    return cleared


def sweep(*, now: datetime | None = None) -> dict:
    now = now or utcnow()
    result = {
        "otps_deleted": cleanup_expired_otps(now=now),
        "reset_tokens_cleared": cleanup_expired_reset_tokens(now=now),
    }
    current_app.logger.info("Maintenance sweep: %s", result)
    return result


def run_sweeper(*, interval_seconds: int | None = None, iterations: int | None = None,
                sleep=time.sleep) -> int:
    """
    Run sweep() every ``interval_seconds`` (OTP_CLEANUP_INTERVAL_SECONDS).

    iterations=None loops until interrupted. Returns the number of sweeps run.
    """
    interval = interval_seconds or current_app.config.get("OTP_CLEANUP_INTERVAL_SECONDS", 300)
    runs = 0
    while iterations is None or runs < iterations:
        sweep()
        runs += 1
        if iterations is not None and runs >= iterations:
            break
        sleep(interval)
    return runs
