# Overview: Signed session tokens for dealers and admins.

"""
Session Token Service

WHY: Sessions are stateless HS256 JWTs. The API never stores a session row;
the token carries who the caller is and expires after SESSION_TOKEN_TTL_HOURS
(24 by default). Account state (active, approved) is re-checked on every
request by the auth decorators, so deactivation takes effect immediately.

Claims:
- sub:  principal id (string, as JWT requires)
- kind: "dealer" | "admin"
- role: "dealer" | "admin" | "super_admin"
- iat / exp

SECURITY: Password reset tokens are a different thing: random, single-use,
stored only as hash_token() digests.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import JWTError, jwt

from ..errors import InvalidToken

KIND_DEALER = "dealer"
KIND_ADMIN = "admin"
PRINCIPAL_KINDS = (KIND_DEALER, KIND_ADMIN)


@dataclass(frozen=True)
class PrincipalClaims:
    kind: str
    principal_id: int
    role: str

    @property
    def is_dealer(self) -> bool:
        return self.kind == KIND_DEALER

    @property
    def is_admin(self) -> bool:
        return self.kind == KIND_ADMIN


def hash_token(token: str) -> str:
    """SHA-256 digest of a bearer secret, hex encoded."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def sign(claims: dict, ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = now
    payload["exp"] = now + ttl
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def issue_session_token(kind: str, principal_id: int, role: str) -> tuple[str, int]:
    """
    Mint a session token. Returns (token, expires_in_seconds).
    """
    if kind not in PRINCIPAL_KINDS:
        raise ValueError(f"Unknown principal kind: {kind}")
    ttl = timedelta(hours=current_app.config.get("SESSION_TOKEN_TTL_HOURS", 24))
    token = sign({"sub": str(principal_id), "kind": kind, "role": role}, ttl)
    return token, int(ttl.total_seconds())


def verify(token: str) -> PrincipalClaims:
    """
    Decode and validate a session token.

    Raises InvalidToken for a bad signature, expiry, or malformed claims.
    """
    if not token:
        raise InvalidToken("Authentication required")
    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except JWTError:
        raise InvalidToken("Invalid or expired token")

    kind = payload.get("kind")
    if kind not in PRINCIPAL_KINDS:
        raise InvalidToken("Invalid or expired token")
    try:
        principal_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidToken("Invalid or expired token")

    return PrincipalClaims(kind=kind, principal_id=principal_id, role=payload.get("role") or kind)
