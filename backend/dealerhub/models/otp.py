from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class OtpCode(db.Model):
    """
    Pending one-time code for an owner and purpose.

    At most one live row per (owner_kind, owner_id, purpose): issuing a new
    code replaces the old one. ``target`` holds the address being proven
    (the new email for an email change, the mobile for mobile verification).

    SECURITY: Rows are deleted on successful verification; a code can be
    consumed once. Expired rows are swept by maintenance_service.
    """
    __tablename__ = "otp_codes"
    __table_args__ = (
        db.UniqueConstraint("owner_kind", "owner_id", "purpose", name="uq_otp_codes_owner_purpose"),
        db.Index("ix_otp_codes_expires_at", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_kind = db.Column(db.String(16), nullable=False)
    owner_id = db.Column(db.Integer, nullable=False)
    purpose = db.Column(db.String(32), nullable=False)
    code = db.Column(db.String(6), nullable=False)
    target = db.Column(db.String(255), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        # code deliberately omitted
        return {
            "id": self.id,
            "owner_kind": self.owner_kind,
            "owner_id": self.owner_id,
            "purpose": self.purpose,
            "target": self.target,
            "expires_at": to_utc_z(self.expires_at),
            "created_at": to_utc_z(self.created_at),
        }
