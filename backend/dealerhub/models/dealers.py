from __future__ import annotations

from ..extensions import db
from ..services.credentials import hash_password
from ..time_utils import to_utc_z, utcnow

DEALER_STATUSES = ("pending", "approved", "rejected")


class Dealer(db.Model):
    """
    Registered furniture dealer (B2B customer).

    Identity: mobile, email and GST number are each unique across dealers.
    The database constraints are the authority on uniqueness; services never
    rely on a prior existence check.

    LIFECYCLE:
    - account_status: pending -> approved | rejected (admin review)
    - is_mobile_verified / is_email_verified: flipped by OTP verification
    - is_active: admin soft-disable, independent of review status

    SECURITY: Login requires approved AND both flags AND is_active.
    Password reset tokens are stored as SHA-256 digests, never in clear.
    """
    __tablename__ = "dealers"
    __table_args__ = (
        db.UniqueConstraint("mobile", name="uq_dealers_mobile"),
        db.UniqueConstraint("email", name="uq_dealers_email"),
        db.UniqueConstraint("gst", name="uq_dealers_gst"),
        db.UniqueConstraint("reset_token_hash", name="uq_dealers_reset_token_hash"),
        db.CheckConstraint(
            "account_status IN ('pending', 'approved', 'rejected')",
            name="ck_dealers_account_status",
        ),
        db.Index("ix_dealers_status_created", "account_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(100), nullable=False)
    contact_person_name = db.Column(db.String(50), nullable=False)
    mobile = db.Column(db.String(10), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(200), nullable=False)
    pin_code = db.Column(db.String(6), nullable=True)
    gst = db.Column(db.String(15), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    account_status = db.Column(db.String(16), nullable=False, default="pending")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_mobile_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_email_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_first_time_user = db.Column(db.Boolean, nullable=False, default=True)

    reset_token_hash = db.Column(db.String(64), nullable=True)
    reset_token_expires_at = db.Column(db.DateTime, nullable=True)

    reviewed_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    reviewed_by = db.relationship("Admin", foreign_keys=[reviewed_by_admin_id])

    @property
    def password(self):
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, plaintext: str) -> None:
        self.password_hash = hash_password(plaintext)

    @property
    def is_verified(self) -> bool:
        return bool(self.is_mobile_verified and self.is_email_verified)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "contact_person_name": self.contact_person_name,
            "mobile": self.mobile,
            "email": self.email,
            "address": self.address,
            "pin_code": self.pin_code,
            "gst": self.gst,
            "account_status": self.account_status,
            "is_active": self.is_active,
            "is_mobile_verified": self.is_mobile_verified,
            "is_email_verified": self.is_email_verified,
            "is_first_time_user": self.is_first_time_user,
            "reviewed_by_admin_id": self.reviewed_by_admin_id,
            "reviewed_at": to_utc_z(self.reviewed_at),
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def snapshot(self) -> dict:
        """Contact fields copied onto enquiries at creation time."""
        return {
            "dealer_company_name": self.company_name,
            "dealer_contact_person": self.contact_person_name,
            "dealer_mobile": self.mobile,
            "dealer_email": self.email,
            "dealer_gst": self.gst,
        }
