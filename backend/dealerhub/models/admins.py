from __future__ import annotations

from ..extensions import db
from ..services.credentials import hash_password
from ..time_utils import to_utc_z, utcnow

ADMIN_ROLES = ("admin", "super_admin")


class Admin(db.Model):
    """
    Back-office operator who reviews dealers, manages the catalog and
    disposes of enquiries.

    WHY: Every review decision is attributed (reviewed_by_admin_id,
    processed_by_admin_id), so there are no shared admin logins.
    Only a super_admin may create other admins.
    """
    __tablename__ = "admins"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_admins_username"),
        db.UniqueConstraint("email", name="uq_admins_email"),
        db.CheckConstraint("role IN ('admin', 'super_admin')", name="ck_admins_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="admin")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    created_by = db.relationship("Admin", remote_side=[id])

    @property
    def password(self):
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, plaintext: str) -> None:
        self.password_hash = hash_password(plaintext)

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_by_admin_id": self.created_by_admin_id,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
