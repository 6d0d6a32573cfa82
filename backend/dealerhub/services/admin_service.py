# Overview: Admin accounts: bootstrap, login, and super-admin management.

"""
Admin Account Service

ROLES:
- admin:       reviews dealers, manages catalog, disposes enquiries
- super_admin: everything an admin can do, plus creating and editing admins

WHY: The first super_admin is created from the CLI (bootstrap_super_admin);
after that every admin is created by an existing super_admin and the
creator is recorded in created_by_admin_id.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..errors import (
    DuplicateEntity,
    InvalidCredentials,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from ..extensions import db
from ..models import ADMIN_ROLES, Admin
from ..time_utils import utcnow
from ..validation import normalize_email
from . import token_service
from .credentials import validate_password_strength, verify_password


def _get_admin(admin_id: int) -> Admin:
    admin = db.session.get(Admin, admin_id)
    if admin is None:
        raise NotFound("Admin not found")
    return admin


def _require_super_admin(actor_id: int) -> Admin:
    actor = _get_admin(actor_id)
    if not actor.is_active or not actor.is_super_admin:
        raise PermissionDenied("Super admin access required")
    return actor


def _clean_username(username: str) -> str:
    username = (username or "").strip()
    if len(username) < 3:
        raise ValidationError("username must be at least 3 characters")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    return username


def _insert(admin: Admin) -> Admin:
    db.session.add(admin)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        fields = []
        if db.session.query(Admin.id).filter(Admin.username == admin.username).first():
            fields.append("username")
        if db.session.query(Admin.id).filter(Admin.email == admin.email).first():
            fields.append("email")
        raise DuplicateEntity("Admin with this username or email already exists", fields=fields)
    return admin


def create_admin(*, actor_id: int, username: str, email: str, password: str, role: str = "admin") -> Admin:
    """Create an admin. Only an active super_admin may do this."""
    _require_super_admin(actor_id)
    if role not in ADMIN_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ADMIN_ROLES)}")
    validate_password_strength(password)

    admin = Admin(
        username=_clean_username(username),
        email=normalize_email(email),
        role=role,
        created_by_admin_id=actor_id,
    )
    admin.password = password
    _insert(admin)
    current_app.logger.info("Admin %s (%s) created by %s", admin.id, role, actor_id)
    return admin


def bootstrap_super_admin(*, username: str, email: str, password: str) -> Admin:
    """First-run super_admin, used by the CLI. No actor check."""
    validate_password_strength(password)
    admin = Admin(username=_clean_username(username), email=normalize_email(email), role="super_admin")
    admin.password = password
    return _insert(admin)


def login_admin(identifier: str, password: str) -> dict:
    """
    Authenticate by username or email.

    Returns {"admin", "token", "expires_in"}. Unknown identifier, wrong
    password and deactivated account all raise InvalidCredentials.
    """
    if not identifier or not password:
        raise ValidationError("identifier and password are required")

    ident = str(identifier).strip()
    admin = (
        db.session.query(Admin)
        .filter(or_(Admin.username == ident, Admin.email == ident.lower()))
        .first()
    )
    if admin is None or not verify_password(password, admin.password_hash) or not admin.is_active:
        raise InvalidCredentials("Invalid credentials")

    admin.last_login_at = utcnow()
    db.session.commit()

    token, expires_in = token_service.issue_session_token(token_service.KIND_ADMIN, admin.id, admin.role)
    return {"admin": admin, "token": token, "expires_in": expires_in}


def get_admin(admin_id: int) -> Admin:
    return _get_admin(admin_id)


def list_admins(*, actor_id: int) -> list[Admin]:
    _require_super_admin(actor_id)
    return db.session.query(Admin).order_by(Admin.created_at.desc(), Admin.id.desc()).all()


def update_admin(*, actor_id: int, admin_id: int, patch: dict) -> Admin:
    """
    Super-admin edit of another admin's email, role or active flag.

    An actor cannot demote or deactivate themselves, and the last active
    super_admin cannot be removed.
    """
    _require_super_admin(actor_id)
    admin = _get_admin(admin_id)
    patch = dict(patch or {})

    allowed = {"email", "role", "is_active"}
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "role" in patch and patch["role"] not in ADMIN_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ADMIN_ROLES)}")
    if "is_active" in patch and not isinstance(patch["is_active"], bool):
        raise ValidationError("is_active must be true or false")

    losing_super = admin.is_super_admin and (
        patch.get("role", admin.role) != "super_admin" or patch.get("is_active", admin.is_active) is False
    )
    if losing_super:
        if admin.id == actor_id:
            raise ValidationError("You cannot demote or deactivate your own account")
        remaining = (
            db.session.query(func.count(Admin.id))
            .filter(Admin.role == "super_admin", Admin.is_active.is_(True), Admin.id != admin.id)
            .scalar()
        )
        if not remaining:
            raise ValidationError("At least one active super admin is required")

    if "email" in patch:
        admin.email = normalize_email(patch["email"])
    if "role" in patch:
        admin.role = patch["role"]
    if "is_active" in patch:
        admin.is_active = patch["is_active"]

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEntity("Email is already in use", fields=["email"])
    return admin


def change_admin_password(admin_id: int, current_password: str, new_password: str) -> None:
    admin = _get_admin(admin_id)
    if not verify_password(current_password, admin.password_hash):
        raise InvalidCredentials("Current password is incorrect")
    admin.password = new_password
    db.session.commit()
