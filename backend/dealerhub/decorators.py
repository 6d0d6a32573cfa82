# Overview: Authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import InvalidToken, NotApproved, PermissionDenied
from .extensions import db
from .models import Admin, Dealer
from .services import token_service


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise InvalidToken("Authentication required")
    return auth_header.split(" ", 1)[1].strip()


def _authenticate() -> None:
    """
    Resolve the bearer token to a live principal and store it on ``g``.

    Sets:
    - g.principal: PrincipalClaims from the token
    - g.current_dealer or g.current_admin: the loaded account (other is None)

    SECURITY: The account is re-read on every request, so a deactivated
    dealer or admin is locked out even while their token is unexpired.
    """
    claims = token_service.verify(_bearer_token())

    g.principal = claims
    g.current_dealer = None
    g.current_admin = None

    if claims.is_dealer:
        dealer = db.session.get(Dealer, claims.principal_id)
        if dealer is None or not dealer.is_active:
            raise InvalidToken("Invalid token or account not found")
        g.current_dealer = dealer
    else:
        admin = db.session.get(Admin, claims.principal_id)
        if admin is None or not admin.is_active:
            raise InvalidToken("Invalid token or account not found")
        g.current_admin = admin


def require_auth(f):
    """Any authenticated dealer or admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _authenticate()
        return f(*args, **kwargs)

    return decorated_function


def require_dealer(f):
    """
    Authenticated dealer whose account is still approved.

    A dealer rejected after login keeps a valid token until expiry but can no
    longer reach dealer routes.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _authenticate()
        if g.current_dealer is None:
            raise PermissionDenied("Dealer access required")
        if g.current_dealer.account_status != "approved":
            raise NotApproved("Your account is not approved")
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _authenticate()
        if g.current_admin is None:
            raise PermissionDenied("Admin access required")
        return f(*args, **kwargs)

    return decorated_function


def require_super_admin(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _authenticate()
        if g.current_admin is None or not g.current_admin.is_super_admin:
            raise PermissionDenied("Super admin access required")
        return f(*args, **kwargs)

    return decorated_function
