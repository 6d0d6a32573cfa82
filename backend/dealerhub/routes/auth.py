# Overview: Flask API routes for registration, OTP verification, login and password recovery.

# backend/dealerhub/routes/auth.py
"""
Authentication API routes

Dealer onboarding is two-step:
1. POST /register        -> dealer row (pending) + mobile and email OTPs
2. POST /verify-otp      -> both channels verified

Dealers then wait for admin approval before /login succeeds.
Admins log in through /admin/login with username or email.
"""

from flask import Blueprint, g

from ..decorators import require_auth
from ..services import admin_service, dealer_service
from .common import json_body, required_int

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    dealer = dealer_service.register_dealer(json_body())
    return {
        "message": "Registration successful. Please verify the OTPs sent to your mobile and email.",
        "dealer_id": dealer.id,
        "dealer": dealer.to_dict(),
    }, 201


@auth_bp.post("/verify-otp")
def verify_otp_route():
    payload = json_body()
    dealer = dealer_service.verify_registration(
        required_int(payload, "dealer_id"),
        payload.get("mobile_otp"),
        payload.get("email_otp"),
    )
    return {
        "message": "Verification successful. Your account is pending admin approval.",
        "dealer": dealer.to_dict(),
    }


@auth_bp.post("/verify-mobile")
def verify_mobile_route():
    payload = json_body()
    dealer = dealer_service.verify_mobile(required_int(payload, "dealer_id"), payload.get("otp"))
    return {"message": "Mobile number verified", "dealer": dealer.to_dict()}


@auth_bp.post("/verify-email")
def verify_email_route():
    payload = json_body()
    dealer = dealer_service.verify_email(required_int(payload, "dealer_id"), payload.get("otp"))
    return {"message": "Email verified", "dealer": dealer.to_dict()}


@auth_bp.post("/resend-otp")
def resend_otp_route():
    """Body: {"dealer_id": int, "type": "mobile" | "email"}"""
    payload = json_body()
    channel = payload.get("type")
    dealer_service.resend_otp(required_int(payload, "dealer_id"), channel)
    return {"message": f"OTP sent to your {channel}"}


@auth_bp.post("/login")
def login_route():
    """
    Dealer login with GST number and password.

    Returns the session token; send it as "Authorization: Bearer <token>".
    """
    payload = json_body()
    result = dealer_service.login_dealer(payload.get("gst"), payload.get("password"))
    return {
        "token": result["token"],
        "expires_in": result["expires_in"],
        "first_login": result["first_login"],
        "dealer": result["dealer"].to_dict(),
    }


@auth_bp.post("/admin/login")
def admin_login_route():
    payload = json_body()
    identifier = payload.get("identifier") or payload.get("username") or payload.get("email")
    result = admin_service.login_admin(identifier, payload.get("password"))
    return {
        "token": result["token"],
        "expires_in": result["expires_in"],
        "admin": result["admin"].to_dict(),
    }


@auth_bp.post("/forgot-password")
def forgot_password_route():
    payload = json_body()
    dealer_service.request_password_reset(payload.get("gst"))
    return {"message": "Password reset instructions have been sent to your registered email"}


@auth_bp.post("/reset-password")
def reset_password_route():
    payload = json_body()
    dealer_service.reset_password(payload.get("token"), payload.get("password"))
    return {"message": "Password has been reset. You can now log in."}


@auth_bp.get("/me")
@require_auth
def me_route():
    if g.current_dealer is not None:
        return {"kind": "dealer", "dealer": g.current_dealer.to_dict()}
    return {"kind": "admin", "admin": g.current_admin.to_dict()}
