# backend/dealerhub/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process cwd unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///dealerhub.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens (signed JWT, see services/token_service.py)
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-change-me")
    JWT_ALGORITHM = "HS256"
    SESSION_TOKEN_TTL_HOURS = _env_int("SESSION_TOKEN_TTL_HOURS", 24)

    # Credentials
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)
    PASSWORD_MIN_LENGTH = 6

    # One-time codes; minutes per purpose, anything unlisted uses the default
    OTP_LENGTH = 6
    OTP_DEFAULT_TTL_MINUTES = 10
    OTP_TTL_MINUTES = {
        "mobile_verify": 10,
        "email_verify": 10,
        "password_reset": 10,
        "email_change": 5,
    }
    PASSWORD_RESET_TTL_MINUTES = 60
    OTP_CLEANUP_INTERVAL_SECONDS = _env_int("OTP_CLEANUP_INTERVAL_SECONDS", 300)

    # "permissive": admins may set any enquiry status (guarded only against
    # concurrent edits). "strict": only forward edges of the lifecycle.
    ENQUIRY_STATUS_POLICY = os.environ.get("ENQUIRY_STATUS_POLICY", "permissive")

    # Outbound email/SMS. "log" writes messages to the app logger, "ses" uses AWS.
    NOTIFICATION_BACKEND = os.environ.get("NOTIFICATION_BACKEND", "log")
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "no-reply@mouldedfurniture.local")
    AWS_REGION = os.environ.get("AWS_REGION", "ap-south-1")
    SMS_COUNTRY_CODE = os.environ.get("SMS_COUNTRY_CODE", "+91")
    BRAND_NAME = "Moulded Furniture"

    CORS_ALLOWED_ORIGINS = (
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    )
