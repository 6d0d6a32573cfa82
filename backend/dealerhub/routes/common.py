# Overview: Small request-parsing helpers shared by the blueprints.

from __future__ import annotations

from flask import request

from ..errors import ValidationError
from ..time_utils import parse_date_range
from ..validation import coerce_int


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def required_int(payload: dict, key: str) -> int:
    if payload.get(key) in (None, ""):
        raise ValidationError(f"{key} is required")
    return coerce_int(payload[key], key)


def page_args() -> dict:
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("per_page", type=int),
    }


def date_window() -> dict:
    """date_from / date_to query params as datetimes (ISO-8601 or YYYY-MM-DD)."""
    try:
        start, end = parse_date_range(request.args.get("date_from"), request.args.get("date_to"))
    except ValueError as e:
        raise ValidationError(f"Invalid date range: {e}")
    return {"date_from": start, "date_to": end}
