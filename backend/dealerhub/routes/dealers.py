# Overview: Flask API routes for the logged-in dealer: profile, dashboard and enquiries.

# backend/dealerhub/routes/dealers.py
"""
Dealer self-service routes.

SECURITY: Every route requires an approved, active dealer session
(@require_dealer). The dealer id always comes from the token, never the URL.
"""

from flask import Blueprint, g, request

from ..decorators import require_dealer
from ..services import dealer_service, enquiry_service, reporting_service
from .common import json_body, page_args

dealers_bp = Blueprint("dealers", __name__, url_prefix="/api/dealers")


@dealers_bp.get("/profile")
@require_dealer
def get_profile():
    return {"dealer": g.current_dealer.to_dict()}


@dealers_bp.patch("/profile")
@require_dealer
def update_profile():
    dealer = dealer_service.update_profile(g.current_dealer.id, json_body())
    return {"dealer": dealer.to_dict()}


@dealers_bp.post("/change-password")
@require_dealer
def change_password():
    payload = json_body()
    dealer_service.change_password(
        g.current_dealer.id,
        payload.get("current_password"),
        payload.get("new_password"),
    )
    return {"message": "Password changed successfully"}


@dealers_bp.post("/email-change")
@require_dealer
def request_email_change():
    payload = json_body()
    dealer_service.request_email_change(g.current_dealer.id, payload.get("new_email"))
    return {"message": "OTP sent to new email address"}


@dealers_bp.post("/email-change/confirm")
@require_dealer
def confirm_email_change():
    payload = json_body()
    dealer = dealer_service.confirm_email_change(g.current_dealer.id, payload.get("otp"))
    return {"message": "Email updated successfully", "dealer": dealer.to_dict()}


@dealers_bp.get("/dashboard")
@require_dealer
def dashboard():
    return reporting_service.dealer_dashboard(g.current_dealer.id)


@dealers_bp.post("/enquiries")
@require_dealer
def create_enquiry():
    """
    Body: {"product_id", "quantity", "price_cents"?, "color"?, "remarks"?}

    price_cents defaults to the catalog price.
    """
    payload = json_body()
    enquiry = enquiry_service.create_enquiry(
        dealer_id=g.current_dealer.id,
        product_id=payload.get("product_id"),
        quantity=payload.get("quantity"),
        price_cents=payload.get("price_cents"),
        color=payload.get("color"),
        remarks=payload.get("remarks"),
    )
    return {"message": "Enquiry submitted", "enquiry": enquiry.to_dict()}, 201


@dealers_bp.get("/enquiries")
@require_dealer
def list_enquiries():
    return enquiry_service.list_dealer_enquiries(
        g.current_dealer.id,
        status=request.args.get("status"),
        **page_args(),
    )


@dealers_bp.get("/enquiries/<int:enquiry_id>")
@require_dealer
def get_enquiry(enquiry_id: int):
    enquiry = enquiry_service.get_dealer_enquiry(g.current_dealer.id, enquiry_id)
    return {"enquiry": enquiry.to_dict()}
