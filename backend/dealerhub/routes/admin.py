# Overview: Flask API routes for admins: dealer review, enquiry handling, catalog and admin accounts.

# backend/dealerhub/routes/admin.py
"""
Admin API routes

SECURITY: All routes require an active admin session (@require_admin).
Creating, listing and editing admin accounts additionally requires
super_admin (@require_super_admin).

Every review decision records the acting admin from the session token.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_super_admin
from ..errors import ValidationError
from ..services import (
    admin_service,
    dealer_service,
    enquiry_service,
    products_service,
    reporting_service,
)
from .common import date_window, json_body, page_args

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/dashboard")
@require_admin
def dashboard():
    return reporting_service.admin_dashboard()


# ---------------------------------------------------------------------------
# Dealers
# ---------------------------------------------------------------------------

@admin_bp.get("/dealers")
@require_admin
def list_dealers():
    return dealer_service.list_dealers(
        status=request.args.get("status"),
        search=request.args.get("search"),
        **page_args(),
    )


@admin_bp.get("/dealers/statistics")
@require_admin
def dealer_statistics():
    return reporting_service.dealer_statistics(**date_window())


@admin_bp.get("/dealers/<int:dealer_id>")
@require_admin
def get_dealer(dealer_id: int):
    dealer = dealer_service.get_dealer(dealer_id)
    return {
        "dealer": dealer.to_dict(),
        "dashboard": reporting_service.dealer_dashboard(dealer_id),
    }


@admin_bp.post("/dealers/<int:dealer_id>/approve")
@require_admin
def approve_dealer(dealer_id: int):
    dealer = dealer_service.approve_dealer(dealer_id, g.current_admin.id)
    return {"message": "Dealer approved", "dealer": dealer.to_dict()}


@admin_bp.post("/dealers/<int:dealer_id>/reject")
@require_admin
def reject_dealer(dealer_id: int):
    payload = json_body()
    dealer = dealer_service.reject_dealer(dealer_id, g.current_admin.id, payload.get("reason"))
    return {"message": "Dealer rejected", "dealer": dealer.to_dict()}


@admin_bp.patch("/dealers/<int:dealer_id>/status")
@require_admin
def update_dealer_status(dealer_id: int):
    """Body: {"is_active": bool}"""
    payload = json_body()
    if "is_active" not in payload:
        raise ValidationError("is_active is required")
    dealer = dealer_service.set_dealer_active(dealer_id, payload["is_active"])
    return {"dealer": dealer.to_dict()}


# ---------------------------------------------------------------------------
# Enquiries
# ---------------------------------------------------------------------------

@admin_bp.get("/enquiries")
@require_admin
def list_enquiries():
    """
    Query params: status, dealer_id, date_from, date_to, page, per_page
    """
    return enquiry_service.list_enquiries(
        status=request.args.get("status"),
        dealer_id=request.args.get("dealer_id", type=int),
        **date_window(),
        **page_args(),
    )


@admin_bp.get("/enquiries/statistics")
@require_admin
def enquiry_statistics():
    return reporting_service.enquiry_statistics(**date_window())


@admin_bp.get("/enquiries/<int:enquiry_id>")
@require_admin
def get_enquiry(enquiry_id: int):
    return {"enquiry": enquiry_service.get_enquiry(enquiry_id).to_dict()}


_DISPOSITIONS = {
    "process": enquiry_service.start_processing,
    "approve": enquiry_service.approve_enquiry,
    "reject": enquiry_service.reject_enquiry,
    "close": enquiry_service.close_enquiry,
}


@admin_bp.post("/enquiries/<int:enquiry_id>/<action>")
@require_admin
def dispose_enquiry(enquiry_id: int, action: str):
    """POST /enquiries/<id>/{process|approve|reject|close}, body: {"admin_notes"?}"""
    handler = _DISPOSITIONS.get(action)
    if handler is None:
        raise ValidationError(f"Unknown action '{action}'")
    enquiry = handler(enquiry_id, g.current_admin.id, json_body().get("admin_notes"))
    return {"enquiry": enquiry.to_dict()}


@admin_bp.patch("/enquiries/<int:enquiry_id>/status")
@require_admin
def set_enquiry_status(enquiry_id: int):
    payload = json_body()
    if not payload.get("status"):
        raise ValidationError("status is required")
    enquiry = enquiry_service.set_status(
        enquiry_id, g.current_admin.id, payload["status"], payload.get("admin_notes")
    )
    return {"enquiry": enquiry.to_dict()}


@admin_bp.patch("/enquiries/<int:enquiry_id>")
@require_admin
def adjust_enquiry(enquiry_id: int):
    payload = json_body()
    enquiry = enquiry_service.adjust_enquiry(
        enquiry_id,
        g.current_admin.id,
        quantity=payload.get("quantity"),
        price_cents=payload.get("price_cents"),
    )
    return {"enquiry": enquiry.to_dict()}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@admin_bp.get("/products")
@require_admin
def list_products():
    return products_service.list_products(
        category=request.args.get("category"),
        search=request.args.get("search"),
        include_inactive=True,
        **page_args(),
    )


@admin_bp.post("/products")
@require_admin
def create_product():
    product = products_service.create_product(payload=json_body(), admin_id=g.current_admin.id)
    return {"product": product.to_dict()}, 201


@admin_bp.patch("/products/<int:product_id>")
@require_admin
def update_product(product_id: int):
    product = products_service.update_product(product_id, payload=json_body())
    return {"product": product.to_dict()}


@admin_bp.delete("/products/<int:product_id>")
@require_admin
def delete_product(product_id: int):
    product = products_service.deactivate_product(product_id)
    return {"message": "Product deactivated", "product": product.to_dict()}


# ---------------------------------------------------------------------------
# Admin accounts
# ---------------------------------------------------------------------------

@admin_bp.post("/admins")
@require_super_admin
def create_admin():
    payload = json_body()
    admin = admin_service.create_admin(
        actor_id=g.current_admin.id,
        username=payload.get("username"),
        email=payload.get("email"),
        password=payload.get("password"),
        role=payload.get("role") or "admin",
    )
    return {"admin": admin.to_dict()}, 201


@admin_bp.get("/admins")
@require_super_admin
def list_admins():
    admins = admin_service.list_admins(actor_id=g.current_admin.id)
    return {"items": [a.to_dict() for a in admins], "count": len(admins)}


@admin_bp.patch("/admins/<int:admin_id>")
@require_super_admin
def update_admin(admin_id: int):
    admin = admin_service.update_admin(actor_id=g.current_admin.id, admin_id=admin_id, patch=json_body())
    return {"admin": admin.to_dict()}


@admin_bp.post("/change-password")
@require_admin
def change_password():
    payload = json_body()
    admin_service.change_admin_password(
        g.current_admin.id,
        payload.get("current_password"),
        payload.get("new_password"),
    )
    return {"message": "Password changed successfully"}
