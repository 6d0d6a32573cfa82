# Overview: Public catalog routes; no authentication required.

from flask import Blueprint, request

from ..services import products_service
from .common import page_args

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    Query params:
    - category: exact category name
    - search: substring of name, code or description
    - page / per_page: optional pagination (default 20, max 100)
    """
    return products_service.list_products(
        category=request.args.get("category"),
        search=request.args.get("search"),
        **page_args(),
    )


@products_bp.get("/categories")
def list_categories():
    return {"categories": products_service.list_categories()}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    return {"product": products_service.get_product(product_id).to_dict()}
