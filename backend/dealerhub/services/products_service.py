# Overview: Catalog reads for everyone and catalog writes for admins.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateEntity, NotFound, ValidationError
from ..extensions import db
from ..models import Product, PRODUCT_CATEGORIES
from ..pagination import paginate
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_code", "product_name", "category", "description", "price_cents",
        "colors", "images", "specifications", "warranty", "stock_quantity", "is_active",
    },
    required_on_create={"product_code", "product_name", "category", "price_cents"},
)


def _validated(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    if "images" in patch and not isinstance(patch["images"], list):
        raise ValidationError("images must be a list")
    if "specifications" in patch and patch["specifications"] is not None:
        if not isinstance(patch["specifications"], dict):
            raise ValidationError("specifications must be an object")
    return patch


def list_products(
    *,
    category: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    include_inactive: bool = False,
) -> dict:
    """
    List catalog products.

    Public callers see active products only; admins pass include_inactive=True.
    search matches product name, code or description (case-insensitive).
    """
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.product_name.ilike(like),
            Product.product_code.ilike(like),
            Product.description.ilike(like),
        ))
    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_product(product_id: int, *, include_inactive: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or (not product.is_active and not include_inactive):
        raise NotFound("Product not found")
    return product


def list_categories() -> list[dict]:
    """Every category with the number of active products in it."""
    counts = dict(
        db.session.query(Product.category, db.func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .all()
    )
    return [{"name": name, "product_count": counts.get(name, 0)} for name in PRODUCT_CATEGORIES]


def create_product(*, payload: dict, admin_id: int | None = None) -> Product:
    patch = _validated(payload, partial=False)
    product = Product(**patch, created_by_admin_id=admin_id)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEntity("Product code already exists", fields=["product_code"])
    return product


def update_product(product_id: int, *, payload: dict) -> Product:
    product = get_product(product_id, include_inactive=True)
    patch = _validated(payload, partial=True)
    for key, value in patch.items():
        setattr(product, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateEntity("Product code already exists", fields=["product_code"])
    return product


def deactivate_product(product_id: int) -> Product:
    """Soft delete. Enquiries keep pointing at the row."""
    product = get_product(product_id, include_inactive=True)
    product.is_active = False
    db.session.commit()
    return product
