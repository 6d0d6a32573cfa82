from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

PRODUCT_CATEGORIES = (
    "Chair",
    "Table",
    "Kids Chair & Table",
    "Set of Table & Chair",
    "3 Year Warranty Chair",
)

DEFAULT_WARRANTY = "3 Year Warranty"


class Product(db.Model):
    """
    Catalog item dealers can enquire about.

    WHY: Prices are integer paise (price_cents) so enquiry totals are exact.
    Products are never hard-deleted; deactivation hides them from the public
    catalog while keeping enquiry history joinable.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_code", name="uq_products_product_code"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(500), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    colors = db.Column(db.JSON, nullable=False, default=list)
    images = db.Column(db.JSON, nullable=False, default=list)
    specifications = db.Column(db.JSON, nullable=False, default=dict)
    warranty = db.Column(db.String(64), nullable=False, default=DEFAULT_WARRANTY)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "category": self.category,
            "description": self.description,
            "price_cents": self.price_cents,
            "colors": list(self.colors or []),
            "images": list(self.images or []),
            "specifications": dict(self.specifications or {}),
            "warranty": self.warranty,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "created_by_admin_id": self.created_by_admin_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
