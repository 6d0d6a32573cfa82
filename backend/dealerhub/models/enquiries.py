from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

ENQUIRY_STATUSES = ("pending", "under_process", "approved", "rejected", "closed")


class Enquiry(db.Model):
    """
    A dealer's request for a quantity of one product.

    Product and dealer details are snapshotted at creation so the enquiry
    still reads correctly after either side is edited.

    INVARIANT: total_amount_cents == quantity * price_cents. The ORM keeps it
    in sync through the validator below and the CHECK constraint rejects any
    write that breaks it, including bulk UPDATEs.
    """
    __tablename__ = "enquiries"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'under_process', 'approved', 'rejected', 'closed')",
            name="ck_enquiries_status",
        ),
        db.CheckConstraint("quantity > 0", name="ck_enquiries_quantity_positive"),
        db.CheckConstraint("price_cents >= 0", name="ck_enquiries_price_non_negative"),
        db.CheckConstraint("total_amount_cents = quantity * price_cents", name="ck_enquiries_total"),
        db.Index("ix_enquiries_dealer_created", "dealer_id", "created_at"),
        db.Index("ix_enquiries_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    dealer_id = db.Column(db.Integer, db.ForeignKey("dealers.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Product snapshot
    product_code = db.Column(db.String(32), nullable=False)
    product_name = db.Column(db.String(100), nullable=False)
    product_color = db.Column(db.String(64), nullable=True)

    # Dealer snapshot
    dealer_company_name = db.Column(db.String(100), nullable=False)
    dealer_contact_person = db.Column(db.String(50), nullable=False)
    dealer_mobile = db.Column(db.String(10), nullable=False)
    dealer_email = db.Column(db.String(255), nullable=False)
    dealer_gst = db.Column(db.String(15), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    remarks = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending")
    admin_notes = db.Column(db.String(500), nullable=True)

    processed_by_admin_id = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    confirmation_sent_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    dealer = db.relationship("Dealer")
    product = db.relationship("Product")

    @validates("quantity", "price_cents")
    def _sync_total(self, key, value):
        quantity = value if key == "quantity" else self.quantity
        price_cents = value if key == "price_cents" else self.price_cents
        if quantity is not None and price_cents is not None:
            self.total_amount_cents = quantity * price_cents
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dealer_id": self.dealer_id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "product_color": self.product_color,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_amount_cents": self.total_amount_cents,
            "remarks": self.remarks,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "processed_by_admin_id": self.processed_by_admin_id,
            "processed_at": to_utc_z(self.processed_at),
            "confirmation_sent_at": to_utc_z(self.confirmation_sent_at),
            "dealer_info": {
                "company_name": self.dealer_company_name,
                "contact_person_name": self.dealer_contact_person,
                "mobile": self.dealer_mobile,
                "email": self.dealer_email,
                "gst": self.dealer_gst,
            },
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
