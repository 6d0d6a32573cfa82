# Overview: Enquiry creation, admin disposition, and dealer/admin enquiry reads.

"""
Enquiry Lifecycle Service

================================================================================
STATE MACHINE:
    pending -> under_process -> approved | rejected
    pending -> approved | rejected          (decide without a processing step)
    pending | under_process -> closed

    approved, rejected and closed are terminal dispositions.
================================================================================

RULES:
1. Only approved, active dealers can create enquiries
2. The product must exist and be active at creation time
3. quantity > 0, price >= 0 (price defaults to the catalog price)
4. total_amount_cents is always quantity * price_cents
5. Every transition is a conditional UPDATE that restates its precondition.
   Two admins racing (approve vs reject) on the same enquiry: exactly one
   wins, the other gets StaleState.

ENQUIRY_STATUS_POLICY (config):
- permissive: set_status accepts any status, guarded only against the row
  having changed since it was read
- strict:     set_status follows the edges above
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import (
    AlreadyInState,
    NotApproved,
    NotFound,
    PermissionDenied,
    StaleState,
    ValidationError,
)
from ..extensions import db
from ..models import Dealer, Enquiry, ENQUIRY_STATUSES, Product
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import enforce_rules_enquiry_amounts, coerce_int
from . import notification_service
from .concurrency import conditional_update, run_with_retry

VALID_STATUSES = set(ENQUIRY_STATUSES)
OPEN_STATUSES = ("pending", "under_process")
TERMINAL_STATUSES = ("approved", "rejected", "closed")

ALLOWED_TRANSITIONS = {
    "pending": {"under_process", "approved", "rejected", "closed"},
    "under_process": {"approved", "rejected", "closed"},
    "approved": set(),
    "rejected": set(),
    "closed": set(),
}

MAX_NOTES_LENGTH = 500


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ENQUIRY_STATUSES)}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    notes = str(notes).strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"admin_notes exceeds max length {MAX_NOTES_LENGTH}")
    return notes or None


def _get_enquiry(enquiry_id: int) -> Enquiry:
    enquiry = db.session.get(Enquiry, enquiry_id)
    if enquiry is None:
        raise NotFound("Enquiry not found")
    return enquiry


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_enquiry(
    *,
    dealer_id: int,
    product_id,
    quantity,
    price_cents=None,
    color: str | None = None,
    remarks: str | None = None,
) -> Enquiry:
    """
    Open a pending enquiry for ``dealer_id``.

    Dealer and product details are copied onto the enquiry. A confirmation
    email is sent after commit; its failure does not undo the enquiry.

    Raises:
        NotFound: dealer missing, or product missing/inactive
        NotApproved: dealer is not approved
        PermissionDenied: dealer is deactivated
        ValidationError: bad quantity, price or color
    """
    dealer = db.session.get(Dealer, dealer_id)
    if dealer is None:
        raise NotFound("Dealer not found")
    if dealer.account_status != "approved":
        raise NotApproved("Only approved dealers can create enquiries", account_status=dealer.account_status)
    if not dealer.is_active:
        raise PermissionDenied("Dealer account is inactive")

    if product_id is None:
        raise ValidationError("product_id is required")
    product = db.session.get(Product, coerce_int(product_id, "product_id"))
    if product is None or not product.is_active:
        raise NotFound("Product not found or not available")

    qty, price = enforce_rules_enquiry_amounts(
        quantity, product.price_cents if price_cents is None else price_cents
    )

    if color is not None:
        color = str(color).strip() or None
    if color and product.colors and color not in product.colors:
        raise ValidationError(f"color must be one of: {', '.join(product.colors)}")

    if remarks is not None:
        remarks = str(remarks).strip() or None
        if remarks and len(remarks) > 500:
            raise ValidationError("remarks exceeds max length 500")

    enquiry = Enquiry(
        dealer_id=dealer.id,
        product_id=product.id,
        product_code=product.product_code,
        product_name=product.product_name,
        product_color=color,
        quantity=qty,
        price_cents=price,
        remarks=remarks,
        status="pending",
        **dealer.snapshot(),
    )
    db.session.add(enquiry)
    db.session.commit()
    current_app.logger.info("Enquiry %s created by dealer %s", enquiry.id, dealer.id)

    if notification_service.notify_enquiry_created(enquiry):
        enquiry.confirmation_sent_at = utcnow()
        db.session.commit()
    return enquiry


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _transition_values(admin_id: int, target: str, notes: str | None) -> dict:
    now = utcnow()
    values = {
        Enquiry.status: target,
        Enquiry.processed_by_admin_id: admin_id,
        Enquiry.processed_at: now,
        Enquiry.updated_at: now,
    }
    if notes is not None:
        values[Enquiry.admin_notes] = notes
    return values


def _apply(criteria: list, values: dict) -> bool:
    def _op():
        matched = conditional_update(Enquiry, criteria, values)
        db.session.commit()
        return matched
    return run_with_retry(_op)


def _dispose(enquiry_id: int, admin_id: int, target: str, allowed_from: tuple, notes: str | None) -> Enquiry:
    _get_enquiry(enquiry_id)
    notes = _clean_notes(notes)

    won = _apply(
        [Enquiry.id == enquiry_id, Enquiry.status.in_(allowed_from)],
        _transition_values(admin_id, target, notes),
    )
    if not won:
        current = db.session.query(Enquiry.status).filter(Enquiry.id == enquiry_id).scalar()
        if current == target:
            raise AlreadyInState(f"Enquiry is already {target}")
        raise StaleState(
            f"Cannot mark enquiry as {target}: current status is '{current}'",
            status=current,
        )

    enquiry = _get_enquiry(enquiry_id)
    current_app.logger.info("Enquiry %s -> %s by admin %s", enquiry_id, target, admin_id)
    notification_service.notify_enquiry_status(enquiry)
    return enquiry


def start_processing(enquiry_id: int, admin_id: int, notes: str | None = None) -> Enquiry:
    return _dispose(enquiry_id, admin_id, "under_process", ("pending",), notes)


def approve_enquiry(enquiry_id: int, admin_id: int, notes: str | None = None) -> Enquiry:
    return _dispose(enquiry_id, admin_id, "approved", OPEN_STATUSES, notes)


def reject_enquiry(enquiry_id: int, admin_id: int, reason: str | None = None) -> Enquiry:
    """Optional reason is stored as admin_notes and included in the dealer email."""
    return _dispose(enquiry_id, admin_id, "rejected", OPEN_STATUSES, reason)


def close_enquiry(enquiry_id: int, admin_id: int, notes: str | None = None) -> Enquiry:
    return _dispose(enquiry_id, admin_id, "closed", OPEN_STATUSES, notes)


def set_status(enquiry_id: int, admin_id: int, new_status: str, notes: str | None = None) -> Enquiry:
    """
    Generic admin status edit.

    The UPDATE is conditioned on the status observed when the row was read,
    so an edit based on a stale view fails with StaleState instead of
    silently overwriting someone else's decision.
    """
    validate_status(new_status)
    notes = _clean_notes(notes)
    enquiry = _get_enquiry(enquiry_id)
    observed = enquiry.status

    if current_app.config.get("ENQUIRY_STATUS_POLICY", "permissive") == "strict":
        if observed == new_status:
            raise AlreadyInState(f"Enquiry is already {new_status}")
        if not can_transition(observed, new_status):
            raise StaleState(
                f"Cannot move enquiry from '{observed}' to '{new_status}'",
                status=observed,
            )

    won = _apply(
        [Enquiry.id == enquiry_id, Enquiry.status == observed],
        _transition_values(admin_id, new_status, notes),
    )
    if not won:
        raise StaleState("Enquiry was modified by another request. Reload and retry.")

    enquiry = _get_enquiry(enquiry_id)
    current_app.logger.info("Enquiry %s %s -> %s by admin %s", enquiry_id, observed, new_status, admin_id)
    if observed != new_status:
        notification_service.notify_enquiry_status(enquiry)
    return enquiry


def adjust_enquiry(enquiry_id: int, admin_id: int, *, quantity=None, price_cents=None) -> Enquiry:
    """
    Change quantity and/or price of an open enquiry.

    The total is recomputed inside the same UPDATE; when only one factor is
    given the other is read from the row by the database.
    """
    if quantity is None and price_cents is None:
        raise ValidationError("quantity or price_cents is required")
    _get_enquiry(enquiry_id)

    values = {Enquiry.updated_at: utcnow()}
    if quantity is not None and price_cents is not None:
        qty, price = enforce_rules_enquiry_amounts(quantity, price_cents)
        values.update({Enquiry.quantity: qty, Enquiry.price_cents: price, Enquiry.total_amount_cents: qty * price})
    elif quantity is not None:
        qty, _ = enforce_rules_enquiry_amounts(quantity, 0)
        values.update({Enquiry.quantity: qty, Enquiry.total_amount_cents: qty * Enquiry.price_cents})
    else:
        _, price = enforce_rules_enquiry_amounts(1, price_cents)
        values.update({Enquiry.price_cents: price, Enquiry.total_amount_cents: Enquiry.quantity * price})

    won = _apply([Enquiry.id == enquiry_id, Enquiry.status.in_(OPEN_STATUSES)], values)
    if not won:
        current = db.session.query(Enquiry.status).filter(Enquiry.id == enquiry_id).scalar()
        raise StaleState(f"Only open enquiries can be adjusted (status is '{current}')", status=current)

    current_app.logger.info("Enquiry %s adjusted by admin %s", enquiry_id, admin_id)
    return _get_enquiry(enquiry_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_dealer_enquiries(dealer_id: int, *, status: str | None = None,
                          page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Enquiry).filter(Enquiry.dealer_id == dealer_id)
    if status:
        validate_status(status)
        query = query.filter(Enquiry.status == status)
    query = query.order_by(Enquiry.created_at.desc(), Enquiry.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_dealer_enquiry(dealer_id: int, enquiry_id: int) -> Enquiry:
    """A dealer can only see their own enquiries; others read as NotFound."""
    enquiry = db.session.get(Enquiry, enquiry_id)
    if enquiry is None or enquiry.dealer_id != dealer_id:
        raise NotFound("Enquiry not found")
    return enquiry


def list_enquiries(
    *,
    status: str | None = None,
    dealer_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Enquiry)
    if status:
        validate_status(status)
        query = query.filter(Enquiry.status == status)
    if dealer_id is not None:
        query = query.filter(Enquiry.dealer_id == dealer_id)
    if date_from is not None:
        query = query.filter(Enquiry.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Enquiry.created_at <= date_to)
    query = query.order_by(Enquiry.created_at.desc(), Enquiry.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_enquiry(enquiry_id: int) -> Enquiry:
    return _get_enquiry(enquiry_id)
