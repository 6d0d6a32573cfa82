# Overview: Dashboards and statistics for dealers and admins.

"""
Reporting Service

WHY: All aggregation happens in SQL (GROUP BY) so dashboards stay cheap as
tables grow. Monthly buckets use strftime("%Y-%m"), which SQLite supports
natively.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import NotFound
from ..extensions import db
from ..models import Dealer, DEALER_STATUSES, Enquiry, ENQUIRY_STATUSES, Product


def _counts_by(column, statuses, *criteria) -> dict:
    rows = (
        db.session.query(column, func.count())
        .filter(*criteria)
        .group_by(column)
        .all()
    )
    found = dict(rows)
    counts = {status: found.get(status, 0) for status in statuses}
    counts["total"] = sum(counts.values())
    return counts


def _window(column, date_from: datetime | None, date_to: datetime | None) -> list:
    criteria = []
    if date_from is not None:
        criteria.append(column >= date_from)
    if date_to is not None:
        criteria.append(column <= date_to)
    return criteria


def _by_month(column, *criteria) -> list[dict]:
    period = func.strftime("%Y-%m", column)
    rows = (
        db.session.query(period.label("period"), func.count().label("count"))
        .filter(*criteria)
        .group_by(period)
        .order_by(period)
        .all()
    )
    return [{"period": r.period, "count": r.count} for r in rows]


def _recent_enquiries(*criteria, limit: int = 5) -> list[dict]:
    rows = (
        db.session.query(Enquiry)
        .filter(*criteria)
        .order_by(Enquiry.created_at.desc(), Enquiry.id.desc())
        .limit(limit)
        .all()
    )
    return [e.to_dict() for e in rows]


def dealer_dashboard(dealer_id: int) -> dict:
    """Account flags and enquiry counts per status for one dealer, plus their latest enquiries."""
    dealer = db.session.get(Dealer, dealer_id)
    if dealer is None:
        raise NotFound("Dealer not found")
    mine = Enquiry.dealer_id == dealer_id
    total_value = (
        db.session.query(func.coalesce(func.sum(Enquiry.total_amount_cents), 0))
        .filter(mine)
        .scalar()
    )
    return {
        "account_status": dealer.account_status,
        "is_first_time_user": dealer.is_first_time_user,
        "enquiries": _counts_by(Enquiry.status, ENQUIRY_STATUSES, mine),
        "total_enquiry_value_cents": int(total_value or 0),
        "recent_enquiries": _recent_enquiries(mine),
    }


def dealer_statistics(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    criteria = _window(Dealer.created_at, date_from, date_to)
    return {
        "by_status": _counts_by(Dealer.account_status, DEALER_STATUSES, *criteria),
        "inactive": db.session.query(func.count(Dealer.id)).filter(Dealer.is_active.is_(False), *criteria).scalar(),
        "by_month": _by_month(Dealer.created_at, *criteria),
    }


def enquiry_statistics(*, date_from: datetime | None = None, date_to: datetime | None = None) -> dict:
    """
    Enquiry counts by status, by product category and by month.

    Category comes from the live product row (the enquiry only snapshots
    code, name and color).
    """
    criteria = _window(Enquiry.created_at, date_from, date_to)

    category_rows = (
        db.session.query(
            Product.category,
            func.count(Enquiry.id),
            func.coalesce(func.sum(Enquiry.total_amount_cents), 0),
        )
        .join(Product, Product.id == Enquiry.product_id)
        .filter(*criteria)
        .group_by(Product.category)
        .order_by(func.count(Enquiry.id).desc())
        .all()
    )

    return {
        "by_status": _counts_by(Enquiry.status, ENQUIRY_STATUSES, *criteria),
        "by_category": [
            {"category": category, "count": count, "total_amount_cents": int(amount)}
            for category, count, amount in category_rows
        ],
        "by_month": _by_month(Enquiry.created_at, *criteria),
    }


def admin_dashboard() -> dict:
    recent_dealers = (
        db.session.query(Dealer)
        .order_by(Dealer.created_at.desc(), Dealer.id.desc())
        .limit(5)
        .all()
    )
    active_products = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar()
    total_products = db.session.query(func.count(Product.id)).scalar()
    return {
        "dealers": _counts_by(Dealer.account_status, DEALER_STATUSES),
        "products": {
            "total": total_products,
            "active": active_products,
            "inactive": total_products - active_products,
        },
        "enquiries": _counts_by(Enquiry.status, ENQUIRY_STATUSES),
        "recent_dealers": [d.to_dict() for d in recent_dealers],
        "recent_enquiries": _recent_enquiries(),
    }
