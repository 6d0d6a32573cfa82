"""
Enquiry lifecycle tests.

Verifies:
- Only approved dealers can enquire, only about active products
- total_amount_cents == quantity * price_cents, always
- Dispositions are conditional: AlreadyInState vs StaleState
- Racing approve/reject on one enquiry: exactly one wins
"""

import threading

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import TEST_CONFIG, RecordingBackend
from dealerhub import create_app
from dealerhub.errors import (
    AlreadyInState,
    NotApproved,
    NotFound,
    PermissionDenied,
    StaleState,
    ValidationError,
)
from dealerhub.extensions import db
from dealerhub.models import Admin, Dealer, Enquiry, Product
from dealerhub.services import dealer_service, enquiry_service, notification_service


def _enquiry(dealer, product, **kwargs):
    params = {"quantity": 3}
    params.update(kwargs)
    return enquiry_service.create_enquiry(dealer_id=dealer.id, product_id=product.id, **params)


class TestCreateEnquiry:

    def test_create_snapshots_and_total(self, app, dealer, product, outbox):
        enquiry = _enquiry(dealer, product, price_cents=25000, color="Red", remarks="Urgent")

        assert enquiry.status == "pending"
        assert enquiry.quantity == 3
        assert enquiry.price_cents == 25000
        assert enquiry.total_amount_cents == 75000
        assert enquiry.product_code == "CH-101"
        assert enquiry.product_name == "Classic Armless Chair"
        assert enquiry.product_color == "Red"
        assert enquiry.dealer_company_name == dealer.company_name
        assert enquiry.dealer_gst == dealer.gst
        assert enquiry.confirmation_sent_at is not None

        confirmation = outbox.emails_to(dealer.email)[-1]
        assert "Enquiry Confirmation" in confirmation["subject"]
        assert "Rs 750.00" in confirmation["body"]

    def test_price_defaults_to_catalog_price(self, app, dealer, product):
        enquiry = _enquiry(dealer, product, quantity="4")
        assert enquiry.price_cents == product.price_cents
        assert enquiry.total_amount_cents == 4 * product.price_cents

    def test_zero_price_allowed(self, app, dealer, product):
        enquiry = _enquiry(dealer, product, price_cents=0)
        assert enquiry.total_amount_cents == 0

    def test_snapshot_survives_product_edit(self, app, dealer, product):
        enquiry = _enquiry(dealer, product)
        product.product_name = "Renamed Chair"
        db.session.commit()
        assert db.session.get(Enquiry, enquiry.id).product_name == "Classic Armless Chair"

    def test_email_failure_keeps_enquiry(self, app, dealer, product, outbox):
        outbox.fail_email = True
        enquiry = _enquiry(dealer, product)
        assert enquiry.id is not None
        assert enquiry.confirmation_sent_at is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"quantity": 0},
            {"quantity": -2},
            {"quantity": 1.5},
            {"quantity": None},
            {"price_cents": -1},
            {"color": "Purple"},
        ],
    )
    def test_invalid_input(self, app, dealer, product, kwargs):
        with pytest.raises(ValidationError):
            _enquiry(dealer, product, **kwargs)
        assert db.session.query(Enquiry).count() == 0

    def test_pending_dealer_cannot_enquire(self, app, make_dealer, product):
        pending = make_dealer(status="pending")
        with pytest.raises(NotApproved):
            _enquiry(pending, product)

    def test_inactive_dealer_cannot_enquire(self, app, dealer, product):
        dealer_service.set_dealer_active(dealer.id, False)
        with pytest.raises(PermissionDenied):
            _enquiry(dealer, product)

    def test_inactive_product(self, app, dealer, product):
        product.is_active = False
        db.session.commit()
        with pytest.raises(NotFound):
            _enquiry(dealer, product)

    def test_unknown_product(self, app, dealer):
        with pytest.raises(NotFound):
            enquiry_service.create_enquiry(dealer_id=dealer.id, product_id=999, quantity=1)

    def test_total_cannot_drift_from_factors(self, app, dealer, product):
        enquiry = _enquiry(dealer, product)
        price = enquiry.price_cents
        enquiry.quantity = 10
        assert enquiry.total_amount_cents == 10 * price
        db.session.commit()

        with pytest.raises(IntegrityError):
            db.session.query(Enquiry).filter_by(id=enquiry.id).update(
                {Enquiry.total_amount_cents: 1}, synchronize_session=False
            )
        db.session.rollback()


class TestDisposition:

    def test_reject_then_approve_is_stale(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product, price_cents=25000)
        rejected = enquiry_service.reject_enquiry(enquiry.id, admin.id, "Out of stock")
        assert rejected.status == "rejected"
        assert rejected.admin_notes == "Out of stock"
        assert rejected.processed_by_admin_id == admin.id

        with pytest.raises(StaleState) as exc:
            enquiry_service.approve_enquiry(enquiry.id, admin.id)
        assert exc.value.details["status"] == "rejected"
        assert db.session.get(Enquiry, enquiry.id).status == "rejected"

    def test_reject_reason_is_recorded_and_emailed(self, app, admin, dealer, product, outbox):
        enquiry = _enquiry(dealer, product)
        rejected = enquiry_service.reject_enquiry(enquiry.id, admin.id, reason="Colour discontinued")
        assert rejected.admin_notes == "Colour discontinued"
        assert "Notes: Colour discontinued" in outbox.emails_to(dealer.email)[-1]["body"]

    def test_reject_without_reason(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        rejected = enquiry_service.reject_enquiry(enquiry.id, admin.id)
        assert rejected.status == "rejected"
        assert rejected.admin_notes is None

    def test_close_twice(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        enquiry_service.close_enquiry(enquiry.id, admin.id)
        with pytest.raises(AlreadyInState):
            enquiry_service.close_enquiry(enquiry.id, admin.id)

    def test_process_then_approve(self, app, admin, dealer, product, outbox):
        enquiry = _enquiry(dealer, product)
        assert enquiry_service.start_processing(enquiry.id, admin.id).status == "under_process"
        with pytest.raises(AlreadyInState):
            enquiry_service.start_processing(enquiry.id, admin.id)
        approved = enquiry_service.approve_enquiry(enquiry.id, admin.id, "Dispatch next week")
        assert approved.status == "approved"
        assert "approved" in outbox.emails_to(dealer.email)[-1]["body"]

    def test_notes_not_overwritten_when_omitted(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        enquiry_service.start_processing(enquiry.id, admin.id, "Checking stock")
        closed = enquiry_service.close_enquiry(enquiry.id, admin.id)
        assert closed.admin_notes == "Checking stock"

    def test_unknown_enquiry(self, app, admin):
        with pytest.raises(NotFound):
            enquiry_service.approve_enquiry(404, admin.id)

    def test_sequential_race_loser_sees_stale(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        enquiry_service.approve_enquiry(enquiry.id, admin.id)
        with pytest.raises(StaleState):
            enquiry_service.reject_enquiry(enquiry.id, admin.id)


class TestSetStatus:

    def test_permissive_allows_reopening(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        enquiry_service.close_enquiry(enquiry.id, admin.id)
        reopened = enquiry_service.set_status(enquiry.id, admin.id, "pending")
        assert reopened.status == "pending"

    def test_strict_follows_edges(self, app, admin, dealer, product):
        app.config["ENQUIRY_STATUS_POLICY"] = "strict"
        enquiry = _enquiry(dealer, product)
        enquiry_service.set_status(enquiry.id, admin.id, "under_process")
        with pytest.raises(AlreadyInState):
            enquiry_service.set_status(enquiry.id, admin.id, "under_process")
        enquiry_service.set_status(enquiry.id, admin.id, "approved")
        with pytest.raises(StaleState):
            enquiry_service.set_status(enquiry.id, admin.id, "pending")

    def test_invalid_status(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        with pytest.raises(ValidationError):
            enquiry_service.set_status(enquiry.id, admin.id, "shipped")

    def test_stale_observation_fails(self, app, admin, dealer, product, monkeypatch):
        enquiry = _enquiry(dealer, product)
        real_apply = enquiry_service._apply

        def apply_after_concurrent_edit(criteria, values):
            db.session.query(Enquiry).filter_by(id=enquiry.id).update(
                {Enquiry.status: "closed"}, synchronize_session=False
            )
            db.session.commit()
            return real_apply(criteria, values)

        monkeypatch.setattr(enquiry_service, "_apply", apply_after_concurrent_edit)
        with pytest.raises(StaleState):
            enquiry_service.set_status(enquiry.id, admin.id, "approved")
        assert db.session.get(Enquiry, enquiry.id).status == "closed"

    def test_can_transition_table(self):
        assert enquiry_service.can_transition("pending", "under_process")
        assert enquiry_service.can_transition("under_process", "closed")
        assert not enquiry_service.can_transition("approved", "rejected")
        assert not enquiry_service.can_transition("closed", "pending")


class TestAdjust:

    def test_adjust_quantity_recomputes_total(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product, price_cents=25000)
        adjusted = enquiry_service.adjust_enquiry(enquiry.id, admin.id, quantity=5)
        assert adjusted.quantity == 5
        assert adjusted.total_amount_cents == 125000

    def test_adjust_price_recomputes_total(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product, price_cents=25000)
        adjusted = enquiry_service.adjust_enquiry(enquiry.id, admin.id, price_cents=20000)
        assert adjusted.total_amount_cents == 60000

    def test_adjust_both(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        adjusted = enquiry_service.adjust_enquiry(enquiry.id, admin.id, quantity=2, price_cents=100)
        assert adjusted.total_amount_cents == 200

    def test_closed_enquiry_cannot_be_adjusted(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        enquiry_service.close_enquiry(enquiry.id, admin.id)
        with pytest.raises(StaleState):
            enquiry_service.adjust_enquiry(enquiry.id, admin.id, quantity=9)

    def test_adjust_requires_a_factor(self, app, admin, dealer, product):
        enquiry = _enquiry(dealer, product)
        with pytest.raises(ValidationError):
            enquiry_service.adjust_enquiry(enquiry.id, admin.id)
        with pytest.raises(ValidationError):
            enquiry_service.adjust_enquiry(enquiry.id, admin.id, quantity=0)


class TestReads:

    def test_dealer_sees_only_own_enquiries(self, app, make_dealer, product):
        mine = make_dealer()
        theirs = make_dealer()
        own = _enquiry(mine, product)
        other = _enquiry(theirs, product)

        listing = enquiry_service.list_dealer_enquiries(mine.id)
        assert [e["id"] for e in listing["items"]] == [own.id]
        assert enquiry_service.get_dealer_enquiry(mine.id, own.id).id == own.id
        with pytest.raises(NotFound):
            enquiry_service.get_dealer_enquiry(mine.id, other.id)

    def test_admin_filters_and_pagination(self, app, admin, make_dealer, product):
        first = make_dealer()
        second = make_dealer()
        a = _enquiry(first, product)
        _enquiry(first, product)
        _enquiry(second, product)
        enquiry_service.approve_enquiry(a.id, admin.id)

        assert enquiry_service.list_enquiries(status="approved")["count"] == 1
        assert enquiry_service.list_enquiries(dealer_id=first.id)["count"] == 2

        page = enquiry_service.list_enquiries(page=1, per_page=2)
        assert page["count"] == 2
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_next"] is True

    def test_list_rejects_unknown_status(self, app):
        with pytest.raises(ValidationError):
            enquiry_service.list_enquiries(status="lost")


class TestConcurrentDisposition:
    """Two admins act on the same pending enquiry at the same moment."""

    def test_exactly_one_of_approve_and_reject_wins(self, tmp_path):
        config = dict(TEST_CONFIG)
        config.update({
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.sqlite3'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
        })
        race_app = create_app(config)
        race_app.extensions[notification_service.EXTENSION_KEY] = RecordingBackend()

        with race_app.app_context():
            db.create_all()
            admin = Admin(username="racer", email="racer@example.com", role="admin", password="Secret1")
            product = Product(product_code="RACE-1", product_name="Race Chair", category="Chair", price_cents=1000)
            dealer = Dealer(
                company_name="Race Co", contact_person_name="Ravi", mobile="9999999999",
                email="race@example.com", address="1 Track Road", gst="27RACEX1234F1Z5",
                password="Secret1", account_status="approved",
                is_mobile_verified=True, is_email_verified=True,
            )
            db.session.add_all([admin, product, dealer])
            db.session.commit()
            enquiry = enquiry_service.create_enquiry(dealer_id=dealer.id, product_id=product.id, quantity=2)
            enquiry_id, admin_id = enquiry.id, admin.id
            db.session.remove()

        barrier = threading.Barrier(2)
        outcomes = {}

        def act(name, func):
            with race_app.app_context():
                barrier.wait()
                try:
                    func(enquiry_id, admin_id)
                    outcomes[name] = "won"
                except StaleState:
                    outcomes[name] = "stale"
                finally:
                    db.session.remove()

        threads = [
            threading.Thread(target=act, args=("approve", enquiry_service.approve_enquiry)),
            threading.Thread(target=act, args=("reject", enquiry_service.reject_enquiry)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(outcomes.values()) == ["stale", "won"]
        winner = next(name for name, result in outcomes.items() if result == "won")

        with race_app.app_context():
            final = db.session.get(Enquiry, enquiry_id).status
            assert final == {"approve": "approved", "reject": "rejected"}[winner]
            db.session.remove()
            db.drop_all()
