"""
Dashboard and statistics aggregation.
"""

from datetime import timedelta

from dealerhub.services import dealer_service, enquiry_service, reporting_service
from dealerhub.time_utils import utcnow


def _seed(dealer, product, admin):
    first = enquiry_service.create_enquiry(dealer_id=dealer.id, product_id=product.id, quantity=2)
    enquiry_service.create_enquiry(dealer_id=dealer.id, product_id=product.id, quantity=3)
    enquiry_service.approve_enquiry(first.id, admin.id)


class TestDealerDashboard:

    def test_counts_and_value(self, app, admin, dealer, product):
        _seed(dealer, product, admin)
        board = reporting_service.dealer_dashboard(dealer.id)
        assert board["account_status"] == "approved"
        assert board["is_first_time_user"] is True
        assert board["enquiries"]["pending"] == 1
        assert board["enquiries"]["approved"] == 1
        assert board["enquiries"]["closed"] == 0
        assert board["enquiries"]["total"] == 2
        assert board["total_enquiry_value_cents"] == 5 * 25000
        assert len(board["recent_enquiries"]) == 2

    def test_only_own_enquiries(self, app, admin, make_dealer, dealer, product):
        _seed(dealer, product, admin)
        other = make_dealer()
        board = reporting_service.dealer_dashboard(other.id)
        assert board["enquiries"]["total"] == 0
        assert board["total_enquiry_value_cents"] == 0
        assert board["recent_enquiries"] == []


class TestAdminReports:

    def test_admin_dashboard(self, app, admin, make_dealer, dealer, product):
        _seed(dealer, product, admin)
        make_dealer(verified=False, status="pending")

        board = reporting_service.admin_dashboard()
        assert board["dealers"]["approved"] == 1
        assert board["dealers"]["pending"] == 1
        assert board["dealers"]["total"] == 2
        assert board["products"] == {"total": 1, "active": 1, "inactive": 0}
        assert board["enquiries"]["total"] == 2
        assert len(board["recent_dealers"]) == 2

    def test_dealer_statistics(self, app, make_dealer, dealer):
        make_dealer(status="rejected")
        dealer_service.set_dealer_active(dealer.id, False)

        stats = reporting_service.dealer_statistics()
        assert stats["by_status"]["approved"] == 1
        assert stats["by_status"]["rejected"] == 1
        assert stats["inactive"] == 1
        assert stats["by_month"] == [{"period": utcnow().strftime("%Y-%m"), "count": 2}]

    def test_enquiry_statistics_by_category(self, app, admin, dealer, product):
        _seed(dealer, product, admin)
        stats = reporting_service.enquiry_statistics()
        assert stats["by_category"] == [{"category": "Chair", "count": 2, "total_amount_cents": 125000}]
        assert stats["by_status"]["approved"] == 1

    def test_enquiry_statistics_window(self, app, admin, dealer, product):
        _seed(dealer, product, admin)
        stats = reporting_service.enquiry_statistics(date_to=utcnow() - timedelta(days=1))
        assert stats["by_status"]["total"] == 0
        assert stats["by_category"] == []
        assert stats["by_month"] == []

    def test_statistics_endpoint(self, client, admin_headers, admin, dealer, product):
        _seed(dealer, product, admin)
        resp = client.get("/api/admin/enquiries/statistics?date_from=2000-01-01", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["by_status"]["total"] == 2
