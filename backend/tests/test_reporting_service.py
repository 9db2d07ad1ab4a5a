from datetime import date, datetime

import pytest

from posledger.services import reporting_service
from posledger.services.checkout_service import checkout
from posledger.services.reporting_service import ReportError


def _sell(cashier, product, quantity, when, **kwargs):
    return checkout(
        buyer_id=cashier.id,
        items=[{"product_id": product.id, "quantity": quantity}],
        occurred_at=when,
        **kwargs,
    )


class TestTodayDashboard:
    def test_metrics_for_one_day(self, db_session, cashier, make_product):
        tea = make_product("TEA", price_cents=1000, name="Tea")
        milk = make_product("MILK", price_cents=333, name="Milk")
        day = date(2026, 5, 4)

        _sell(cashier, tea, 1, datetime(2026, 5, 4, 9, 0))
        _sell(cashier, milk, 3, datetime(2026, 5, 4, 18, 0))
        _sell(cashier, tea, 4, datetime(2026, 5, 3, 23, 59))  # previous day

        dashboard = reporting_service.today_dashboard(day)

        metrics = dashboard["metrics"]
        assert dashboard["day"] == "2026-05-04"
        assert metrics["total_sales_cents"] == 1999
        assert metrics["transaction_count"] == 2
        assert metrics["avg_transaction_value_cents"] == 1000  # 999.5 rounds up
        assert metrics["top_product_name"] == "Milk"
        assert metrics["top_product"]["quantity"] == "3.000"
        assert [s["total_cents"] for s in dashboard["recent_sales"]] == [999, 1000]

    def test_empty_day(self, db_session):
        metrics = reporting_service.today_dashboard(date(2026, 1, 1))["metrics"]
        assert metrics["total_sales_cents"] == 0
        assert metrics["transaction_count"] == 0
        assert metrics["avg_transaction_value_cents"] == 0
        assert metrics["top_product"] is None


class TestSalesRangeReport:
    def test_summary_and_movements_in_range(self, db_session, cashier, make_product):
        p = make_product("P", price_cents=500, tax_rate_bps=1000)

        _sell(cashier, p, 2, datetime(2026, 6, 1, 10, 0), payment_split={"cash_cents": 1100})
        _sell(cashier, p, 1, datetime(2026, 6, 2, 10, 0), discount_cents=100, payment_split={"card_cents": 450})
        _sell(cashier, p, 1, datetime(2026, 6, 9, 10, 0))

        report = reporting_service.sales_range_report(start="2026-06-01T00:00:00Z", end="2026-06-02T23:59:59Z")

        assert report["start"] == "2026-06-01T00:00:00Z"
        assert report["summary"] == {
            "transaction_count": 2,
            "subtotal_cents": 1500,
            "tax_cents": 150,
            "discount_cents": 100,
            "total_cents": 1550,
            "cash_cents": 1100,
            "card_cents": 450,
            "other_cents": 0,
        }
        assert len(report["movements"]) == 2
        # newest first
        assert report["sales"][0]["occurred_at"] == "2026-06-02T10:00:00Z"

    def test_open_ended_range(self, db_session, cashier, make_product):
        p = make_product("P")
        _sell(cashier, p, 1, datetime(2026, 6, 1, 10, 0))
        assert reporting_service.sales_range_report(start=None, end=None)["summary"]["transaction_count"] == 1

    @pytest.mark.parametrize(
        "start,end",
        [("not-a-date", None), ("2026-06-02", "2026-06-01")],
    )
    def test_bad_range(self, db_session, start, end):
        with pytest.raises(ReportError):
            reporting_service.sales_range_report(start=start, end=end)
