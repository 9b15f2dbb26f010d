import pytest
from types import SimpleNamespace

from tailor_ops.core.exceptions import NotFound
from tailor_ops.core.schemas import FinancialSummary, format_cents
from tailor_ops.services.financials import summarize


def test_summarize_sums_price_and_payout():
    items = [
        SimpleNamespace(price=1000, tailor_payout=400),
        SimpleNamespace(price=500, tailor_payout=200),
    ]

    summary = summarize(items)

    assert summary == FinancialSummary(customer_total=1500, tailor_payout_total=600, net_profit=900)


def test_summarize_treats_missing_values_as_zero():
    summary = summarize([SimpleNamespace(price=None, tailor_payout=None), SimpleNamespace(price=700, tailor_payout=None)])

    assert summary.customer_total == 700
    assert summary.tailor_payout_total == 0
    assert summary.net_profit == 700


def test_summarize_empty():
    assert summarize([]) == FinancialSummary()


def test_net_profit_can_be_negative():
    summary = summarize([SimpleNamespace(price=300, tailor_payout=1000)])
    assert summary.net_profit == -700
    assert summary.net_profit_display == "-$7.00"


@pytest.mark.parametrize("cents,expected", [
    (0, "$0.00"),
    (None, "$0.00"),
    (5, "$0.05"),
    (1550, "$15.50"),
    (123456789, "$1,234,567.89"),
    (-250, "-$2.50"),
])
def test_format_cents(cents, expected):
    assert format_cents(cents) == expected


class TestFinancialService:

    def test_order_summary(self, financials, make_order, finish_item):
        order = make_order(names=["Jacket", "Trousers"], prices=[1000, 500])
        jacket, trousers = order.items
        finish_item(jacket.id, payout=400)
        finish_item(trousers.id, payout=200)

        summary = financials.get_financial_summary(order.id)

        assert summary.customer_total == 1500
        assert summary.tailor_payout_total == 600
        assert summary.net_profit == 900
        assert summary.customer_total_display == "$15.00"

    def test_order_without_payouts(self, financials, make_order):
        order = make_order(names=["Jacket", "Shirt"], prices=[1000, None], start=False)

        summary = financials.get_financial_summary(order.id)

        assert summary == FinancialSummary(customer_total=1000, tailor_payout_total=0, net_profit=1000)

    def test_item_financials(self, financials, make_order, finish_item):
        order = make_order(prices=[4500])
        finish_item(order.items[0].id, payout=2000)

        summary = financials.get_item_financials(order.items[0].id)

        assert summary.net_profit == 2500
        assert summary.net_profit_display == "$25.00"

    def test_payout_update_is_reflected(self, financials, lifecycle, make_order, finish_item):
        order = make_order(prices=[4500])
        finish_item(order.items[0].id, payout=2000)
        lifecycle.update_payout(order.items[0].id, 2500)

        assert financials.get_financial_summary(order.id).net_profit == 2000

    def test_unknown_order(self, financials):
        with pytest.raises(NotFound):
            financials.get_financial_summary(12345)

    def test_unknown_item(self, financials):
        with pytest.raises(NotFound):
            financials.get_item_financials(12345)
