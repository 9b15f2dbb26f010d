"""
Financial rollups over an order's items, in integer cents.
"""

import logging
from typing import Any, Iterable

from ..core.schemas import FinancialSummary
from .database import DatabaseManager
from .store import EntityStore

logger = logging.getLogger(__name__)


def summarize(items: Iterable[Any]) -> FinancialSummary:
    """Sum quoted prices and payouts; unquoted values count as zero."""
    customer_total = 0
    payout_total = 0
    for item in items:
        customer_total += item.price or 0
        payout_total += item.tailor_payout or 0
    return FinancialSummary(
        customer_total=customer_total,
        tailor_payout_total=payout_total,
        net_profit=customer_total - payout_total,
    )


class FinancialService:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_financial_summary(self, order_id: int) -> FinancialSummary:
        with self.db.session_scope() as session:
            order = EntityStore(session).require_order(order_id)
            summary = summarize(order.items)
        logger.debug(f"Order {order_id} totals: {summary.model_dump()}")
        return summary

    def get_item_financials(self, item_id: int) -> FinancialSummary:
        with self.db.session_scope() as session:
            return summarize([EntityStore(session).require_item(item_id)])
