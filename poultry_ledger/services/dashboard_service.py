"""
Dashboard service.
Aggregates sales, cash and debt figures for the overview screen.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from poultry_ledger.domain.catalog import STATUS_IN, stock_status
from poultry_ledger.domain.records import ZERO, SaleType, money
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.time_utils import ensure_utc, utcnow

RETAIL_BUCKET = 'Retail'


def _day_bounds(now: datetime):
    start = ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def get_dashboard_summary(session, now: Optional[datetime] = None, start_dt: Optional[datetime] = None,
                          end_dt: Optional[datetime] = None) -> dict:
    """
    Get the dashboard figures.

    Args:
        session: SQLAlchemy session
        now: reference time (defaults to the current UTC time)
        start_dt: start of "today" (inclusive), defaults to UTC midnight
        end_dt: end of "today" (exclusive)

    Returns:
        dict with keys:
            - total_revenue: sum of order totals
            - cash_in: sum of amounts actually applied to orders
            - total_debt: sum of outstanding debt
            - total_orders: int
            - today_revenue: order totals inside [start_dt, end_dt)
            - low_stock_count: products at or below their threshold
            - top_product: best seller by head count (or None)
            - sales_breakdown: retail bucket plus one entry per agency, largest first
            - category_revenue: list-price revenue per product category
    """
    now = now or utcnow()
    if start_dt is None or end_dt is None:
        start_dt, end_dt = _day_bounds(now)

    snapshot = LedgerStore(session).read_snapshot()
    orders = snapshot.orders

    total_revenue = sum((order.total for order in orders), ZERO)
    cash_in = sum((order.paid_amount for order in orders), ZERO)
    total_debt = sum((order.debt for order in orders), ZERO)
    today_revenue = sum(
        (order.total for order in orders if start_dt <= ensure_utc(order.date) < end_dt), ZERO
    )

    sold = {}
    names = {}
    category_revenue = {}
    breakdown = {RETAIL_BUCKET: ZERO}
    for order in orders:
        if order.sale_type == SaleType.AGENCY:
            breakdown[order.customer_name] = breakdown.get(order.customer_name, ZERO) + order.total
        else:
            breakdown[RETAIL_BUCKET] += order.total
        for item in order.items:
            sold[item.product_id] = sold.get(item.product_id, 0) + item.quantity
            names[item.product_id] = item.name
            category_revenue[item.category] = category_revenue.get(item.category, ZERO) + item.line_total

    top_product = None
    if sold:
        product_id = max(sold, key=lambda pid: sold[pid])
        top_product = {'product_id': product_id, 'name': names[product_id], 'quantity': sold[product_id]}

    return {
        'total_revenue': total_revenue,
        'cash_in': cash_in,
        'total_debt': total_debt,
        'total_orders': len(orders),
        'today_revenue': today_revenue,
        'low_stock_count': sum(1 for product in snapshot.products if stock_status(product) != STATUS_IN),
        'top_product': top_product,
        'sales_breakdown': sorted(
            ({'name': name, 'value': value} for name, value in breakdown.items()),
            key=lambda entry: entry['value'], reverse=True,
        ),
        'category_revenue': {category: money(value) for category, value in category_revenue.items()},
    }


def serialize_summary(summary: dict) -> dict:
    """Decimals as strings for JSON."""
    def _convert(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, dict):
            return {key: _convert(inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_convert(inner) for inner in value]
        return value
    return _convert(summary)
