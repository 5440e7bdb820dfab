"""Cart pricing: subtotal, per-channel discount and the draft order handed to settlement."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from poultry_ledger.domain.records import (
    HUNDRED, ZERO, CartItem, Customer, CustomerType, Order, SaleType, money,
)
from poultry_ledger.time_utils import utcnow

INTERNAL_NOTE = 'Internal use / gift'


def cart_subtotal(items: Iterable[CartItem]) -> Decimal:
    """Sum of line totals before any discount."""
    return money(sum((item.line_total for item in items), ZERO))


def discount_rate_for(sale_type: SaleType, customer: Optional[Customer]) -> Decimal:
    """
    Percentage recorded on the order for audit.

    Internal orders are a full giveaway (100). Agency orders use the
    customer's own rate. Everything else pays list price.
    """
    if sale_type == SaleType.INTERNAL:
        return HUNDRED
    if sale_type == SaleType.AGENCY and customer is not None and customer.type == CustomerType.AGENCY:
        return Decimal(customer.discount_rate)
    return ZERO


def order_total(subtotal: Decimal, sale_type: SaleType, discount_rate: Decimal = ZERO) -> Decimal:
    """
    Post-discount total.

    internal -> 0 whatever the cart holds
    agency   -> subtotal * (100 - rate) / 100
    retail   -> subtotal
    """
    if sale_type == SaleType.INTERNAL:
        return money(ZERO)
    if sale_type == SaleType.AGENCY:
        return money(subtotal * (HUNDRED - Decimal(discount_rate)) / HUNDRED)
    return money(subtotal)


def build_draft_order(
    order_id: str,
    items: Iterable[CartItem],
    customer_name: str,
    sale_type: SaleType,
    tendered: Decimal,
    customer: Optional[Customer] = None,
    now: Optional[datetime] = None,
    note: Optional[str] = None,
) -> Order:
    """
    Build the proposed order for settle().

    `paid_amount` carries the raw cash tendered; settlement splits it.
    `debt` is provisional (total - tendered, floored at 0) and gets
    recomputed by the engine.
    """
    items = tuple(items)
    rate = discount_rate_for(sale_type, customer)
    total = order_total(cart_subtotal(items), sale_type, rate)
    tendered = money(tendered)

    if note is None and sale_type == SaleType.INTERNAL:
        note = INTERNAL_NOTE

    return Order(
        id=order_id,
        date=now or utcnow(),
        items=items,
        total=total,
        customer_name=customer.name if customer is not None else customer_name.strip(),
        customer_id=customer.id if customer is not None else None,
        sale_type=sale_type,
        paid_amount=tendered,
        debt=max(ZERO, total - tendered),
        discount_applied=rate,
        note=note or '',
    )
