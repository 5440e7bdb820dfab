"""
Settlement engine.

Splits the cash a customer hands over at checkout between:
    1. the new order,
    2. the customer's oldest unpaid orders (FIFO),
    3. change returned to the customer.

Pure and synchronous: the engine reads immutable records and returns new
ones. Persisting the result (atomically, together with the stock changes) is
the ledger store's job.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional, Tuple

from poultry_ledger.domain.records import (
    ZERO, Order, PaymentRecord, SaleType, check_order_invariants, money,
)
from poultry_ledger.time_utils import utcnow
from poultry_ledger.utils.formatters import money_vn, short_ref

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of one settle() call."""

    final_order: Order
    modified_old_orders: Tuple[Order, ...]
    tendered: Decimal
    applied_to_current: Decimal
    applied_to_old_debt: Decimal
    change: Decimal

    @property
    def orders_to_upsert(self) -> list:
        return [self.final_order, *self.modified_old_orders]

    def to_dict(self) -> dict:
        return {
            'final_order': self.final_order.to_dict(),
            'modified_old_orders': [order.to_dict() for order in self.modified_old_orders],
            'tendered': str(self.tendered),
            'applied_to_current': str(self.applied_to_current),
            'applied_to_old_debt': str(self.applied_to_old_debt),
            'change': str(self.change),
        }


def new_payment_id() -> str:
    return f'PAY-AUTO-{uuid.uuid4().hex[:12].upper()}'


def offset_payment_note(order_id: str) -> str:
    return f'Offset from new order #{short_ref(order_id)} ({order_id})'


def settlement_note(
    tendered: Decimal,
    applied_to_current: Decimal,
    applied_to_old_debt: Decimal,
    change: Decimal,
    debt: Decimal,
) -> str:
    """Human-readable breakdown stored on the new order."""
    parts = [
        f'Tendered {money_vn(tendered)}',
        f'applied to order {money_vn(applied_to_current)}',
    ]
    if applied_to_old_debt > 0:
        parts.append(f'applied to old debt {money_vn(applied_to_old_debt)}')
    if change > 0:
        parts.append(f'change {money_vn(change)}')
    if debt > 0:
        parts.append(f'owing {money_vn(debt)}')
    return '; '.join(parts)


def _eligible_debts(draft_order: Order, outstanding_orders: Iterable[Order]) -> list:
    """
    Drop anything that cannot absorb surplus (no debt left, or the draft
    itself) and sort oldest first. sorted() is stable, so equal dates keep
    the caller's insertion order.
    """
    eligible = []
    for order in outstanding_orders:
        if order.id == draft_order.id:
            continue
        if order.debt <= 0:
            logger.warning(
                f"[SETTLE] Order {order.id} passed as outstanding with debt {order.debt}; skipped"
            )
            continue
        eligible.append(order)
    return sorted(eligible, key=lambda order: order.date)


def settle(
    draft_order: Order,
    outstanding_orders: Iterable[Order],
    now: Optional[datetime] = None,
    payment_id_factory: Callable[[], str] = new_payment_id,
) -> SettlementResult:
    """
    Settle a checkout.

    Args:
        draft_order: proposed order with `total` already post-discount and
            `paid_amount` holding the raw cash tendered.
        outstanding_orders: the same customer's earlier orders with debt > 0.
        now: timestamp for auto-generated payment records.
        payment_id_factory: id generator for payment records.

    Returns:
        SettlementResult with the finalized order, the old orders that
        absorbed surplus (in the order they were paid) and the change due.
    """
    now = now or utcnow()

    order_total = money(draft_order.total)
    if draft_order.sale_type == SaleType.INTERNAL and order_total != ZERO:
        logger.warning(f"[SETTLE] Internal order {draft_order.id} had total {order_total}; forced to 0")
        order_total = money(ZERO)

    tendered = money(max(ZERO, draft_order.paid_amount))

    if tendered >= order_total:
        applied_to_current = order_total
        surplus = tendered - order_total
    else:
        applied_to_current = tendered
        surplus = money(ZERO)

    modified = []
    applied_to_old_debt = money(ZERO)

    if surplus > 0:
        for old_order in _eligible_debts(draft_order, outstanding_orders):
            if surplus <= 0:
                break

            pay = min(surplus, old_order.debt)
            payment = PaymentRecord(
                id=payment_id_factory(),
                date=now,
                amount=pay,
                note=offset_payment_note(draft_order.id),
            )
            updated = check_order_invariants(old_order.with_payment(payment))
            modified.append(updated)

            surplus -= pay
            applied_to_old_debt += pay
            logger.info(
                f"[SETTLE] {pay} from order {draft_order.id} applied to {old_order.id} "
                f"(debt {old_order.debt} -> {updated.debt})"
            )

    change = surplus
    debt = order_total - applied_to_current

    note = settlement_note(tendered, applied_to_current, applied_to_old_debt, change, debt)
    if draft_order.note:
        note = f'{draft_order.note} | {note}'

    final_order = check_order_invariants(replace(
        draft_order,
        total=order_total,
        paid_amount=applied_to_current,
        debt=debt,
        payments=(),
        note=note,
    ))

    logger.info(
        f"[SETTLE] Order {final_order.id}: tendered={tendered} applied={applied_to_current} "
        f"old_debt={applied_to_old_debt} change={change} debt={debt}"
    )

    return SettlementResult(
        final_order=final_order,
        modified_old_orders=tuple(modified),
        tendered=tendered,
        applied_to_current=applied_to_current,
        applied_to_old_debt=applied_to_old_debt,
        change=change,
    )
