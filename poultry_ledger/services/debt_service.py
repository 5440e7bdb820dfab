"""Debt service: manual payments, balances per customer and aging."""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from poultry_ledger.domain.aging import AgingReport, classify, count_overdue
from poultry_ledger.domain.records import ZERO, Order, PaymentRecord, check_order_invariants
from poultry_ledger.exceptions import ValidationError
from poultry_ledger.services.concurrency import run_with_retry
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.time_utils import to_utc_z, utcnow
from poultry_ledger.utils.formatters import money_vn
from poultry_ledger.utils.number_format import parse_money

logger = logging.getLogger(__name__)


def new_manual_payment_id() -> str:
    return f'PAY-{uuid.uuid4().hex[:12].upper()}'


def record_payment(
    session,
    order_id: str,
    amount,
    note: str = '',
    now: Optional[datetime] = None,
    max_retries: int = 3,
    backoff: float = 0.1,
) -> Order:
    """
    Collect a payment against a single order.

    Args:
        session: SQLAlchemy session
        order_id: order being paid down
        amount: amount collected, > 0 and <= the order's debt
        note: free text stored on the payment record

    Returns:
        The committed order with the payment appended.

    Raises:
        NotFoundError: unknown order
        ValidationError: amount <= 0 or above the remaining debt
    """
    amount = parse_money(amount, allow_negative=True)
    if amount <= 0:
        raise ValidationError('Payment amount must be greater than 0')

    store = LedgerStore(session)

    def _attempt() -> Order:
        order = store.get_order(order_id)
        with store.customer_lock(order.customer_id, order.customer_name):
            order = store.get_order(order_id)
            if order.debt <= 0:
                raise ValidationError(f'Order {order_id} is already fully paid')
            if amount > order.debt:
                raise ValidationError(
                    f'Payment {money_vn(amount)} exceeds the remaining debt {money_vn(order.debt)}',
                    payload={'debt': str(order.debt)},
                )

            payment = PaymentRecord(
                id=new_manual_payment_id(),
                date=now or utcnow(),
                amount=amount,
                note=(note or '').strip(),
            )
            updated = check_order_invariants(order.with_payment(payment))
            committed = store.write_atomic(orders=[updated])

        logger.info(f"[DEBT] Payment {payment.id} of {amount} on {order_id}: debt {order.debt} -> {updated.debt}")
        return committed.orders[0]

    return run_with_retry(_attempt, session, attempts=max_retries, backoff_base=backoff)


def outstanding_orders(session, customer_id: Optional[str] = None, customer_name: Optional[str] = None) -> List[Order]:
    """Unpaid orders, oldest first; all customers when neither argument is given."""
    store = LedgerStore(session)
    if customer_id is None and customer_name is None:
        return [order for order in store.list_orders() if order.is_outstanding]
    customer = store.get_customer(customer_id) if customer_id is not None else store.find_customer_by_name(customer_name)
    return store.outstanding_orders_for(customer, customer_name)


def _balance_key(order: Order) -> str:
    if order.customer_id is not None:
        return f'id:{order.customer_id}'
    return f'name:{order.customer_name.strip().casefold()}'


def customer_balances(session) -> List[Dict]:
    """
    Debt grouped per customer, largest balance first.

    Each entry: customer_id, name, phone, address, total_debt, count
    (number of unpaid orders) and latest_date.
    """
    store = LedgerStore(session)
    customers = {customer.id: customer for customer in store.list_customers()}

    groups: Dict[str, Dict] = {}
    for order in store.list_orders():
        if not order.is_outstanding:
            continue
        key = _balance_key(order)
        group = groups.get(key)
        if group is None:
            customer = customers.get(order.customer_id)
            group = groups[key] = {
                'customer_id': order.customer_id,
                'name': customer.name if customer else order.customer_name,
                'phone': customer.phone if customer else None,
                'address': customer.address if customer else None,
                'total_debt': ZERO,
                'count': 0,
                'latest_date': order.date,
            }
        group['total_debt'] += order.debt
        group['count'] += 1
        if order.date > group['latest_date']:
            group['latest_date'] = order.date

    return sorted(groups.values(), key=lambda group: group['total_debt'], reverse=True)


def serialize_balance(balance: Dict) -> Dict:
    return {
        **balance,
        'total_debt': str(balance['total_debt']),
        'latest_date': to_utc_z(balance['latest_date']),
    }


def debt_statistics(session, now: Optional[datetime] = None, credit_days: int = 30) -> Dict:
    """Total receivable, number of distinct debtors and orders past the credit term."""
    orders = LedgerStore(session).list_orders()
    unpaid = [order for order in orders if order.is_outstanding]
    total_debt: Decimal = sum((order.debt for order in unpaid), ZERO)

    return {
        'total_debt': total_debt,
        'total_debtors': len({_balance_key(order) for order in unpaid}),
        'overdue_orders': count_overdue(unpaid, now=now, credit_days=credit_days),
    }


def aging_report(session, now: Optional[datetime] = None, current_days: int = 30, overdue_days: int = 60) -> AgingReport:
    orders = LedgerStore(session).list_orders()
    return classify(orders, now=now, current_days=current_days, overdue_days=overdue_days)
