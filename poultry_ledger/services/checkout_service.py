"""
Checkout service.

Turns a cart into a confirmed order:
    1. validate the cart against the current catalog,
    2. price it for the sale channel,
    3. settle the tendered cash (new order, then old debts FIFO, then change),
    4. deduct stock,
    5. write everything in one transaction.

Nothing is reported as done until step 5 commits. A version conflict re-runs
the whole cycle from a fresh read.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from poultry_ledger.domain import pricing
from poultry_ledger.domain.records import CartItem, Order, SaleType, Unit
from poultry_ledger.domain.settlement import SettlementResult, settle
from poultry_ledger.domain.stock import adjust_stock, net_quantities
from poultry_ledger.exceptions import InsufficientStockError, NotFoundError, ValidationError
from poultry_ledger.services.concurrency import run_with_retry
from poultry_ledger.services.customer_service import get_or_create_agency_customer
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.time_utils import utcnow
from poultry_ledger.utils.number_format import parse_money, parse_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    """What the counter asks for: a product and a head count (plus kg for weighed products)."""
    product_id: str
    quantity: int
    weight: Optional[Decimal] = None


@dataclass(frozen=True)
class CheckoutResult:
    """Confirmed checkout: the committed orders and the change to hand back."""

    order: Order
    modified_old_orders: Tuple[Order, ...]
    tendered: Decimal
    applied_to_current: Decimal
    applied_to_old_debt: Decimal
    change: Decimal

    @classmethod
    def from_settlement(cls, settlement: SettlementResult, committed_orders) -> 'CheckoutResult':
        by_id = {order.id: order for order in committed_orders}
        return cls(
            order=by_id[settlement.final_order.id],
            modified_old_orders=tuple(by_id[order.id] for order in settlement.modified_old_orders),
            tendered=settlement.tendered,
            applied_to_current=settlement.applied_to_current,
            applied_to_old_debt=settlement.applied_to_old_debt,
            change=settlement.change,
        )

    def to_dict(self) -> dict:
        return {
            'order': self.order.to_dict(),
            'modified_old_orders': [order.to_dict() for order in self.modified_old_orders],
            'tendered': str(self.tendered),
            'applied_to_current': str(self.applied_to_current),
            'applied_to_old_debt': str(self.applied_to_old_debt),
            'change': str(self.change),
        }


def new_order_id() -> str:
    return f'ORD-{uuid.uuid4().hex[:12].upper()}'


def parse_sale_type(value) -> SaleType:
    if isinstance(value, SaleType):
        return value
    try:
        return SaleType(str(value or 'retail').strip().lower())
    except ValueError:
        raise ValidationError(f'Unknown sale type: {value!r}')


def parse_cart(raw_items) -> List[CartLine]:
    """
    Parse cart lines from request data.

    Accepts CartLine objects or dicts with product_id, quantity and an
    optional weight. Repeated products are merged.
    """
    if not raw_items:
        raise ValidationError('Cart is empty')

    merged = {}
    weights = {}
    for raw in raw_items:
        if isinstance(raw, CartLine):
            product_id, quantity, weight = raw.product_id, raw.quantity, raw.weight
        else:
            product_id = str(raw.get('product_id') or '').strip()
            if not product_id:
                raise ValidationError('Each cart line needs a product_id')
            quantity = parse_quantity(raw.get('quantity'))
            weight = raw.get('weight')
            if weight not in (None, ''):
                weight = parse_money(weight, field='weight')
            else:
                weight = None

        if quantity < 1:
            raise ValidationError('quantity must be at least 1')
        merged[product_id] = merged.get(product_id, 0) + quantity
        if weight is not None:
            weights[product_id] = weights.get(product_id, Decimal('0')) + weight

    return [CartLine(product_id, quantity, weights.get(product_id)) for product_id, quantity in merged.items()]


def build_cart_items(lines: Iterable[CartLine], products: Iterable) -> List[CartItem]:
    """
    Snapshot catalog products into cart items.

    Raises:
        NotFoundError: a line points at a product that is not in the catalog.
        InsufficientStockError: a line asks for more head than are in stock.
        ValidationError: a kg-priced product comes without its weight.
    """
    catalog = {product.id: product for product in products}
    items = []
    for line in lines:
        product = catalog.get(line.product_id)
        if product is None:
            raise NotFoundError(f'Product {line.product_id} not found')
        if line.quantity > product.stock:
            raise InsufficientStockError(product.name, line.quantity, product.stock)
        if product.unit == Unit.KG and line.weight is None:
            raise ValidationError(f'{product.name} is sold by kg, weight is required',
                                  payload={'product_id': product.id})
        items.append(CartItem.from_product(product, line.quantity, line.weight))
    return items


def checkout(
    session,
    cart,
    customer_name: str,
    sale_type='retail',
    tendered=0,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
    order_id: Optional[str] = None,
    max_retries: int = 3,
    backoff: float = 0.1,
) -> CheckoutResult:
    """
    Sell a cart and settle the cash tendered.

    Args:
        session: SQLAlchemy session
        cart: list of CartLine or dicts {product_id, quantity, weight?}
        customer_name: buyer name as typed at the counter (required)
        sale_type: 'retail', 'agency' or 'internal'
        tendered: cash handed over; 0 means a full credit sale
        note: optional free text stored on the order
        now: order timestamp (defaults to the current UTC time)
        order_id: explicit id for the new order
        max_retries: attempts on version conflicts
        backoff: base delay (seconds) between attempts

    Returns:
        CheckoutResult built from the committed records.

    Raises:
        ValidationError: empty cart, missing name, negative tendered amount
        NotFoundError: unknown product
        InsufficientStockError: not enough head in stock
        PersistenceError / ConcurrencyError: nothing was saved
    """
    lines = parse_cart(cart)
    sale_type = parse_sale_type(sale_type)
    customer_name = (customer_name or '').strip()
    if not customer_name:
        raise ValidationError('Customer name is required')
    tendered = parse_money(tendered, field='tendered')
    order_id = order_id or new_order_id()

    store = LedgerStore(session)

    customer = store.find_customer_by_name(customer_name)
    if sale_type == SaleType.AGENCY and customer is None:
        customer = get_or_create_agency_customer(session, customer_name)

    def _attempt() -> CheckoutResult:
        customer_id = customer.id if customer is not None else None
        with store.customer_lock(customer_id, customer_name):
            timestamp = now or utcnow()
            products = store.products_by_ids(line.product_id for line in lines)
            items = build_cart_items(lines, products)

            draft = pricing.build_draft_order(
                order_id, items, customer_name, sale_type, tendered,
                customer=customer, now=timestamp, note=note,
            )
            outstanding = store.outstanding_orders_for(customer, customer_name)
            settlement = settle(draft, outstanding, now=timestamp)

            changed_products = adjust_stock(products, removed_items=(), added_items=items)

            committed = store.write_atomic(
                orders=settlement.orders_to_upsert,
                products=changed_products,
            )

        logger.info(
            f"[CHECKOUT] Order {order_id} confirmed for '{customer_name}' ({sale_type.value}): "
            f"total={settlement.final_order.total} change={settlement.change} "
            f"stock={net_quantities((), items)}"
        )
        return CheckoutResult.from_settlement(settlement, committed.orders)

    return run_with_retry(_attempt, session, attempts=max_retries, backoff_base=backoff)
