"""
Order edit service.

Corrects the items of a confirmed order:
- Returns the original quantities to stock and deducts the new ones
- Re-prices the order with the discount it was sold with
- Keeps paid_amount + debt == total (overpayment is reported as refund_due)
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Tuple

from poultry_ledger.domain import pricing
from poultry_ledger.domain.records import ZERO, CartItem, Order, Product, SaleType, Unit, check_order_invariants, money
from poultry_ledger.domain.stock import adjust_stock, net_quantities
from poultry_ledger.exceptions import InsufficientStockError, ValidationError
from poultry_ledger.services.checkout_service import CartLine
from poultry_ledger.services.concurrency import run_with_retry
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.utils.number_format import parse_money, parse_quantity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEditResult:
    order: Order
    products: Tuple[Product, ...]
    refund_due: Decimal

    def to_dict(self) -> dict:
        return {
            'order': self.order.to_dict(),
            'products': [product.to_dict() for product in self.products],
            'refund_due': str(self.refund_due),
        }


def _parse_edit_lines(raw_items) -> list:
    """Quantities per product; 0 drops the line."""
    lines = {}
    for raw in raw_items or ():
        if isinstance(raw, CartLine):
            lines[raw.product_id] = raw
            continue
        product_id = str(raw.get('product_id') or '').strip()
        if not product_id:
            raise ValidationError('Each line needs a product_id')
        quantity = parse_quantity(raw.get('quantity'), minimum=0)
        weight = raw.get('weight')
        weight = parse_money(weight, field='weight') if weight not in (None, '') else None
        lines[product_id] = CartLine(product_id, quantity, weight)
    return [line for line in lines.values() if line.quantity > 0]


def _rebuild_items(order: Order, lines: list, catalog: dict) -> Tuple[CartItem, ...]:
    """
    Build the new item list. Products already on the order keep the price
    they were sold at; newly added products take the current catalog price.

    A kg-priced line keeps its recorded weight only while its head count is
    unchanged; any other change has to come with the new weight.
    """
    original = {item.product_id: item for item in order.items}
    items = []
    for line in lines:
        if line.product_id in original:
            old = original[line.product_id]
            weight = line.weight
            if weight is None and old.unit == Unit.KG:
                if line.quantity != old.quantity:
                    raise ValidationError(f'{old.name} is sold by kg, send the new weight with the new quantity',
                                          payload={'product_id': old.product_id})
                weight = old.weight
            items.append(replace(old, quantity=line.quantity, weight=weight if old.unit == Unit.KG else None))
            continue
        product = catalog.get(line.product_id)
        if product is None:
            raise ValidationError(f'Product {line.product_id} not found')
        if product.unit == Unit.KG and line.weight is None:
            raise ValidationError(f'{product.name} is sold by kg, weight is required',
                                  payload={'product_id': product.id})
        items.append(CartItem.from_product(product, line.quantity, line.weight))
    return tuple(items)


def _check_stock(order: Order, items, catalog: dict) -> None:
    for product_id, extra in net_quantities(order.items, items).items():
        product = catalog.get(product_id)
        if product is not None and extra > product.stock:
            raise InsufficientStockError(product.name, extra, product.stock)


def reprice_order(order: Order, items) -> Tuple[Order, Decimal]:
    """
    Apply new items to an order and rebalance it.

    Returns the updated order and the amount to refund when what was
    already paid exceeds the new total.
    """
    total = pricing.order_total(pricing.cart_subtotal(items), order.sale_type, order.discount_applied)
    if order.sale_type == SaleType.INTERNAL:
        total = money(ZERO)

    paid = min(order.paid_amount, total)
    refund_due = order.paid_amount - paid

    updated = check_order_invariants(replace(
        order,
        items=tuple(items),
        total=total,
        paid_amount=paid,
        debt=total - paid,
    ))
    return updated, refund_due


def edit_order(
    session,
    order_id: str,
    items,
    note: Optional[str] = None,
    max_retries: int = 3,
    backoff: float = 0.1,
) -> OrderEditResult:
    """
    Replace the items of an order and move stock accordingly.

    Args:
        session: SQLAlchemy session
        order_id: order to edit
        items: list of {product_id, quantity, weight?}; quantity 0 removes a line
        note: optional note appended to the order

    Raises:
        NotFoundError: unknown order
        ValidationError: the edit would leave the order empty, or a kg line lacks its weight
        InsufficientStockError: a quantity increase exceeds stock
        PersistenceError / ConcurrencyError: nothing was saved
    """
    lines = _parse_edit_lines(items)
    if not lines:
        raise ValidationError('An order needs at least one item')

    store = LedgerStore(session)

    def _attempt() -> OrderEditResult:
        order = store.get_order(order_id)
        customer_id = order.customer_id
        with store.customer_lock(customer_id, order.customer_name):
            order = store.get_order(order_id)
            product_ids = {item.product_id for item in order.items} | {line.product_id for line in lines}
            products = store.products_by_ids(product_ids)
            catalog = {product.id: product for product in products}

            new_items = _rebuild_items(order, lines, catalog)
            _check_stock(order, new_items, catalog)

            updated, refund_due = reprice_order(order, new_items)
            if note:
                updated = replace(updated, note=f'{updated.note} | {note}' if updated.note else note)

            changed_products = adjust_stock(products, removed_items=order.items, added_items=new_items)
            committed = store.write_atomic(orders=[updated], products=changed_products)

        logger.info(
            f"[EDIT] Order {order_id}: total {order.total} -> {updated.total}, "
            f"debt {order.debt} -> {updated.debt}, refund_due={refund_due}"
        )
        return OrderEditResult(order=committed.orders[0], products=committed.products, refund_due=refund_due)

    return run_with_retry(_attempt, session, attempts=max_retries, backoff_base=backoff)
