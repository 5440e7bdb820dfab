"""Inventory service: catalog entries, price changes and stock imports."""
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from poultry_ledger.domain.catalog import STATUS_IN, STATUS_LOW, STATUS_OUT, reprice, stock_status
from poultry_ledger.domain.records import DEFAULT_MIN_STOCK_THRESHOLD, Product, Unit, names_match
from poultry_ledger.domain.stock import StockLine, adjust_stock
from poultry_ledger.exceptions import NotFoundError, PersistenceError, ValidationError
from poultry_ledger.models import Product as ProductRow
from poultry_ledger.services.concurrency import run_with_retry
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.utils.number_format import parse_money, parse_quantity

logger = logging.getLogger(__name__)

STOCK_STATUSES = (STATUS_OUT, STATUS_LOW, STATUS_IN)


def new_product_id() -> str:
    return f'PRD-{uuid.uuid4().hex[:12].upper()}'


def _parse_unit(value) -> Unit:
    if isinstance(value, Unit):
        return value
    try:
        return Unit(str(value or 'head').strip().lower())
    except ValueError:
        raise ValidationError(f'Unknown unit: {value!r}')


def _check_unique_name(store: LedgerStore, name: str, product_id: Optional[str] = None) -> None:
    for other in store.list_products():
        if other.id != product_id and names_match(other.name, name):
            raise ValidationError(f'Product "{other.name}" already exists', payload={'product_id': other.id})


def create_product(
    session,
    name: str,
    price,
    stock=0,
    category: str = '',
    unit='head',
    min_stock_threshold=DEFAULT_MIN_STOCK_THRESHOLD,
    description: str = '',
    image: Optional[str] = None,
) -> Product:
    """
    Add a product to the catalog.

    Raises:
        ValidationError: empty or duplicate name, negative price or stock.
    """
    name = (name or '').strip()
    if not name:
        raise ValidationError('Product name is required')

    store = LedgerStore(session)
    _check_unique_name(store, name)

    product = Product(
        id=new_product_id(),
        name=name,
        category=(category or '').strip(),
        price=parse_money(price, field='price'),
        stock=parse_quantity(stock, field='stock', minimum=0),
        unit=_parse_unit(unit),
        min_stock_threshold=parse_quantity(min_stock_threshold, field='min_stock_threshold', minimum=0),
        description=description or '',
        image=image,
    )
    committed = store.write_atomic(products=[product])
    logger.info(f"[INVENTORY] Created product {product.id} '{product.name}' at {product.price} (stock {product.stock})")
    return committed.products[0]


def update_product(session, product_id: str, now: Optional[datetime] = None, **fields) -> Product:
    """
    Update catalog fields of a product.

    A price change prepends the previous price to price_history; keeping
    the same price leaves the history untouched.
    """
    store = LedgerStore(session)
    current = store.get_product(product_id)

    changes = {}
    if 'name' in fields:
        name = (fields['name'] or '').strip()
        if not name:
            raise ValidationError('Product name is required')
        _check_unique_name(store, name, product_id)
        changes['name'] = name
    if 'category' in fields:
        changes['category'] = (fields['category'] or '').strip()
    if 'stock' in fields:
        changes['stock'] = parse_quantity(fields['stock'], field='stock', minimum=0)
    if 'unit' in fields:
        changes['unit'] = _parse_unit(fields['unit'])
    if 'min_stock_threshold' in fields:
        changes['min_stock_threshold'] = parse_quantity(
            fields['min_stock_threshold'], field='min_stock_threshold', minimum=0
        )
    if 'description' in fields:
        changes['description'] = fields['description'] or ''
    if 'image' in fields:
        changes['image'] = fields['image'] or None

    updated = replace(current, **changes)
    if fields.get('price') is not None:
        updated = reprice(updated, parse_money(fields['price'], field='price'), now=now)

    committed = store.write_atomic(products=[updated])
    if updated.price != current.price:
        logger.info(f"[INVENTORY] {product_id} repriced {current.price} -> {updated.price}")
    return committed.products[0]


def import_stock(session, product_id: str, quantity, max_retries: int = 3, backoff: float = 0.1) -> Product:
    """
    Receive new head into stock.

    Raises:
        ValidationError: quantity is not a whole number > 0
        NotFoundError: unknown product
    """
    quantity = parse_quantity(quantity, minimum=1)
    store = LedgerStore(session)

    def _attempt() -> Product:
        product = store.get_product(product_id)
        changed = adjust_stock([product], removed_items=[StockLine(product_id, quantity)], strict=True)
        committed = store.write_atomic(products=changed)
        logger.info(f"[INVENTORY] Imported {quantity} head of {product.name}: {product.stock} -> {changed[0].stock}")
        return committed.products[0]

    return run_with_retry(_attempt, session, attempts=max_retries, backoff_base=backoff)


def delete_product(session, product_id: str) -> None:
    """Remove a product. Past orders keep their own copy of it."""
    row = session.get(ProductRow, product_id)
    if row is None:
        raise NotFoundError(f'Product {product_id} not found')
    try:
        session.delete(row)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"[INVENTORY] Could not delete product {product_id}: {exc}")
        raise PersistenceError() from exc
    logger.info(f"[INVENTORY] Deleted product {product_id}")


def list_products(session, search: Optional[str] = None, status: Optional[str] = None) -> List[Product]:
    """
    Catalog listing.

    search matches name or category (case-insensitive substring); status
    is one of 'out', 'low', 'in'.
    """
    if status is not None and status not in STOCK_STATUSES:
        raise ValidationError(f'Unknown stock status: {status!r}')

    products = LedgerStore(session).list_products()
    if search:
        needle = search.strip().casefold()
        products = [p for p in products if needle in p.name.casefold() or needle in p.category.casefold()]
    if status is not None:
        products = [p for p in products if stock_status(p) == status]
    return products


def low_stock_products(session) -> List[Product]:
    """Products at or below their own threshold, including sold-out ones."""
    return [p for p in LedgerStore(session).list_products() if stock_status(p) != STATUS_IN]
