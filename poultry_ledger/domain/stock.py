"""
Stock adjuster.

Computes the inventory effect of a sale or of an edit to a sale:
    - new checkout:  removed = [],              added = sold items
    - order edit:    removed = original items,  added = updated items
    - stock import:  removed = received lines,  added = []
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Protocol

from poultry_ledger.domain.records import Product, check_product_invariants
from poultry_ledger.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class StockItem(Protocol):
    product_id: str
    quantity: int


@dataclass(frozen=True)
class StockLine:
    """Bare (product, head count) pair for movements that are not cart lines."""
    product_id: str
    quantity: int


def _apply(levels: dict, catalog: dict, items: Iterable[StockItem], sign: int, strict: bool) -> None:
    for item in items:
        if item.product_id not in catalog:
            if strict:
                raise NotFoundError(f'Product {item.product_id} no longer exists in the catalog')
            logger.warning(f"[STOCK] Product {item.product_id} not in catalog; line skipped")
            continue
        if sign > 0:
            levels[item.product_id] += item.quantity
        else:
            levels[item.product_id] = max(0, levels[item.product_id] - item.quantity)


def adjust_stock(
    products: Iterable[Product],
    removed_items: Iterable[StockItem] = (),
    added_items: Iterable[StockItem] = (),
    strict: bool = False,
) -> List[Product]:
    """
    Return the products whose stock changed.

    Removed items are returned to stock first, then added items are deducted
    with a floor of 0. Lines pointing at products missing from the catalog
    are skipped (or raise NotFoundError when strict=True).

    Args:
        products: current catalog (or the relevant subset of it)
        removed_items: lines whose quantity goes back into stock
        added_items: lines whose quantity leaves stock
        strict: fail instead of skipping unknown products

    Returns:
        Updated Product records, in catalog order, only for products whose
        stock actually moved.
    """
    catalog = {product.id: product for product in products}
    levels = {product_id: product.stock for product_id, product in catalog.items()}

    _apply(levels, catalog, removed_items, +1, strict)
    _apply(levels, catalog, added_items, -1, strict)

    changed = []
    for product_id, product in catalog.items():
        if levels[product_id] != product.stock:
            updated = check_product_invariants(replace(product, stock=levels[product_id]))
            logger.info(f"[STOCK] {product.name} ({product_id}): {product.stock} -> {updated.stock}")
            changed.append(updated)
    return changed


def net_quantities(removed_items: Iterable[StockItem], added_items: Iterable[StockItem]) -> dict:
    """Net head count leaving stock per product (negative means returned)."""
    deltas: dict = {}
    for item in removed_items:
        deltas[item.product_id] = deltas.get(item.product_id, 0) - item.quantity
    for item in added_items:
        deltas[item.product_id] = deltas.get(item.product_id, 0) + item.quantity
    return {product_id: qty for product_id, qty in deltas.items() if qty != 0}
