"""Catalog rules: price changes keep a history, stock status thresholds."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from poultry_ledger.domain.records import PriceHistoryItem, Product, money
from poultry_ledger.time_utils import utcnow

STATUS_OUT = 'out'
STATUS_LOW = 'low'
STATUS_IN = 'in'


def reprice(product: Product, new_price: Decimal, now: Optional[datetime] = None) -> Product:
    """
    Change the price. The *previous* price is prepended to price_history;
    the new one lives only in `price`. Same price -> product unchanged.
    """
    new_price = money(new_price)
    if new_price == product.price:
        return product
    entry = PriceHistoryItem(date=now or utcnow(), price=product.price)
    return replace(product, price=new_price, price_history=(entry,) + product.price_history)


def stock_status(product: Product) -> str:
    """'out' at zero, 'low' at or below the threshold, otherwise 'in'."""
    if product.stock == 0:
        return STATUS_OUT
    if product.stock <= product.min_stock_threshold:
        return STATUS_LOW
    return STATUS_IN
