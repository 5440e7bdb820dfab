"""
Ledger data model - immutable records handed to and returned by the engine.

The settlement engine, stock adjuster and aging reporter only ever see these
frozen snapshots. Persistence (SQLAlchemy rows) is mapped to and from them by
the ledger store, so no engine call can mutate shared state behind the
caller's back.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from poultry_ledger.exceptions import ConsistencyError
from poultry_ledger.time_utils import to_utc_z

ZERO = Decimal('0')
HUNDRED = Decimal('100')
MONEY_QUANT = Decimal('0.01')
DEFAULT_MIN_STOCK_THRESHOLD = 10


def money(value) -> Decimal:
    """Coerce to a Decimal rounded to the stored precision."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


class SaleType(str, enum.Enum):
    """Sale channel."""
    RETAIL = 'retail'
    AGENCY = 'agency'
    INTERNAL = 'internal'  # canteen / gift, never generates revenue or debt


class Unit(str, enum.Enum):
    """Pricing unit. Stock is always counted in head."""
    KG = 'kg'
    HEAD = 'head'


class CustomerType(str, enum.Enum):
    AGENCY = 'agency'
    RETAIL = 'retail'


@dataclass(frozen=True)
class PriceHistoryItem:
    date: datetime
    price: Decimal

    def to_dict(self) -> dict:
        return {'date': to_utc_z(self.date), 'price': str(self.price)}


@dataclass(frozen=True)
class Product:
    """Catalog entry. `stock` is a head count and never negative."""

    id: str
    name: str
    category: str
    price: Decimal
    stock: int
    unit: Unit = Unit.HEAD
    min_stock_threshold: int = DEFAULT_MIN_STOCK_THRESHOLD
    price_history: Tuple[PriceHistoryItem, ...] = ()  # newest first
    description: str = ''
    image: Optional[str] = None
    version: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'price': str(self.price),
            'stock': self.stock,
            'unit': self.unit.value,
            'min_stock_threshold': self.min_stock_threshold,
            'price_history': [item.to_dict() for item in self.price_history],
            'description': self.description,
            'image': self.image,
        }


@dataclass(frozen=True)
class Customer:
    """Buyer. Agency customers get a fixed percentage off every sale."""

    id: str
    name: str
    type: CustomerType = CustomerType.RETAIL
    discount_rate: Decimal = ZERO
    phone: Optional[str] = None
    address: Optional[str] = None

    def matches_name(self, name: Optional[str]) -> bool:
        return names_match(self.name, name)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'discount_rate': str(self.discount_rate),
            'phone': self.phone,
            'address': self.address,
        }


@dataclass(frozen=True)
class CartItem:
    """Product snapshot at sale time plus the quantity sold."""

    product_id: str
    name: str
    price: Decimal
    quantity: int
    category: str = ''
    unit: Unit = Unit.HEAD
    weight: Optional[Decimal] = None  # total kg, only for kg-priced products

    @property
    def line_total(self) -> Decimal:
        if self.unit == Unit.KG and self.weight is not None:
            return self.price * self.weight
        return self.price * self.quantity

    @classmethod
    def from_product(cls, product: Product, quantity: int, weight: Optional[Decimal] = None) -> 'CartItem':
        return cls(
            product_id=product.id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            category=product.category,
            unit=product.unit,
            weight=weight if product.unit == Unit.KG else None,
        )

    def to_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'category': self.category,
            'price': str(self.price),
            'unit': self.unit.value,
            'quantity': self.quantity,
            'weight': str(self.weight) if self.weight is not None else None,
            'line_total': str(money(self.line_total)),
        }


@dataclass(frozen=True)
class PaymentRecord:
    """One amount applied to an order. Never edited once created."""

    id: str
    date: datetime
    amount: Decimal
    note: str = ''

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'date': to_utc_z(self.date),
            'amount': str(self.amount),
            'note': self.note,
        }


@dataclass(frozen=True)
class Order:
    """
    A sale.

    `paid_amount` is what has actually been applied to this order (not the
    cash handed over at the counter) and `debt` is what is still owed, so
    `paid_amount + debt == total` always holds.
    """

    id: str
    date: datetime
    items: Tuple[CartItem, ...]
    total: Decimal
    customer_name: str
    sale_type: SaleType
    paid_amount: Decimal
    debt: Decimal
    customer_id: Optional[str] = None
    discount_applied: Decimal = ZERO
    note: str = ''
    payments: Tuple[PaymentRecord, ...] = ()
    version: Optional[int] = None

    @property
    def is_outstanding(self) -> bool:
        return self.debt > 0

    def belongs_to(self, customer_id: Optional[str], customer_name: Optional[str]) -> bool:
        """
        Ownership test: by customer id, or by case-insensitive name for
        legacy rows that were never linked to a customer record.
        """
        if self.customer_id is not None:
            return customer_id is not None and self.customer_id == customer_id
        return names_match(self.customer_name, customer_name)

    def with_payment(self, payment: PaymentRecord) -> 'Order':
        """Apply a payment: paid goes up, debt goes down, record appended."""
        return replace(
            self,
            paid_amount=self.paid_amount + payment.amount,
            debt=self.debt - payment.amount,
            payments=self.payments + (payment,),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'date': to_utc_z(self.date),
            'items': [item.to_dict() for item in self.items],
            'total': str(self.total),
            'customer_name': self.customer_name,
            'customer_id': self.customer_id,
            'sale_type': self.sale_type.value,
            'paid_amount': str(self.paid_amount),
            'debt': str(self.debt),
            'discount_applied': str(self.discount_applied),
            'note': self.note,
            'payments': [payment.to_dict() for payment in self.payments],
        }


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything the engine may read, as loaded by the store."""

    products: Tuple[Product, ...] = ()
    orders: Tuple[Order, ...] = ()
    customers: Tuple[Customer, ...] = ()
    taken_at: Optional[datetime] = field(default=None, compare=False)

    def product_map(self) -> dict:
        return {product.id: product for product in self.products}

    def outstanding_orders_for(self, customer_id: Optional[str], customer_name: Optional[str]) -> list:
        return [
            order for order in self.orders
            if order.is_outstanding and order.belongs_to(customer_id, customer_name)
        ]


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive exact comparison of customer names."""
    if left is None or right is None:
        return False
    return left.strip().casefold() == right.strip().casefold()


def check_order_invariants(order: Order) -> Order:
    """
    Raise ConsistencyError unless paid + debt == total with both non-negative.

    Returns the order so the call can be chained.
    """
    if order.debt < 0:
        raise ConsistencyError(f'Order {order.id} has negative debt {order.debt}', payload={'order_id': order.id})
    if order.paid_amount < 0:
        raise ConsistencyError(
            f'Order {order.id} has negative paid amount {order.paid_amount}', payload={'order_id': order.id}
        )
    if order.paid_amount + order.debt != order.total:
        raise ConsistencyError(
            f'Order {order.id}: paid {order.paid_amount} + debt {order.debt} != total {order.total}',
            payload={'order_id': order.id},
        )
    return order


def check_product_invariants(product: Product) -> Product:
    """Raise ConsistencyError when stock went negative."""
    if product.stock < 0:
        raise ConsistencyError(
            f'Product {product.id} has negative stock {product.stock}', payload={'product_id': product.id}
        )
    return product
