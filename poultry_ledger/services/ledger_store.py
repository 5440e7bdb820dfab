"""
Ledger store - the transaction coordinator between the pure engine and the database.

Reads hand out immutable records (with their version stamps). Writes take
records back and apply them in a single transaction: either every order,
product and customer in the batch is committed, or nothing is.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from poultry_ledger.domain import records
from poultry_ledger.exceptions import (
    ConcurrencyError, LedgerError, NotFoundError, PersistenceError,
)
from poultry_ledger.models import Customer, Product, SaleOrder
from poultry_ledger.time_utils import utcnow

logger = logging.getLogger(__name__)

# In-process serialization point per customer: key -> [lock, holders]. An entry
# lives only while some thread holds or waits on it.
_customer_locks = {}
_registry_lock = threading.Lock()


@contextmanager
def _hold_lock(key: str):
    with _registry_lock:
        entry = _customer_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _customer_locks[key]


def customer_lock_key(customer_id: Optional[str], customer_name: Optional[str] = None) -> str:
    """
    Lock key for a buyer: the customer id when there is a record, else the
    casefolded name.

    A buyer without a record locks on the name, and once a record exists
    (implicit agency registration) on the id, so for that one window two
    terminals can hold different keys. The version check in write_atomic
    still rejects the second writer.
    """
    if customer_id is not None:
        return f'id:{customer_id}'
    return f"name:{(customer_name or '').strip().casefold()}"


@dataclass(frozen=True)
class CommittedWrite:
    """Records as they are after the commit (fresh version stamps)."""
    orders: Tuple[records.Order, ...] = ()
    products: Tuple[records.Product, ...] = ()
    customers: Tuple[records.Customer, ...] = ()


class LedgerStore:
    """Maps rows to records and writes record batches atomically."""

    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_snapshot(self) -> records.LedgerSnapshot:
        return records.LedgerSnapshot(
            products=tuple(self.list_products()),
            orders=tuple(self.list_orders()),
            customers=tuple(self.list_customers()),
            taken_at=utcnow(),
        )

    def list_products(self) -> List[records.Product]:
        rows = self.session.query(Product).order_by(Product.created_at, Product.id).all()
        return [row.to_record() for row in rows]

    def products_by_ids(self, product_ids: Iterable[str]) -> List[records.Product]:
        product_ids = list(set(product_ids))
        if not product_ids:
            return []
        rows = (
            self.session.query(Product)
            .filter(Product.id.in_(product_ids))
            .order_by(Product.created_at, Product.id)
            .all()
        )
        return [row.to_record() for row in rows]

    def get_product(self, product_id: str) -> records.Product:
        row = self.session.get(Product, product_id)
        if row is None:
            raise NotFoundError(f'Product {product_id} not found')
        return row.to_record()

    def list_orders(self, newest_first: bool = False, limit: Optional[int] = None) -> List[records.Order]:
        if newest_first:
            ordering = (SaleOrder.date.desc(), SaleOrder.created_at.desc(), SaleOrder.id.desc())
        else:
            ordering = (SaleOrder.date, SaleOrder.created_at, SaleOrder.id)
        query = self.session.query(SaleOrder).order_by(*ordering)
        if limit is not None:
            query = query.limit(limit)
        return [row.to_record() for row in query.all()]

    def get_order(self, order_id: str) -> records.Order:
        row = self.session.get(SaleOrder, order_id)
        if row is None:
            raise NotFoundError(f'Order {order_id} not found')
        return row.to_record()

    def outstanding_orders_for(
        self,
        customer: Optional[records.Customer],
        customer_name: Optional[str] = None,
    ) -> List[records.Order]:
        """
        Orders of this customer that still carry debt, oldest first.

        Matches by customer id, plus unlinked legacy orders whose name
        matches case-insensitively. Name comparison happens in Python since
        SQLite's lower() only folds ASCII.
        """
        customer_id = customer.id if customer is not None else None
        name = customer.name if customer is not None else customer_name

        query = self.session.query(SaleOrder).filter(SaleOrder.debt > 0)
        if customer_id is not None:
            query = query.filter(or_(SaleOrder.customer_id == customer_id, SaleOrder.customer_id.is_(None)))
        else:
            query = query.filter(SaleOrder.customer_id.is_(None))
        rows = query.order_by(SaleOrder.date, SaleOrder.created_at, SaleOrder.id).all()

        return [
            order for order in (row.to_record() for row in rows)
            if order.belongs_to(customer_id, name)
        ]

    def list_customers(self) -> List[records.Customer]:
        rows = self.session.query(Customer).order_by(Customer.name, Customer.id).all()
        return [row.to_record() for row in rows]

    def get_customer(self, customer_id: str) -> records.Customer:
        row = self.session.get(Customer, customer_id)
        if row is None:
            raise NotFoundError(f'Customer {customer_id} not found')
        return row.to_record()

    def find_customer_by_name(self, name: Optional[str]) -> Optional[records.Customer]:
        for customer in self.list_customers():
            if customer.matches_name(name):
                return customer
        return None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @contextmanager
    def customer_lock(self, customer_id: Optional[str], customer_name: Optional[str] = None):
        """
        Serialize settlement for one customer.

        Holds an in-process lock for the duration of the block and, for a
        known customer, a row lock (SELECT ... FOR UPDATE) in the current
        transaction. SQLite ignores FOR UPDATE.
        """
        key = customer_lock_key(customer_id, customer_name)
        with _hold_lock(key):
            try:
                if customer_id is not None:
                    self.session.query(Customer).filter(Customer.id == customer_id).with_for_update().first()
                yield
            except Exception:
                self.session.rollback()
                raise

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_atomic(
        self,
        orders: Iterable[records.Order] = (),
        products: Iterable[records.Product] = (),
        customers: Iterable[records.Customer] = (),
    ) -> CommittedWrite:
        """
        Upsert orders, products and customers in one transaction.

        A record read from the store carries the row's version stamp; if the
        row has moved on since, the batch is rejected with ConcurrencyError.
        Records with version None are inserts.

        Raises:
            ConcurrencyError: a row changed (or vanished) since it was read.
            PersistenceError: the database refused the batch.
            ConsistencyError: a record would rewrite immutable history.
        """
        orders, products, customers = list(orders), list(products), list(customers)

        try:
            customer_rows = [self._upsert_customer(record) for record in customers]
            product_rows = [self._upsert(Product, record) for record in products]
            order_rows = [self._upsert(SaleOrder, record) for record in orders]

            self.session.flush()
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning(f"[STORE] Version conflict, batch rolled back: {exc}")
            raise ConcurrencyError() from exc
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning(f"[STORE] Integrity error, batch rolled back: {exc.orig}")
            raise PersistenceError('Could not save changes: the data conflicts with existing records') from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"[STORE] Database error, batch rolled back: {exc}")
            raise PersistenceError() from exc
        except LedgerError:
            self.session.rollback()
            raise

        logger.info(
            f"[STORE] Committed {len(order_rows)} order(s), {len(product_rows)} product(s), "
            f"{len(customer_rows)} customer(s)"
        )
        return CommittedWrite(
            orders=tuple(row.to_record() for row in order_rows),
            products=tuple(row.to_record() for row in product_rows),
            customers=tuple(row.to_record() for row in customer_rows),
        )

    def delete_customer(self, customer_id: str) -> None:
        row = self.session.get(Customer, customer_id)
        if row is None:
            raise NotFoundError(f'Customer {customer_id} not found')
        try:
            # Detach past orders; their customer_name keeps the history readable
            for order in row.orders:
                order.customer_id = None
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"[STORE] Could not delete customer {customer_id}: {exc}")
            raise PersistenceError() from exc
        logger.info(f"[STORE] Deleted customer {customer_id}")

    def _upsert(self, model, record):
        row = self.session.get(model, record.id, populate_existing=True, with_for_update=True)

        if row is None:
            if record.version is not None:
                raise ConcurrencyError(
                    f'{model.__name__} {record.id} was removed by another terminal',
                    payload={'id': record.id},
                )
            row = model(id=record.id)
            self.session.add(row)
        elif record.version != row.version_id:
            raise ConcurrencyError(
                f'{model.__name__} {record.id} was modified by another terminal, reload and retry',
                payload={'id': record.id, 'expected_version': record.version, 'actual_version': row.version_id},
            )

        row.apply_record(record)
        return row

    def _upsert_customer(self, record: records.Customer):
        row = self.session.get(Customer, record.id)
        if row is None:
            row = Customer(id=record.id)
            self.session.add(row)
        row.apply_record(record)
        return row
