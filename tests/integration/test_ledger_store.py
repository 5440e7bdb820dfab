"""
Integration tests for the ledger store (atomic writes, version checks).
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from poultry_ledger.domain.catalog import reprice
from poultry_ledger.domain.records import PaymentRecord
from poultry_ledger.exceptions import ConcurrencyError, ConsistencyError, NotFoundError, PersistenceError
from poultry_ledger.models import Product as ProductRow
from poultry_ledger.services.ledger_store import _customer_locks, customer_lock_key


class TestRoundTrip:

    def test_products_round_trip(self, store, catalog, chicken):
        loaded = store.get_product(chicken.id)

        assert loaded.name == chicken.name
        assert loaded.price == chicken.price
        assert loaded.stock == chicken.stock
        assert loaded.version == 1

    def test_order_with_items_and_payments(self, store, catalog, registered_agency, order_factory, days_ago):
        order = order_factory('ORD-1', 30000, days_ago(5), customer=registered_agency, total=100000,
                              product=catalog['P-CHICKEN'])
        order = replace(order, payments=(
            PaymentRecord(id='PAY-1', date=days_ago(5), amount=Decimal('70000'), note='Deposit'),
        ))

        store.write_atomic(orders=[order])
        loaded = store.get_order('ORD-1')

        assert loaded.customer_id == registered_agency.id
        assert loaded.items[0].product_id == 'P-CHICKEN'
        assert loaded.payments[0].amount == Decimal('70000')
        assert loaded.date == days_ago(5)
        assert loaded.paid_amount + loaded.debt == loaded.total

    def test_snapshot_lists_everything(self, store, catalog, registered_agency, order_factory, days_ago):
        store.write_atomic(orders=[order_factory('ORD-1', 100, days_ago(1))])

        snapshot = store.read_snapshot()

        assert {p.id for p in snapshot.products} == {'P-CHICKEN', 'P-DUCK'}
        assert [c.id for c in snapshot.customers] == [registered_agency.id]
        assert [o.id for o in snapshot.orders] == ['ORD-1']

    def test_unknown_ids_raise_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.get_order('NOPE')
        with pytest.raises(NotFoundError):
            store.get_product('NOPE')
        with pytest.raises(NotFoundError):
            store.get_customer('NOPE')


class TestOutstanding:

    def test_matches_by_id_and_legacy_name(self, store, registered_agency, order_factory, days_ago):
        store.write_atomic(orders=[
            order_factory('LINKED', 1000, days_ago(3), customer=registered_agency),
            order_factory('LEGACY', 2000, days_ago(9), customer_name='ĐẠI LÝ ANH BA'),
            order_factory('OTHER', 3000, days_ago(8), customer_name='Someone else'),
            order_factory('PAID', 0, days_ago(7), customer=registered_agency, total=5000),
        ])

        outstanding = store.outstanding_orders_for(registered_agency)

        assert [o.id for o in outstanding] == ['LEGACY', 'LINKED']

    def test_name_only_customer(self, store, order_factory, days_ago):
        store.write_atomic(orders=[
            order_factory('A', 1000, days_ago(3), customer_name='Chị Hoa'),
            order_factory('B', 1000, days_ago(2), customer_name='chị hoa '),
        ])

        assert [o.id for o in store.outstanding_orders_for(None, 'CHỊ HOA')] == ['A', 'B']


class TestAtomicWrites:

    def test_failure_rolls_back_whole_batch(self, store, catalog, order_factory, days_ago):
        product = replace(catalog['P-CHICKEN'], stock=10)
        bad_order = order_factory('ORD-BAD', 1000, days_ago(1))
        # Balanced in the record but rejected by the database constraint
        bad_order = replace(bad_order, total=Decimal('-5'), paid_amount=Decimal('-1005'), debt=Decimal('1000'))

        with pytest.raises(PersistenceError):
            store.write_atomic(orders=[bad_order], products=[product])

        assert store.get_product('P-CHICKEN').stock == 50
        with pytest.raises(NotFoundError):
            store.get_order('ORD-BAD')

    def test_stale_version_is_rejected(self, store, catalog):
        first = replace(catalog['P-CHICKEN'], stock=40)
        second = replace(catalog['P-CHICKEN'], stock=45)

        store.write_atomic(products=[first])
        with pytest.raises(ConcurrencyError) as exc_info:
            store.write_atomic(products=[second])

        assert exc_info.value.status_code == 409
        assert store.get_product('P-CHICKEN').stock == 40

    def test_version_increments_on_write(self, store, catalog):
        committed = store.write_atomic(products=[replace(catalog['P-DUCK'], stock=19)])

        assert committed.products[0].version == catalog['P-DUCK'].version + 1

    def test_deleted_row_is_a_conflict(self, store, session, catalog):
        session.delete(session.get(ProductRow, 'P-DUCK'))
        session.commit()

        with pytest.raises(ConcurrencyError):
            store.write_atomic(products=[replace(catalog['P-DUCK'], stock=1)])

    def test_payment_history_is_append_only(self, store, order_factory, days_ago):
        order = replace(order_factory('ORD-1', 500, days_ago(1), total=1000), payments=(
            PaymentRecord(id='PAY-1', date=days_ago(1), amount=Decimal('500')),
        ))
        saved = store.write_atomic(orders=[order]).orders[0]

        rewritten = replace(saved, payments=(), paid_amount=Decimal('0'), debt=Decimal('1000'))
        with pytest.raises(ConsistencyError):
            store.write_atomic(orders=[rewritten])

        assert len(store.get_order('ORD-1').payments) == 1

    def test_price_history_is_persisted_newest_first(self, store, catalog, days_ago, now):
        once = store.write_atomic(products=[reprice(catalog['P-DUCK'], Decimal('55000'), now=days_ago(2))])
        store.write_atomic(products=[reprice(once.products[0], Decimal('60000'), now=now)])

        history = store.get_product('P-DUCK').price_history
        assert [item.price for item in history] == [Decimal('55000'), Decimal('50000')]


class TestCustomerLock:

    def test_lock_is_released_after_block(self, store, registered_agency):
        with store.customer_lock(registered_agency.id):
            pass
        with store.customer_lock(registered_agency.id):
            pass

    def test_error_inside_lock_rolls_back(self, store, session, catalog):
        with pytest.raises(RuntimeError):
            with store.customer_lock(None, 'Anh Ba'):
                session.get(ProductRow, 'P-DUCK').stock = 1
                raise RuntimeError('boom')

        assert store.get_product('P-DUCK').stock == 20

    def test_lock_entries_are_evicted_after_release(self, store, catalog):
        with store.customer_lock(None, 'Khách vãng lai'):
            assert customer_lock_key(None, 'Khách vãng lai') in _customer_locks

        with pytest.raises(RuntimeError):
            with store.customer_lock(None, 'Khách khác'):
                raise RuntimeError('boom')

        assert _customer_locks == {}

    def test_lock_key_prefers_id_and_folds_names(self):
        assert customer_lock_key('C-1', 'Anh Ba') == 'id:C-1'
        assert customer_lock_key(None, ' ĐẠI LÝ Anh Ba ') == customer_lock_key(None, 'đại lý anh ba')
