"""
Integration tests for debt collection, balances and aging.
"""

from decimal import Decimal

import pytest

from poultry_ledger.domain.records import ZERO
from poultry_ledger.exceptions import NotFoundError, ValidationError
from poultry_ledger.services import debt_service


@pytest.fixture
def ledger(store, registered_agency, order_factory, days_ago):
    """A small receivables book: two agency orders, two walk-in debts, one paid order."""
    store.write_atomic(orders=[
        order_factory('ORD-A1', 50000, days_ago(5), customer=registered_agency, total=80000),
        order_factory('ORD-A2', 70000, days_ago(45), customer=registered_agency),
        order_factory('ORD-H1', 30000, days_ago(90), customer_name='Chị Hoa'),
        order_factory('ORD-H2', 10000, days_ago(2), customer_name='chị hoa'),
        order_factory('ORD-PAID', 0, days_ago(1), customer_name='Anh Năm', total=40000),
    ])
    return store


class TestRecordPayment:

    def test_partial_payment(self, session, ledger, now):
        order = debt_service.record_payment(session, 'ORD-A1', '20.000', note='  Cash at shop ',
                                            now=now, backoff=0)

        assert order.debt == Decimal('30000')
        assert order.paid_amount == Decimal('50000')
        assert order.payments[-1].amount == Decimal('20000')
        assert order.payments[-1].note == 'Cash at shop'
        assert order.payments[-1].date == now
        assert order.payments[-1].id.startswith('PAY-')

    def test_full_payment_clears_debt(self, session, ledger):
        order = debt_service.record_payment(session, 'ORD-H1', 30000, backoff=0)

        assert order.debt == ZERO
        assert order.paid_amount == order.total

    def test_payment_above_debt_rejected(self, session, ledger):
        with pytest.raises(ValidationError) as exc_info:
            debt_service.record_payment(session, 'ORD-H2', 10001, backoff=0)

        assert exc_info.value.payload == {'debt': '10000.00'}
        assert ledger.get_order('ORD-H2').debt == Decimal('10000')

    @pytest.mark.parametrize('amount', [0, -100])
    def test_non_positive_amount_rejected(self, session, ledger, amount):
        with pytest.raises(ValidationError):
            debt_service.record_payment(session, 'ORD-H2', amount, backoff=0)

    def test_paid_order_rejected(self, session, ledger):
        with pytest.raises(ValidationError):
            debt_service.record_payment(session, 'ORD-PAID', 1000, backoff=0)

    def test_unknown_order(self, session, ledger):
        with pytest.raises(NotFoundError):
            debt_service.record_payment(session, 'NOPE', 1000, backoff=0)


class TestBalances:

    def test_outstanding_for_everyone(self, session, ledger):
        orders = debt_service.outstanding_orders(session)

        assert [order.id for order in orders] == ['ORD-H1', 'ORD-A2', 'ORD-A1', 'ORD-H2']

    def test_outstanding_for_registered_customer(self, session, ledger, registered_agency):
        orders = debt_service.outstanding_orders(session, customer_id=registered_agency.id)

        assert [order.id for order in orders] == ['ORD-A2', 'ORD-A1']

    def test_outstanding_for_walk_in_name(self, session, ledger):
        orders = debt_service.outstanding_orders(session, customer_name='CHỊ HOA')

        assert [order.id for order in orders] == ['ORD-H1', 'ORD-H2']

    def test_balances_grouped_and_sorted(self, session, ledger, registered_agency, days_ago):
        balances = debt_service.customer_balances(session)

        assert [balance['name'] for balance in balances] == [registered_agency.name, 'Chị Hoa']
        agency, hoa = balances
        assert agency['total_debt'] == Decimal('120000')
        assert agency['count'] == 2
        assert agency['phone'] == registered_agency.phone
        assert agency['latest_date'] == days_ago(5)
        assert hoa['customer_id'] is None
        assert hoa['total_debt'] == Decimal('40000')
        assert hoa['latest_date'] == days_ago(2)

    def test_serialize_balance(self, session, ledger):
        payload = debt_service.serialize_balance(debt_service.customer_balances(session)[0])

        assert payload['total_debt'] == '120000.00'
        assert payload['latest_date'].endswith('Z')

    def test_statistics(self, session, ledger, now):
        stats = debt_service.debt_statistics(session, now=now)

        assert stats['total_debt'] == Decimal('160000')
        assert stats['total_debtors'] == 2
        assert stats['overdue_orders'] == 2


class TestAgingReport:

    def test_buckets(self, session, ledger, now):
        report = debt_service.aging_report(session, now=now)

        assert report.current == Decimal('60000')
        assert report.overdue30 == Decimal('70000')
        assert report.overdue60 == Decimal('30000')
        assert report.total == Decimal('160000')

    def test_payment_moves_money_out_of_bucket(self, session, ledger, now):
        debt_service.record_payment(session, 'ORD-H1', 30000, backoff=0)

        report = debt_service.aging_report(session, now=now)

        assert report.overdue60 == ZERO
