"""
Unit tests for the settlement engine.
"""

import itertools
from dataclasses import replace
from decimal import Decimal

import pytest

from poultry_ledger.domain.records import (
    ZERO, CartItem, Order, PaymentRecord, SaleType, check_order_invariants,
)
from poultry_ledger.domain.settlement import new_payment_id, settle
from poultry_ledger.exceptions import ConsistencyError


def draft(total, tendered, now, sale_type=SaleType.RETAIL, customer_name='Anh Ba', order_id='ORD-NEW'):
    return Order(
        id=order_id,
        date=now,
        items=(CartItem(product_id='P1', name='Gà', price=Decimal(total), quantity=1),),
        total=Decimal(total),
        customer_name=customer_name,
        sale_type=sale_type,
        paid_amount=Decimal(tendered),
        debt=max(ZERO, Decimal(total) - Decimal(tendered)),
    )


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f'PAY-{next(counter)}'


class TestSettlementScenarios:
    """Worked examples of a checkout settlement."""

    def test_exact_payment(self, now):
        """Total 100,000, tendered 100,000, no prior debt."""
        result = settle(draft(100000, 100000, now), [], now=now)

        assert result.final_order.paid_amount == Decimal('100000')
        assert result.final_order.debt == ZERO
        assert result.modified_old_orders == ()
        assert result.change == ZERO

    def test_partial_payment_leaves_debt(self, now):
        """Total 100,000, tendered 60,000."""
        result = settle(draft(100000, 60000, now), [], now=now)

        assert result.final_order.paid_amount == Decimal('60000')
        assert result.final_order.debt == Decimal('40000')
        assert result.change == ZERO

    def test_surplus_clears_old_debts_oldest_first(self, now, days_ago, order_factory):
        """Total 50,000, tendered 200,000, debts of 30,000 (day 1) and 90,000 (day 2)."""
        order_a = order_factory('ORD-A', 30000, days_ago(10), customer_name='Anh Ba')
        order_b = order_factory('ORD-B', 90000, days_ago(9), customer_name='Anh Ba')

        result = settle(draft(50000, 200000, now), [order_b, order_a], now=now,
                        payment_id_factory=sequential_ids())

        paid_a, paid_b = result.modified_old_orders
        assert paid_a.id == 'ORD-A'
        assert paid_a.debt == ZERO
        assert paid_a.payments[-1].amount == Decimal('30000')
        assert paid_b.id == 'ORD-B'
        assert paid_b.debt == ZERO
        assert paid_b.payments[-1].amount == Decimal('90000')

        assert result.final_order.debt == ZERO
        assert result.applied_to_old_debt == Decimal('120000')
        assert result.change == Decimal('30000')


class TestSettlementBoundaries:

    def test_exact_amount_touches_no_old_order(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')

        result = settle(draft(100000, 100000, now), [old], now=now)

        assert result.modified_old_orders == ()
        assert result.change == ZERO

    def test_zero_tendered_is_full_credit(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')

        result = settle(draft(100000, 0, now), [old], now=now)

        assert result.final_order.paid_amount == ZERO
        assert result.final_order.debt == Decimal('100000')
        assert result.modified_old_orders == ()

    def test_internal_sale_forces_zero_total(self, now):
        result = settle(draft(300000, 0, now, sale_type=SaleType.INTERNAL), [], now=now)

        assert result.final_order.total == ZERO
        assert result.final_order.debt == ZERO
        assert result.final_order.paid_amount == ZERO

    def test_internal_sale_tender_goes_to_old_debt(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')

        result = settle(draft(300000, 15000, now, sale_type=SaleType.INTERNAL), [old], now=now)

        assert result.final_order.debt == ZERO
        assert result.modified_old_orders[0].debt == ZERO
        assert result.change == Decimal('5000')

    def test_surplus_clears_only_oldest_orders(self, now, days_ago, order_factory):
        """Surplus 45,000 over debts of 20,000 / 20,000 / 20,000 / 20,000."""
        debts = [order_factory(f'ORD-{i}', 20000, days_ago(40 - i), customer_name='Anh Ba') for i in range(4)]

        result = settle(draft(10000, 55000, now), list(reversed(debts)), now=now)

        modified = {order.id: order for order in result.modified_old_orders}
        assert modified['ORD-0'].debt == ZERO
        assert modified['ORD-1'].debt == ZERO
        assert modified['ORD-2'].debt == Decimal('15000')
        assert 'ORD-3' not in modified
        assert [order.id for order in result.modified_old_orders] == ['ORD-0', 'ORD-1', 'ORD-2']
        assert result.change == ZERO

    def test_exact_clearance_creates_no_zero_payment(self, now, days_ago, order_factory):
        debts = [
            order_factory('ORD-1', 20000, days_ago(5), customer_name='Anh Ba'),
            order_factory('ORD-2', 30000, days_ago(4), customer_name='Anh Ba'),
            order_factory('ORD-3', 40000, days_ago(3), customer_name='Anh Ba'),
        ]

        result = settle(draft(10000, 60000, now), debts, now=now)

        assert [order.id for order in result.modified_old_orders] == ['ORD-1', 'ORD-2']
        for order in result.modified_old_orders:
            assert all(payment.amount > 0 for payment in order.payments)
        assert result.change == ZERO

    def test_equal_dates_keep_input_order(self, now, days_ago, order_factory):
        same_day = days_ago(7)
        first = order_factory('ORD-Z', 10000, same_day, customer_name='Anh Ba')
        second = order_factory('ORD-A', 10000, same_day, customer_name='Anh Ba')

        result = settle(draft(0, 15000, now), [first, second], now=now)

        assert [order.id for order in result.modified_old_orders] == ['ORD-Z', 'ORD-A']
        assert result.modified_old_orders[0].debt == ZERO
        assert result.modified_old_orders[1].debt == Decimal('5000')

    def test_orders_without_debt_are_skipped(self, now, days_ago, order_factory):
        paid_off = order_factory('ORD-PAID', 0, days_ago(9), total=50000, customer_name='Anh Ba')
        owing = order_factory('ORD-OWING', 10000, days_ago(8), customer_name='Anh Ba')

        result = settle(draft(0, 10000, now), [paid_off, owing], now=now)

        assert [order.id for order in result.modified_old_orders] == ['ORD-OWING']

    def test_negative_tender_is_treated_as_zero(self, now):
        result = settle(draft(100000, -5000, now), [], now=now)

        assert result.tendered == ZERO
        assert result.final_order.debt == Decimal('100000')


class TestSettlementProperties:

    @pytest.mark.parametrize('total, tendered', [
        (50000, 200000), (100000, 100000), (100000, 30000), (0, 75000), (12345, 98765),
    ])
    def test_total_preserving(self, now, days_ago, order_factory, total, tendered):
        debts = [
            order_factory('ORD-1', 25000, days_ago(20), customer_name='Anh Ba'),
            order_factory('ORD-2', 40000, days_ago(10), customer_name='Anh Ba'),
        ]

        result = settle(draft(total, tendered, now), debts, now=now)

        reduction = sum(
            (before.debt - after.debt for before, after in zip(debts, result.modified_old_orders)), ZERO
        )
        surplus = max(ZERO, Decimal(tendered) - Decimal(total))
        assert reduction + result.change == surplus
        assert reduction == result.applied_to_old_debt

        for order in (result.final_order, *result.modified_old_orders):
            assert order.paid_amount + order.debt == order.total
            assert order.debt >= 0
            assert order.paid_amount >= 0

    def test_inputs_are_not_mutated(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')
        new = draft(10000, 30000, now)

        settle(new, [old], now=now)

        assert old.debt == Decimal('10000')
        assert old.payments == ()
        assert new.paid_amount == Decimal('30000')

    def test_offset_payment_references_new_order(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')

        result = settle(draft(0, 10000, now, order_id='ORD-123456789'), [old], now=now)

        payment = result.modified_old_orders[0].payments[-1]
        assert payment.id.startswith('PAY-AUTO-')
        assert payment.date == now
        assert '#456789' in payment.note
        assert 'ORD-123456789' in payment.note

    def test_note_describes_the_split(self, now, days_ago, order_factory):
        old = order_factory('ORD-OLD', 10000, days_ago(3), customer_name='Anh Ba')

        result = settle(draft(50000, 70000, now), [old], now=now)

        note = result.final_order.note
        assert 'Tendered 70.000 ₫' in note
        assert 'applied to old debt 10.000 ₫' in note
        assert 'change 10.000 ₫' in note

    def test_previous_payments_are_kept(self, now, days_ago, order_factory):
        deposit = PaymentRecord(id='PAY-DEP', date=days_ago(3), amount=Decimal('5000'), note='Deposit')
        old = replace(order_factory('ORD-OLD', 10000, days_ago(3), total=15000, customer_name='Anh Ba'),
                      payments=(deposit,))

        result = settle(draft(0, 4000, now), [old], now=now)

        updated = result.modified_old_orders[0]
        assert updated.payments[0] == deposit
        assert updated.paid_amount == Decimal('9000')
        assert updated.debt == Decimal('6000')


class TestOrderInvariants:

    def test_unbalanced_order_is_rejected(self, now):
        bad = replace(draft(100000, 0, now), paid_amount=Decimal('10'), debt=Decimal('10'))
        with pytest.raises(ConsistencyError):
            check_order_invariants(bad)

    def test_negative_debt_is_rejected(self, now):
        bad = replace(draft(100000, 0, now), paid_amount=Decimal('110000'), debt=Decimal('-10000'))
        with pytest.raises(ConsistencyError):
            check_order_invariants(bad)

    def test_payment_ids_are_unique(self):
        assert len({new_payment_id() for _ in range(100)}) == 100
