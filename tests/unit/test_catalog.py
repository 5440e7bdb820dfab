from dataclasses import replace
from decimal import Decimal

from poultry_ledger.domain.catalog import STATUS_IN, STATUS_LOW, STATUS_OUT, reprice, stock_status
from poultry_ledger.domain.records import PriceHistoryItem


class TestReprice:

    def test_previous_price_is_prepended(self, chicken, now, days_ago):
        older = PriceHistoryItem(date=days_ago(30), price=Decimal('90000'))
        product = replace(chicken, price_history=(older,))

        updated = reprice(product, Decimal('110000'), now=now)

        assert updated.price == Decimal('110000')
        assert updated.price_history[0] == PriceHistoryItem(date=now, price=Decimal('100000'))
        assert updated.price_history[1] == older

    def test_same_price_keeps_history(self, chicken, now):
        assert reprice(chicken, Decimal('100000.00'), now=now) is chicken


class TestStockStatus:

    def test_out_low_in(self, duck):
        assert stock_status(replace(duck, stock=0)) == STATUS_OUT
        assert stock_status(replace(duck, stock=5)) == STATUS_LOW
        assert stock_status(replace(duck, stock=6)) == STATUS_IN
