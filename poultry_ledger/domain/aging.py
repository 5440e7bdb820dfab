"""Debt aging: bucket outstanding balances by how long they have been unpaid."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from poultry_ledger.domain.records import ZERO, Order
from poultry_ledger.time_utils import ensure_utc, utcnow

CURRENT_LABEL = '0–30 days'
OVERDUE_30_LABEL = '31–60 days'
OVERDUE_60_LABEL = '>60 days'

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class AgingReport:
    current: Decimal = ZERO
    overdue30: Decimal = ZERO
    overdue60: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.current + self.overdue30 + self.overdue60

    def buckets(self) -> list:
        """(label, amount) pairs, youngest bucket first."""
        return [
            (CURRENT_LABEL, self.current),
            (OVERDUE_30_LABEL, self.overdue30),
            (OVERDUE_60_LABEL, self.overdue60),
        ]

    def to_dict(self) -> dict:
        return {
            'buckets': [{'label': label, 'amount': str(amount)} for label, amount in self.buckets()],
            'current': str(self.current),
            'overdue30': str(self.overdue30),
            'overdue60': str(self.overdue60),
            'total': str(self.total),
        }


def age_in_days(order_date: datetime, now: datetime) -> int:
    """Whole days elapsed since the order was created (floor)."""
    return (ensure_utc(now) - ensure_utc(order_date)) // ONE_DAY


def classify(
    outstanding_orders: Iterable[Order],
    now: Optional[datetime] = None,
    current_days: int = 30,
    overdue_days: int = 60,
) -> AgingReport:
    """
    Sum unpaid debt per age bucket.

    age <= current_days                  -> current
    current_days < age <= overdue_days   -> overdue30
    age > overdue_days                   -> overdue60

    Orders with no debt left are ignored, so the full order list can be
    passed as-is.
    """
    now = now or utcnow()
    current = overdue30 = overdue60 = ZERO

    for order in outstanding_orders:
        if order.debt <= 0:
            continue
        age = age_in_days(order.date, now)
        if age <= current_days:
            current += order.debt
        elif age <= overdue_days:
            overdue30 += order.debt
        else:
            overdue60 += order.debt

    return AgingReport(current=current, overdue30=overdue30, overdue60=overdue60)


def count_overdue(orders: Iterable[Order], now: Optional[datetime] = None, credit_days: int = 30) -> int:
    """Number of unpaid orders older than the credit term."""
    now = now or utcnow()
    return sum(1 for order in orders if order.debt > 0 and age_in_days(order.date, now) > credit_days)
