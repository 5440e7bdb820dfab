"""Order payment model."""
from sqlalchemy import Column, String, Text, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from poultry_ledger.database import Base
from poultry_ledger.domain import records
from poultry_ledger.time_utils import ensure_utc


class OrderPayment(Base):
    """
    Order Payment - one amount applied to an order.

    Written for manual debt collection and for surplus that a later
    checkout pushed onto this order. Rows are never updated.
    """

    __tablename__ = 'order_payment'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_order_payment_amount_positive'),
    )

    id = Column(String(64), primary_key=True)
    order_id = Column(String(64), ForeignKey('sale_order.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    note = Column(Text, nullable=False, default='')

    # Relationships
    order = relationship('SaleOrder', back_populates='payments')

    def __repr__(self):
        return f"<OrderPayment(id={self.id}, order_id={self.order_id}, amount={self.amount})>"

    def to_record(self) -> records.PaymentRecord:
        return records.PaymentRecord(
            id=self.id,
            date=ensure_utc(self.paid_at),
            amount=self.amount,
            note=self.note or '',
        )

    @classmethod
    def from_record(cls, payment: records.PaymentRecord, position: int) -> 'OrderPayment':
        return cls(
            id=payment.id,
            position=position,
            paid_at=payment.date,
            amount=payment.amount,
            note=payment.note or '',
        )
