"""Sale order model."""
from sqlalchemy import Column, String, Text, Integer, Numeric, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from poultry_ledger.database import Base
from poultry_ledger.domain import records
from poultry_ledger.exceptions import ConsistencyError
from poultry_ledger.models.order_line import OrderLine
from poultry_ledger.models.order_payment import OrderPayment
from poultry_ledger.time_utils import ensure_utc, utcnow


class SaleOrder(Base):
    """Sale order (retail, agency or internal)."""

    __tablename__ = 'sale_order'
    __table_args__ = (
        CheckConstraint('debt >= 0', name='ck_sale_order_debt_non_negative'),
        CheckConstraint('paid_amount >= 0', name='ck_sale_order_paid_non_negative'),
    )

    id = Column(String(64), primary_key=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    total = Column(Numeric(14, 2), nullable=False)
    customer_name = Column(String(200), nullable=False)
    customer_id = Column(String(64), ForeignKey('customer.id'), nullable=True, index=True)
    sale_type = Column(Enum(records.SaleType, name='sale_type'), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    debt = Column(Numeric(14, 2), nullable=False, default=0)
    discount_applied = Column(Numeric(5, 2), nullable=False, default=0)
    note = Column(Text, nullable=False, default='')
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = Column(Integer, nullable=False, default=1)

    # Relationships
    customer = relationship('Customer', back_populates='orders')
    lines = relationship(
        'OrderLine', back_populates='order', cascade='all, delete-orphan', order_by=OrderLine.position,
    )
    payments = relationship(
        'OrderPayment', back_populates='order', cascade='all, delete-orphan', order_by=OrderPayment.position,
    )

    __mapper_args__ = {'version_id_col': version_id}

    @hybrid_property
    def is_outstanding(self):
        return self.debt > 0

    def __repr__(self):
        return f"<SaleOrder(id={self.id}, total={self.total}, debt={self.debt})>"

    def to_record(self) -> records.Order:
        return records.Order(
            id=self.id,
            date=ensure_utc(self.date),
            items=tuple(line.to_record() for line in self.lines),
            total=self.total,
            customer_name=self.customer_name,
            customer_id=self.customer_id,
            sale_type=self.sale_type,
            paid_amount=self.paid_amount,
            debt=self.debt,
            discount_applied=self.discount_applied,
            note=self.note or '',
            payments=tuple(payment.to_record() for payment in self.payments),
            version=self.version_id,
        )

    def apply_record(self, record: records.Order) -> None:
        """
        Copy a record onto the row.

        Lines are rewritten only when the item list changed. Payments are
        append-only: every stored payment must still be in the record.
        """
        if self.date is None:
            self.date = record.date
        self.total = record.total
        self.customer_name = record.customer_name
        self.customer_id = record.customer_id
        self.sale_type = record.sale_type
        self.paid_amount = record.paid_amount
        self.debt = record.debt
        self.discount_applied = record.discount_applied
        self.note = record.note

        current_items = tuple(line.to_record() for line in self.lines)
        if current_items != record.items:
            self.lines = [OrderLine.from_record(item, position) for position, item in enumerate(record.items)]

        stored_ids = [payment.id for payment in self.payments]
        record_ids = [payment.id for payment in record.payments]
        if record_ids[:len(stored_ids)] != stored_ids:
            raise ConsistencyError(
                f'Order {self.id}: payment history can only be appended to',
                payload={'order_id': self.id},
            )
        for position, payment in enumerate(record.payments[len(stored_ids):], start=len(stored_ids)):
            self.payments.append(OrderPayment.from_record(payment, position))
