"""Customer model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime, Enum, CheckConstraint, Index, func
from sqlalchemy.orm import relationship
from poultry_ledger.database import Base
from poultry_ledger.domain import records
from poultry_ledger.time_utils import utcnow


class Customer(Base):
    """Customer (retail buyer or agency/dealer)."""

    __tablename__ = 'customer'
    __table_args__ = (
        CheckConstraint('discount_rate >= 0 AND discount_rate <= 100', name='ck_customer_discount_range'),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    type = Column(Enum(records.CustomerType, name='customer_type'), nullable=False, default=records.CustomerType.RETAIL)
    discount_rate = Column(Numeric(5, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    orders = relationship('SaleOrder', back_populates='customer')

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', type={self.type})>"

    def to_record(self) -> records.Customer:
        return records.Customer(
            id=self.id,
            name=self.name,
            type=self.type,
            discount_rate=self.discount_rate,
            phone=self.phone,
            address=self.address,
        )

    def apply_record(self, record: records.Customer) -> None:
        self.name = record.name
        self.phone = record.phone
        self.address = record.address
        self.type = record.type
        self.discount_rate = record.discount_rate


# Names are the matching key typed at the counter: unique regardless of case
Index('ux_customer_name_lower', func.lower(Customer.name), unique=True)
