"""Price history model."""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from poultry_ledger.database import Base, BigIntegerPK
from poultry_ledger.domain import records
from poultry_ledger.time_utils import ensure_utc


class PriceChange(Base):
    """A price the product used to have, and when it stopped having it."""

    __tablename__ = 'price_change'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    product_id = Column(String(64), ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    changed_at = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(14, 2), nullable=False)

    # Relationships
    product = relationship('Product', back_populates='price_history')

    def __repr__(self):
        return f"<PriceChange(product_id={self.product_id}, price={self.price}, changed_at={self.changed_at})>"

    def to_record(self) -> records.PriceHistoryItem:
        return records.PriceHistoryItem(date=ensure_utc(self.changed_at), price=self.price)
