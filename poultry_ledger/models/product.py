"""Product model."""
from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from poultry_ledger.database import Base
from poultry_ledger.domain import records
from poultry_ledger.models.price_change import PriceChange
from poultry_ledger.time_utils import ensure_utc, utcnow


class Product(Base):
    """Product (live poultry, counted per head)."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('price >= 0', name='ck_product_price_non_negative'),
    )

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default='')
    price = Column(Numeric(14, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    unit = Column(Enum(records.Unit, name='product_unit'), nullable=False, default=records.Unit.HEAD)
    min_stock_threshold = Column(Integer, nullable=False, default=records.DEFAULT_MIN_STOCK_THRESHOLD)
    description = Column(Text, nullable=False, default='')
    image = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = Column(Integer, nullable=False, default=1)

    # Relationships
    price_history = relationship(
        'PriceChange',
        back_populates='product',
        cascade='all, delete-orphan',
        order_by=[PriceChange.changed_at.desc(), PriceChange.id.desc()],
    )

    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"

    def to_record(self) -> records.Product:
        return records.Product(
            id=self.id,
            name=self.name,
            category=self.category or '',
            price=self.price,
            stock=self.stock,
            unit=self.unit,
            min_stock_threshold=self.min_stock_threshold,
            price_history=tuple(change.to_record() for change in self.price_history),
            description=self.description or '',
            image=self.image,
            version=self.version_id,
        )

    def apply_record(self, record: records.Product) -> None:
        """Copy a record's fields onto the row. History entries are append-only."""
        self.name = record.name
        self.category = record.category
        self.price = record.price
        self.stock = record.stock
        self.unit = record.unit
        self.min_stock_threshold = record.min_stock_threshold
        self.description = record.description
        self.image = record.image

        known = {(ensure_utc(change.changed_at), change.price) for change in self.price_history}
        # Walk oldest to newest, pushing each new entry to the front: ids follow
        # time and the loaded collection stays newest first
        for item in reversed(record.price_history):
            if (ensure_utc(item.date), item.price) not in known:
                self.price_history.insert(0, PriceChange(changed_at=item.date, price=item.price))
