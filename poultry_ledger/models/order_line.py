"""Order line model (cart item snapshot)."""
from sqlalchemy import Column, String, Integer, Numeric, Enum, ForeignKey
from sqlalchemy.orm import relationship
from poultry_ledger.database import Base, BigIntegerPK
from poultry_ledger.domain import records


class OrderLine(Base):
    """
    Order line - copy of the product as it was sold.

    product_id is not a foreign key: the line must survive
    catalog edits and deletions.
    """

    __tablename__ = 'order_line'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey('sale_order.id', ondelete='CASCADE'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default='')
    price = Column(Numeric(14, 2), nullable=False)
    unit = Column(Enum(records.Unit, name='product_unit'), nullable=False, default=records.Unit.HEAD)
    quantity = Column(Integer, nullable=False)
    weight = Column(Numeric(10, 3), nullable=True)

    # Relationships
    order = relationship('SaleOrder', back_populates='lines')

    def __repr__(self):
        return f"<OrderLine(order_id={self.order_id}, product_id={self.product_id}, quantity={self.quantity})>"

    def to_record(self) -> records.CartItem:
        return records.CartItem(
            product_id=self.product_id,
            name=self.name,
            price=self.price,
            quantity=self.quantity,
            category=self.category or '',
            unit=self.unit,
            weight=self.weight,
        )

    @classmethod
    def from_record(cls, item: records.CartItem, position: int) -> 'OrderLine':
        return cls(
            position=position,
            product_id=item.product_id,
            name=item.name,
            category=item.category,
            price=item.price,
            unit=item.unit,
            quantity=item.quantity,
            weight=item.weight,
        )
