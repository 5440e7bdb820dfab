"""Models package - exports all SQLAlchemy models."""
from poultry_ledger.models.price_change import PriceChange
from poultry_ledger.models.product import Product
from poultry_ledger.models.customer import Customer
from poultry_ledger.models.order_line import OrderLine
from poultry_ledger.models.order_payment import OrderPayment
from poultry_ledger.models.sale_order import SaleOrder

__all__ = [
    'PriceChange', 'Product',
    'Customer',
    'OrderLine', 'OrderPayment', 'SaleOrder',
]
