"""Pure ledger core: records, pricing, settlement, stock and aging."""
from poultry_ledger.domain.records import (
    CartItem, Customer, CustomerType, LedgerSnapshot, Order, PaymentRecord,
    PriceHistoryItem, Product, SaleType, Unit,
)
from poultry_ledger.domain.settlement import SettlementResult, settle
from poultry_ledger.domain.stock import StockLine, adjust_stock
from poultry_ledger.domain.aging import AgingReport, classify

__all__ = [
    'CartItem', 'Customer', 'CustomerType', 'LedgerSnapshot', 'Order', 'PaymentRecord',
    'PriceHistoryItem', 'Product', 'SaleType', 'Unit',
    'SettlementResult', 'settle',
    'StockLine', 'adjust_stock',
    'AgingReport', 'classify',
]
