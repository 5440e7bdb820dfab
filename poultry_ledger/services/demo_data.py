"""Demo catalog, agencies and orders for a fresh install."""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from poultry_ledger.domain.records import (
    CartItem, Customer, CustomerType, Order, PaymentRecord, Product, SaleType,
)
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.time_utils import utcnow

logger = logging.getLogger(__name__)

IMAGE_URL = 'https://images.unsplash.com/{}?q=80&w=200&auto=format&fit=crop'

DEMO_PRODUCTS = [
    Product(id='1', name='Gà Minh Dư Bình Định', category='Gà', price=Decimal('120000'), stock=200,
            min_stock_threshold=50, description='Giống gà Minh Dư chính gốc, thịt chắc, lông đẹp.',
            image=IMAGE_URL.format('photo-1548550023-2bdb3c5beed7')),
    Product(id='2', name='Gà CP Lai Chọi', category='Gà', price=Decimal('95000'), stock=500,
            min_stock_threshold=100, description='Gà CP lớn nhanh, thích hợp nuôi thịt công nghiệp.',
            image=IMAGE_URL.format('photo-1612170139146-37330761e053')),
    Product(id='3', name='Vịt Xiêm (Ngan)', category='Vịt', price=Decimal('150000'), stock=80,
            min_stock_threshold=20, description='Vịt Xiêm đen, thịt nạc, ít mỡ, nuôi thả vườn.',
            image=IMAGE_URL.format('photo-1555855853-9f552600868c')),
    Product(id='4', name='Vịt Đồng (Vịt cỏ)', category='Vịt', price=Decimal('80000'), stock=150,
            min_stock_threshold=30, description='Vịt chạy đồng, thịt thơm ngọt tự nhiên.',
            image=IMAGE_URL.format('photo-1516467508483-a7212060cb6e')),
    Product(id='5', name='Bồ Câu Pháp Titan', category='Bồ câu', price=Decimal('250000'), stock=40,
            min_stock_threshold=10, description='Cặp bồ câu Pháp giống, to con, sinh sản tốt.',
            image=IMAGE_URL.format('photo-1544453531-152864f77c8e')),
    Product(id='6', name='Bồ Câu Mĩ (King)', category='Bồ câu', price=Decimal('400000'), stock=10,
            min_stock_threshold=5, description='Bồ câu vua, kích thước lớn, làm cảnh hoặc thịt cao cấp.',
            image=IMAGE_URL.format('photo-1563220448-b3d978a3ce28')),
]

DEMO_CUSTOMERS = [
    Customer(id='c1', name='Đại lý Anh Ba', type=CustomerType.AGENCY, discount_rate=Decimal('10'),
             phone='0901234567', address='Chợ Huyện'),
    Customer(id='c2', name='Trại gà Chú Tư', type=CustomerType.AGENCY, discount_rate=Decimal('15'),
             phone='0909888777', address='Xã Vĩnh Lộc'),
    Customer(id='c3', name='Nhà hàng Hạnh Phúc', type=CustomerType.AGENCY, discount_rate=Decimal('5'),
             phone='0283888888', address='Trung tâm Thị trấn'),
    Customer(id='c4', name='Chị Bảy (Chợ Lớn)', type=CustomerType.AGENCY, discount_rate=Decimal('8'),
             phone='0912341234', address='Chợ Đầu mối'),
]


def _item(product_index: int, quantity: int) -> CartItem:
    return CartItem.from_product(DEMO_PRODUCTS[product_index], quantity)


def demo_orders(now: Optional[datetime] = None) -> list:
    """Four sample orders: an old agency debt, a paid retail sale, today's agency credit sale and a gift."""
    now = now or utcnow()
    old = now - timedelta(days=65)
    return [
        Order(
            id='ORD-001', date=old, items=(_item(0, 10), _item(2, 5)),
            total=Decimal('1950000'), customer_name='Đại lý Anh Ba', customer_id='c1',
            sale_type=SaleType.AGENCY, paid_amount=Decimal('1000000'), debt=Decimal('950000'),
            discount_applied=Decimal('10'),
            payments=(PaymentRecord(id='pay1', date=old, amount=Decimal('1000000'), note='Đặt cọc'),),
        ),
        Order(
            id='ORD-002', date=now - timedelta(days=35), items=(_item(4, 2),),
            total=Decimal('500000'), customer_name='Khách lẻ vãng lai',
            sale_type=SaleType.RETAIL, paid_amount=Decimal('500000'), debt=Decimal('0'),
        ),
        Order(
            id='ORD-003', date=now, items=(_item(1, 100),),
            total=Decimal('9500000'), customer_name='Trại gà Chú Tư', customer_id='c2',
            sale_type=SaleType.AGENCY, paid_amount=Decimal('5000000'), debt=Decimal('4500000'),
            discount_applied=Decimal('15'),
            payments=(PaymentRecord(id='pay2', date=now, amount=Decimal('5000000'), note='Thanh toán đợt 1'),),
        ),
        Order(
            id='ORD-004', date=now, items=(_item(3, 2),),
            total=Decimal('0'), customer_name='Biếu nhà ăn',
            sale_type=SaleType.INTERNAL, paid_amount=Decimal('0'), debt=Decimal('0'),
            discount_applied=Decimal('100'), note='Lấy làm cơm trưa',
        ),
    ]


def seed_demo_data(session, now: Optional[datetime] = None) -> bool:
    """
    Load the demo data into an empty database.

    Returns:
        False when the catalog already has products (nothing written).
    """
    store = LedgerStore(session)
    if store.list_products():
        logger.info("[SEED] Catalog is not empty; demo data skipped")
        return False

    store.write_atomic(orders=demo_orders(now), products=DEMO_PRODUCTS, customers=DEMO_CUSTOMERS)
    logger.info(
        f"[SEED] Loaded {len(DEMO_PRODUCTS)} products, {len(DEMO_CUSTOMERS)} customers and 4 orders"
    )
    return True
