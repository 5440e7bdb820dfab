"""Customer service: agency/retail customer records and the legacy name-to-id link."""
import logging
import re
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from poultry_ledger.domain.records import HUNDRED, ZERO, Customer, CustomerType
from poultry_ledger.exceptions import PersistenceError, ValidationError
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.utils.number_format import parse_money

logger = logging.getLogger(__name__)

# Vietnamese mobile numbers: 0 or 84 prefix, then carrier digit 3/5/7/8/9 and 8 more digits
VN_PHONE_PATTERN = re.compile(r'^(84[35789]|0[35789])[0-9]{8}$')


def new_customer_id() -> str:
    return f'CUS-{uuid.uuid4().hex[:12].upper()}'


def _normalize_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    phone = re.sub(r'[\s.\-]', '', str(phone))
    return phone or None


def _parse_customer_type(value) -> CustomerType:
    if isinstance(value, CustomerType):
        return value
    try:
        return CustomerType(str(value or 'agency').strip().lower())
    except ValueError:
        raise ValidationError(f'Unknown customer type: {value!r}')


def _parse_discount(value) -> Decimal:
    rate = parse_money(value if value not in (None, '') else 0, field='discount_rate', allow_negative=True)
    if rate < ZERO or rate > HUNDRED:
        raise ValidationError('Discount rate must be between 0 and 100')
    return rate


def validate_customer(store: LedgerStore, customer: Customer) -> Customer:
    """
    Check a customer record before saving it.

    Raises:
        ValidationError: empty name, malformed or duplicate phone, discount
            out of range, or a name already used by another customer.
    """
    if not customer.name or not customer.name.strip():
        raise ValidationError('Customer name is required')
    if customer.discount_rate < ZERO or customer.discount_rate > HUNDRED:
        raise ValidationError('Discount rate must be between 0 and 100')
    if customer.phone and not VN_PHONE_PATTERN.match(customer.phone):
        raise ValidationError(f'Invalid phone number: {customer.phone}')

    for other in store.list_customers():
        if other.id == customer.id:
            continue
        if customer.phone and other.phone == customer.phone:
            raise ValidationError(
                f'Phone {customer.phone} already belongs to {other.name}',
                payload={'customer_id': other.id},
            )
        if other.matches_name(customer.name):
            raise ValidationError(
                f'A customer named {other.name} already exists',
                payload={'customer_id': other.id},
            )
    return customer


def create_customer(
    session,
    name: str,
    customer_type='agency',
    discount_rate=0,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Customer:
    """Create a customer (agency by default)."""
    store = LedgerStore(session)
    customer = Customer(
        id=new_customer_id(),
        name=(name or '').strip(),
        type=_parse_customer_type(customer_type),
        discount_rate=_parse_discount(discount_rate),
        phone=_normalize_phone(phone),
        address=(address or '').strip() or None,
    )
    validate_customer(store, customer)

    committed = store.write_atomic(customers=[customer])
    logger.info(f"[CUSTOMER] Created {customer.id} '{customer.name}' ({customer.type.value}, {customer.discount_rate}%)")
    return committed.customers[0]


def update_customer(session, customer_id: str, **fields) -> Customer:
    """
    Update name, type, discount_rate, phone or address.

    Past orders keep the discount they were sold with.
    """
    store = LedgerStore(session)
    current = store.get_customer(customer_id)

    changes = {}
    if 'name' in fields:
        changes['name'] = (fields['name'] or '').strip()
    if 'type' in fields:
        changes['type'] = _parse_customer_type(fields['type'])
    if 'discount_rate' in fields:
        changes['discount_rate'] = _parse_discount(fields['discount_rate'])
    if 'phone' in fields:
        changes['phone'] = _normalize_phone(fields['phone'])
    if 'address' in fields:
        changes['address'] = (fields['address'] or '').strip() or None

    updated = validate_customer(store, replace(current, **changes))
    committed = store.write_atomic(customers=[updated])
    logger.info(f"[CUSTOMER] Updated {customer_id}: {sorted(changes)}")
    return committed.customers[0]


def customer_debt(store: LedgerStore, customer: Customer) -> Decimal:
    return sum((order.debt for order in store.outstanding_orders_for(customer)), ZERO)


def delete_customer(session, customer_id: str) -> None:
    """
    Delete a customer with no outstanding debt.

    Raises:
        ValidationError: the customer still owes money.
    """
    store = LedgerStore(session)
    customer = store.get_customer(customer_id)

    debt = customer_debt(store, customer)
    if debt > 0:
        raise ValidationError(
            f'{customer.name} still owes {debt}; collect the debt before deleting',
            payload={'debt': str(debt)},
        )
    store.delete_customer(customer_id)


def find_customer_by_name(session, name: str) -> Optional[Customer]:
    return LedgerStore(session).find_customer_by_name(name)


def get_or_create_agency_customer(session, name: str) -> Customer:
    """
    Get the customer with this name, creating an agency customer with a 0%
    discount on the first agency sale to an unknown name.

    Safe under concurrent calls: if another terminal created the same name
    first, the unique index rejects our insert and we read theirs.
    """
    store = LedgerStore(session)
    existing = store.find_customer_by_name(name)
    if existing is not None:
        return existing

    customer = Customer(
        id=new_customer_id(),
        name=name.strip(),
        type=CustomerType.AGENCY,
        discount_rate=ZERO,
    )
    try:
        committed = store.write_atomic(customers=[customer])
    except PersistenceError:
        # Race condition: another terminal registered the same name
        existing = store.find_customer_by_name(name)
        if existing is not None:
            return existing
        raise

    logger.info(f"[CUSTOMER] Registered new agency '{customer.name}' ({customer.id}) with 0% discount")
    return committed.customers[0]


def link_orders_to_customers(session) -> int:
    """
    Legacy migration: fill customer_id on orders that only carry a name.

    Matching is case-insensitive exact. Returns the number of orders linked.
    """
    store = LedgerStore(session)
    customers = store.list_customers()

    linked = []
    for order in store.list_orders():
        if order.customer_id is not None:
            continue
        match = next((customer for customer in customers if customer.matches_name(order.customer_name)), None)
        if match is not None:
            linked.append(replace(order, customer_id=match.id))

    if linked:
        store.write_atomic(orders=linked)
    logger.info(f"[CUSTOMER] Linked {len(linked)} legacy order(s) to customer records")
    return len(linked)
