from flask import Blueprint, jsonify, request

from poultry_ledger.database import get_session
from poultry_ledger.exceptions import ValidationError
from poultry_ledger.services import customer_service
from poultry_ledger.services.ledger_store import LedgerStore

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')

CUSTOMER_FIELDS = ('name', 'type', 'discount_rate', 'phone', 'address')


def _get_customer_data() -> dict:
    """Extract customer fields from the JSON body."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body')
    return {key: data[key] for key in CUSTOMER_FIELDS if key in data}


@customers_bp.route('/', methods=['GET'])
def list_customers():
    """?q= filters by name or phone."""
    customers = LedgerStore(get_session()).list_customers()
    query_str = (request.args.get('q') or '').strip().casefold()
    if query_str:
        customers = [
            c for c in customers
            if query_str in c.name.casefold() or (c.phone and query_str in c.phone)
        ]
    return jsonify({'customers': [c.to_dict() for c in customers]})


@customers_bp.route('/', methods=['POST'])
def create_customer():
    data = _get_customer_data()
    customer = customer_service.create_customer(
        get_session(),
        name=data.get('name'),
        customer_type=data.get('type', 'agency'),
        discount_rate=data.get('discount_rate', 0),
        phone=data.get('phone'),
        address=data.get('address'),
    )
    return jsonify(customer.to_dict()), 201


@customers_bp.route('/<customer_id>', methods=['PUT'])
def update_customer(customer_id):
    customer = customer_service.update_customer(get_session(), customer_id, **_get_customer_data())
    return jsonify(customer.to_dict())


@customers_bp.route('/<customer_id>', methods=['DELETE'])
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), customer_id)
    return jsonify({'status': 'ok'})
