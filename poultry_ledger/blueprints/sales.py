"""Sales blueprint: checkout, order history and order edits."""
from flask import Blueprint, current_app, jsonify, request

from poultry_ledger.database import get_session
from poultry_ledger.exceptions import ValidationError
from poultry_ledger.services.checkout_service import checkout
from poultry_ledger.services.ledger_store import LedgerStore
from poultry_ledger.services.order_edit_service import edit_order

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body')
    return data


def _retry_options() -> dict:
    return {
        'max_retries': current_app.config.get('SETTLEMENT_MAX_RETRIES', 3),
        'backoff': current_app.config.get('SETTLEMENT_RETRY_BACKOFF', 0.1),
    }


@sales_bp.route('/checkout', methods=['POST'])
def checkout_order():
    """
    Confirm a sale.

    Body: {items: [{product_id, quantity, weight?}], customer_name,
           sale_type, tendered, note?}
    """
    data = _json_body()
    result = checkout(
        get_session(),
        data.get('items'),
        data.get('customer_name'),
        sale_type=data.get('sale_type', 'retail'),
        tendered=data.get('tendered', 0),
        note=data.get('note'),
        **_retry_options(),
    )
    return jsonify(result.to_dict()), 201


@sales_bp.route('/', methods=['GET'])
def list_orders():
    """Orders newest first. ?limit=N caps the list."""
    limit = request.args.get('limit', type=int)
    orders = LedgerStore(get_session()).list_orders(newest_first=True, limit=limit)
    return jsonify({'orders': [order.to_dict() for order in orders]})


@sales_bp.route('/<order_id>', methods=['GET'])
def get_order(order_id):
    order = LedgerStore(get_session()).get_order(order_id)
    return jsonify(order.to_dict())


@sales_bp.route('/<order_id>/edit', methods=['POST'])
def edit(order_id):
    """Body: {items: [{product_id, quantity}], note?}. Quantity 0 drops a line."""
    data = _json_body()
    result = edit_order(get_session(), order_id, data.get('items'), note=data.get('note'), **_retry_options())
    return jsonify(result.to_dict())
