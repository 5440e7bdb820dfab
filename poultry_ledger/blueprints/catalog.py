"""Catalog blueprint: products, price changes and stock imports."""
from flask import Blueprint, current_app, jsonify, request

from poultry_ledger.database import get_session
from poultry_ledger.domain.catalog import stock_status
from poultry_ledger.exceptions import ValidationError
from poultry_ledger.services import inventory_service

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')

PRODUCT_FIELDS = ('name', 'category', 'price', 'stock', 'unit', 'min_stock_threshold', 'description', 'image')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body')
    return data


def _product_json(product) -> dict:
    return {**product.to_dict(), 'status': stock_status(product)}


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    """?q= searches name/category, ?status=out|low|in filters by stock level."""
    products = inventory_service.list_products(
        get_session(),
        search=request.args.get('q'),
        status=request.args.get('status') or None,
    )
    return jsonify({'products': [_product_json(p) for p in products]})


@catalog_bp.route('/products', methods=['POST'])
def create_product():
    data = _json_body()
    product = inventory_service.create_product(
        get_session(),
        name=data.get('name'),
        price=data.get('price'),
        stock=data.get('stock', 0),
        category=data.get('category', ''),
        unit=data.get('unit', 'head'),
        min_stock_threshold=data.get(
            'min_stock_threshold', current_app.config.get('DEFAULT_MIN_STOCK_THRESHOLD', 10)
        ),
        description=data.get('description', ''),
        image=data.get('image'),
    )
    return jsonify(_product_json(product)), 201


@catalog_bp.route('/products/low-stock', methods=['GET'])
def low_stock():
    products = inventory_service.low_stock_products(get_session())
    return jsonify({'products': [_product_json(p) for p in products]})


@catalog_bp.route('/products/<product_id>', methods=['PUT'])
def update_product(product_id):
    data = _json_body()
    fields = {key: data[key] for key in PRODUCT_FIELDS if key in data}
    product = inventory_service.update_product(get_session(), product_id, **fields)
    return jsonify(_product_json(product))


@catalog_bp.route('/products/<product_id>', methods=['DELETE'])
def delete_product(product_id):
    inventory_service.delete_product(get_session(), product_id)
    return jsonify({'status': 'ok'})


@catalog_bp.route('/products/<product_id>/import', methods=['POST'])
def import_stock(product_id):
    """Body: {quantity}"""
    data = _json_body()
    product = inventory_service.import_stock(
        get_session(),
        product_id,
        data.get('quantity'),
        max_retries=current_app.config.get('SETTLEMENT_MAX_RETRIES', 3),
        backoff=current_app.config.get('SETTLEMENT_RETRY_BACKOFF', 0.1),
    )
    return jsonify(_product_json(product))
