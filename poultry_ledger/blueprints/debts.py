"""Debts blueprint: collect payments, balances and aging."""
from flask import Blueprint, current_app, jsonify, request

from poultry_ledger.database import get_session
from poultry_ledger.exceptions import ValidationError
from poultry_ledger.services import debt_service

debts_bp = Blueprint('debts', __name__, url_prefix='/debts')


@debts_bp.route('/orders/<order_id>/payments', methods=['POST'])
def record_payment(order_id):
    """Body: {amount, note?}"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body')

    order = debt_service.record_payment(
        get_session(),
        order_id,
        data.get('amount'),
        note=data.get('note', ''),
        max_retries=current_app.config.get('SETTLEMENT_MAX_RETRIES', 3),
        backoff=current_app.config.get('SETTLEMENT_RETRY_BACKOFF', 0.1),
    )
    return jsonify(order.to_dict()), 201


@debts_bp.route('/aging', methods=['GET'])
def aging():
    report = debt_service.aging_report(
        get_session(),
        current_days=current_app.config.get('AGING_CURRENT_DAYS', 30),
        overdue_days=current_app.config.get('AGING_OVERDUE_DAYS', 60),
    )
    return jsonify(report.to_dict())


@debts_bp.route('/customers', methods=['GET'])
def balances():
    """Balances per customer plus the overview figures."""
    session = get_session()
    stats = debt_service.debt_statistics(session, credit_days=current_app.config.get('AGING_CURRENT_DAYS', 30))
    return jsonify({
        'customers': [debt_service.serialize_balance(b) for b in debt_service.customer_balances(session)],
        'total_debt': str(stats['total_debt']),
        'total_debtors': stats['total_debtors'],
        'overdue_orders': stats['overdue_orders'],
    })


@debts_bp.route('/orders', methods=['GET'])
def outstanding():
    """Unpaid orders, oldest first. ?customer_id= or ?customer_name= narrows to one customer."""
    orders = debt_service.outstanding_orders(
        get_session(),
        customer_id=request.args.get('customer_id'),
        customer_name=request.args.get('customer_name'),
    )
    return jsonify({'orders': [order.to_dict() for order in orders]})
