"""Dashboard blueprint."""
from flask import Blueprint, jsonify

from poultry_ledger.database import get_session
from poultry_ledger.services.dashboard_service import get_dashboard_summary, serialize_summary

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')


@dashboard_bp.route('/summary', methods=['GET'])
def summary():
    return jsonify(serialize_summary(get_dashboard_summary(get_session())))
