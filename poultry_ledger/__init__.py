"""Flask application factory."""
import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from poultry_ledger.database import init_db


def _configure_logging(app):
    level = app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger('poultry_ledger').setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)
    app.json.ensure_ascii = False

    _configure_logging(app)

    # Initialize database
    init_db(app)

    # Error Handlers
    from poultry_ledger.exceptions import LedgerError

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from poultry_ledger.blueprints.sales import sales_bp
    from poultry_ledger.blueprints.debts import debts_bp
    from poultry_ledger.blueprints.catalog import catalog_bp
    from poultry_ledger.blueprints.customers import customers_bp
    from poultry_ledger.blueprints.dashboard import dashboard_bp

    app.register_blueprint(sales_bp)
    app.register_blueprint(debts_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(dashboard_bp)

    # Register CLI commands
    from poultry_ledger.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"{app.config.get('BUSINESS_NAME')} ledger ready")

    return app
