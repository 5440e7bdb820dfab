"""WSGI entry point (e.g. `gunicorn wsgi:app`)."""
import os

from poultry_ledger import create_app

# APP_CONFIG selects the config class, e.g. config.TestConfig for a throwaway SQLite ledger
app = create_app(os.getenv('APP_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run(debug=app.config.get('DEBUG', False))
