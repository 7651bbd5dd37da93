"""Flask application entry point."""

import logging
import sqlite3

from flask import Flask, jsonify
from flask_cors import CORS

from .config import settings
from .db import init_db
from .exceptions import AccountCoreError, DatabaseError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Create Flask app
app = Flask(__name__)

# CORS configuration
CORS(app, origins=settings.cors_origins, supports_credentials=True)


# Database initialization (runs once on app startup)
def initialize_database():
    """Initialize database on app startup."""
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


# Initialize database with app context
with app.app_context():
    initialize_database()


# Error handlers
@app.errorhandler(AccountCoreError)
def handle_account_core_error(error):
    """Render any AccountCoreError with its kind and HTTP status."""
    if error.status_code >= 500:
        logger.error(f"{error.__class__.__name__}: {error.message}")

    response = {
        "error": {
            "type": error.__class__.__name__,
            "kind": error.kind,
            "message": error.message
        }
    }
    if error.details:
        response["error"]["details"] = error.details
    return jsonify(response), error.status_code


@app.errorhandler(sqlite3.Error)
def handle_database_error(error):
    """Report SQLite failures that escaped the core as DatabaseError."""
    logger.exception(f"Database error: {error}")
    return handle_account_core_error(DatabaseError("Database operation failed"))


@app.errorhandler(500)
def handle_internal_error(error):
    """Handle internal server errors."""
    logger.error(f"Internal error: {error}")
    return jsonify({
        "error": {
            "type": "InternalServerError",
            "kind": "INTERNAL_ERROR",
            "message": "An internal error occurred"
        }
    }), 500


# Health check endpoint
@app.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


# Register API blueprints
from .api.v1 import api_v1_bp

app.register_blueprint(api_v1_bp)


if __name__ == "__main__":
    app.run(debug=True)
