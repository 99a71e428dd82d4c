"""
Contact Extraction API - Flask Application Entry Point.

Thin HTTP surface over the cardrecon engine: parse vision-model output,
decode machine codes, deduplicate, score and export contacts.
"""

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from cardrecon import CardEngineError, VisionResponseError
from config import Config, get_config
from api.routes import api_bp

logger = logging.getLogger(__name__)

API_INFO = {
    "name": "Contact Extraction API",
    "version": "1.0.0",
    "description": "Extract, reconcile and export contacts from business card vision output",
    "endpoints": {
        "health": "/api/health",
        "status": "/api/status",
        "parse_text": "POST /api/parse-text",
        "process_single": "POST /api/process",
        "process_batch": "POST /api/batch",
        "decode": "POST /api/decode",
        "dedupe": "POST /api/dedupe",
        "quality": "POST /api/quality",
        "export": "POST /api/export/<vcf|csv|json>"
    }
}


def create_app(config_name: str = None) -> Flask:
    """Application factory for creating Flask app.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    config_class.init_app(app)

    # Enable CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": "*",
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    # Register blueprints
    app.register_blueprint(api_bp)

    @app.route("/")
    def index():
        """API information at the root."""
        return jsonify(API_INFO)

    @app.route("/api/info")
    def api_info():
        """API information endpoint."""
        return jsonify(API_INFO)

    # Global error handlers
    @app.errorhandler(CardEngineError)
    def engine_error(error):
        """Map engine errors: unusable model output is 422, a failed vision call 502."""
        status = 422 if isinstance(error, VisionResponseError) else 502
        logger.error(f"Engine error: {error}")
        return jsonify({
            "success": False,
            "error": error.message,
            "details": error.details
        }), status

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({
            "success": False,
            "error": "Not found"
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle wrong HTTP methods."""
        return jsonify({
            "success": False,
            "error": "Method not allowed"
        }), 405

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle oversized request bodies."""
        return jsonify({
            "success": False,
            "error": f"Request too large. Maximum size: {Config.MAX_CONTENT_LENGTH // (1024*1024)}MB"
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal error: {str(error)}")
        return jsonify({
            "success": False,
            "error": "Internal server error"
        }), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return jsonify({
                "success": False,
                "error": error.description
            }), error.code
        logger.error(f"Uncaught exception: {str(error)}", exc_info=True)
        return jsonify({
            "success": False,
            "error": "An unexpected error occurred"
        }), 500

    logger.info(f"Application created with config: {config_class.__name__}")

    return app


if __name__ == "__main__":
    # Get port from environment or default to 5000
    port = int(os.getenv("PORT", 5000))
    app = create_app()

    logger.info(f"Starting server on port {port}, debug={app.config['DEBUG']}")

    app.run(
        host="0.0.0.0",
        port=port,
        debug=app.config["DEBUG"]
    )
