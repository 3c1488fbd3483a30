# storefront/error_handlers.py
import logging
import traceback

import sentry_sdk
from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from storefront.errors import DomainError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register all error handlers for the application"""

    @app.errorhandler(DomainError)
    def handle_domain_error(error):
        logger.warning(
            f"{error.__class__.__name__}: {error.message} - Path: {request.path}",
            extra={"error_code": error.code},
        )
        response = jsonify({
            "error": error.code,
            "message": error.message,
            "path": request.path,
            **error.payload,
        })
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """
        Handles known HTTP errors (404, 401, 403, etc.)
        """
        logger.info(f"HTTP {e.code}: {request.method} {request.path}")
        return jsonify({
            "error": e.name,
            "message": e.description,
            "path": request.path,
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """
        Handles all unexpected server errors
        Prevents stack trace leakage in production
        """
        logger.error(f"Unhandled exception - Path: {request.path}")
        if app.config.get("DEBUG", False):
            logger.error(f"Traceback: {traceback.format_exc()}")
        sentry_sdk.capture_exception(e)

        return jsonify({
            "error": "Server error",
            "message": "An internal server error occurred. Please try again later.",
            "path": request.path,
        }), 500
