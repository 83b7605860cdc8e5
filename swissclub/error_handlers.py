from flask import Blueprint, current_app, jsonify

from .errors import AppError, BackendUnavailableError, NotFoundError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(error):
    return (
        jsonify({"error": error.message, "retryable": error.retryable}),
        error.status_code,
    )


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors, including invalid result values."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors, including unknown pairings."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(BackendUnavailableError)
def handle_backend_unavailable(error):
    """Handles storage timeouts and quota errors; the client may retry."""
    current_app.logger.error(f"Backend Unavailable: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.warning(f"Application Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"error": "Not found.", "retryable": False}), 404


@error_handlers_bp.app_errorhandler(405)
def handle_405(e):
    return jsonify({"error": "Method not allowed.", "retryable": False}), 405


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    return jsonify({"error": "Internal server error.", "retryable": False}), 500
