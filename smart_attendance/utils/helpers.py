"""Helper functions for the application."""
from flask import jsonify
from typing import Any

from smart_attendance.utils.exceptions import VerificationError

def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    if isinstance(error, VerificationError):
        return jsonify(error.to_dict()), status_code

    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code

def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code

def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code
