"""
Request and response helpers shared by the VibeSync blueprints.
"""

import json
import logging
from functools import wraps

from flask import jsonify, request

from vibesync.utils.errors import VibeSyncError

logger = logging.getLogger(__name__)


def get_request_data():
    """JSON body as a dict; string bodies are parsed, anything unreadable is {}"""
    data = request.get_json(force=True, silent=True)
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            data = None
    return data if isinstance(data, dict) else {}


def error_response(error):
    return jsonify(error.to_dict()), error.status_code


def handle_errors(fallback_message):
    """Turn any exception raised by a route into a JSON error body"""
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except VibeSyncError as e:
                return error_response(e)
            except Exception as e:
                logger.exception(f"{fallback_message}: {e}")
                return jsonify({"error": fallback_message, "details": str(e)}), 500
        return wrapper
    return decorator
