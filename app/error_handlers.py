"""
JSON error handlers shared by every blueprint.
"""

import logging
from typing import Any, Dict

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .exceptions import ResumeStoreError, ValidationError

logger = logging.getLogger(__name__)


def get_json_body() -> Dict[str, Any]:
    """Parse the request body as a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_error_handlers(app: Flask) -> None:
    """Render every error as ``{"error": ..., "details"?: ...}``."""

    @app.errorhandler(ResumeStoreError)
    def handle_store_error(error: ResumeStoreError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message} ({error.details})")
        else:
            logger.info(f"{request.method} {request.path} -> {error.status_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"error": error.name, "details": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception(f"Server Error on {request.method} {request.path}: {error}")
        return jsonify({"error": "Internal server error"}), 500
