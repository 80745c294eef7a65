"""
Common API utilities for consistent response formatting across all controllers.
"""

import logging
from typing import Any, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ebers.core.exceptions import ClinicError, ValidationError

logger = logging.getLogger(__name__)


def api_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    status_code: int = 200,
    details: Optional[Any] = None,
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code
        details: Optional per-field error messages

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    if details:
        response["details"] = details

    return jsonify(response), status_code


def get_json_body() -> dict:
    """Parsed JSON object from the request, or ValidationError."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Corpo da requisição deve ser um objeto JSON")
    return body


def error_response(error: ClinicError) -> tuple:
    return api_response(
        False,
        error.message,
        None,
        error.status_code,
        details=error.details or None,
    )


def register_error_handlers(app: Flask) -> None:
    """Translate application errors into ``api_response`` payloads."""

    @app.errorhandler(ClinicError)
    def handle_clinic_error(error: ClinicError):
        log = logger.error if error.status_code >= 500 else logger.info
        log(
            error.message,
            extra={
                "context": {
                    "error_code": error.error_code,
                    "status_code": error.status_code,
                    "path": request.path,
                }
            },
        )
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return api_response(False, error.description or error.name, None, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(
            "Unhandled error",
            extra={"context": {"path": request.path, "error": str(error)}},
            exc_info=True,
        )
        return api_response(False, "Erro interno do servidor", None, 500)
