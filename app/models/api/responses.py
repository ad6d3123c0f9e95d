# app/models/api/responses.py
"""Response envelopes shared by the REST routes."""

from typing import Any

from fastapi import HTTPException

from app.services.errors import ServiceError


def success_response(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """`{success: true, message?, data?}`"""
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_response(message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """`{success: false, message, errors?}`"""
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def http_error(error: ServiceError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)
