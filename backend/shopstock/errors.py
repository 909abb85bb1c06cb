# Overview: Error taxonomy shared by the stock engine and its request layer.

"""
Stock engine errors.

Every service raises one of these inside the transaction boundary; the
transaction is rolled back before the error leaves the service. Routes
translate them with error_response().

- ValidationError: malformed/missing input, nothing was touched
- NotFoundError: entity missing or outside the caller's shop scope
- ConflictError: identifier collision or already in an incompatible state
- UnavailableError: entity exists but is not in the status the operation needs
- ForbiddenError: caller has no access to a shop named in the request
- InternalError: storage / transaction failure
"""

from __future__ import annotations

from flask import jsonify


class StockError(Exception):
    """Base class for stock engine errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(StockError, ValueError):
    """400-level input problem."""

    status_code = 400


class NotFoundError(StockError):
    status_code = 404


class ConflictError(StockError):
    """409-level business rule conflict (e.g., duplicate IMEI)."""

    status_code = 409


class UnavailableError(StockError):
    """Entity exists but is not in the required status (e.g. already sold)."""

    status_code = 400


class ForbiddenError(StockError):
    status_code = 403


class InternalError(StockError):
    status_code = 500


def error_response(exc: StockError, status_code: int | None = None):
    body = {"error": exc.message}
    if exc.details:
        body["details"] = exc.details
    return jsonify(body), status_code or exc.status_code
