"""Error taxonomy shared by the lifecycle, fulfillment and listing services.

Compatibility evaluation never raises: an incompatible pair is simply absent
from the candidate set. Everything that writes validates its preconditions
first and raises one of the classes below.
"""
from __future__ import annotations

from flask import Flask, jsonify


class MatchingError(Exception):
    status_code = 400
    code = "error"
    # Whether a caller may retry automatically after a fresh read
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        out = {"error": self.message, "code": self.code}
        if self.details:
            out["details"] = self.details
        if self.retryable:
            out["retryable"] = True
        return out


class ValidationError(MatchingError):
    status_code = 400
    code = "validation_error"


class Unauthorized(MatchingError):
    status_code = 403
    code = "unauthorized"


class NotFound(MatchingError):
    status_code = 404
    code = "not_found"


class DuplicateProposal(MatchingError):
    """A live match already exists for this (trip, shipment) pair."""

    status_code = 409
    code = "already_proposed"


class AlreadyExists(MatchingError):
    """The caller already owns an equivalent record (alert, review)."""

    status_code = 409
    code = "already_exists"


class Conflict(MatchingError):
    status_code = 409
    code = "conflict"
    retryable = True


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MatchingError)
    def _matching_error(err: MatchingError):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(401)
    def _unauthenticated(_err):
        return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401
