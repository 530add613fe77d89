"""
Error taxonomy for the relay.

Each error carries the HTTP status it maps to; ``legalrelay.main`` renders
them as ``{"success": false, "error": ..., "message": ...}``.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str, *, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error


class InputValidationError(RelayError):
    status_code = 400
    error = "Invalid request"


class AccountError(RelayError):
    status_code = 403
    error = "Account not recognized"


class NotFoundError(RelayError):
    status_code = 404
    error = "Not found"


class ProviderConfigError(RelayError):
    error = "AI service not configured"


class ExtractionFailure(RelayError):
    error = "Failed to process document"


class ProviderCallFailure(RelayError):
    error = "AI provider request failed"


class StoreFailure(RelayError):
    error = "User data store error"
