# FILE: messboard/exceptions.py
"""
Exception hierarchy for Mess Board.
Each error carries the HTTP status it maps to at the API boundary.
"""
from typing import Any, Dict, Optional


class MessBoardException(Exception):
    """Base exception for all board errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(MessBoardException):
    """Missing or invalid input on create."""

    status_code = 400


class NotFoundError(MessBoardException):
    """Target record does not exist."""

    status_code = 404


class StoreUnavailableError(MessBoardException):
    """Backing record store failed or is unreachable."""

    status_code = 503


class BlobStoreError(MessBoardException):
    """Image store failed to store or delete a blob."""

    status_code = 500
