# Overview: Error taxonomy shared by the ledger, refund, and catalog services.

"""
Service-level errors.

Every failure the services raise carries a human-readable message plus an
optional ``details`` dict, so the HTTP layer can render it without knowing
which service produced it. ``status_code`` is the response code the routes use.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for expected, caller-facing failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(PosError):
    """Missing transaction, item, or barcode."""
    status_code = 404


class InvalidInputError(PosError):
    """Malformed quantity, empty refund selection, missing cash amount, bad filter."""
    status_code = 400


class InvalidStateError(PosError):
    """Operation not legal for the transaction's current status."""
    status_code = 409


class InsufficientPaymentError(PosError):
    """Cash tendered is below the transaction total."""
    status_code = 400
