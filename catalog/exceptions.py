"""Catalog exceptions.

Every error raised by the catalog services derives from ``CatalogError``.
The HTTP layer maps them to responses through ``status_code``.
"""

from typing import Any, Optional


class CatalogError(Exception):
    """Base class for all catalog errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(CatalogError):
    """Referenced product, vocabulary entry, association or asset does not exist."""

    status_code = 404


class ConflictError(CatalogError):
    """Uniqueness violated or entity already in the requested state."""

    status_code = 409


class ValidationError(CatalogError):
    """Caller-supplied data breaks a domain rule."""

    status_code = 400


class PersistenceError(CatalogError):
    """Storage write failed for an infrastructural reason."""

    status_code = 500


class UpstreamError(CatalogError):
    """Exchange rate provider failed or reported a non-success result."""

    status_code = 502


class UpstreamDataError(UpstreamError):
    """Exchange rate provider returned an unusable or incomplete payload."""


class SerializationError(CatalogError):
    """Payload could not be encoded for caching."""

    status_code = 500


class InvalidTypeError(CatalogError):
    """Unknown asset storage sub-path."""

    status_code = 500
