"""
Error taxonomy shared by the pipeline, the HTTP API and the CLI.

Every error carries the HTTP status it maps to, so the API layer can turn
any of them into the uniform `{"success": false, "error": ...}` envelope.
"""

from __future__ import annotations


class InvoicerError(Exception):
    """
    Base class for all expected failures of the invoicing pipeline.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InvoicerError):
    """
    Caller supplied missing or malformed input. No state was mutated.
    """

    status_code = 400


class NotFoundError(InvoicerError):
    """
    The requested company/period has nothing to bill.
    """

    status_code = 404


class UpstreamError(InvoicerError):
    """
    An external collaborator (spreadsheet source, render engine) failed.
    """

    status_code = 500


class SheetSourceError(UpstreamError):
    """Spreadsheet source unreachable, unauthorized or misconfigured."""


class RenderError(UpstreamError):
    """PDF rendering could not be started or did not complete."""


class PersistenceError(InvoicerError):
    """
    The company registry could not be read or durably written.
    """

    status_code = 500


class AuthenticationError(InvoicerError):
    """Missing or wrong API token."""

    status_code = 401
