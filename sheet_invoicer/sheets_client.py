"""
Google Sheets access.

The rest of the package only depends on the narrow `SheetSource` interface;
`GoogleSheetsClient` is the production implementation on top of the
Sheets v4 API.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError

from .config import Settings
from .errors import SheetSourceError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

# Errors raised by the API client or by its HTTP transport.
SOURCE_ERRORS = (GoogleAuthError, GoogleApiError, httplib2.HttpLib2Error, OSError)


class SheetSource(Protocol):
    def list_sheet_titles(self) -> List[str]:
        """Titles of every tab in the spreadsheet, in spreadsheet order."""

    def get_values(self, sheet_name: str, cell_range: str) -> List[List[str]]:
        """Rows of `cell_range` on `sheet_name`, as formatted strings."""


def a1_range(sheet_name: str, cell_range: str) -> str:
    """
    Build an A1 range reference, quoting the sheet name.

    >>> a1_range("June 2025", "A:H")
    "'June 2025'!A:H"
    """
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cell_range}"


class GoogleSheetsClient:
    """
    Read-only client for one spreadsheet.

    Build it with `from_settings`; a returned client is ready to use and
    construction problems surface as SheetSourceError immediately.
    """

    def __init__(self, service, spreadsheet_id: str) -> None:
        self._service = service
        self.spreadsheet_id = spreadsheet_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleSheetsClient":
        if not settings.spreadsheet_id:
            raise SheetSourceError("GOOGLE_SPREADSHEET_ID is not configured.")

        try:
            if settings.google_api_key:
                logger.info("Using Google API key for authentication")
                service = build(
                    "sheets", "v4", developerKey=settings.google_api_key, cache_discovery=False
                )
            else:
                service = build(
                    "sheets",
                    "v4",
                    credentials=_service_account_credentials(settings.service_account_file),
                    cache_discovery=False,
                )
        except SOURCE_ERRORS + (ValueError,) as e:
            raise SheetSourceError(f"Google Sheets client could not be initialized: {e}") from e

        return cls(service, settings.spreadsheet_id)

    def list_sheet_titles(self) -> List[str]:
        try:
            response = (
                self._service.spreadsheets()
                .get(spreadsheetId=self.spreadsheet_id, fields="sheets.properties.title")
                .execute()
            )
        except SOURCE_ERRORS as e:
            logger.error("Error fetching available sheets: %s", e)
            raise SheetSourceError(f"Failed to fetch sheets: {e}") from e

        return [sheet["properties"]["title"] for sheet in response.get("sheets", [])]

    def get_values(self, sheet_name: str, cell_range: str) -> List[List[str]]:
        try:
            response = (
                self._service.spreadsheets()
                .values()
                .get(spreadsheetId=self.spreadsheet_id, range=a1_range(sheet_name, cell_range))
                .execute()
            )
        except SOURCE_ERRORS as e:
            logger.error("Error fetching data for sheet %s: %s", sheet_name, e)
            raise SheetSourceError(f"Failed to fetch data for sheet {sheet_name}: {e}") from e

        return response.get("values", [])


def _service_account_credentials(key_file: Optional[Path]):
    if key_file is None or not Path(key_file).exists():
        raise SheetSourceError(
            "Neither GOOGLE_API_KEY nor a service account key file was found. "
            "Set GOOGLE_API_KEY or GOOGLE_SERVICE_ACCOUNT_FILE."
        )
    return service_account.Credentials.from_service_account_file(str(key_file), scopes=SCOPES)
