"""
Company registry: client billing profiles and their invoice counters.

The registry owns the only shared mutable state of the service. It is kept
in memory and written back in full, through a `RegistryStore`, after every
invoice-number increment.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from pydantic import ValidationError as SchemaError

from .errors import NotFoundError, PersistenceError
from .schema import CompanyProfile

logger = logging.getLogger(__name__)

DEFAULT_COMPANIES: Dict[str, dict] = {
    "Velir": {
        "name": "Velir Studios, Inc.",
        "address": "212 Elm Street, Suite 201",
        "city": "Somerville, MA",
        "project": "Velir Clients",
        "latestInvoiceNumber": 586,
        "googleSheetsValue": "Velir",
    },
    "Daily Kos": {
        "name": "Kos Media, LLC",
        "address": "436 14th Street",
        "city": "Oakland, CA 94612, United States",
        "project": "Daily Kos",
        "latestInvoiceNumber": 14,
        "googleSheetsValue": "Daily Kos",
    },
    "McGowan": {
        "name": "McGowan Wholesale",
        "address": "20595 Lorain Rd",
        "city": "Fairview Park, OH 44126",
        "project": "Hive",
        "latestInvoiceNumber": 11,
        "googleSheetsValue": "McGowan",
    },
    "travcoding": {
        "name": "Preferred Guest Resorts LLC",
        "address": "501 N Wynmore Road",
        "city": "Winter Park, FL, 32789",
        "project": "travcoding",
        "latestInvoiceNumber": 117,
        "googleSheetsValue": "travcoding",
    },
}


class RegistryStore(Protocol):
    """Persistence port for the registry."""

    def load(self) -> Optional[dict]:
        """Return the persisted mapping, or None when nothing was saved yet."""

    def save(self, data: dict) -> None:
        """Durably replace the persisted mapping."""


class JsonFileStore:
    """
    Registry store backed by a single JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never see a half-written document.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read company registry {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Company registry {self.path} is not a JSON object")
        return data

    def save(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not save company registry {self.path}: {e}") from e


class CompanyRegistry:
    """
    Mapping of company key to CompanyProfile with durable invoice counters.

    Profiles are immutable; the only way to change one is
    `increment_invoice_number`.
    """

    def __init__(self, store: RegistryStore, companies: Dict[str, CompanyProfile]) -> None:
        self._store = store
        self._companies = companies
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store: RegistryStore) -> "CompanyRegistry":
        """
        Load the registry from `store`, seeding and persisting the default
        companies when nothing has been stored yet.
        """
        data = store.load()
        seeded = data is None
        if seeded:
            logger.info("No company registry found; seeding %d default companies", len(DEFAULT_COMPANIES))
            data = DEFAULT_COMPANIES

        try:
            companies = {
                key: CompanyProfile(key=key, **record) for key, record in data.items()
            }
        except (SchemaError, TypeError) as e:
            raise PersistenceError(f"Invalid company registry contents: {e}") from e

        registry = cls(store, companies)
        if seeded:
            registry._persist()
        return registry

    def get_all(self) -> Dict[str, CompanyProfile]:
        with self._lock:
            return dict(self._companies)

    def get_by_key(self, key: str) -> Optional[CompanyProfile]:
        with self._lock:
            return self._companies.get(key)

    def get_by_sheet_identifier(self, identifier: str) -> Optional[CompanyProfile]:
        with self._lock:
            for profile in self._companies.values():
                if profile.sheet_identifier == identifier:
                    return profile
        return None

    def increment_invoice_number(self, key: str) -> int:
        """
        Bump the company's invoice counter by one, persist the whole
        registry and return the new number.

        If the write fails the counter is restored and PersistenceError is
        raised, so an unsaved number is never handed out.
        """
        with self._lock:
            profile = self._companies.get(key)
            if profile is None:
                raise NotFoundError(f"Company {key} not found")

            issued = profile.model_copy(
                update={"latest_invoice_number": profile.latest_invoice_number + 1}
            )
            self._companies[key] = issued
            try:
                self._persist()
            except PersistenceError:
                self._companies[key] = profile
                logger.error("Invoice number for %s not issued: registry save failed", key)
                raise

            logger.info("Issued invoice number %d for %s", issued.latest_invoice_number, key)
            return issued.latest_invoice_number

    def _persist(self) -> None:
        self._store.save({key: p.to_record() for key, p in self._companies.items()})
