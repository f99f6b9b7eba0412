"""
Data models for line items, company profiles and invoice documents.

All components (registry, extractor, composer, renderer, API, CLI) use these
Pydantic models to share one contract. Money is always `Decimal`.

JSON field names follow the persisted registry file and the HTTP API
(`consultantName`, `latestInvoiceNumber`, ...); Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LineItem(BaseModel):
    """
    One consultant's billable row for a period, normalized from a sheet.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    consultant_name: str = Field(..., alias="consultantName", min_length=1)
    company_name: str = Field(..., alias="companyName")
    actual_hours: Decimal = Field(..., alias="actualHours", ge=0)
    client_rate: Decimal = Field(default=Decimal("0"), alias="clientRate")
    amount_to_invoice: Decimal = Field(default=Decimal("0"), alias="amountToInvoice")


# Largest amount accepted from callers; keeps totals within cent precision.
MAX_EXPENSE_AMOUNT = Decimal("1000000000")


class ManualExpense(BaseModel):
    """
    An ad-hoc charge supplied by the caller, not read from the sheet.
    """

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="Label printed on the invoice.")
    amount: Decimal = Field(..., description="Charge in currency units.")

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Expense description must not be empty.")
        return v

    @field_validator("amount")
    @classmethod
    def amount_in_range(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or abs(v) >= MAX_EXPENSE_AMOUNT:
            raise ValueError(f"Expense amount must be a number below {MAX_EXPENSE_AMOUNT}.")
        return v


class CompanyProfile(BaseModel):
    """
    Billing identity and invoice counter for one client.

    `key` is the registry key; it is not part of the persisted record
    because the registry file is a mapping keyed by it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(..., description="Stable registry identifier.")
    legal_name: str = Field(..., alias="name")
    address: str = ""
    city: str = ""
    project: str = ""
    latest_invoice_number: int = Field(..., alias="latestInvoiceNumber", ge=0)
    sheet_identifier: str = Field(..., alias="googleSheetsValue")

    def to_record(self) -> dict:
        """Persisted / API shape of the profile (without the key)."""
        return self.model_dump(by_alias=True, exclude={"key"})


class InvoicePeriod(BaseModel):
    """
    Billing month derived from a sheet name such as "March2024".
    """

    model_config = ConfigDict(frozen=True)

    month: str
    month_index: int = Field(..., ge=1, le=12)
    year: int

    @property
    def label(self) -> str:
        return f"{self.month} {self.year}"

    @property
    def compact(self) -> str:
        return f"{self.month}{self.year}"


class InvoiceDocument(BaseModel):
    """
    The finalized invoice record handed to the renderer.

    Immutable once composed; totals are computed by the composer and
    `total_amount` always equals `line_items_total + manual_expenses_total`.
    """

    model_config = ConfigDict(frozen=True)

    invoice_number: int
    invoice_date: date
    company: CompanyProfile
    period: InvoicePeriod
    line_items: Tuple[LineItem, ...]
    manual_expenses: Tuple[ManualExpense, ...] = ()
    line_items_total: Decimal
    manual_expenses_total: Decimal
    total_amount: Decimal

    @property
    def invoice_date_label(self) -> str:
        """Long-form date, e.g. "January 5, 2025"."""
        d = self.invoice_date
        return f"{d:%B} {d.day}, {d.year}"


class GenerateInvoiceRequest(BaseModel):
    """
    Body of POST /api/generate-invoice.
    """

    model_config = ConfigDict(populate_by_name=True)

    sheet_name: str = Field(default="", alias="sheetName")
    company_key: str = Field(default="", alias="companyKey")
    manual_expenses: List[ManualExpense] = Field(
        default_factory=list, alias="manualExpenses"
    )
