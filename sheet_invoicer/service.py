"""
The invoice-generation pipeline: validate, fetch, compose, render.

`InvoiceService` is what the HTTP API and the CLI talk to. `build_service`
wires the production collaborators from Settings in one explicit step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .catalog import SheetCatalog
from .composer import InvoiceComposer, decimal_sum
from .config import Settings
from .errors import NotFoundError, ValidationError
from .extractor import SheetDataExtractor
from .periods import parse_period
from .registry import CompanyRegistry, JsonFileStore
from .renderer import RenderPool
from .schema import CompanyProfile, InvoiceDocument, LineItem, ManualExpense
from .sheets_client import GoogleSheetsClient, SheetSource

logger = logging.getLogger(__name__)


@dataclass
class SheetPreview:
    line_items: List[LineItem]
    total_amount: Decimal
    company: Optional[CompanyProfile] = None


@dataclass
class GeneratedInvoice:
    filename: str
    pdf: bytes
    document: InvoiceDocument


def invoice_filename(company_key: str, document: InvoiceDocument) -> str:
    return f"Invoice_{company_key}_{document.period.compact}_{document.invoice_number}.pdf"


class InvoiceService:
    def __init__(
        self,
        registry: CompanyRegistry,
        catalog: SheetCatalog,
        extractor: SheetDataExtractor,
        composer: InvoiceComposer,
        render_pool: RenderPool,
    ) -> None:
        self.registry = registry
        self.catalog = catalog
        self.extractor = extractor
        self.composer = composer
        self.render_pool = render_pool

    def list_sheets(self) -> List[str]:
        return self.catalog.list_available_sheets()

    def list_companies(self) -> Dict[str, CompanyProfile]:
        return self.registry.get_all()

    def _company(self, company_key: str) -> CompanyProfile:
        company = self.registry.get_by_key(company_key)
        if company is None:
            raise ValidationError("Company not found")
        return company

    def preview(self, sheet_name: str, company_key: str) -> SheetPreview:
        """Line items and their total for one company, without issuing anything."""
        company = self._company(company_key)
        items = self.extractor.fetch_company_line_items(sheet_name, company.sheet_identifier)
        return SheetPreview(
            line_items=items,
            total_amount=decimal_sum(item.amount_to_invoice for item in items),
            company=company,
        )

    def preview_all(self, sheet_name: str) -> SheetPreview:
        items = self.extractor.fetch_all_line_items(sheet_name)
        return SheetPreview(
            line_items=items,
            total_amount=decimal_sum(item.amount_to_invoice for item in items),
        )

    def generate_invoice(
        self,
        sheet_name: str,
        company_key: str,
        manual_expenses: Sequence[ManualExpense] = (),
    ) -> GeneratedInvoice:
        """
        Run the full pipeline for one company and month.

        Every check that can reject the request happens before the invoice
        number is issued, so 4xx outcomes never consume a number.
        """
        if not sheet_name or not company_key:
            raise ValidationError("Sheet name and company key are required")

        company = self._company(company_key)
        period = parse_period(sheet_name)

        line_items = self.extractor.fetch_company_line_items(sheet_name, company.sheet_identifier)
        if not line_items:
            raise NotFoundError("No data found for this company in the selected month")

        document = self.composer.compose(company, period, line_items, manual_expenses)
        pdf = self.render_pool.render(document)

        filename = invoice_filename(company_key, document)
        logger.info(
            "Invoice generated: %s for %s - Amount: $%.2f",
            filename,
            company.legal_name,
            document.total_amount,
        )
        return GeneratedInvoice(filename=filename, pdf=pdf, document=document)


def build_service(settings: Settings, source: Optional[SheetSource] = None) -> InvoiceService:
    """
    Construct a ready InvoiceService.

    Raises SheetSourceError, PersistenceError or RenderError when a
    collaborator cannot be initialized.
    """
    if source is None:
        source = GoogleSheetsClient.from_settings(settings)

    registry = CompanyRegistry.load(JsonFileStore(settings.companies_file))
    return InvoiceService(
        registry=registry,
        catalog=SheetCatalog(source, year_filter=settings.sheet_year_filter),
        extractor=SheetDataExtractor(source),
        composer=InvoiceComposer(registry),
        render_pool=RenderPool(
            settings.max_concurrent_renders,
            logo_path=settings.logo_path,
            acquire_timeout=settings.render_acquire_timeout,
        ),
    )
