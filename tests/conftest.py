"""Shared test fixtures for sheet_invoicer tests."""

from datetime import date

import pytest

from sheet_invoicer.catalog import SheetCatalog
from sheet_invoicer.composer import InvoiceComposer
from sheet_invoicer.extractor import SheetDataExtractor
from sheet_invoicer.registry import CompanyRegistry, JsonFileStore
from sheet_invoicer.renderer import RenderPool
from sheet_invoicer.service import InvoiceService

HEADER = [
    "Nombre", "Rol", "Empresa", "Horas Reales", "Horas Plan",
    "$ cliente", "$ consultor", "Importe a facturar",
]

SHEETS = {
    "January2024": [
        HEADER,
        ["John Doe", "Developer", "Velir", "40", "40", "$100.00", "$60.00", "$4,000.00"],
        ["Jane Roe", "QA", "Daily Kos", "10.5", "10", "$80.00", "$50.00", "$840.00"],
    ],
    "February 2024": [
        HEADER,
        ["Ann Lee", "PM", " Velir ", "2", "", "$150.00", "", "$300.00"],
        ["Idle Person", "Developer", "Velir", "0", "", "$100.00", "", "$0.00"],
        ["", "Developer", "Velir", "5", "", "$100.00", "", "$500.00"],
        ["Bob Stone", "Developer", "McGowan", "12", "", "$95.00", "", "$1,140.00"],
        ["Cara Diaz", "Developer", "Velir", "8", "", "n/a", "", "$800.50"],
        ["No Company", "Developer", "", "3", "", "$90.00", "", "$270.00"],
        ["Short Row", "Developer", "Velir", "1"],
    ],
    "March 2024": [HEADER],
    "April2024": [],
}

TITLES = [
    "Summary",
    "January2024",
    "March 2024",
    "February 2024",
    "December2023",
    "April2024",
    "Sheet1",
    "june2024",
]


class FakeSheetSource:
    """In-memory stand-in for the Google Sheets client."""

    def __init__(self, sheets=None, titles=None):
        self.sheets = SHEETS if sheets is None else sheets
        self.titles = TITLES if titles is None else titles
        self.value_calls = []

    def list_sheet_titles(self):
        return list(self.titles)

    def get_values(self, sheet_name, cell_range):
        self.value_calls.append((sheet_name, cell_range))
        return [list(row) for row in self.sheets.get(sheet_name, [])]


@pytest.fixture
def sheet_source():
    return FakeSheetSource()


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / "data" / "companies.json"


@pytest.fixture
def registry(registry_path):
    return CompanyRegistry.load(JsonFileStore(registry_path))


@pytest.fixture
def invoice_date():
    return date(2025, 1, 5)


@pytest.fixture
def composer(registry, invoice_date):
    return InvoiceComposer(registry, today=lambda: invoice_date)


@pytest.fixture
def logo_path(tmp_path):
    from PIL import Image

    path = tmp_path / "logo.png"
    Image.new("RGB", (300, 100), (44, 62, 80)).save(path)
    return path


@pytest.fixture
def render_pool(logo_path):
    return RenderPool(1, logo_path=logo_path, acquire_timeout=5)


@pytest.fixture
def make_service(registry, composer, render_pool):
    """Factory fixture building an InvoiceService around a fake sheet source."""
    def _make_service(source=None, year_filter=2024):
        source = source or FakeSheetSource()
        return InvoiceService(
            registry=registry,
            catalog=SheetCatalog(source, year_filter=year_filter),
            extractor=SheetDataExtractor(source),
            composer=composer,
            render_pool=render_pool,
        )
    return _make_service


@pytest.fixture
def service(make_service):
    return make_service()


def pdf_text(pdf_bytes: bytes) -> str:
    import io

    import pdfplumber

    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


@pytest.fixture
def read_pdf_text():
    return pdf_text
