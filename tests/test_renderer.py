"""Tests for renderer.py."""

import threading
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from sheet_invoicer.errors import RenderError
from sheet_invoicer.periods import parse_period
from sheet_invoicer.renderer import (
    InvoiceRenderer,
    RenderPool,
    blank_image,
    build_table_rows,
    load_logo,
    money,
)
from sheet_invoicer.schema import CompanyProfile, InvoiceDocument, LineItem, ManualExpense


@pytest.fixture
def company():
    return CompanyProfile(
        key="Velir",
        name="Velir Studios, Inc.",
        address="212 Elm Street, Suite 201",
        city="Somerville, MA",
        project="Velir Clients",
        latestInvoiceNumber=587,
        googleSheetsValue="Velir",
    )


@pytest.fixture
def make_document(company):
    """Factory fixture for InvoiceDocument instances."""
    def _make_document(items=None, expenses=()):
        if items is None:
            items = [
                LineItem(
                    consultant_name="John Doe",
                    company_name="Velir",
                    actual_hours=Decimal("40"),
                    client_rate=Decimal("100"),
                    amount_to_invoice=Decimal("4000"),
                )
            ]
        items_total = sum((i.amount_to_invoice for i in items), Decimal("0"))
        expenses_total = sum((e.amount for e in expenses), Decimal("0"))
        return InvoiceDocument(
            invoice_number=587,
            invoice_date=date(2025, 1, 5),
            company=company,
            period=parse_period("January2024"),
            line_items=tuple(items),
            manual_expenses=tuple(expenses),
            line_items_total=items_total,
            manual_expenses_total=expenses_total,
            total_amount=items_total + expenses_total,
        )
    return _make_document


class TestTableRows:
    def test_one_item_row_plus_total(self, make_document):
        rows = build_table_rows(make_document())
        assert rows == [
            ["Description", "Hours", "Rate", "Amount"],
            ["John Doe", "40.00", "$100.00", "$4000.00"],
            ["Total Amount", "", "", "$4000.00"],
        ]

    def test_expense_section(self, make_document):
        doc = make_document(
            expenses=[
                ManualExpense(description="Travel", amount=Decimal("150.5")),
                ManualExpense(description="Hosting", amount=Decimal("20")),
            ]
        )
        rows = build_table_rows(doc)
        assert rows[2] == ["Additional Expenses", "", "", ""]
        assert rows[3] == ["Travel", "-", "-", "$150.50"]
        assert rows[4] == ["Hosting", "-", "-", "$20.00"]
        assert rows[-1] == ["Total Amount", "", "", "$4170.50"]

    def test_money_rounds_half_up(self):
        assert money(Decimal("10.005")) == "$10.01"
        assert money(Decimal("7")) == "$7.00"


class TestLogo:
    def test_valid_logo_is_returned(self, logo_path):
        assert load_logo(logo_path) == logo_path.read_bytes()

    def test_missing_logo_falls_back_to_blank(self, tmp_path):
        assert load_logo(tmp_path / "nope.png") == blank_image()

    def test_corrupt_logo_falls_back_to_blank(self, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not an image")
        assert load_logo(bad) == blank_image()

    def test_packaged_logo_loads(self):
        from sheet_invoicer.config import DEFAULT_LOGO_PATH

        data = load_logo(DEFAULT_LOGO_PATH)
        assert data.startswith(b"\x89PNG")


class TestInvoiceRenderer:
    def test_renders_pdf_with_invoice_content(self, logo_path, make_document, read_pdf_text):
        pdf = InvoiceRenderer(logo_path).render(make_document())
        assert pdf.startswith(b"%PDF")

        text = read_pdf_text(pdf)
        assert "INVOICE" in text
        assert "587" in text
        assert "January 5, 2025" in text
        assert "January 2024" in text
        assert "Velir Studios, Inc." in text
        assert "PAF TESTING CORP" in text
        assert text.count("John Doe") == 1
        assert text.count("Total Amount") == 1
        assert "$4000.00" in text
        assert "Additional Expenses" not in text
        assert "Payment is due within 30 days" in text

    def test_renders_expense_section(self, logo_path, make_document, read_pdf_text):
        doc = make_document(expenses=[ManualExpense(description="Travel", amount=Decimal("150"))])
        text = read_pdf_text(InvoiceRenderer(logo_path).render(doc))
        assert "Additional Expenses" in text
        assert "Travel" in text
        assert "$4150.00" in text

    def test_output_is_deterministic(self, logo_path, make_document):
        renderer = InvoiceRenderer(logo_path)
        doc = make_document()
        assert renderer.render(doc) == renderer.render(doc)

    def test_missing_logo_still_renders(self, tmp_path, make_document):
        pdf = InvoiceRenderer(tmp_path / "missing.png").render(make_document())
        assert pdf.startswith(b"%PDF")

    def test_long_invoice_paginates(self, logo_path, make_document, read_pdf_text):
        items = [
            LineItem(
                consultant_name=f"Consultant {i:03d}",
                company_name="Velir",
                actual_hours=Decimal("1"),
                client_rate=Decimal("10"),
                amount_to_invoice=Decimal("10"),
            )
            for i in range(80)
        ]
        pdf = InvoiceRenderer(logo_path).render(make_document(items=items))
        text = read_pdf_text(pdf)
        assert "Page 2" in text
        assert "Consultant 079" in text
        assert "$800.00" in text

    def test_markup_in_names_is_escaped(self, logo_path, make_document, read_pdf_text):
        item = LineItem(
            consultant_name="Smith & <Jones>",
            company_name="Velir",
            actual_hours=Decimal("1"),
            client_rate=Decimal("1"),
            amount_to_invoice=Decimal("1"),
        )
        text = read_pdf_text(InvoiceRenderer(logo_path).render(make_document(items=[item])))
        assert "Smith & <Jones>" in text

    def test_build_failure_raises_render_error(self, logo_path, make_document):
        renderer = InvoiceRenderer(logo_path)
        with patch("sheet_invoicer.renderer.SimpleDocTemplate.build", side_effect=RuntimeError("boom")):
            with pytest.raises(RenderError, match="boom"):
                renderer.render(make_document())


class TestRenderPool:
    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            RenderPool(0)

    def test_engine_start_failure_raises(self):
        def broken_factory(logo_path):
            raise RuntimeError("no engine")

        with pytest.raises(RenderError, match="could not be started"):
            RenderPool(2, renderer_factory=broken_factory)

    def test_acquire_returns_renderer_to_pool(self, logo_path):
        pool = RenderPool(2, logo_path=logo_path)
        assert pool.available == 2
        with pool.acquire() as renderer:
            assert isinstance(renderer, InvoiceRenderer)
            assert pool.available == 1
        assert pool.available == 2

    def test_renderer_returned_after_failure(self, logo_path):
        pool = RenderPool(1, logo_path=logo_path)
        with pytest.raises(RuntimeError):
            with pool.acquire():
                raise RuntimeError("render blew up")
        assert pool.available == 1

    def test_exhausted_pool_times_out(self, logo_path):
        pool = RenderPool(1, logo_path=logo_path)
        with pool.acquire():
            with pytest.raises(RenderError, match="No renderer became available"):
                with pool.acquire(timeout=0.05):
                    pass

    def test_concurrency_is_bounded(self, make_document):
        active = 0
        peak = 0
        lock = threading.Lock()

        class SlowRenderer:
            def __init__(self, logo_path):
                pass

            def render(self, document):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                threading.Event().wait(0.02)
                with lock:
                    active -= 1
                return b"%PDF"

        pool = RenderPool(2, renderer_factory=SlowRenderer, acquire_timeout=5)
        doc = make_document()
        threads = [threading.Thread(target=pool.render, args=(doc,)) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert peak <= 2
        assert pool.available == 2
