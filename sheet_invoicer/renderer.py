"""
PDF rendering of invoice documents with ReportLab.

`InvoiceRenderer` lays out one fixed A4 invoice design; `RenderPool` hands
out a bounded number of renderers so concurrent requests cannot start an
unbounded number of renders.
"""

from __future__ import annotations

import logging
import queue
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
from xml.sax.saxutils import escape

from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .errors import RenderError
from .schema import InvoiceDocument

logger = logging.getLogger(__name__)

PAYEE_LINES = (
    "PAF TESTING CORP",
    "255 RIVERTOWN SHOPS DR STE 102-204",
    "ST JOHNS, FL 32259",
)
PAYMENT_NOTE = "Payment is due within 30 days of invoice date."
THANK_YOU = "Thank you for your business!"

MARGIN = 0.5 * inch
CONTENT_WIDTH = A4[0] - 2 * MARGIN
LOGO_BOX = (2 * inch, 1 * inch)

TABLE_HEADER = ["Description", "Hours", "Rate", "Amount"]
EXPENSES_LABEL = "Additional Expenses"
TOTAL_LABEL = "Total Amount"
PLACEHOLDER = "-"

NAVY = colors.HexColor("#2c3e50")
GREY_TEXT = colors.HexColor("#666666")
RULE = colors.HexColor("#dddddd")
ZEBRA = colors.HexColor("#f9f9f9")
SECTION_FILL = colors.HexColor("#f8f9fa")
TOTAL_FILL = colors.HexColor("#ecf0f1")

CENTS = Decimal("0.01")


def money(value: Decimal) -> str:
    return f"${value.quantize(CENTS, rounding=ROUND_HALF_UP)}"


def fixed2(value: Decimal) -> str:
    return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def build_table_rows(document: InvoiceDocument) -> List[List[str]]:
    """
    Text of the itemized table, header row first and total row last.
    """
    rows = [list(TABLE_HEADER)]
    for item in document.line_items:
        rows.append(
            [
                item.consultant_name,
                fixed2(item.actual_hours),
                money(item.client_rate),
                money(item.amount_to_invoice),
            ]
        )
    if document.manual_expenses:
        rows.append([EXPENSES_LABEL, "", "", ""])
        for expense in document.manual_expenses:
            rows.append([expense.description, PLACEHOLDER, PLACEHOLDER, money(expense.amount)])
    rows.append([TOTAL_LABEL, "", "", money(document.total_amount)])
    return rows


def blank_image(size: Tuple[int, int] = (400, 200)) -> bytes:
    """White PNG used in place of an unreadable logo."""
    buf = BytesIO()
    PILImage.new("RGB", size, "white").save(buf, format="PNG")
    return buf.getvalue()


def load_logo(path: Optional[Path]) -> bytes:
    """
    Read and verify the logo image. A missing or broken logo must not block
    billing, so failures are logged and a blank image is returned instead.
    """
    if path is None:
        logger.warning("No logo configured; rendering a blank logo area")
        return blank_image()
    try:
        data = Path(path).read_bytes()
        with PILImage.open(BytesIO(data)) as img:
            img.verify()
        return data
    except (OSError, SyntaxError) as e:
        logger.warning("Error reading logo file %s: %s; rendering a blank logo area", path, e)
        return blank_image()


def _fit(size: Tuple[int, int], box: Tuple[float, float]) -> Tuple[float, float]:
    width, height = size
    scale = min(box[0] / width, box[1] / height)
    return width * scale, height * scale


class InvoiceRenderer:
    """
    Renders an InvoiceDocument into PDF bytes.

    Output is byte-for-byte reproducible for identical documents. Not safe
    for concurrent use; share renderers through a RenderPool.
    """

    def __init__(self, logo_path: Optional[Path] = None) -> None:
        self._logo = load_logo(logo_path)
        with PILImage.open(BytesIO(self._logo)) as img:
            self._logo_size = _fit(img.size, LOGO_BOX)

        base = getSampleStyleSheet()
        self._styles = {
            "body": ParagraphStyle("body", parent=base["Normal"], fontSize=10, leading=14),
            "meta": ParagraphStyle(
                "meta", parent=base["Normal"], fontSize=10, leading=14,
                textColor=GREY_TEXT, alignment=TA_RIGHT,
            ),
            "title": ParagraphStyle(
                "title", parent=base["Normal"], fontName="Helvetica-Bold",
                fontSize=24, leading=30, textColor=NAVY, alignment=TA_RIGHT,
            ),
            "section": ParagraphStyle(
                "section", parent=base["Normal"], fontName="Helvetica-Bold",
                fontSize=12, leading=16, textColor=NAVY, spaceAfter=4,
            ),
            "cell": ParagraphStyle("cell", parent=base["Normal"], fontSize=10, leading=12),
            "footer": ParagraphStyle(
                "footer", parent=base["Normal"], fontSize=8, leading=11,
                textColor=GREY_TEXT, alignment=TA_CENTER,
            ),
        }

    def render(self, document: InvoiceDocument) -> bytes:
        buf = BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=A4,
            leftMargin=MARGIN,
            rightMargin=MARGIN,
            topMargin=MARGIN,
            bottomMargin=MARGIN,
            title=f"Invoice {document.invoice_number}",
            author=PAYEE_LINES[0],
            invariant=1,
        )
        try:
            doc.build(
                self._story(document),
                onFirstPage=self._draw_page_marker,
                onLaterPages=self._draw_page_marker,
            )
        except Exception as e:
            raise RenderError(f"Invoice {document.invoice_number} could not be rendered: {e}") from e
        return buf.getvalue()

    def _story(self, document: InvoiceDocument) -> list:
        styles = self._styles
        story: list = []

        meta = [
            Paragraph("INVOICE", styles["title"]),
            Paragraph(f"<b>Invoice #:</b> {document.invoice_number}", styles["meta"]),
            Paragraph(f"<b>Date:</b> {document.invoice_date_label}", styles["meta"]),
            Paragraph(f"<b>Period:</b> {escape(document.period.label)}", styles["meta"]),
        ]
        logo = Image(BytesIO(self._logo), width=self._logo_size[0], height=self._logo_size[1])
        header = Table([[logo, meta]], colWidths=[CONTENT_WIDTH / 2] * 2)
        header.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ALIGN", (0, 0), (0, 0), "LEFT"),
                    ("LINEBELOW", (0, 0), (-1, 0), 2, NAVY),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 12),
                ]
            )
        )
        story += [header, Spacer(1, 0.3 * inch)]

        company = document.company
        bill_to = [Paragraph("INVOICE FOR:", styles["section"])] + [
            Paragraph(escape(line), styles["body"])
            for line in (company.legal_name, company.address, company.city)
        ]
        payable_to = [Paragraph("PAYABLE TO:", styles["section"])] + [
            Paragraph(escape(line), styles["body"]) for line in PAYEE_LINES
        ]
        billing = Table([[bill_to, payable_to]], colWidths=[CONTENT_WIDTH / 2] * 2)
        billing.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        story += [billing, Spacer(1, 0.25 * inch)]

        story += [
            Paragraph(f"<b>Project:</b> {escape(company.project)}", styles["body"]),
            Spacer(1, 0.2 * inch),
            self._items_table(document),
            Spacer(1, 0.3 * inch),
            Paragraph("Notes:", styles["section"]),
            Paragraph(PAYMENT_NOTE, styles["body"]),
            Spacer(1, 0.5 * inch),
            Paragraph(THANK_YOU, styles["footer"]),
            Paragraph(" | ".join(PAYEE_LINES), styles["footer"]),
        ]
        return story

    def _items_table(self, document: InvoiceDocument) -> Table:
        rows = build_table_rows(document)
        last = len(rows) - 1
        section_row = None
        if document.manual_expenses:
            section_row = len(document.line_items) + 1

        cells = []
        for index, row in enumerate(rows):
            if index in (0, last, section_row):
                cells.append(row)
            else:
                cells.append([Paragraph(escape(row[0]), self._styles["cell"])] + row[1:])

        style = [
            ("BACKGROUND", (0, 0), (-1, 0), NAVY),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("ALIGN", (3, 0), (3, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), 8),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
            ("LINEBELOW", (0, 1), (-1, last - 1), 0.5, RULE),
        ]
        for index in range(2, last, 2):
            if index != section_row:
                style.append(("BACKGROUND", (0, index), (-1, index), ZEBRA))
        if section_row is not None:
            style += [
                ("SPAN", (0, section_row), (-1, section_row)),
                ("BACKGROUND", (0, section_row), (-1, section_row), SECTION_FILL),
                ("FONTNAME", (0, section_row), (-1, section_row), "Helvetica-Bold"),
                ("LINEABOVE", (0, section_row), (-1, section_row), 2, NAVY),
            ]
        style += [
            ("SPAN", (0, last), (2, last)),
            ("BACKGROUND", (0, last), (-1, last), TOTAL_FILL),
            ("FONTNAME", (0, last), (-1, last), "Helvetica-Bold"),
            ("LINEABOVE", (0, last), (-1, last), 2, NAVY),
        ]

        widths = [0.49, 0.15, 0.17, 0.19]
        table = Table(cells, colWidths=[CONTENT_WIDTH * w for w in widths], repeatRows=1)
        table.setStyle(TableStyle(style))
        return table

    @staticmethod
    def _draw_page_marker(canvas, doc) -> None:
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(GREY_TEXT)
        canvas.drawCentredString(A4[0] / 2, MARGIN / 2, f"Page {doc.page}")
        canvas.restoreState()


class RenderPool:
    """
    Fixed set of renderers with explicit acquire/release.

    At most `size` renders run at once; callers beyond that wait up to
    `acquire_timeout` seconds for a renderer to come back.
    """

    def __init__(
        self,
        size: int,
        logo_path: Optional[Path] = None,
        acquire_timeout: float = 60.0,
        renderer_factory=InvoiceRenderer,
    ) -> None:
        if size < 1:
            raise ValueError("RenderPool size must be at least 1")
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._idle: "queue.Queue[InvoiceRenderer]" = queue.Queue(maxsize=size)
        for _ in range(size):
            try:
                renderer = renderer_factory(logo_path)
            except Exception as e:
                raise RenderError(f"Render engine could not be started: {e}") from e
            self._idle.put(renderer)
        logger.info("Render pool ready with %d renderers", size)

    @property
    def available(self) -> int:
        return self._idle.qsize()

    @contextmanager
    def acquire(self, timeout: Optional[float] = None) -> Iterator[InvoiceRenderer]:
        wait = self.acquire_timeout if timeout is None else timeout
        try:
            renderer = self._idle.get(timeout=wait)
        except queue.Empty:
            raise RenderError(f"No renderer became available within {wait:g}s") from None
        try:
            yield renderer
        finally:
            self._idle.put(renderer)

    def render(self, document: InvoiceDocument) -> bytes:
        with self.acquire() as renderer:
            return renderer.render(document)
