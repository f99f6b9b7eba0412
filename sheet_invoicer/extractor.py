"""
Extraction of billable line items from a monthly time-tracking sheet.

Sheet layout (first row is a header):
- A: consultant name
- C: company
- D: actual hours
- F: client rate, currency formatted ("$1,250.00")
- H: amount to invoice, currency formatted
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from .schema import LineItem
from .sheets_client import SheetSource

logger = logging.getLogger(__name__)

SHEET_RANGE = "A:H"

COL_CONSULTANT = 0
COL_COMPANY = 2
COL_HOURS = 3
COL_CLIENT_RATE = 5
COL_AMOUNT = 7

ZERO = Decimal("0")

_CURRENCY_NOISE = re.compile(r"[$,\s]")


def parse_currency(value: Optional[str]) -> Decimal:
    """
    Parse a spreadsheet cell such as "$1,234.50" into a Decimal.

    Currency symbol, group separators and whitespace are stripped. Blank or
    unparseable cells are read as zero.
    """
    if value is None:
        return ZERO
    s = _CURRENCY_NOISE.sub("", str(value))
    if not s:
        return ZERO
    try:
        number = Decimal(s)
    except InvalidOperation:
        logger.debug("Unparseable numeric cell %r read as 0", value)
        return ZERO
    if not number.is_finite():
        logger.debug("Non-finite numeric cell %r read as 0", value)
        return ZERO
    return number


def _cell(row: Sequence[str], index: int) -> str:
    # The API drops trailing empty cells, so rows can be shorter than the range.
    if index < len(row) and row[index] is not None:
        return str(row[index]).strip()
    return ""


def normalize_row(row: Sequence[str]) -> Optional[LineItem]:
    """
    Convert one raw sheet row into a LineItem, or None when the row is not
    billable (no consultant or no positive hours).
    """
    consultant = _cell(row, COL_CONSULTANT)
    hours = parse_currency(_cell(row, COL_HOURS))
    if not consultant or hours <= 0:
        return None

    return LineItem(
        consultant_name=consultant,
        company_name=_cell(row, COL_COMPANY),
        actual_hours=hours,
        client_rate=parse_currency(_cell(row, COL_CLIENT_RATE)),
        amount_to_invoice=parse_currency(_cell(row, COL_AMOUNT)),
    )


class SheetDataExtractor:
    """
    Reads a named sheet and returns normalized line items in sheet order.
    """

    def __init__(self, source: SheetSource) -> None:
        self._source = source

    def _data_rows(self, sheet_name: str) -> List[Sequence[str]]:
        rows = self._source.get_values(sheet_name, SHEET_RANGE)
        if not rows:
            logger.info("Sheet %s has no rows", sheet_name)
            return []
        return rows[1:]

    def fetch_company_line_items(self, sheet_name: str, company_identifier: str) -> List[LineItem]:
        """
        Billable rows of `sheet_name` whose company column equals
        `company_identifier`. Returns an empty list when nothing matches.
        """
        target = company_identifier.strip()
        items: List[LineItem] = []
        for row in self._data_rows(sheet_name):
            if _cell(row, COL_COMPANY) != target:
                continue
            item = normalize_row(row)
            if item is not None:
                items.append(item)

        logger.info("Found %d line items for %s in %s", len(items), target, sheet_name)
        return items

    def fetch_all_line_items(self, sheet_name: str) -> List[LineItem]:
        """
        Billable rows of every company, for administrative preview.
        Rows without a company are skipped.
        """
        items: List[LineItem] = []
        for row in self._data_rows(sheet_name):
            item = normalize_row(row)
            if item is not None and item.company_name:
                items.append(item)
        return items
