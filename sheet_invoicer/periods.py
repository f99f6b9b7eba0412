"""
Monthly sheet names: recognition, ordering and period parsing.

Sheets are named after the billing month, e.g. "June2025" or "June 2025".
"""

from __future__ import annotations

import re
from typing import Tuple

from .errors import ValidationError
from .schema import InvoicePeriod

MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

MONTHLY_SHEET = re.compile(r"^(" + "|".join(MONTHS) + r")\s*(\d{4})$")


def is_monthly_sheet(sheet_name: str) -> bool:
    return MONTHLY_SHEET.match(sheet_name) is not None


def parse_period(sheet_name: str) -> InvoicePeriod:
    """
    Parse a sheet name into its billing period.

    Raises ValidationError for anything that is not `<Month><spaces><yyyy>`.
    """
    m = MONTHLY_SHEET.match(sheet_name or "")
    if not m:
        raise ValidationError("Invalid sheet name format")
    month = m.group(1)
    return InvoicePeriod(
        month=month,
        month_index=MONTHS.index(month) + 1,
        year=int(m.group(2)),
    )


def sheet_sort_key(sheet_name: str) -> Tuple[int, int]:
    period = parse_period(sheet_name)
    return period.year, period.month_index
