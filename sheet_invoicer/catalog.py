"""
Listing of the monthly data sheets that can be invoiced.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .periods import is_monthly_sheet, parse_period, sheet_sort_key
from .sheets_client import SheetSource

logger = logging.getLogger(__name__)


class SheetCatalog:
    """
    Monthly sheets of the spreadsheet, most recent period first.

    Only sheets of `year_filter` are listed; pass None to list every year.
    """

    def __init__(self, source: SheetSource, year_filter: Optional[int] = None) -> None:
        self._source = source
        self.year_filter = year_filter

    def list_available_sheets(self) -> List[str]:
        titles = self._source.list_sheet_titles()
        monthly = [title for title in titles if is_monthly_sheet(title)]
        if self.year_filter is not None:
            monthly = [title for title in monthly if parse_period(title).year == self.year_filter]

        logger.debug("%d of %d sheets are invoiceable", len(monthly), len(titles))
        return sorted(monthly, key=sheet_sort_key, reverse=True)
