"""
Assembly of an InvoiceDocument from line items, expenses and a company.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from .errors import NotFoundError
from .registry import CompanyRegistry
from .schema import CompanyProfile, InvoiceDocument, InvoicePeriod, LineItem, ManualExpense


def decimal_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0"))


class InvoiceComposer:
    """
    Builds invoice documents and assigns their numbers.

    The only side effect is one `increment_invoice_number` call per composed
    invoice, made after the line items are known to be non-empty.
    """

    def __init__(self, registry: CompanyRegistry, today: Callable[[], date] = date.today) -> None:
        self._registry = registry
        self._today = today

    def compose(
        self,
        company: CompanyProfile,
        period: InvoicePeriod,
        line_items: Sequence[LineItem],
        manual_expenses: Sequence[ManualExpense] = (),
    ) -> InvoiceDocument:
        if not line_items:
            raise NotFoundError("No data found for this company in the selected month")

        line_items_total = decimal_sum(item.amount_to_invoice for item in line_items)
        manual_expenses_total = decimal_sum(expense.amount for expense in manual_expenses)

        invoice_number = self._registry.increment_invoice_number(company.key)
        snapshot = company.model_copy(update={"latest_invoice_number": invoice_number})

        return InvoiceDocument(
            invoice_number=invoice_number,
            invoice_date=self._today(),
            company=snapshot,
            period=period,
            line_items=tuple(line_items),
            manual_expenses=tuple(manual_expenses),
            line_items_total=line_items_total,
            manual_expenses_total=manual_expenses_total,
            total_amount=line_items_total + manual_expenses_total,
        )
