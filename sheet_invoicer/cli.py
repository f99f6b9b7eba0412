"""
Command-line interface for the Sheet Invoicer service.

Usage examples:
    sheet-invoicer sheets
    sheet-invoicer companies
    sheet-invoicer preview "June 2025" Velir
    sheet-invoicer generate --sheet "June 2025" --company Velir --expense "Travel=150.00" --output invoices
    sheet-invoicer serve --port 3000
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError as SchemaError

from .config import load_settings
from .errors import InvoicerError, NotFoundError
from .logging_setup import setup_logging
from .schema import ManualExpense
from .service import InvoiceService, build_service

app = typer.Typer(help="Generate PDF invoices from monthly time-tracking sheets.")


def _service() -> InvoiceService:
    settings = load_settings()
    setup_logging(settings.log_level)
    try:
        return build_service(settings)
    except InvoicerError as e:
        typer.echo(f"Initialization failed: {e.message}", err=True)
        raise typer.Exit(code=1)


def _fail(error: InvoicerError) -> None:
    typer.echo(error.message, err=True)
    # Same convention as "nothing to bill": distinct from hard failures.
    raise typer.Exit(code=2 if isinstance(error, NotFoundError) else 1)


def parse_expense(raw: str) -> ManualExpense:
    """
    Parse a "Description=Amount" option value.
    """
    description, sep, amount = raw.rpartition("=")
    if not sep or not description.strip():
        raise typer.BadParameter(f"Expected DESCRIPTION=AMOUNT, got {raw!r}")
    try:
        value = Decimal(amount.strip().lstrip("$").replace(",", ""))
    except InvalidOperation:
        raise typer.BadParameter(f"Invalid expense amount in {raw!r}") from None
    try:
        return ManualExpense(description=description, amount=value)
    except SchemaError as e:
        reason = "; ".join(err["msg"] for err in e.errors())
        raise typer.BadParameter(f"Invalid expense {raw!r}: {reason}") from None


@app.command()
def sheets() -> None:
    """
    List the monthly sheets available for invoicing, newest first.
    """
    service = _service()
    try:
        names = service.list_sheets()
    except InvoicerError as e:
        _fail(e)
    for name in names:
        typer.echo(name)


@app.command()
def companies() -> None:
    """
    Show the company registry with the latest issued invoice numbers.
    """
    service = _service()
    for key, profile in service.list_companies().items():
        typer.echo(f"{key}: {profile.legal_name} (last invoice #{profile.latest_invoice_number})")


@app.command()
def preview(
    sheet: str = typer.Argument(..., help="Sheet name, e.g. 'June 2025'."),
    company: Optional[str] = typer.Argument(None, help="Company key; omit with --all."),
    all_companies: bool = typer.Option(False, "--all", help="Preview rows of every company."),
) -> None:
    """
    Print the line items an invoice would contain, without issuing a number.
    """
    if not company and not all_companies:
        raise typer.BadParameter("Give a company key or --all.")

    service = _service()
    try:
        result = service.preview_all(sheet) if all_companies else service.preview(sheet, company)
    except InvoicerError as e:
        _fail(e)

    rows = [item.model_dump(by_alias=True) for item in result.line_items]
    typer.echo(json.dumps(rows, indent=2, default=str))
    typer.echo(f"Total amount: ${result.total_amount:.2f}")


@app.command()
def generate(
    sheet: str = typer.Option(..., "--sheet", help="Sheet name, e.g. 'June 2025'."),
    company: str = typer.Option(..., "--company", help="Company key from the registry."),
    expense: List[str] = typer.Option(
        [],
        "--expense",
        help="Manual expense as DESCRIPTION=AMOUNT; repeatable.",
    ),
    output: str = typer.Option(".", "--output", help="Directory to write the PDF into."),
) -> None:
    """
    Issue the next invoice number and write the PDF invoice.
    """
    expenses = [parse_expense(raw) for raw in expense]
    service = _service()
    try:
        generated = service.generate_invoice(sheet, company, expenses)
    except InvoicerError as e:
        _fail(e)

    output_dir = Path(output)
    target = output_dir / generated.filename
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(generated.pdf)
    except OSError as e:
        # The number is already issued; tell the operator which one.
        typer.echo(
            f"Invoice #{generated.document.invoice_number} was issued but {target} "
            f"could not be written: {e}. Regenerate the PDF or record the number.",
            err=True,
        )
        raise typer.Exit(code=1)

    typer.echo(f"Invoice #{generated.document.invoice_number} written to {target}")
    typer.echo(f"Total amount: ${generated.document.total_amount:.2f}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(3000, "--port"),
) -> None:
    """
    Run the HTTP API with uvicorn.
    """
    import uvicorn

    uvicorn.run("sheet_invoicer.api.main:app", host=host, port=port)


def main() -> None:
    """
    Entrypoint used when executing as a module.
    """
    app()


if __name__ == "__main__":
    main()
