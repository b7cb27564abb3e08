# salesboard/cli.py
"""Command line entry point: import uploads, run reports, drill down."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer

from salesboard import __version__
from salesboard.config import config
from salesboard.db import check_db_connection, get_db_engine
from salesboard.distributor_kpi import (
    ALL_ACCESS,
    Agreement,
    KpiReportExport,
    KpiReportService,
    ReportWindow,
    RowIngestor,
    SalesDataQueries,
    SalesExecScope,
    SalesboardError,
    create_tables,
)
from salesboard.distributor_kpi.ingestion import coerce_date
from salesboard.distributor_kpi.setup import KpiCatalogStore

app = typer.Typer(add_completion=False, help="Distributor sales KPI reporting.")

logger = logging.getLogger(__name__)


def _version_callback(ctx: typer.Context, value: Optional[bool]) -> Optional[bool]:
    if not value or ctx.resilient_parsing:
        return value
    typer.echo(__version__)
    raise typer.Exit()


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


def _scope(allowed: Optional[List[str]]) -> SalesExecScope:
    return SalesExecScope(allowed) if allowed else SalesExecScope(ALL_ACCESS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=_version_callback,
        expose_value=False,
        is_flag=True,
        is_eager=True,
        help="Show the application version and exit.",
    ),
) -> None:
    level = "DEBUG" if config.is_feature_enabled("DEBUG_MODE") else config.get_app_setting("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if ctx.invoked_subcommand is None:
        typer.echo("Usage: salesboard [OPTIONS] COMMAND [ARGS]...\n\nUse 'salesboard --help' for more information.")
        raise typer.Exit()

    ok, message = check_db_connection()
    if not ok:
        typer.echo(message, err=True)
        raise typer.Exit(code=1)
    create_tables(get_db_engine())


# =============================================================================
# DATA LOADING
# =============================================================================

@app.command("import")
def import_cmd(
    schema: str = typer.Argument(..., help="invoice, order, stock, customer or agreement"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Spreadsheet or CSV file"),
    historical: bool = typer.Option(False, "--historical", help="Tag invoices as historical."),
    fiscal_year: Optional[str] = typer.Option(None, "--fiscal-year", help="Fiscal year for invoices."),
) -> None:
    """Load one upload into the row store."""
    ingestor = RowIngestor(is_current_year=not historical, fiscal_year=fiscal_year)
    try:
        with file.open("rb") as fh:
            result = ingestor.ingest_file(fh, schema, file.name)
        SalesDataQueries().save_import(result)
    except (SalesboardError, ValueError) as exc:
        _fail(exc)

    typer.echo(f"Imported {result.inserted} {schema} rows ({result.rejected_count} rejected)")
    for rejection in result.rejected[:20]:
        typer.echo(f"  row {rejection.row_number}: {rejection.reason}")


@app.command("clear")
def clear_cmd(
    dataset: str = typer.Argument(..., help="invoice, order, stock, customer or agreement"),
    current_year: Optional[bool] = typer.Option(
        None, "--current-year/--historical", help="Invoices only: clear one tag."
    ),
) -> None:
    """Delete every row of a dataset."""
    try:
        count = SalesDataQueries().clear_dataset(dataset, is_current_year=current_year)
    except ValueError as exc:
        _fail(exc)
    typer.echo(f"Deleted {count} rows")


@app.command("seed-catalog")
def seed_catalog_cmd() -> None:
    """Store the default KPI definitions that are not stored yet."""
    try:
        created = KpiCatalogStore().seed_defaults()
    except SalesboardError as exc:
        _fail(exc)
    typer.echo(f"Seeded {created} KPI definitions")


# =============================================================================
# REPORTS
# =============================================================================

def _build_report(month_offset: int, allowed: Optional[List[str]], include_agreements: bool = True):
    catalog = KpiCatalogStore().load_catalog()
    service = KpiReportService(SalesDataQueries(_scope(allowed)), catalog)
    return service.build_report(ReportWindow.for_month(month_offset), include_agreements=include_agreements)


@app.command("report")
def report_cmd(
    month_offset: int = typer.Option(0, "--month-offset", min=-2, max=0, help="0 = this month, -1, -2"),
    allowed: Optional[List[str]] = typer.Option(None, "--allowed", help="Restrict to these sales executives."),
    export: Optional[Path] = typer.Option(None, "--export", help="Write an Excel workbook here."),
) -> None:
    """Run every visible KPI for one month."""
    try:
        report = _build_report(month_offset, allowed)
    except (SalesboardError, ValueError) as exc:
        _fail(exc)

    typer.echo(f"KPI report: {report.window.label}")
    for result in report.results.values():
        kpi = result.definition
        typer.echo(f"\n{kpi.display_name} [{kpi.short_key}]")
        frame = result.to_frame()
        typer.echo(frame.to_string(index=False) if not frame.empty else "  (no data)")

    if report.agreements:
        typer.echo(f"\nOverall agreement achievement: {report.overall_achievement:.1f}%")

    if export is not None:
        export.write_bytes(KpiReportExport().create_report(report).getvalue())
        typer.echo(f"\nWrote {export}")


@app.command("drilldown")
def drilldown_cmd(
    short_key: str = typer.Argument(..., help="KPI short key, e.g. power1Count"),
    group: str = typer.Argument(..., help="Summary row value, e.g. a sales executive"),
    member: Optional[str] = typer.Option(None, "--member", help="Show line items of one member."),
    month_offset: int = typer.Option(0, "--month-offset", min=-2, max=0),
    allowed: Optional[List[str]] = typer.Option(None, "--allowed"),
) -> None:
    """Show the members (or line items) behind one KPI row."""
    try:
        report = _build_report(month_offset, allowed, include_agreements=False)
    except (SalesboardError, ValueError) as exc:
        _fail(exc)

    if report.catalog.get(short_key) is None:
        _fail(ValueError(f"Unknown KPI '{short_key}'"))

    if member:
        for item in report.line_items(short_key, group, member):
            typer.echo(f"{item.document_date}  {item.document_no}  {item.product_name}  {item.volume:.2f}  {item.value:.2f}")
        return

    items = report.drilldown(short_key, group)
    if not items:
        typer.echo("No rows")
    for item in items:
        flag = "" if item.qualified is None else ("  qualified" if item.qualified else "  below threshold")
        typer.echo(f"{item.label}: {item.value:.2f}{flag}")


# =============================================================================
# AGREEMENTS
# =============================================================================

@app.command("agreements")
def agreements_cmd(
    allowed: Optional[List[str]] = typer.Option(None, "--allowed"),
) -> None:
    """Target vs achieved for every agreement."""
    queries = SalesDataQueries(_scope(allowed))
    service = KpiReportService(queries)
    report = service.build_report(ReportWindow.for_month(0))
    frame = report.agreement_frame()
    typer.echo(frame.to_string(index=False) if not frame.empty else "No agreements")
    if report.agreements:
        typer.echo(f"\nOverall achievement: {report.overall_achievement:.1f}%")


@app.command("add-agreement")
def add_agreement_cmd(
    customer_code: str = typer.Argument(...),
    start: str = typer.Argument(..., help="Start date (YYYY-MM-DD)"),
    end: str = typer.Argument(..., help="End date (YYYY-MM-DD)"),
    target_volume: float = typer.Argument(..., help="Target volume in litres"),
    customer_name: str = typer.Option("", "--name"),
) -> None:
    start_date: Optional[date] = coerce_date(start)
    end_date: Optional[date] = coerce_date(end)
    if start_date is None or end_date is None or end_date < start_date:
        _fail(ValueError("Invalid agreement period"))

    agreement = Agreement(
        customer_code=customer_code.strip(),
        customer_name=customer_name,
        start_date=start_date,
        end_date=end_date,
        target_volume=target_volume,
    )
    new_id = SalesDataQueries().create_agreement(agreement)
    typer.echo(f"Created agreement {new_id}")


@app.command("delete-agreement")
def delete_agreement_cmd(agreement_id: int = typer.Argument(...)) -> None:
    count = SalesDataQueries().delete_agreement(agreement_id)
    typer.echo(f"Deleted {count} agreement(s)")


# =============================================================================
# LOOKUPS
# =============================================================================

@app.command("search-invoice")
def search_invoice_cmd(invoice_no: str = typer.Argument(...)) -> None:
    """Lines of one current-year invoice."""
    lines = SalesDataQueries().search_invoice(invoice_no)
    if not lines:
        typer.echo("Invoice not found")
    for line in lines:
        typer.echo(f"{line.document_date}  {line.customer_name}  {line.product_name}  {line.volume:.2f}  {line.value:.2f}")


@app.command("recent")
def recent_cmd(days: int = typer.Option(7, "--days", min=1)) -> None:
    """Invoice lines from the last few days."""
    lines = SalesDataQueries().recent_invoices(days=days)
    typer.echo(f"{len(lines)} lines in the last {days} days")
    for line in lines:
        typer.echo(f"{line.document_date}  {line.document_no}  {line.customer_name}  {line.volume:.2f}")


if __name__ == "__main__":
    app()
