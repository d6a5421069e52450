import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from budgetsync.settings import (
    load_settings, save_settings, resolve_mapping_rules_path, validate_settings,
)
from budgetsync.store import StoreError, WorkbookSheetStore

app = typer.Typer(help="budgetsync: sort bank transactions into a yearly budget workbook.", invoke_without_command=True)

rules_app = typer.Typer(help="Manage mapping rules.")
app.add_typer(rules_app, name="rules")

console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """budgetsync: sort bank transactions into a yearly budget workbook."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def get_store() -> WorkbookSheetStore:
    return WorkbookSheetStore()


def _fmt(amount) -> str:
    return f"{amount:,.2f} kr"


# --- Setup ---


@app.command()
def init(
    spreadsheet: Path = typer.Option(None, "--spreadsheet", help="Path to the budget workbook (.xlsx)"),
    sheet: str = typer.Option(None, "--sheet", help="Default sheet name (default: booking year)"),
    rules: Path = typer.Option(None, "--rules", help="Path to the mapping rules JSON file"),
    backup_dir: Path = typer.Option(None, "--backup-dir", help="Directory for sheet backups"),
):
    """Write settings for the budget workbook and mapping rules."""
    settings = load_settings()
    if spreadsheet:
        settings["spreadsheet_id"] = str(spreadsheet.expanduser().resolve())
    elif not settings["spreadsheet_id"]:
        chosen = typer.prompt("Budget workbook path")
        settings["spreadsheet_id"] = str(Path(chosen).expanduser().resolve())
    if sheet is not None:
        settings["default_sheet_name"] = sheet
    if rules:
        settings["mapping_rules_path"] = str(rules.expanduser().resolve())
    if backup_dir:
        settings["backup_dir"] = str(backup_dir.expanduser().resolve())
    save_settings(settings)
    typer.echo(f"Saved settings for {settings['spreadsheet_id']}")


@app.command()
def check():
    """Validate the configuration."""
    result = validate_settings(load_settings())
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")
    for error in result.errors:
        console.print(f"[red]error:[/red] {error}")
    if not result.is_valid:
        raise typer.Exit(1)
    typer.echo("Configuration OK")


@app.command("init-sheet")
def init_sheet(
    year: int = typer.Argument(help="Year the new tab covers"),
    sheet: str = typer.Option(None, "--sheet", help="Tab name (default: the year)"),
):
    """Create an empty year tab in the budget workbook."""
    settings = load_settings()
    if not settings["spreadsheet_id"]:
        typer.echo("No workbook configured. Run 'budgetsync init' first.")
        raise typer.Exit(1)
    sheet_name = sheet or str(year)
    try:
        get_store().create_sheet(settings["spreadsheet_id"], sheet_name, year)
    except StoreError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(1)
    typer.echo(f"Created sheet '{sheet_name}'")


# --- Import ---

from budgetsync.aggregator import run_import
from budgetsync.backup import create_backup
from budgetsync.categories import default_structure
from budgetsync.importer import ParseError, parse_file
from budgetsync.reports import get_category_activity, get_mapping_report
from budgetsync.rules import load_mapping_rules


def _load_transactions(file: Path) -> list:
    try:
        return parse_file(file)
    except (OSError, ParseError) as exc:
        typer.echo(f"Cannot read {file}: {exc}")
        raise typer.Exit(1)


def _print_mapping_report(report: dict) -> None:
    table = Table(title="Transaction Mapping Results")
    table.add_column("Sheet", style="dim")
    table.add_column("Category")
    table.add_column("Month", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Count", justify="right")
    for g in report["groups"]:
        table.add_row(g["sheet"], g["category"], g["month"], _fmt(g["total"]), str(g["count"]))
    table.add_row("[bold]Total[/bold]", "", "", f"[bold]{_fmt(report['total'])}[/bold]", str(report["mapped_count"]))
    console.print(table)

    if report["unmapped"]:
        utable = Table(title=f"Unmapped Transactions ({report['unmapped_count']})")
        utable.add_column("Date")
        utable.add_column("Description")
        utable.add_column("Amount", justify="right")
        utable.add_column("Reference")
        for u in report["unmapped"]:
            color = "red" if u["amount"] < 0 else "green"
            utable.add_row(u["date"], u["description"], f"[{color}]{_fmt(u['amount'])}[/{color}]", u["reference"])
        console.print(utable)

    if report["undated"]:
        dtable = Table(title=f"Transactions Without a Booking Date ({report['undated_count']})")
        dtable.add_column("Row", style="dim", justify="right")
        dtable.add_column("Description")
        dtable.add_column("Amount", justify="right")
        dtable.add_column("Reference")
        for d in report["undated"]:
            dtable.add_row(str(d["row_number"]), d["description"], _fmt(d["amount"]), d["reference"])
        console.print(dtable)


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(help="Path to the bank CSV export"),
    sheet: str = typer.Option(None, "--sheet", "-s", help="Sheet to update (default: one sheet per booking year)"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--apply", "-d", help="Preview without writing (default from settings)"),
):
    """Classify a bank export and add the monthly totals to the budget workbook."""
    settings = load_settings()
    validation = validate_settings(settings)
    if not validation.is_valid:
        for error in validation.errors:
            console.print(f"[red]error:[/red] {error}")
        raise typer.Exit(1)

    if dry_run is None:
        dry_run = settings["dry_run"]
    sheet = sheet or settings["default_sheet_name"] or None

    rules = load_mapping_rules(resolve_mapping_rules_path(settings))
    transactions = _load_transactions(file)
    if not transactions:
        typer.echo("No transactions found in the file.")
        return

    store = get_store()
    spreadsheet_id = settings["spreadsheet_id"]
    try:
        if not dry_run and settings["backup_before_update"]:
            sheet_names = [sheet] if sheet else sorted({str(t.year) for t in transactions if t.has_booking_date})
            for name in sheet_names:
                create_backup(store, spreadsheet_id, name, Path(settings["backup_dir"]).expanduser())
        results = run_import(store, spreadsheet_id, transactions, rules, sheet_name=sheet, dry_run=dry_run)
    except StoreError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(1)

    report = get_mapping_report(results)
    _print_mapping_report(report)
    if dry_run:
        typer.echo("Dry run: no changes were made.")
    else:
        typer.echo(f"Updated {report['cells_updated']} cells")


@app.command("unmapped-categories")
def unmapped_categories(
    file: Path = typer.Argument(help="Path to the bank CSV export"),
    sheet: str = typer.Option(None, "--sheet", "-s", help="Sheet whose layout to use"),
):
    """List categories that no transaction in the file maps to."""
    settings = load_settings()
    rules = load_mapping_rules(resolve_mapping_rules_path(settings))
    transactions = _load_transactions(file)

    sheet = sheet or settings["default_sheet_name"]
    if sheet and settings["spreadsheet_id"]:
        try:
            structure = get_store().load_structure(settings["spreadsheet_id"], sheet)
        except StoreError as exc:
            typer.echo(f"Error: {exc}")
            raise typer.Exit(1)
    else:
        structure = default_structure()

    data = get_category_activity(transactions, structure, rules)
    if not data["inactive"]:
        typer.echo("Every category has transactions.")
        return

    table = Table(title=f"Categories Without Transactions ({len(data['inactive'])}/{data['category_count']})")
    table.add_column("Row", style="dim", justify="right")
    table.add_column("Section")
    table.add_column("Category")
    table.add_column("Type", style="dim")
    for c in data["inactive"]:
        table.add_row(str(c["row"]), c["section"], c["name"], c["type"])
    console.print(table)


# --- Rules ---

from budgetsync.rules import default_rules, save_mapping_rules


@rules_app.command("list")
def rules_list():
    """List mapping rules in match order."""
    rules = load_mapping_rules(resolve_mapping_rules_path(load_settings()))
    table = Table(title=f"Mapping Rules ({rules.source})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Pattern")
    table.add_column("Category")
    for i, (pattern, category) in enumerate(rules, 1):
        table.add_row(str(i), pattern, category)
    console.print(table)


@rules_app.command("init")
def rules_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing rules file"),
):
    """Write the built-in rules to the configured rules file for editing."""
    path = resolve_mapping_rules_path(load_settings())
    if path is None:
        typer.echo("No mapping_rules_path configured.")
        raise typer.Exit(1)
    if path.exists() and not force:
        typer.echo(f"{path} already exists (use --force to overwrite).")
        raise typer.Exit(1)
    save_mapping_rules(default_rules(), path)
    typer.echo(f"Wrote {len(default_rules())} rules to {path}")


# --- Backup ---


@app.command()
def backup(
    sheet: str = typer.Option(None, "--sheet", "-s", help="Sheet to back up (default: configured sheet)"),
    output: Path = typer.Option(None, "--output", "-o", help="Backup directory (default from settings)"),
):
    """Save a copy of a sheet as CSV, JSON and text."""
    settings = load_settings()
    sheet = sheet or settings["default_sheet_name"]
    if not sheet:
        typer.echo("No sheet given and no default_sheet_name configured.")
        raise typer.Exit(1)
    backup_dir = output or Path(settings["backup_dir"]).expanduser()
    try:
        paths = create_backup(get_store(), settings["spreadsheet_id"], sheet, backup_dir)
    except StoreError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(1)
    for path in paths:
        typer.echo(f"Wrote {path}")


if __name__ == "__main__":
    app()
