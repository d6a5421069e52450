import logging
from collections import defaultdict
from decimal import Decimal

from budgetsync.categorizer import categorize_transactions
from budgetsync.models import (
    BudgetCategory, CategoryMonthTotal, Cell, SheetStructure, SyncResult, Transaction,
)
from budgetsync.rules import MappingRules
from budgetsync.store import SheetStore

logger = logging.getLogger(__name__)


def group_by_category_month(mapped: list[tuple[Transaction, BudgetCategory]]) -> list[CategoryMonthTotal]:
    """Sum absolute amounts per (category, month), ordered by sheet row then month."""
    groups: dict[tuple[str, int], list[Transaction]] = defaultdict(list)
    categories: dict[str, BudgetCategory] = {}
    for txn, category in mapped:
        groups[(category.name, txn.month)].append(txn)
        categories[category.name] = category

    totals = [
        CategoryMonthTotal(
            category=categories[name],
            month=month,
            total=sum((t.absolute_amount for t in txns), Decimal(0)),
            count=len(txns),
        )
        for (name, month), txns in groups.items()
    ]
    return sorted(totals, key=lambda t: (t.category.row_index, t.month))


def target_cell(total: CategoryMonthTotal, structure: SheetStructure) -> Cell:
    return total.category.row_index, structure.column_for_month(total.month)


def build_updates(
    totals: list[CategoryMonthTotal],
    structure: SheetStructure,
    current: dict[Cell, Decimal],
) -> dict[Cell, Decimal]:
    updates: dict[Cell, Decimal] = {}
    for total in totals:
        cell = target_cell(total, structure)
        updates[cell] = current.get(cell, Decimal(0)) + total.total
    return updates


def sync_totals(
    store: SheetStore,
    spreadsheet_id: str,
    sheet_name: str,
    totals: list[CategoryMonthTotal],
    structure: SheetStructure,
    dry_run: bool = False,
) -> dict[Cell, Decimal]:
    """Add this run's totals on top of the sheet's current values: one batch read, one batch write.

    Store errors propagate; nothing guards the window between the read and the write.
    """
    if dry_run:
        logger.info("Dry run mode enabled. No changes will be made to sheet '%s'.", sheet_name)
        return {}
    if not totals:
        return {}

    cells = list(dict.fromkeys(target_cell(t, structure) for t in totals))
    current = store.batch_get_cells(spreadsheet_id, sheet_name, cells)
    updates = build_updates(totals, structure, current)
    store.batch_set_cells(spreadsheet_id, sheet_name, updates)
    logger.info("Updated %d cells in sheet '%s'", len(updates), sheet_name)
    return updates


def sync_sheet(
    store: SheetStore,
    spreadsheet_id: str,
    sheet_name: str,
    transactions: list[Transaction],
    rules: MappingRules,
    dry_run: bool = False,
) -> SyncResult:
    structure = store.load_structure(spreadsheet_id, sheet_name)
    dated = [t for t in transactions if t.has_booking_date]
    undated = [t for t in transactions if not t.has_booking_date]
    if undated:
        logger.warning("%d transactions without a booking date cannot be placed in a month", len(undated))

    categorization = categorize_transactions(dated, structure, rules)
    totals = group_by_category_month(categorization.mapped)
    updates = sync_totals(store, spreadsheet_id, sheet_name, totals, structure, dry_run=dry_run)
    return SyncResult(
        sheet_name=sheet_name,
        totals=totals,
        unmapped=categorization.unmapped,
        undated=undated,
        updates=updates,
        dry_run=dry_run,
    )


def run_import(
    store: SheetStore,
    spreadsheet_id: str,
    transactions: list[Transaction],
    rules: MappingRules,
    sheet_name: str | None = None,
    dry_run: bool = False,
) -> list[SyncResult]:
    """Sync transactions into one named tab, or into one tab per booking year."""
    if sheet_name:
        return [sync_sheet(store, spreadsheet_id, sheet_name, transactions, rules, dry_run=dry_run)]

    by_year: dict[int, list[Transaction]] = defaultdict(list)
    undated: list[Transaction] = []
    for txn in transactions:
        if txn.has_booking_date:
            by_year[txn.year].append(txn)
        else:
            undated.append(txn)

    results = [
        sync_sheet(store, spreadsheet_id, str(year), by_year[year], rules, dry_run=dry_run)
        for year in sorted(by_year)
    ]
    if undated:
        # no year means no tab; reported under an empty sheet name
        logger.warning("%d transactions without a booking date cannot be placed in a year", len(undated))
        results.append(SyncResult(sheet_name="", undated=undated, dry_run=dry_run))
    return results
