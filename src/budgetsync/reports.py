from decimal import Decimal

from budgetsync.categorizer import get_unmapped_categories
from budgetsync.models import SheetStructure, SyncResult, Transaction
from budgetsync.rules import MappingRules


def get_mapping_report(results: list[SyncResult]) -> dict:
    """Per (category, month) totals, unmapped and undated transactions for one import run."""
    groups = []
    unmapped = []
    undated = []
    for result in results:
        for t in result.totals:
            groups.append({
                "sheet": result.sheet_name,
                "category": t.category.name,
                "section": t.category.section,
                "month": f"{t.month:02d}",
                "total": t.total,
                "count": t.count,
            })
        for txn in result.unmapped:
            unmapped.append({
                "sheet": result.sheet_name,
                "date": txn.booking_date.isoformat(),
                "description": txn.description,
                "amount": txn.amount,
                "reference": txn.reference,
            })
        for txn in result.undated:
            undated.append({
                "sheet": result.sheet_name,
                "row_number": txn.row_number,
                "description": txn.description,
                "amount": txn.amount,
                "reference": txn.reference,
            })

    return {
        "groups": groups,
        "unmapped": unmapped,
        "mapped_count": sum(g["count"] for g in groups),
        "unmapped_count": len(unmapped),
        "undated": undated,
        "undated_count": len(undated),
        "total": sum((g["total"] for g in groups), Decimal(0)),
        "cells_updated": sum(len(r.updates) for r in results),
        "dry_run": any(r.dry_run for r in results),
    }


def get_category_activity(
    transactions: list[Transaction],
    structure: SheetStructure,
    rules: MappingRules,
) -> dict:
    inactive = get_unmapped_categories(transactions, structure, rules)
    return {
        "inactive": [
            {"name": c.name, "section": c.section, "row": c.row_index, "type": c.category_type.value}
            for c in inactive
        ],
        "active_count": len(structure.categories) - len(inactive),
        "category_count": len(structure.categories),
    }
