import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from budgetsync.grid import column_letter
from budgetsync.store import SheetStore

logger = logging.getLogger(__name__)


def _write_csv(rows: list[list[str]], path: Path) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerows(rows)


def _write_json(rows: list[list[str]], path: Path, spreadsheet_id: str, sheet_name: str, now: datetime) -> None:
    document = {
        "metadata": {
            "spreadsheet_id": spreadsheet_id,
            "sheet_name": sheet_name,
            "backup_timestamp": now.isoformat(),
            "row_count": len(rows),
            "max_column_count": max((len(r) for r in rows), default=0),
        },
        "data": [
            {
                "row_index": row_index,
                "cells": [
                    {"column": column_letter(col_index), "column_index": col_index, "value": value}
                    for col_index, value in enumerate(row, start=1)
                ],
            }
            for row_index, row in enumerate(rows, start=1)
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        f.write(json.dumps(document, indent=2, ensure_ascii=False) + "\n")


def _write_text(rows: list[list[str]], path: Path, sheet_name: str, now: datetime) -> None:
    width = max((len(r) for r in rows), default=0)
    col_widths = [
        max([len(column_letter(i + 1))] + [len(r[i]) for r in rows if i < len(r)])
        for i in range(width)
    ]
    lines = [f"Sheet: {sheet_name}", f"Backup: {now.isoformat()}", ""]
    header = "     " + " | ".join(column_letter(i + 1).ljust(w) for i, w in enumerate(col_widths))
    lines.append(header.rstrip())
    lines.append("-" * len(header))
    for row_index, row in enumerate(rows, start=1):
        cells = [(row[i] if i < len(row) else "").ljust(w) for i, w in enumerate(col_widths)]
        lines.append(f"{row_index:>4} " + " | ".join(cells).rstrip())
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")


def create_backup(
    store: SheetStore,
    spreadsheet_id: str,
    sheet_name: str,
    backup_dir: Path,
    now: datetime | None = None,
) -> list[Path]:
    """Dump a sheet to CSV, JSON and plain text. Returns the written paths."""
    now = now or datetime.now(timezone.utc)
    rows = store.download_all_rows(spreadsheet_id, sheet_name)

    backup_dir.mkdir(parents=True, exist_ok=True)
    stem = f"{sheet_name}_{now.strftime('%Y%m%d_%H%M%S')}"
    csv_path = backup_dir / f"{stem}.csv"
    json_path = backup_dir / f"{stem}.json"
    text_path = backup_dir / f"{stem}.txt"

    _write_csv(rows, csv_path)
    _write_json(rows, json_path, spreadsheet_id, sheet_name, now)
    _write_text(rows, text_path, sheet_name, now)

    logger.info("Backed up %d rows of sheet '%s' to %s", len(rows), sheet_name, backup_dir)
    return [csv_path, json_path, text_path]
