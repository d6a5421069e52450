"""Remote cell-grid store: the capability the importer writes totals into."""

import logging
import zipfile
from collections import Counter
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, Protocol

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from budgetsync.categories import default_structure
from budgetsync.grid import column_letter, range_reference
from budgetsync.models import Cell, SheetStructure

logger = logging.getLogger(__name__)

SWEDISH_MONTHS = ("jan", "feb", "mar", "apr", "maj", "jun", "jul", "aug", "sep", "okt", "nov", "dec")


class StoreError(Exception):
    """A read or write against the sheet store failed."""


class SheetNotFoundError(StoreError):
    pass


class SheetStore(Protocol):
    def load_structure(self, spreadsheet_id: str, sheet_name: str) -> SheetStructure: ...

    def get_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int) -> Decimal: ...

    def batch_get_cells(
        self, spreadsheet_id: str, sheet_name: str, coordinates: Iterable[Cell]
    ) -> dict[Cell, Decimal]: ...

    def set_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int, value: Decimal) -> None: ...

    def batch_set_cells(self, spreadsheet_id: str, sheet_name: str, updates: dict[Cell, Decimal]) -> None: ...

    def download_all_rows(self, spreadsheet_id: str, sheet_name: str) -> list[list[str]]: ...


def to_decimal(value: object) -> Decimal:
    """Numeric cell value as Decimal; empty or non-numeric cells count as zero."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = "".join(str(value).split()).replace(",", ".")
    if not text:
        return Decimal(0)
    try:
        result = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


def _cell_text(value: object) -> str:
    return "" if value is None else str(value)


class InMemorySheetStore:
    """Dict-backed store. Counts calls per method so tests can check round-trips."""

    def __init__(self, structure: SheetStructure | None = None):
        self.structure = structure or default_structure()
        self.sheets: dict[tuple[str, str], dict[Cell, object]] = {}
        self.calls: Counter[str] = Counter()

    def seed(self, spreadsheet_id: str, sheet_name: str, cells: dict[Cell, object]) -> None:
        self.sheets.setdefault((spreadsheet_id, sheet_name), {}).update(cells)

    def _sheet(self, spreadsheet_id: str, sheet_name: str) -> dict[Cell, object]:
        return self.sheets.setdefault((spreadsheet_id, sheet_name), {})

    def load_structure(self, spreadsheet_id: str, sheet_name: str) -> SheetStructure:
        self.calls["load_structure"] += 1
        return self.structure

    def get_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int) -> Decimal:
        self.calls["get_cell"] += 1
        return to_decimal(self._sheet(spreadsheet_id, sheet_name).get((row, column)))

    def batch_get_cells(
        self, spreadsheet_id: str, sheet_name: str, coordinates: Iterable[Cell]
    ) -> dict[Cell, Decimal]:
        self.calls["batch_get_cells"] += 1
        sheet = self._sheet(spreadsheet_id, sheet_name)
        return {cell: to_decimal(sheet.get(cell)) for cell in coordinates}

    def set_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int, value: Decimal) -> None:
        self.calls["set_cell"] += 1
        self._sheet(spreadsheet_id, sheet_name)[(row, column)] = value

    def batch_set_cells(self, spreadsheet_id: str, sheet_name: str, updates: dict[Cell, Decimal]) -> None:
        self.calls["batch_set_cells"] += 1
        self._sheet(spreadsheet_id, sheet_name).update(updates)

    def download_all_rows(self, spreadsheet_id: str, sheet_name: str) -> list[list[str]]:
        self.calls["download_all_rows"] += 1
        sheet = self._sheet(spreadsheet_id, sheet_name)
        if not sheet:
            return []
        max_row = max(r for r, _ in sheet)
        max_col = max(c for _, c in sheet)
        return [
            [_cell_text(sheet.get((r, c))) for c in range(1, max_col + 1)]
            for r in range(1, max_row + 1)
        ]


class WorkbookSheetStore:
    """An .xlsx workbook standing in for the spreadsheet.

    The spreadsheet id is the workbook path and each year is its own tab. Every
    batch call opens the workbook once; every batch write saves it once.
    """

    def __init__(self, structure: SheetStructure | None = None):
        self.structure = structure or default_structure()

    def _open(self, spreadsheet_id: str, data_only: bool = False):
        path = Path(spreadsheet_id)
        if not path.exists():
            raise SheetNotFoundError(f"Workbook not found: {path}")
        try:
            return load_workbook(path, data_only=data_only)
        except (InvalidFileException, zipfile.BadZipFile, OSError) as exc:
            raise StoreError(f"Cannot open workbook {path}: {exc}") from exc

    @staticmethod
    def _worksheet(wb, sheet_name: str):
        if sheet_name not in wb.sheetnames:
            raise SheetNotFoundError(f"Sheet '{sheet_name}' not found")
        return wb[sheet_name]

    def _save(self, wb, spreadsheet_id: str) -> None:
        try:
            wb.save(spreadsheet_id)
        except OSError as exc:
            raise StoreError(f"Cannot save workbook {spreadsheet_id}: {exc}") from exc

    def load_structure(self, spreadsheet_id: str, sheet_name: str) -> SheetStructure:
        """Category rows are read from column A of the tab when present."""
        wb = self._open(spreadsheet_id, data_only=True)
        ws = self._worksheet(wb, sheet_name)
        rows_by_name: dict[str, int] = {}
        for row in range(1, ws.max_row + 1):
            label = ws.cell(row=row, column=1).value
            if isinstance(label, str) and label.strip():
                rows_by_name.setdefault(label.strip().casefold(), row)
        wb.close()

        if not any(cat.name.casefold() in rows_by_name for cat in self.structure.categories):
            logger.info("No category labels found in '%s', using default layout", sheet_name)
            return self.structure

        categories = []
        for cat in self.structure.categories:
            row = rows_by_name.get(cat.name.casefold())
            if row is None:
                logger.warning("Category '%s' has no row in sheet '%s'", cat.name, sheet_name)
                continue
            categories.append(replace(cat, row_index=row))
        logger.info("Loaded sheet structure for '%s' with %d categories", sheet_name, len(categories))
        return replace(self.structure, categories=tuple(categories))

    def get_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int) -> Decimal:
        logger.debug("Reading %s", range_reference(sheet_name, row, column))
        wb = self._open(spreadsheet_id, data_only=True)
        value = self._worksheet(wb, sheet_name).cell(row=row, column=column).value
        wb.close()
        return to_decimal(value)

    def batch_get_cells(
        self, spreadsheet_id: str, sheet_name: str, coordinates: Iterable[Cell]
    ) -> dict[Cell, Decimal]:
        coordinates = list(coordinates)
        if not coordinates:
            return {}
        logger.info("Batch reading %d cells from sheet '%s'", len(coordinates), sheet_name)
        wb = self._open(spreadsheet_id, data_only=True)
        ws = self._worksheet(wb, sheet_name)
        result = {(row, col): to_decimal(ws.cell(row=row, column=col).value) for row, col in coordinates}
        wb.close()
        return result

    def set_cell(self, spreadsheet_id: str, sheet_name: str, row: int, column: int, value: Decimal) -> None:
        logger.info("Updating %s with %s", range_reference(sheet_name, row, column), value)
        wb = self._open(spreadsheet_id)
        self._worksheet(wb, sheet_name).cell(row=row, column=column).value = value
        self._save(wb, spreadsheet_id)

    def batch_set_cells(self, spreadsheet_id: str, sheet_name: str, updates: dict[Cell, Decimal]) -> None:
        if not updates:
            return
        logger.info("Batch updating %d cells in sheet '%s'", len(updates), sheet_name)
        wb = self._open(spreadsheet_id)
        ws = self._worksheet(wb, sheet_name)
        for (row, col), value in updates.items():
            logger.debug("  %s: %s", range_reference(sheet_name, row, col), value)
            cell = ws.cell(row=row, column=col)
            cell.value = value
            cell.number_format = "0.00"
        self._save(wb, spreadsheet_id)

    def download_all_rows(self, spreadsheet_id: str, sheet_name: str) -> list[list[str]]:
        wb = self._open(spreadsheet_id, data_only=True)
        ws = self._worksheet(wb, sheet_name)
        rows = [[_cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
        wb.close()
        return rows

    def create_sheet(self, spreadsheet_id: str, sheet_name: str, year: int) -> None:
        """Lay out an empty year tab: year row, month headers, category labels."""
        path = Path(spreadsheet_id)
        if path.exists():
            wb = self._open(spreadsheet_id)
            if sheet_name in wb.sheetnames:
                raise StoreError(f"Sheet '{sheet_name}' already exists")
            ws = wb.create_sheet(sheet_name)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            wb = Workbook()
            ws = wb.active
            ws.title = sheet_name

        s = self.structure
        ws.cell(row=s.year_row, column=1).value = year
        for month, label in enumerate(SWEDISH_MONTHS, start=1):
            ws.cell(row=s.month_header_row, column=s.column_for_month(month)).value = label
        for cat in s.categories:
            ws.cell(row=cat.row_index, column=1).value = cat.name
        ws.column_dimensions["A"].width = 32
        logger.info(
            "Created sheet '%s' with months in %s:%s",
            sheet_name, column_letter(s.column_for_month(1)), column_letter(s.column_for_month(12)),
        )
        self._save(wb, spreadsheet_id)
