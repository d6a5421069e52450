from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook

from budgetsync.store import (
    InMemorySheetStore, SheetNotFoundError, StoreError, WorkbookSheetStore, to_decimal,
)


@pytest.fixture
def workbook(tmp_path):
    path = tmp_path / "budget.xlsx"
    WorkbookSheetStore().create_sheet(str(path), "2025", 2025)
    return str(path)


def test_create_sheet_lays_out_year_tab(workbook):
    ws = load_workbook(workbook)["2025"]
    assert ws["A1"].value == 2025
    assert ws["B3"].value == "jan"
    assert ws["M3"].value == "dec"
    assert ws["A2"].value == "Inkomst"
    assert ws["A25"].value == "Mat"


def test_create_sheet_adds_tab_to_existing_workbook(workbook):
    WorkbookSheetStore().create_sheet(workbook, "2026", 2026)
    assert load_workbook(workbook).sheetnames == ["2025", "2026"]


def test_create_sheet_refuses_existing_tab(workbook):
    with pytest.raises(StoreError, match="already exists"):
        WorkbookSheetStore().create_sheet(workbook, "2025", 2025)


def test_batch_set_then_get(workbook):
    store = WorkbookSheetStore()
    store.batch_set_cells(workbook, "2025", {(25, 2): Decimal("759.50"), (5, 3): Decimal("299.00")})
    values = store.batch_get_cells(workbook, "2025", [(25, 2), (5, 3), (7, 4)])
    assert values == {(25, 2): Decimal("759.50"), (5, 3): Decimal("299.00"), (7, 4): Decimal(0)}
    assert store.get_cell(workbook, "2025", 25, 2) == Decimal("759.50")


def test_set_cell(workbook):
    store = WorkbookSheetStore()
    store.set_cell(workbook, "2025", 9, 4, Decimal("3120.00"))
    assert store.get_cell(workbook, "2025", 9, 4) == Decimal("3120.00")


def test_text_cells_read_as_numbers(workbook):
    wb = load_workbook(workbook)
    wb["2025"]["B25"] = "1 250,50"
    wb["2025"]["C25"] = "n/a"
    wb.save(workbook)
    store = WorkbookSheetStore()
    assert store.batch_get_cells(workbook, "2025", [(25, 2), (25, 3)]) == {
        (25, 2): Decimal("1250.50"),
        (25, 3): Decimal(0),
    }


def test_load_structure_reads_category_rows(tmp_path):
    path = tmp_path / "custom.xlsx"
    wb = Workbook()
    ws = wb.active
    ws.title = "2025"
    ws["A2"] = "Inkomst"
    ws["A6"] = "Hyra"
    ws["A30"] = " mat "
    wb.save(path)

    structure = WorkbookSheetStore().load_structure(str(path), "2025")
    assert [(c.name, c.row_index) for c in structure.categories] == [("Inkomst", 2), ("Hyra", 6), ("Mat", 30)]
    # patterns survive the move
    assert "ICA" in structure.find_category("Mat").patterns


def test_load_structure_without_labels_uses_defaults(tmp_path, structure):
    path = tmp_path / "blank.xlsx"
    wb = Workbook()
    wb.active.title = "2025"
    wb.save(path)
    assert WorkbookSheetStore().load_structure(str(path), "2025") == structure


def test_missing_workbook(tmp_path):
    with pytest.raises(SheetNotFoundError):
        WorkbookSheetStore().get_cell(str(tmp_path / "missing.xlsx"), "2025", 1, 1)


def test_missing_tab(workbook):
    with pytest.raises(SheetNotFoundError, match="2024"):
        WorkbookSheetStore().batch_get_cells(workbook, "2024", [(1, 1)])


def test_unreadable_workbook(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a zip file")
    with pytest.raises(StoreError):
        WorkbookSheetStore().download_all_rows(str(path), "2025")


def test_download_all_rows(workbook):
    rows = WorkbookSheetStore().download_all_rows(workbook, "2025")
    assert rows[0][0] == "2025"
    assert rows[2][1:4] == ["jan", "feb", "mar"]
    assert rows[24][0] == "Mat"
    assert all(isinstance(v, str) for row in rows for v in row)


def test_in_memory_store_counts_calls(store):
    store.seed("book", "2025", {(1, 1): 2025, (2, 3): "x"})
    assert store.download_all_rows("book", "2025") == [["2025", "", ""], ["", "", "x"]]
    store.batch_get_cells("book", "2025", [(1, 1)])
    assert store.calls["download_all_rows"] == 1
    assert store.calls["batch_get_cells"] == 1


def test_in_memory_store_download_empty_sheet():
    assert InMemorySheetStore().download_all_rows("book", "2025") == []


@pytest.mark.parametrize("value,expected", [
    (None, Decimal(0)),
    (12, Decimal(12)),
    (759.5, Decimal("759.5")),
    ("1 234,50", Decimal("1234.50")),
    ("", Decimal(0)),
    ("abc", Decimal(0)),
    (True, Decimal(0)),
])
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected
