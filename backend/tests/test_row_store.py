"""
Courtage CRM — Stockage Google Sheets
Le classeur gspread est remplacé par un objet factice.
Run: cd backend && pytest tests/test_row_store.py -v
"""

import asyncio
import threading

import gspread
import pytest

from services.errors import NotFound
from services.row_store import GoogleSheetsRowStore, TableNotFound, find_row_index, rows_to_dicts


class FakeWorksheet:
    def __init__(self, values):
        self.values = values
        self.calls = []

    def get_all_values(self):
        return [list(row) for row in self.values]

    def append_rows(self, rows, value_input_option=None):
        self.calls.append(("append_rows", rows, value_input_option))

    def update(self, range_name=None, values=None, value_input_option=None):
        self.calls.append(("update", range_name, values, value_input_option))

    def delete_rows(self, index):
        self.calls.append(("delete_rows", index))


class FakeSpreadsheet:
    def __init__(self, worksheets):
        self.worksheets = worksheets
        self.added = []
        self.threads = []

    def worksheet(self, name):
        self.threads.append(threading.current_thread())
        if name not in self.worksheets:
            raise gspread.WorksheetNotFound(name)
        return self.worksheets[name]

    def add_worksheet(self, title, rows, cols):
        self.threads.append(threading.current_thread())
        self.added.append((title, rows, cols))
        self.worksheets[title] = FakeWorksheet([])


@pytest.fixture
def sheet():
    return FakeWorksheet([["ID", "Nom"], ["1", "Bienvenue"]])


@pytest.fixture
def sheets_store(sheet):
    return GoogleSheetsRowStore(spreadsheet=FakeSpreadsheet({"Workflows": sheet}))


class TestGoogleSheetsRowStore:
    def test_get_table(self, sheets_store):
        assert asyncio.run(sheets_store.get_table("Workflows")) == [["ID", "Nom"], ["1", "Bienvenue"]]

    def test_missing_sheet(self, sheets_store):
        with pytest.raises(TableNotFound) as exc:
            asyncio.run(sheets_store.get_table("Settings"))
        assert exc.value.name == "Settings"
        assert exc.value.status_code == 404

    def test_writes_use_user_entered(self, sheets_store, sheet):
        asyncio.run(sheets_store.append_rows("Workflows", [[2, "Relance"]]))
        asyncio.run(sheets_store.update_row("Workflows", 2, ["1", "Accueil"]))
        asyncio.run(sheets_store.delete_row("Workflows", 2))

        assert sheet.calls == [
            ("append_rows", [[2, "Relance"]], "USER_ENTERED"),
            ("update", "A2", [["1", "Accueil"]], "USER_ENTERED"),
            ("delete_rows", 2),
        ]

    def test_create_table(self, sheets_store):
        asyncio.run(sheets_store.create_table("Settings"))
        assert asyncio.run(sheets_store.get_table("Settings")) == []

    def test_sheet_calls_run_off_event_loop(self):
        spreadsheet = FakeSpreadsheet({"Contacts": FakeWorksheet([["Identifiant"]])})
        store = GoogleSheetsRowStore(spreadsheet=spreadsheet)

        asyncio.run(store.get_table("Contacts"))
        asyncio.run(store.create_table("Settings"))
        with pytest.raises(TableNotFound):
            asyncio.run(store.get_table("Absente"))

        assert len(spreadsheet.threads) == 3
        assert all(t is not threading.main_thread() for t in spreadsheet.threads)


class TestRowHelpers:
    def test_rows_to_dicts_pads_short_rows(self):
        table = [["A", "B", "C"], ["1"], ["1", None, "3"]]
        assert rows_to_dicts(table) == [
            {"A": "1", "B": "", "C": ""},
            {"A": "1", "B": "", "C": "3"},
        ]

    def test_rows_to_dicts_empty(self):
        assert rows_to_dicts([]) == []
        assert rows_to_dicts(None) == []
        assert rows_to_dicts([["A"]]) == []

    def test_find_row_index(self):
        table = [["ID"], ["1"], ["3"]]
        assert find_row_index(table, "ID", 3) == 3
        assert find_row_index(table, "ID", "9") == -1
        assert find_row_index([], "ID", 1) == -1

    def test_find_row_index_missing_column(self):
        with pytest.raises(NotFound):
            find_row_index([["Nom"]], "ID", 1)
