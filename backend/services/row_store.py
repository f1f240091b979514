"""
Accès aux feuilles Google Sheets (stockage en lignes)

Chaque feuille est une table: la ligne 0 est l'en-tête, les suivantes
les données. Aucune transaction, aucun schéma imposé.
Les index de lignes passés à update_row / delete_row sont ceux de la
feuille (1-based, en-tête = ligne 1).
"""

import asyncio
import logging
from typing import List, Optional

import gspread
from google.oauth2.service_account import Credentials

from config import GOOGLE_SHEET_ID, GOOGLE_CREDENTIALS_FILE
from services.errors import NotFound

logger = logging.getLogger("row_store")

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']


class TableNotFound(NotFound):
    """La feuille demandée n'existe pas"""

    def __init__(self, name: str):
        super().__init__(f"Feuille \"{name}\" introuvable.")
        self.name = name


class RowStore:
    """Interface du stockage en lignes"""

    async def get_table(self, name: str) -> List[List[str]]:
        raise NotImplementedError

    async def append_rows(self, name: str, rows: List[List]) -> None:
        raise NotImplementedError

    async def update_row(self, name: str, index: int, row: List) -> None:
        raise NotImplementedError

    async def delete_row(self, name: str, index: int) -> None:
        raise NotImplementedError

    async def create_table(self, name: str) -> None:
        raise NotImplementedError

    async def update_range(self, name: str, start_cell: str, rows: List[List]) -> None:
        raise NotImplementedError


class GoogleSheetsRowStore(RowStore):
    """Implémentation gspread (compte de service)"""

    def __init__(
        self,
        spreadsheet_id: str = GOOGLE_SHEET_ID,
        credentials_file: str = GOOGLE_CREDENTIALS_FILE,
        spreadsheet=None
    ):
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self._spreadsheet = spreadsheet

    def _open(self):
        if self._spreadsheet is None:
            credentials = Credentials.from_service_account_file(self.credentials_file, scopes=SCOPES)
            client = gspread.authorize(credentials)
            self._spreadsheet = client.open_by_key(self.spreadsheet_id)
            logger.info(f"[SHEETS] Connecté au classeur {self.spreadsheet_id}")
        return self._spreadsheet

    def _worksheet(self, name: str):
        try:
            return self._open().worksheet(name)
        except gspread.WorksheetNotFound:
            raise TableNotFound(name)

    async def _on_worksheet(self, name: str, method: str, *args, **kwargs):
        """Ouverture, recherche de la feuille et appel dans un même thread"""
        def call():
            return getattr(self._worksheet(name), method)(*args, **kwargs)
        return await asyncio.to_thread(call)

    async def get_table(self, name: str) -> List[List[str]]:
        return await self._on_worksheet(name, "get_all_values")

    async def append_rows(self, name: str, rows: List[List]) -> None:
        await self._on_worksheet(name, "append_rows", rows, value_input_option="USER_ENTERED")

    async def update_row(self, name: str, index: int, row: List) -> None:
        await self.update_range(name, f"A{index}", [row])

    async def delete_row(self, name: str, index: int) -> None:
        await self._on_worksheet(name, "delete_rows", index)

    async def create_table(self, name: str) -> None:
        def call():
            self._open().add_worksheet(title=name, rows=1000, cols=26)
        await asyncio.to_thread(call)
        logger.info(f"[SHEETS] Feuille '{name}' créée")

    async def update_range(self, name: str, start_cell: str, rows: List[List]) -> None:
        await self._on_worksheet(
            name,
            "update",
            range_name=start_cell,
            values=rows,
            value_input_option="USER_ENTERED"
        )


# ==================== LECTURE DES LIGNES ====================

def rows_to_dicts(table: Optional[List[List[str]]]) -> List[dict]:
    """Convertit [en-tête, *lignes] en dicts; cellules absentes -> ''"""
    if not table:
        return []
    headers = table[0]
    records = []
    for row in table[1:]:
        records.append({
            h: (row[i] if i < len(row) and row[i] is not None else '')
            for i, h in enumerate(headers)
        })
    return records


def find_row_index(table: List[List[str]], column: str, value) -> int:
    """
    Index de feuille (1-based) de la première ligne dont `column` vaut `value`,
    -1 si absente. Comparaison en texte: "3" == 3.
    """
    if not table:
        return -1
    headers = table[0]
    if column not in headers:
        raise NotFound(f"La colonne \"{column}\" est introuvable.")
    col = headers.index(column)
    for offset, row in enumerate(table[1:]):
        if col < len(row) and str(row[col]) == str(value):
            return offset + 2
    return -1
