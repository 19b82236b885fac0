"""Row storage: a Google Sheets backend and an in-memory stand-in."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from .logging import jlog

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


@dataclass(frozen=True)
class CellUpdate:
    column: str
    row: int
    value: str


class RowStore(Protocol):
    def read(self, first_col: str, last_col: str, start_row: int, end_row: int | None = None) -> list[list[str]]:
        """Rows ``start_row..end_row`` (1-based, inclusive) of columns ``first_col..last_col``."""

    def write(self, updates: list[CellUpdate]) -> int:
        """Apply ``updates``; return the number of cells written."""


def _quote_sheet(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


class SheetsRowStore:
    def __init__(self, spreadsheet_id: str, sheet_name: str, credentials_path: str, service=None) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.credentials_path = credentials_path
        self._sheets = service

    @property
    def sheets(self):
        if self._sheets is None:
            creds = Credentials.from_service_account_file(self.credentials_path, scopes=SHEETS_SCOPES)
            self._sheets = build("sheets", "v4", credentials=creds, cache_discovery=False).spreadsheets()
        return self._sheets

    def a1(self, first_col: str, last_col: str, start_row: int, end_row: int | None = None) -> str:
        end = f"{last_col}{end_row}" if end_row else last_col
        return f"{_quote_sheet(self.sheet_name)}!{first_col}{start_row}:{end}"

    def read(self, first_col: str, last_col: str, start_row: int, end_row: int | None = None) -> list[list[str]]:
        result = (
            self.sheets.values()
            .get(spreadsheetId=self.spreadsheet_id, range=self.a1(first_col, last_col, start_row, end_row))
            .execute()
        )
        return result.get("values", [])

    def write(self, updates: list[CellUpdate]) -> int:
        if not updates:
            return 0
        data = [
            {"range": f"{_quote_sheet(self.sheet_name)}!{u.column}{u.row}", "values": [[u.value]]}
            for u in updates
        ]
        self.sheets.values().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"valueInputOption": "RAW", "data": data},
        ).execute()
        jlog("info", event="sheet_cells_written", cells=len(data), sheet=self.sheet_name)
        return len(data)


def column_index(column: str) -> int:
    """0-based index of an A1 column label (``A`` -> 0, ``AA`` -> 26)."""

    idx = 0
    for ch in column.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def sheet_timestamp(tz: str, now: datetime | None = None) -> str:
    """Local wall-clock stamp written next to each updated row."""

    moment = (now or datetime.now(ZoneInfo("UTC"))).astimezone(ZoneInfo(tz))
    return moment.strftime("%d/%m/%Y, %I:%M:%S %p").lower()


def iter_rows(store: RowStore, first_col: str, last_col: str, *, batch_size: int = 1000, start_row: int = 2):
    """Yield ``(row_number, cells)`` page by page until the store returns a short page."""

    row = start_row
    while True:
        end = row + batch_size - 1
        values = store.read(first_col, last_col, row, end)
        for offset, cells in enumerate(values):
            yield row + offset, [str(c).strip() for c in cells]
        if len(values) < batch_size:
            return
        row = end + 1


class MemoryRowStore:
    """Dict-backed store keyed by 1-based row; used by tests and ``--url`` runs."""

    def __init__(self, rows: dict[int, list[str]] | None = None) -> None:
        self.rows: dict[int, list[str]] = {k: list(v) for k, v in (rows or {}).items()}
        self.writes: list[list[CellUpdate]] = []

    def read(self, first_col: str, last_col: str, start_row: int, end_row: int | None = None) -> list[list[str]]:
        lo, hi = column_index(first_col), column_index(last_col)
        last = max(self.rows, default=0)
        stop = min(end_row, last) if end_row else last
        out: list[list[str]] = []
        for row in range(start_row, stop + 1):
            cells = self.rows.get(row, [])
            out.append(list(cells[lo : hi + 1]))
        while out and not any(out[-1]):
            out.pop()
        return out

    def write(self, updates: list[CellUpdate]) -> int:
        self.writes.append(list(updates))
        for u in updates:
            cells = self.rows.setdefault(u.row, [])
            idx = column_index(u.column)
            if len(cells) <= idx:
                cells.extend([""] * (idx + 1 - len(cells)))
            cells[idx] = u.value
        return len(updates)

    def cell(self, column: str, row: int) -> str:
        cells = self.rows.get(row, [])
        idx = column_index(column)
        return cells[idx] if idx < len(cells) else ""


__all__ = ["CellUpdate", "MemoryRowStore", "RowStore", "SHEETS_SCOPES", "SheetsRowStore", "column_index", "iter_rows", "sheet_timestamp"]
