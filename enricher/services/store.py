"""
Tabular store — the spreadsheet-like surface rows are read from and written to.

The pipeline only depends on the small random-access contract of TabularStore
(1-based rows and columns). MemoryStore backs tests and previews; Workbook /
WorksheetStore back real runs on .xlsx files via openpyxl.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from openpyxl import Workbook as XlsxWorkbook, load_workbook
from openpyxl.styles import Font

logger = logging.getLogger('services.store')

ERROR_FONT = Font(color='FFFF0000')
DEFAULT_FONT = Font()


class TabularStore(ABC):
    """Minimal random-access contract over one sheet."""

    @abstractmethod
    def get_cell(self, row: int, col: int) -> Any:
        ...

    @abstractmethod
    def set_cell(self, row: int, col: int, value: Any, error: bool = False) -> None:
        """Write one cell. error=True renders it visibly as an error."""
        ...

    @abstractmethod
    def get_row(self, row: int) -> List[Any]:
        """Values of columns 1..last_column() for `row`."""
        ...

    @abstractmethod
    def last_row(self) -> int:
        ...

    @abstractmethod
    def last_column(self) -> int:
        ...

    @abstractmethod
    def append_row(self, values: Sequence[Any]) -> None:
        ...

    @abstractmethod
    def delete_rows(self, start: int, count: int) -> None:
        ...

    def flush(self) -> None:
        """Persist pending writes. No-op for stores without a backing file."""


# ── In-memory ────────────────────────────────────────────────────────────────

class MemoryStore(TabularStore):
    """List-of-lists store. Row 1 is conventionally the header row."""

    def __init__(self, rows: Optional[List[List[Any]]] = None, name: str = 'Sheet1'):
        self.name = name
        self.rows: List[List[Any]] = [list(r) for r in (rows or [])]
        self.error_cells = set()
        self.flush_count = 0

    def _ensure(self, row: int, col: int):
        while len(self.rows) < row:
            self.rows.append([])
        cells = self.rows[row - 1]
        while len(cells) < col:
            cells.append(None)

    def get_cell(self, row, col):
        if row < 1 or col < 1 or row > len(self.rows):
            return None
        cells = self.rows[row - 1]
        return cells[col - 1] if col <= len(cells) else None

    def set_cell(self, row, col, value, error=False):
        if row < 1 or col < 1:
            raise IndexError(f'Cell ({row}, {col}) is out of range')
        self._ensure(row, col)
        self.rows[row - 1][col - 1] = value
        if error:
            self.error_cells.add((row, col))
        else:
            self.error_cells.discard((row, col))

    def get_row(self, row):
        width = self.last_column()
        return [self.get_cell(row, c) for c in range(1, width + 1)]

    def last_row(self):
        return len(self.rows)

    def last_column(self):
        return max((len(r) for r in self.rows), default=0)

    def append_row(self, values):
        self.rows.append(list(values))

    def delete_rows(self, start, count):
        if count <= 0:
            return
        del self.rows[start - 1:start - 1 + count]
        self.error_cells = {
            (r if r < start else r - count, c)
            for r, c in self.error_cells
            if not start <= r < start + count
        }

    def flush(self):
        self.flush_count += 1

    def is_error(self, row: int, col: int) -> bool:
        return (row, col) in self.error_cells


class MemoryWorkbook:
    """Named MemoryStores, with the same sheet() surface as Workbook."""

    def __init__(self, sheets: Optional[dict] = None):
        self.sheets = {name: MemoryStore(rows, name=name) for name, rows in (sheets or {}).items()}

    def has_sheet(self, name: str) -> bool:
        return name in self.sheets

    def sheet(self, name: Optional[str] = None, create: bool = False) -> MemoryStore:
        if name is None:
            if not self.sheets:
                self.sheets['Sheet1'] = MemoryStore(name='Sheet1')
            return next(iter(self.sheets.values()))
        if name not in self.sheets:
            if not create:
                raise KeyError(f"Sheet '{name}' does not exist")
            self.sheets[name] = MemoryStore(name=name)
        return self.sheets[name]

    def save(self):
        pass


# ── openpyxl ─────────────────────────────────────────────────────────────────

class WorksheetStore(TabularStore):
    """TabularStore over one openpyxl worksheet. flush() saves the whole workbook."""

    def __init__(self, worksheet, workbook: 'Workbook' = None):
        self.ws = worksheet
        self.workbook = workbook

    @property
    def name(self) -> str:
        return self.ws.title

    def get_cell(self, row, col):
        return self.ws.cell(row=row, column=col).value

    def set_cell(self, row, col, value, error=False):
        cell = self.ws.cell(row=row, column=col)
        cell.value = value
        if error:
            cell.font = ERROR_FONT
        elif cell.font is not None and cell.font.color is not None and cell.font.color.rgb == ERROR_FONT.color.rgb:
            cell.font = DEFAULT_FONT

    def get_row(self, row):
        width = self.last_column()
        return [self.ws.cell(row=row, column=c).value for c in range(1, width + 1)]

    def last_row(self):
        # openpyxl reports max_row == 1 for an empty sheet
        if self.ws.max_row == 1 and self.ws.max_column == 1 and self.ws.cell(row=1, column=1).value is None:
            return 0
        return self.ws.max_row

    def last_column(self):
        if self.last_row() == 0:
            return 0
        return self.ws.max_column

    def append_row(self, values):
        # ws.append() would skip row 1 once last_row() has touched A1
        row = self.last_row() + 1
        for col, value in enumerate(values, start=1):
            self.ws.cell(row=row, column=col, value=value)

    def delete_rows(self, start, count):
        if count > 0:
            self.ws.delete_rows(start, count)

    def flush(self):
        if self.workbook is not None:
            self.workbook.save()


class Workbook:
    """An .xlsx file on disk, handing out WorksheetStores by sheet name."""

    def __init__(self, path: str, create: bool = False):
        self.path = path
        try:
            self.wb = load_workbook(path)
        except FileNotFoundError:
            if not create:
                raise
            self.wb = XlsxWorkbook()
            logger.info("Created new workbook %s", path)

    def has_sheet(self, name: str) -> bool:
        return name in self.wb.sheetnames

    def sheet(self, name: Optional[str] = None, create: bool = False) -> WorksheetStore:
        """Worksheet by name (active sheet when None). Raises KeyError when missing and not create."""
        if name is None:
            return WorksheetStore(self.wb.active, self)
        if name not in self.wb.sheetnames:
            if not create:
                raise KeyError(f"Sheet '{name}' does not exist")
            self.wb.create_sheet(name)
            logger.info("Created sheet '%s'", name)
        return WorksheetStore(self.wb[name], self)

    def save(self):
        self.wb.save(self.path)
