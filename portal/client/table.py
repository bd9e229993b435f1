from __future__ import annotations

import threading
import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

PAGE_SIZES = (10, 20, 30, 40, 50)
DEFAULT_PAGE_SIZE = PAGE_SIZES[0]

Record = dict[str, Any]


@dataclass(frozen=True)
class TablePage:
    rows: list[Record]
    page: int
    page_size: int
    total: int
    pages: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def _fold(value: object) -> str:
    text = unicodedata.normalize("NFKD", str(value))
    return "".join(ch for ch in text if not unicodedata.combining(ch)).lower()


def _cell_text(record: Record, column: str) -> str:
    value: object = record
    for part in column.split("."):
        if not isinstance(value, dict):
            return ""
        value = value.get(part)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(_cell_text({"v": item}, "v") for item in value)
    if isinstance(value, dict):
        return " ".join(str(v) for v in value.values() if v is not None)
    return str(value)


class DocumentTable:
    """In-memory list of one document type plus its client-side view.

    The list only changes through ``replace_all`` (full reload) and the
    single-record patches the gateway applies after a successful response.
    """

    def __init__(self, search_columns: Sequence[str], records: Iterable[Record] = ()) -> None:
        self.search_columns = tuple(search_columns)
        self._records: list[Record] = [dict(r) for r in records]
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def records(self) -> list[Record]:
        with self._lock:
            return [dict(r) for r in self._records]

    def replace_all(self, records: Iterable[Record]) -> None:
        fresh = [dict(r) for r in records]
        with self._lock:
            self._records = fresh

    def append(self, record: Record) -> None:
        with self._lock:
            self._records.append(dict(record))

    def get(self, record_id: object) -> Record | None:
        with self._lock:
            for record in self._records:
                if record.get("id") == record_id:
                    return dict(record)
        return None

    def replace(self, record: Record) -> bool:
        with self._lock:
            for index, current in enumerate(self._records):
                if current.get("id") == record.get("id"):
                    self._records[index] = dict(record)
                    return True
        return False

    def remove(self, record_id: object) -> bool:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.get("id") != record_id]
            return len(self._records) != before

    def page(
        self,
        query: str = "",
        status: str | None = None,
        sort_by: str | None = "createdAt",
        descending: bool = True,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> TablePage:
        rows = self.records
        if status:
            rows = [r for r in rows if r.get("status") == status]
        needle = _fold(query.strip()) if query else ""
        if needle:
            rows = [r for r in rows if any(needle in _fold(_cell_text(r, col)) for col in self.search_columns)]
        if sort_by:
            present = [r for r in rows if r.get(sort_by) is not None]
            missing = [r for r in rows if r.get(sort_by) is None]
            present.sort(key=lambda r: _sort_key(r.get(sort_by)), reverse=descending)
            rows = present + missing

        safe_size = page_size if page_size in PAGE_SIZES else DEFAULT_PAGE_SIZE
        total = len(rows)
        pages = max(1, (total + safe_size - 1) // safe_size)
        safe_page = min(max(page, 1), pages)
        start = (safe_page - 1) * safe_size
        return TablePage(
            rows=rows[start : start + safe_size],
            page=safe_page,
            page_size=safe_size,
            total=total,
            pages=pages,
        )


def _sort_key(value: object) -> tuple[int, object]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, _fold(value))


CONSTANCIA_SEARCH_COLUMNS = ("constanciaNumber", "studentCode", "fullName", "dni", "year", "observation")
RESOLUCION_SEARCH_COLUMNS = (
    "numeroResolucion",
    "tituloProyecto",
    "nombreAsesor",
    "dniAsesor",
    "facultad.nombre",
    "departamento.nombre",
)
