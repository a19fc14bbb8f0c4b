from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import StoreError
from .utils import to_number


logger = logging.getLogger(__name__)

TABLES = (
    "works",
    "subworks",
    "subwork_items",
    "item_rates",
    "royalty_measurements",
    "testing_measurements",
)


def _key(value: Any) -> Optional[str]:
    # Ids may be stored as numbers or strings; 7 and "7" are the same record
    return None if value is None else str(value)


def _matches(row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(_key(row.get(k)) == _key(v) for k, v in filters.items())


class JsonStore:
    """Record store kept as one JSON array per table in a folder.

    Requests are table name + filter (+ payload); responses are row
    lists. Any read/write problem surfaces as ``StoreError``. Writes
    replace the whole table file, so concurrent writers are last-write-wins.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, table: str) -> Path:
        if table not in TABLES:
            raise StoreError(f"Unknown table: {table}")
        return self.data_dir / f"{table}.json"

    def _read(self, table: str) -> List[Dict[str, Any]]:
        path = self._path(table)
        if not path.exists():
            return []
        try:
            rows = json.loads(path.read_text(encoding="utf-8")) or []
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not read {table}: {e}") from e
        if not isinstance(rows, list):
            raise StoreError(f"Table {table} is not a list of rows")
        return rows

    def _write(self, table: str, rows: List[Dict[str, Any]]) -> None:
        path = self._path(table)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.data_dir), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except OSError as e:
            raise StoreError(f"Could not write {table}: {e}") from e

    def select(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Dict[str, Any]]:
        rows = [dict(r) for r in self._read(table) if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, to_number(r.get(order_by))))
        return rows

    def select_one(self, table: str, **filters: Any) -> Optional[Dict[str, Any]]:
        rows = self.select(table, **filters)
        return rows[0] if rows else None

    def select_in(self, table: str, column: str, values: Iterable[Any]) -> List[Dict[str, Any]]:
        wanted = {_key(v) for v in values if v is not None}
        if not wanted:
            return []
        return [dict(r) for r in self._read(table) if _key(r.get(column)) in wanted]

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> int:
        current = self._read(table)
        current.extend(dict(r) for r in rows)
        self._write(table, current)
        return len(rows)

    def update(self, table: str, filters: Dict[str, Any], payload: Dict[str, Any]) -> int:
        rows = self._read(table)
        count = 0
        for row in rows:
            if _matches(row, filters):
                row.update(payload)
                count += 1
        if count:
            self._write(table, rows)
        logger.debug("Updated %d row(s) in %s where %s", count, table, filters)
        return count
