# swatch_catalog/database.py
"""
Simple file-backed record store using CSV (preferred) or Excel (xlsx) as storage.
Provides CRUD primitives per table name plus a query primitive that applies
filters, ordering and offset/limit in one pass and reports the exact match count.
Uses file locking to avoid simultaneous writes corrupting files.

Usage:
    from swatch_catalog.database import db
    db.list_records("products")
    db.get_record("products", "design_no", "820")
    rows, total = db.query_records("products", equals={"fabric_supplier": "Acme"}, limit=24)
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from filelock import FileLock

from swatch_catalog.config import settings
from swatch_catalog.core.errors import StoreError

logger = logging.getLogger(__name__)

# sort kinds accepted by query_records
ORDER_TEXT = "text"
ORDER_TEXT_CI = "ci_text"
ORDER_NUMBER = "number"

_SEQ = "__seq"
_SORT = "__sort"


class DuplicateKeyError(Exception):
    """Raised when a write would duplicate a value of a unique column."""

    def __init__(self, key: str, value: Any):
        super().__init__(f"{key}={value!r} already exists")
        self.key = key
        self.value = value


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_list(raw: Any) -> List[str]:
    if isinstance(raw, list):
        return [str(v) for v in raw]
    if not raw:
        return []
    try:
        val = json.loads(raw)
    except (TypeError, ValueError):
        return [str(raw)]
    if isinstance(val, list):
        return [str(v) for v in val]
    return [str(val)]


class FileBackedDB:
    """
    Manages CSV / Excel files inside data_dir.
    Table name corresponds to a file name in settings (or you may pass full filename).
    All values are read back as strings; typed conversion is the caller's job.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir if data_dir is not None else settings.DATA_DIR)

    def _file_path(self, table: str) -> Path:
        """
        Resolve table -> file path. If table looks like a filename (has .csv/.xlsx),
        use it directly (relative to data_dir). Otherwise try config mapping,
        else fallback to table + .csv
        """
        if table.endswith(".csv") or table.endswith(".xlsx"):
            return self.data_dir / Path(table)

        mapping = {
            "products": settings.PRODUCTS_FILE,
        }
        filename = mapping.get(table, f"{table}.csv")
        return Path(self.data_dir) / Path(filename)

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(str(path) + ".lock")

    def _read_df(self, table: str) -> pd.DataFrame:
        path = self._file_path(table)
        if not path.exists():
            return pd.DataFrame()
        try:
            if path.suffix.lower() in (".xls", ".xlsx"):
                return pd.read_excel(path, dtype=str).fillna("")
            return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (OSError, ValueError) as e:
            logger.exception("Failed to read table %s from %s", table, path)
            raise StoreError(f"Failed to read {table}") from e

    def _write_df_nolock(self, table: str, df: pd.DataFrame) -> None:
        """
        Write DataFrame for `table` WITHOUT acquiring file lock.
        Use this only when the caller already holds the lock.
        """
        path = self._file_path(table)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.suffix.lower() in (".xls", ".xlsx"):
                df.to_excel(path, index=False)
            else:
                df.to_csv(path, index=False)
        except (OSError, ValueError) as e:
            logger.exception("Failed to write table %s to %s", table, path)
            raise StoreError(f"Failed to write {table}") from e

    def _write_df(self, table: str, df: pd.DataFrame) -> None:
        path = self._file_path(table)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            self._write_df_nolock(table, df)

    @staticmethod
    def _row_dict(row: pd.Series) -> Dict[str, Any]:
        return {k: (None if pd.isna(v) else v) for k, v in row.to_dict().items()}

    @staticmethod
    def _encode(data: Dict[str, Any]) -> Dict[str, Any]:
        # every cell is text: lists/dicts as JSON, None as empty, scalars via str()
        out = {}
        for k, v in data.items():
            if v is None:
                out[k] = ""
            elif isinstance(v, (list, tuple, dict)):
                out[k] = json.dumps(list(v) if isinstance(v, tuple) else v)
            else:
                out[k] = str(v)
        return out

    # --- high-level CRUD primitives ---

    def list_records(self, table: str) -> List[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty:
            return []
        return [self._row_dict(r) for _, r in df.iterrows()]

    def get_record(self, table: str, key: str, value: Any) -> Optional[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty or key not in df.columns:
            return None
        # treat everything as string for comparison simplicity
        mask = df[key].astype(str) == str(value)
        if not mask.any():
            return None
        return self._row_dict(df[mask].iloc[0])

    def create_record(
        self,
        table: str,
        data: Dict[str, Any],
        id_field: str = "id",
        unique: Sequence[str] = (),
        timestamps: bool = False,
    ) -> Dict[str, Any]:
        """
        Create a new record. If id_field not present in `data`, one will be generated (uuid4 hex).
        Columns listed in `unique` must not already hold the new value (DuplicateKeyError).
        With `timestamps`, created_at/updated_at are set here.
        Returns the saved record (with id).
        """
        data = dict(data)
        if not data.get(id_field):
            data[id_field] = uuid.uuid4().hex
        if timestamps:
            now = utc_now()
            data["created_at"] = now
            data["updated_at"] = now

        path = self._file_path(table)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            df = self._read_df(table)
            for key in unique:
                if not df.empty and key in df.columns and (df[key].astype(str) == str(data.get(key))).any():
                    raise DuplicateKeyError(key, data.get(key))
            new_row = self._encode(data)
            if df.empty:
                df = pd.DataFrame([new_row], columns=list(new_row.keys()))
            else:
                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True, sort=False)
            self._write_df_nolock(table, df.fillna(""))
        return data

    def update_record(
        self,
        table: str,
        key: str,
        value: Any,
        updates: Dict[str, Any],
        unique: Sequence[str] = (),
        timestamps: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Update rows where df[key] == value with fields in updates. Returns the updated first row dict or None.
        """
        updates = dict(updates)
        if timestamps:
            updates["updated_at"] = utc_now()
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return None
            mask = df[key].astype(str) == str(value)
            if not mask.any():
                return None
            for col in unique:
                if col in updates and col in df.columns:
                    clash = (df[col].astype(str) == str(updates[col])) & ~mask
                    if clash.any():
                        raise DuplicateKeyError(col, updates[col])
            for k, v in self._encode(updates).items():
                if k not in df.columns:
                    df[k] = ""
                df.loc[mask, k] = v
            self._write_df_nolock(table, df)
            return self._row_dict(df[mask].iloc[0])

    def delete_record(self, table: str, key: str, value: Any) -> bool:
        """
        Delete all records where df[key] == value. Returns True if any rows were removed.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return False
            orig_len = len(df)
            df = df[df[key].astype(str) != str(value)]
            if len(df) == orig_len:
                return False
            self._write_df_nolock(table, df)
            return True

    # --- querying ---

    def query_records(
        self,
        table: str,
        *,
        search: Optional[Tuple[str, Iterable[str]]] = None,
        equals: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, str]] = None,
        any_of: Optional[Dict[str, Iterable[str]]] = None,
        ranges: Optional[Dict[str, Tuple[Optional[float], Optional[float]]]] = None,
        not_equals: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order_as: str = ORDER_TEXT,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Filter, order and slice a table. Returns (rows, total) where total counts
        every row matching all filters, before offset/limit.

        - search: (text, columns) -> case-insensitive substring in ANY of columns
        - equals / not_equals: exact string comparison per column
        - contains: case-insensitive substring per column
        - any_of: column holds a JSON list; row matches if it shares a value with the set
        - ranges: inclusive numeric (low, high); None means unbounded
        Ties in the ordering are broken by row position (insertion order),
        in the same direction as the ordering itself.
        """
        df = self._read_df(table)
        if df.empty:
            return [], 0
        df = df.copy()
        df[_SEQ] = range(len(df))
        mask = pd.Series(True, index=df.index)

        def col(name: str) -> pd.Series:
            if name in df.columns:
                return df[name].astype(str)
            return pd.Series("", index=df.index)

        if search and search[0]:
            text, columns = search
            hit = pd.Series(False, index=df.index)
            for c in columns:
                hit |= col(c).str.contains(text, case=False, regex=False)
            mask &= hit
        for c, v in (equals or {}).items():
            mask &= col(c) == str(v)
        for c, v in (not_equals or {}).items():
            mask &= col(c) != str(v)
        for c, text in (contains or {}).items():
            mask &= col(c).str.contains(text, case=False, regex=False)
        for c, values in (any_of or {}).items():
            wanted = {str(v) for v in values}
            if wanted:
                mask &= col(c).map(lambda raw: bool(wanted.intersection(_json_list(raw))))
        for c, (low, high) in (ranges or {}).items():
            nums = pd.to_numeric(col(c), errors="coerce")
            if low is not None:
                mask &= nums >= low
            if high is not None:
                mask &= nums <= high

        df = df[mask.fillna(False).astype(bool)]
        total = len(df)

        if order_by:
            values = col(order_by)
            if order_as == ORDER_NUMBER:
                values = pd.to_numeric(values, errors="coerce")
            elif order_as == ORDER_TEXT_CI:
                values = values.str.casefold()
            df = df.assign(**{_SORT: values})
            df = df.sort_values(
                by=[_SORT, _SEQ],
                ascending=[not descending, not descending],
                kind="mergesort",
                na_position="last",
            )
            df = df.drop(columns=[_SORT])

        start = max(int(offset), 0)
        end = None if limit is None else start + max(int(limit), 0)
        page = df.iloc[start:end].drop(columns=[_SEQ])
        return [self._row_dict(r) for _, r in page.iterrows()], total

    def distinct_values(self, table: str, column: str, as_list: bool = False) -> List[str]:
        """Sorted distinct non-empty values of `column` (flattening JSON lists if as_list)."""
        df = self._read_df(table)
        if df.empty or column not in df.columns:
            return []
        seen = set()
        for raw in df[column].astype(str):
            values = _json_list(raw) if as_list else [raw]
            for v in values:
                v = v.strip()
                if v:
                    seen.add(v)
        return sorted(seen)


# module-level singleton for convenience
db = FileBackedDB()
