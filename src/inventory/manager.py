"""
SQLite access layer for the folder and file inventory.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

from .schema import connect as connect_db
from .schema import create_inventory_db

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_ALREADY_OPTIMIZED = "already_optimized"
VALID_STATUSES = frozenset({None, STATUS_SUCCESS, STATUS_ERROR, STATUS_ALREADY_OPTIMIZED})

ACTIVE_ONLY = "active"
INACTIVE_ONLY = "inactive"
ALL_FOLDERS = "all"
ACTIVE_FILTERS = (ACTIVE_ONLY, INACTIVE_ONLY, ALL_FOLDERS)

FILE_COLUMNS = "file_id, folder_id, path, optimization_level, status"
UPDATABLE_FILE_FIELDS = frozenset(
    {
        "folder_id",
        "path",
        "hash",
        "mime_type",
        "modified",
        "width",
        "height",
        "original_size",
        "optimized_size",
        "percent",
        "optimization_level",
        "status",
        "error",
    }
)

# SQLite's default host parameter limit is 999.
MAX_SQL_PARAMS = 900


class StoreQueryFailed(RuntimeError):
    """Raised when an inventory read or write fails."""


class InsertFailed(StoreQueryFailed):
    """Raised when a new file row cannot be persisted."""


class RowDecodeError(ValueError):
    """Raised when a stored row does not match the expected shape."""


def _as_int(value: Any, field: str, nullable: bool = False) -> Optional[int]:
    if value is None:
        if nullable:
            return None
        raise RowDecodeError(f"{field} is missing")
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise RowDecodeError(f"{field} is not an integer: {value!r}") from exc


@dataclass(frozen=True)
class Folder:
    """A tracked folder; ``absolute_path`` is derived from ``portable_path``."""

    folder_id: int
    portable_path: str
    active: bool
    absolute_path: str = ""

    @classmethod
    def from_row(cls, row: Any) -> "Folder":
        """Decode a ``(folder_id, path, active)`` tuple or a mapping with the same keys."""
        if isinstance(row, dict):
            values = (row.get("folder_id"), row.get("path"), row.get("active"))
        else:
            values = tuple(row)
        if len(values) != 3:
            raise RowDecodeError(f"Folder row has {len(values)} fields")
        folder_id, path, active = values
        if not isinstance(path, str) or not path:
            raise RowDecodeError(f"Folder path is not a string: {path!r}")
        return cls(
            folder_id=_as_int(folder_id, "folder_id"),
            portable_path=path,
            active=bool(_as_int(active, "active", nullable=True)),
        )

    def with_absolute_path(self, absolute_path: str) -> "Folder":
        return replace(self, absolute_path=absolute_path)


@dataclass(frozen=True)
class FileRecord:
    """A tracked file; ``absolute_path`` is derived from ``portable_path``."""

    file_id: int
    folder_id: int
    portable_path: str
    optimization_level: Optional[int] = None
    status: Optional[str] = None
    absolute_path: str = ""

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "FileRecord":
        """Decode a ``(file_id, folder_id, path, optimization_level, status)`` row."""
        if len(row) != 5:
            raise RowDecodeError(f"File row has {len(row)} fields")
        file_id, folder_id, path, level, status = row
        if not isinstance(path, str) or not path:
            raise RowDecodeError(f"File path is not a string: {path!r}")
        if status == "":
            status = None
        if status not in VALID_STATUSES:
            raise RowDecodeError(f"Unknown status {status!r} for file {file_id}")
        level = _as_int(level, "optimization_level", nullable=True)
        if level is not None and level < 0:
            raise RowDecodeError(f"Negative optimization level for file {file_id}")
        return cls(
            file_id=_as_int(file_id, "file_id"),
            folder_id=_as_int(folder_id, "folder_id"),
            portable_path=path,
            optimization_level=level,
            status=status,
        )

    def with_absolute_path(self, absolute_path: str) -> "FileRecord":
        return replace(self, absolute_path=absolute_path)

    def with_folder(self, folder_id: int) -> "FileRecord":
        return replace(self, folder_id=folder_id)


@dataclass(frozen=True)
class NewFile:
    """Values for a file row that is about to be inserted."""

    folder_id: int
    portable_path: str
    hash: Optional[str] = None
    mime_type: Optional[str] = None
    modified: Optional[int] = None
    width: int = 0
    height: int = 0
    original_size: int = 0
    optimization_level: Optional[int] = None
    status: Optional[str] = None


def _chunks(values: Sequence[Any], size: int = MAX_SQL_PARAMS) -> Iterator[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _active_clause(active_filter: str) -> str:
    if active_filter == ACTIVE_ONLY:
        return "active = 1"
    if active_filter == INACTIVE_ONLY:
        return "active = 0"
    if active_filter == ALL_FOLDERS:
        return ""
    raise ValueError(f"Unknown active filter: {active_filter!r}")


class InventoryStore:
    """Manage the SQLite connection and the folder/file queries."""

    def __init__(self, db_path: Path, logger: Optional[logging.Logger] = None) -> None:
        self.db_path = db_path
        self.logger = logger or logging.getLogger("folder_reconciler")
        self._conn: Optional[sqlite3.Connection] = None

    def initialize(self) -> None:
        """Create the database file and tables."""
        create_inventory_db(self.db_path)

    def connect(self) -> sqlite3.Connection:
        """Open the database connection if it is not already open."""
        if self._conn is None:
            try:
                self._conn = connect_db(self.db_path)
            except sqlite3.Error as exc:
                raise StoreQueryFailed(f"Cannot open inventory {self.db_path}: {exc}") from exc
        return self._conn

    def close(self) -> None:
        """Close the open database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        conn = self.connect()
        try:
            return conn.execute(query, tuple(params))
        except sqlite3.Error as exc:
            raise StoreQueryFailed(f"Inventory query failed: {exc}") from exc
        except UnicodeEncodeError as exc:
            # Undecodable file names arrive as surrogate-escaped strings.
            raise StoreQueryFailed(f"Inventory query has an unencodable value: {exc}") from exc

    def _commit(self) -> None:
        try:
            self.connect().commit()
        except sqlite3.Error as exc:
            raise StoreQueryFailed(f"Inventory commit failed: {exc}") from exc

    # Folders

    def insert_folder(self, portable_path: str, active: bool = True) -> int:
        """Insert a folder if its path is unknown and return its ID."""
        self._execute(
            "INSERT OR IGNORE INTO folders (path, active) VALUES (?, ?)",
            (portable_path, 1 if active else 0),
        )
        self._commit()
        row = self._execute("SELECT folder_id FROM folders WHERE path = ?", (portable_path,)).fetchone()
        if row is None:
            raise StoreQueryFailed(f"Folder row missing after insert: {portable_path}")
        return int(row[0])

    def set_folder_active(self, folder_id: int, active: bool) -> bool:
        cursor = self._execute(
            "UPDATE folders SET active = ? WHERE folder_id = ?", (1 if active else 0, folder_id)
        )
        self._commit()
        return cursor.rowcount > 0

    def select_folders(
        self,
        paths: Optional[Iterable[str]] = None,
        exclude_paths: Optional[Iterable[str]] = None,
        active_filter: str = ACTIVE_ONLY,
    ) -> list[Folder]:
        """Select folders whose path is in ``paths`` and not in ``exclude_paths``."""
        query = "SELECT folder_id, path, active FROM folders"
        active = _active_clause(active_filter)
        rows: list[tuple] = []
        if paths is None:
            if active:
                query += f" WHERE {active}"
            rows.extend(self._execute(query).fetchall())
        else:
            for chunk in _chunks(sorted(set(paths))):
                clauses = [f"path IN ({_placeholders(len(chunk))})"]
                if active:
                    clauses.append(active)
                rows.extend(self._execute(f"{query} WHERE {' AND '.join(clauses)}", chunk).fetchall())
        # The exclusion list can exceed the SQL parameter limit.
        excluded = set(exclude_paths or ())
        rows = sorted((row for row in rows if row[1] not in excluded), key=lambda row: row[0])
        return list(self._decode_rows(rows, Folder.from_row))

    def list_folders(self, active_filter: str = ALL_FOLDERS) -> list[Folder]:
        return self.select_folders(active_filter=active_filter)

    # Files

    def select_files_by_folder_ids(self, folder_ids: Iterable[int]) -> list[FileRecord]:
        """Return files belonging to the given folders, ordered by folder then file ID."""
        ids = sorted({int(folder_id) for folder_id in folder_ids})
        rows: list[tuple] = []
        for chunk in _chunks(ids):
            cursor = self._execute(
                f"SELECT {FILE_COLUMNS} FROM files WHERE folder_id IN ({_placeholders(len(chunk))})",
                chunk,
            )
            rows.extend(cursor.fetchall())
        rows.sort(key=lambda row: (row[1], row[0]))
        return list(self._decode_rows(rows, FileRecord.from_row))

    def select_files_by_paths(self, portable_paths: Iterable[str]) -> list[FileRecord]:
        """Return files with one of the given portable paths, in any folder."""
        paths = list(dict.fromkeys(portable_paths))
        rows: list[tuple] = []
        for chunk in _chunks(paths):
            cursor = self._execute(
                f"SELECT {FILE_COLUMNS} FROM files WHERE path IN ({_placeholders(len(chunk))})",
                chunk,
            )
            rows.extend(cursor.fetchall())
        rows.sort(key=lambda row: (row[1], row[0]))
        return list(self._decode_rows(rows, FileRecord.from_row))

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        row = self._execute(f"SELECT {FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,)).fetchone()
        if row is None:
            return None
        return FileRecord.from_row(row)

    def insert_file(self, new_file: NewFile) -> int:
        """Insert a file unless ``(folder_id, path)`` already exists; return the row ID."""
        if new_file.status not in VALID_STATUSES:
            raise InsertFailed(f"Unknown status {new_file.status!r}")
        try:
            self._execute(
                """
                INSERT OR IGNORE INTO files (
                    folder_id,
                    path,
                    hash,
                    mime_type,
                    modified,
                    width,
                    height,
                    original_size,
                    optimization_level,
                    status
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    new_file.folder_id,
                    new_file.portable_path,
                    new_file.hash,
                    new_file.mime_type,
                    new_file.modified,
                    new_file.width,
                    new_file.height,
                    new_file.original_size,
                    new_file.optimization_level,
                    new_file.status,
                ),
            )
            self._commit()
            row = self._execute(
                "SELECT file_id FROM files WHERE folder_id = ? AND path = ?",
                (new_file.folder_id, new_file.portable_path),
            ).fetchone()
        except StoreQueryFailed as exc:
            raise InsertFailed(f"Cannot insert {new_file.portable_path}: {exc}") from exc
        if row is None:
            raise InsertFailed(f"File row missing after insert: {new_file.portable_path}")
        return int(row[0])

    def update_file(self, file_id: int, **fields: Any) -> bool:
        """Update whitelisted columns of a file row; return True when a row changed."""
        unknown = set(fields) - UPDATABLE_FILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update file fields: {', '.join(sorted(unknown))}")
        if not fields:
            return False
        if "status" in fields and fields["status"] not in VALID_STATUSES:
            raise ValueError(f"Unknown status {fields['status']!r}")
        assignments = ", ".join(f"{name} = ?" for name in fields)
        cursor = self._execute(
            f"UPDATE files SET {assignments} WHERE file_id = ?",
            [*fields.values(), file_id],
        )
        self._commit()
        return cursor.rowcount > 0

    def count_files(self, folder_id: Optional[int] = None) -> int:
        if folder_id is None:
            row = self._execute("SELECT COUNT(*) FROM files").fetchone()
        else:
            row = self._execute("SELECT COUNT(*) FROM files WHERE folder_id = ?", (folder_id,)).fetchone()
        return int(row[0]) if row else 0

    def _decode_rows(self, rows: Iterable[Any], decoder) -> Iterator[Any]:
        for row in rows:
            try:
                yield decoder(row)
            except RowDecodeError as exc:
                self.logger.warning("Skipping undecodable inventory row %r: %s", row, exc)
