"""
Generic record store interface and an in-memory implementation.

The engine only needs three operations from its backing store: read the rows
of a table matching equality filters, insert a row, and update the rows
matching equality filters. ``InMemoryRecordStore`` implements them over
plain dictionaries loaded from a JSON seed file, and enforces partial unique
constraints the way a database unique index would.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..domain.exceptions import DuplicateRecordError, RepositoryError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordStore(Protocol):
    """Protocol describing the store operations needed by the repositories."""

    def select(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        """Return rows of ``table`` whose columns equal every filter value."""

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        """Insert one row and return it as stored."""

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> List[Record]:
        """Apply ``changes`` to matching rows and return the updated rows."""


@dataclass(frozen=True)
class UniqueConstraint:
    """
    A unique index over ``columns``, optionally restricted to rows for which
    ``where`` returns True (a partial index). ``canonical`` maps a column to
    the function that normalizes its values before comparison.
    """
    columns: Tuple[str, ...]
    where: Optional[Callable[[Mapping[str, Any]], bool]] = None
    canonical: Mapping[str, Callable[[Any], str]] = field(default_factory=dict)

    def applies_to(self, row: Mapping[str, Any]) -> bool:
        return self.where is None or self.where(row)

    def key(self, row: Mapping[str, Any]) -> Tuple[str, ...]:
        return tuple(
            self.canonical.get(column, _normalize_value)(row.get(column))
            for column in self.columns
        )


def _normalize_value(value: Any) -> str:
    # Ids arrive as ints from JSON but as strings from callers
    return "" if value is None else str(value)


def _row_matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    if not filters:
        return True
    return all(
        _normalize_value(row.get(column)) == _normalize_value(expected)
        for column, expected in filters.items()
    )


class InMemoryRecordStore:
    """
    Thread-safe in-memory record store.

    Writes are serialized under a lock and unique constraints are checked
    inside it, so two concurrent inserts of the same key cannot both succeed.
    """

    def __init__(
        self,
        tables: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None,
        unique_constraints: Optional[Mapping[str, Sequence[UniqueConstraint]]] = None,
        id_columns: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the store.

        Args:
            tables: Initial rows per table name
            unique_constraints: Constraints enforced on insert and update, per table
            id_columns: Column that receives an auto-incremented id on insert, per table
        """
        self._tables: Dict[str, List[Record]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._constraints: Dict[str, List[UniqueConstraint]] = {
            name: list(items) for name, items in (unique_constraints or {}).items()
        }
        self._id_columns: Dict[str, str] = dict(id_columns or {})
        self._lock = threading.Lock()

    @classmethod
    def from_json_file(cls, data_file: Path, **kwargs) -> "InMemoryRecordStore":
        """
        Load the initial rows from a JSON file mapping table name to rows.

        Raises:
            RepositoryError: If the file is missing or not valid JSON
        """
        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise RepositoryError(f"Could not load store data from {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise RepositoryError(f"Store data in {data_file} must be a mapping of tables.")

        logger.debug("Loaded %d table(s) from %s", len(data), data_file)
        return cls(tables=data, **kwargs)

    def save_json_file(self, data_file: Path) -> None:
        """
        Write all tables back to a JSON file.

        Raises:
            RepositoryError: If the file cannot be written
        """
        with self._lock:
            snapshot = copy.deepcopy(self._tables)
        try:
            with open(data_file, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise RepositoryError(f"Could not save store data to {data_file}: {exc}") from exc

    def add_unique_constraint(self, table: str, constraint: UniqueConstraint) -> None:
        with self._lock:
            self._constraints.setdefault(table, []).append(constraint)

    def select(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        with self._lock:
            rows = self._tables.get(table, [])
            return [copy.deepcopy(row) for row in rows if _row_matches(row, filters)]

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        with self._lock:
            rows = self._tables.setdefault(table, [])
            new_row = dict(record)

            id_column = self._id_columns.get(table)
            if id_column and new_row.get(id_column) is None:
                new_row[id_column] = self._next_id(rows, id_column)

            self._check_constraints(table, rows, new_row)
            rows.append(new_row)
            return copy.deepcopy(new_row)

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> List[Record]:
        with self._lock:
            rows = self._tables.get(table, [])
            updated: List[Record] = []
            for index, row in enumerate(rows):
                if not _row_matches(row, filters):
                    continue
                candidate = {**row, **changes}
                others = rows[:index] + rows[index + 1:]
                self._check_constraints(table, others, candidate)
                rows[index] = candidate
                updated.append(copy.deepcopy(candidate))
            return updated

    def _check_constraints(self, table: str, rows: Sequence[Record], candidate: Record) -> None:
        for constraint in self._constraints.get(table, []):
            if not constraint.applies_to(candidate):
                continue
            key = constraint.key(candidate)
            for row in rows:
                if constraint.applies_to(row) and constraint.key(row) == key:
                    raise DuplicateRecordError(
                        f"Duplicate key {key} for {', '.join(constraint.columns)} in {table}"
                    )

    @staticmethod
    def _next_id(rows: Sequence[Record], id_column: str) -> int:
        existing = []
        for row in rows:
            try:
                existing.append(int(row.get(id_column)))
            except (TypeError, ValueError):
                continue
        return max(existing, default=0) + 1
