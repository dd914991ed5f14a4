"""
Uniform find/insert/update/delete over every entity kind.

Filters are translated into parameterized conditions, rows are decoded into
typed records by column order, and each write call runs in one transaction
together with the write hooks it triggers.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from ..core.entities import Record, record_type_for, join_columns
from ..core.enums import Associativity, EntityKind, JoinKind, WriteAction
from ..core.exceptions import InvalidFilterError, NotFoundError
from ..core.filters import FILTER_TYPES, Filter, build_condition, check_filters
from ..core.interfaces import WriteHook
from .database import DatabaseManager

logger = logging.getLogger(__name__)

KindLike = Union[EntityKind, Type[Record]]


class QueryDispatcher:
    """Generic query and command layer over a ``DatabaseManager``."""

    def __init__(self, database: DatabaseManager):
        self._database = database
        self._hooks: List[WriteHook] = []

    @property
    def database(self) -> DatabaseManager:
        return self._database

    def add_hook(self, hook: WriteHook) -> None:
        """Register a write hook."""
        self._hooks.append(hook)

    # Reads

    def find(self, kind: KindLike, filters: Sequence[Filter] = (),
             associativity: Associativity = Associativity.AND) -> List[Record]:
        """Return every record of ``kind`` matching ``filters``; no filters scans the table."""
        kind = _as_kind(kind)
        check_filters([kind], filters)
        record_type = record_type_for(kind)

        columns = ", ".join(f'"{column}"' for column in record_type.columns())
        query = f'SELECT {columns} FROM "{record_type.TABLE}"'
        condition, params = build_condition(filters, associativity, self._database.placeholder)
        if condition:
            query += f" WHERE {condition}"
        query += " ORDER BY " + ", ".join(f'"{column}"' for column in record_type.KEY_COLUMNS)

        rows = self._database.execute_query(query, params, context=f"find {kind.value}")
        return [record_type.from_row(list(row.values())) for row in rows]

    def find_one(self, kind: KindLike, filters: Sequence[Filter] = (),
                 associativity: Associativity = Associativity.AND) -> Record:
        """Return the first match or raise ``NotFoundError``."""
        found = self.find(kind, filters, associativity)
        if not found:
            kind = _as_kind(kind)
            raise NotFoundError(f"{kind.value.replace('_', ' ').capitalize()} not found.",
                                details={"kind": kind.value})
        return found[0]

    def count(self, kind: KindLike, filters: Sequence[Filter] = (),
              associativity: Associativity = Associativity.AND) -> int:
        kind = _as_kind(kind)
        check_filters([kind], filters)
        record_type = record_type_for(kind)
        query = f'SELECT COUNT(*) AS "count" FROM "{record_type.TABLE}"'
        condition, params = build_condition(filters, associativity, self._database.placeholder)
        if condition:
            query += f" WHERE {condition}"
        rows = self._database.execute_query(query, params, context=f"count {kind.value}")
        return int(rows[0]["count"]) if rows else 0

    def join_find(self, kinds: Tuple[KindLike, KindLike], filters: Sequence[Filter] = (),
                  join_kind: JoinKind = JoinKind.INNER,
                  associativity: Associativity = Associativity.AND) -> List[Dict[str, str]]:
        """
        Join two related tables and return loosely-typed rows.

        Keys are ``"<TABLE>.<column>"`` and every value is rendered as text,
        with nulls as ``"NULL"``. Read only.
        """
        left, right = (_as_kind(kind) for kind in kinds)
        check_filters([left, right], filters)
        left_type, right_type = record_type_for(left), record_type_for(right)
        left_column, right_column = join_columns(left, right)
        if not self._database.supports_join(join_kind):
            raise InvalidFilterError(
                f"{join_kind.value} is not supported by this {self._database.dialect} backend",
                details={"join": join_kind.name},
            )

        select = ", ".join(
            f'"{t.TABLE}"."{column}" AS "{t.TABLE}.{column}"'
            for t in (left_type, right_type)
            for column in t.columns()
        )
        query = (
            f'SELECT {select} FROM "{left_type.TABLE}" {join_kind.value} "{right_type.TABLE}" '
            f'ON "{left_type.TABLE}"."{left_column}" = "{right_type.TABLE}"."{right_column}"'
        )
        condition, params = build_condition(filters, associativity, self._database.placeholder, qualify=True)
        if condition:
            query += f" WHERE {condition}"

        rows = self._database.execute_query(
            query, params, context=f"join {left.value} with {right.value}"
        )
        return [{column: _as_text(value) for column, value in row.items()} for row in rows]

    # Writes

    def insert(self, records: Iterable[Record]) -> List[Record]:
        """Insert records; generated keys supplied by the caller are ignored."""
        inserted = []
        with self._database.transaction():
            for record in records:
                inserted.append(self._insert_one(record))
        return inserted

    def update(self, records: Iterable[Record]) -> List[Record]:
        """Update records matched by key."""
        updated = []
        with self._database.transaction():
            for record in records:
                updated.append(self._update_one(record))
        return updated

    def delete(self, records: Iterable[Record]) -> List[Record]:
        """Delete records matched by key; returns the rows as they were stored."""
        deleted = []
        with self._database.transaction():
            for record in records:
                deleted.append(self._delete_one(record))
        return deleted

    def _insert_one(self, record: Record) -> Record:
        record_type = _record_type_of(record)
        columns = record_type.data_columns()
        column_list = ", ".join(f'"{c}"' for c in columns)
        placeholders = ", ".join(self._database.placeholder for _ in columns)
        query = (
            f'INSERT INTO "{record_type.TABLE}" ({column_list}) '
            f"VALUES ({placeholders})"
        )
        new_id = self._database.execute_insert(
            query, record.to_row(columns), key=record_type.GENERATED_KEY,
            context=f"insert {record.KIND.value}",
        )
        stored = record.replace(**{record_type.GENERATED_KEY: new_id}) if record_type.GENERATED_KEY else record
        logger.debug("Inserted %s %s", stored.KIND.value, stored.key())
        self._run_hooks(WriteAction.INSERT, stored, None)
        return stored

    def _update_one(self, record: Record) -> Record:
        record_type = _record_type_of(record)
        previous = self._stored(record)
        assignments = [c for c in record_type.columns() if c not in record_type.KEY_COLUMNS]
        where, key_params = self._key_condition(record)
        set_clause = ", ".join(f'"{c}" = {self._database.placeholder}' for c in assignments)
        query = f'UPDATE "{record_type.TABLE}" SET {set_clause} WHERE {where}'
        self._database.execute_update(
            query, record.to_row(assignments) + key_params, context=f"update {record.KIND.value}"
        )
        logger.debug("Updated %s %s", record.KIND.value, record.key())
        self._run_hooks(WriteAction.UPDATE, record, previous)
        return record

    def _delete_one(self, record: Record) -> Record:
        record_type = _record_type_of(record)
        previous = self._stored(record)
        where, key_params = self._key_condition(record)
        query = f'DELETE FROM "{record_type.TABLE}" WHERE {where}'
        self._database.execute_update(query, key_params, context=f"delete {record.KIND.value}")
        logger.debug("Deleted %s %s", record.KIND.value, record.key())
        self._run_hooks(WriteAction.DELETE, previous, previous)
        return previous

    def _stored(self, record: Record) -> Record:
        """Fetch the stored row sharing ``record``'s key."""
        record_type = type(record)
        filters = [_key_filter(record_type, column, value)
                   for column, value in zip(record_type.KEY_COLUMNS, record.key())]
        return self.find_one(record.KIND, filters)

    def _key_condition(self, record: Record) -> Tuple[str, Tuple[Any, ...]]:
        where = " AND ".join(f'"{c}" = {self._database.placeholder}' for c in record.KEY_COLUMNS)
        return where, record.key()

    def _run_hooks(self, action: WriteAction, record: Record, previous: Optional[Record]) -> None:
        for hook in self._hooks:
            if hook.can_handle(record.KIND):
                hook.after_write(self, action, record, previous)


def _key_filter(record_type: Type[Record], column: str, value: Any) -> Filter:
    """Build the filter of ``record_type``'s kind for one column."""
    return FILTER_TYPES[record_type.KIND](column, value)


def _as_kind(kind: KindLike) -> EntityKind:
    if isinstance(kind, EntityKind):
        return kind
    if isinstance(kind, type) and issubclass(kind, Record):
        return kind.KIND
    raise TypeError(f"Not an entity kind: {kind!r}")


def _record_type_of(record: Record) -> Type[Record]:
    if not isinstance(record, Record):
        raise TypeError(f"Not a record: {record!r}")
    return type(record)


def _as_text(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
