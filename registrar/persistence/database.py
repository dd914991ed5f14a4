"""
Database management and connection handling.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

try:
    import psycopg2
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

from ..core.enums import JoinKind
from ..core.exceptions import ConflictError, StorageFailure, ConfigurationError

logger = logging.getLogger(__name__)

# RIGHT and FULL OUTER JOIN arrived in SQLite 3.39.0
SQLITE_OUTER_JOIN_VERSION = (3, 39, 0)


class DatabaseManager(ABC):
    """
    Abstract storage adapter.

    Holds a single open connection guarded by a re-entrant lock. Statements
    issued inside ``transaction()`` join it; statements issued outside run in
    their own implicit transaction.
    """

    dialect: str = ""
    placeholder: str = "?"

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._connection = None

    @abstractmethod
    def connect(self) -> Any:
        """Create a database connection."""
        pass

    @abstractmethod
    def _integrity_errors(self) -> tuple:
        """Backend exception classes that signal a constraint violation."""
        pass

    @abstractmethod
    def _backend_errors(self) -> tuple:
        """Backend exception classes that signal any other failure."""
        pass

    @abstractmethod
    def _begin(self, cursor: Any) -> None:
        pass

    @abstractmethod
    def _last_insert_id(self, cursor: Any, key: Optional[str]) -> Optional[int]:
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        pass

    def supports_join(self, join_kind: JoinKind) -> bool:
        """Whether the backend can run ``join_kind``."""
        return True

    @property
    def connection(self) -> Any:
        if self._connection is None:
            self._connection = self.connect()
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator["DatabaseManager"]:
        """
        Run a block in one transaction.

        Re-entrant: only the outermost block commits, and any exception rolls
        the whole transaction back.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                with self._translate("begin"):
                    self._begin(self.connection.cursor())
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._rollback()
                raise
            self._depth -= 1
            if outermost:
                try:
                    with self._translate("commit"):
                        self.connection.commit()
                except Exception:
                    self._rollback()
                    raise

    def execute_query(self, query: str, params: Optional[Sequence[Any]] = None,
                      context: str = "query") -> List[Dict[str, Any]]:
        """Execute a query and return rows as dicts in select-list order."""
        with self._lock, self._translate(context):
            cursor = self.connection.cursor()
            cursor.execute(query, tuple(params or ()))
            columns = [description[0] for description in cursor.description]
            results = [dict(zip(columns, row)) for row in cursor.fetchall()]
            self._autocommit()
            return results

    def execute_update(self, query: str, params: Optional[Sequence[Any]] = None,
                       context: str = "update") -> int:
        """Execute an update query and return affected rows."""
        with self._lock, self._translate(context):
            cursor = self.connection.cursor()
            cursor.execute(query, tuple(params or ()))
            self._autocommit()
            return cursor.rowcount

    def execute_insert(self, query: str, params: Optional[Sequence[Any]] = None,
                       key: Optional[str] = None, context: str = "insert") -> Optional[int]:
        """Execute an insert and return the store-assigned ``key`` value, if any."""
        with self._lock, self._translate(context):
            cursor = self.connection.cursor()
            cursor.execute(self._returning(query, key), tuple(params or ()))
            new_id = self._last_insert_id(cursor, key)
            self._autocommit()
            return new_id

    def create_tables(self, schema: Dict[str, str]) -> None:
        """Create database tables from schema."""
        with self.transaction():
            for table_name, table_schema in schema.items():
                logger.debug("Ensuring table %s", table_name)
                self.execute_update(table_schema, context=f"create {table_name}")

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _returning(self, query: str, key: Optional[str]) -> str:
        return query

    def _autocommit(self) -> None:
        if self._depth == 0:
            self.connection.commit()

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except self._backend_errors() as e:
            logger.error("Rollback failed: %s", e)

    @contextmanager
    def _translate(self, context: str) -> Iterator[None]:
        """Wrap backend errors; the raw error is logged, never propagated as text."""
        try:
            yield
        except self._integrity_errors() as e:
            logger.warning("Constraint violation during %s: %s", context, e)
            if self._depth == 0:
                self._rollback()
            raise ConflictError(
                f"Constraint violation during {context}",
                details={"operation": context},
            ) from e
        except self._backend_errors() as e:
            logger.error("Storage failure during %s: %s", context, e)
            if self._depth == 0:
                self._rollback()
            raise StorageFailure(
                f"Storage failure during {context}",
                details={"operation": context},
            ) from e


class SQLiteDatabase(DatabaseManager):
    """SQLite database implementation."""

    dialect = "sqlite"
    placeholder = "?"

    def __init__(self, database_path: str = "registrar.db"):
        super().__init__()
        self._database_path = database_path

    def connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        try:
            conn = sqlite3.connect(self._database_path, check_same_thread=False, isolation_level=None)
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            logger.error("Could not open %s: %s", self._database_path, e)
            raise StorageFailure("Database connection error", details={"operation": "connect"}) from e
        return conn

    def _integrity_errors(self) -> tuple:
        return (sqlite3.IntegrityError,)

    def _backend_errors(self) -> tuple:
        return (sqlite3.Error,)

    def _begin(self, cursor: sqlite3.Cursor) -> None:
        cursor.execute("BEGIN")

    def _autocommit(self) -> None:
        # isolation_level=None: statements outside BEGIN commit on their own
        pass

    def supports_join(self, join_kind: JoinKind) -> bool:
        if join_kind in (JoinKind.RIGHT, JoinKind.FULL):
            return sqlite3.sqlite_version_info >= SQLITE_OUTER_JOIN_VERSION
        return True

    def _last_insert_id(self, cursor: sqlite3.Cursor, key: Optional[str]) -> Optional[int]:
        return cursor.lastrowid if key else None

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?"
        results = self.execute_query(query, (table_name,), context="table lookup")
        return len(results) > 0


class PostgreSQLDatabase(DatabaseManager):
    """PostgreSQL database implementation."""

    dialect = "postgresql"
    placeholder = "%s"

    def __init__(self, host: str = "localhost", port: int = 5432,
                 database: str = "registrar", user: str = "registrar", password: str = ""):
        if not PSYCOPG2_AVAILABLE:
            raise ConfigurationError("psycopg2 is required for PostgreSQL support")
        super().__init__()
        self._host = host
        self._port = port
        self._database = database
        self._user = user
        self._password = password

    def connect(self):
        """Create a database connection."""
        try:
            return psycopg2.connect(
                host=self._host,
                port=self._port,
                dbname=self._database,
                user=self._user,
                password=self._password,
            )
        except psycopg2.Error as e:
            logger.error("Could not connect to %s:%s/%s: %s", self._host, self._port, self._database, e)
            raise StorageFailure("Database connection error", details={"operation": "connect"}) from e

    def _integrity_errors(self) -> tuple:
        return (psycopg2.IntegrityError,)

    def _backend_errors(self) -> tuple:
        return (psycopg2.Error,)

    def _begin(self, cursor: Any) -> None:
        # psycopg2 opens a transaction implicitly on the first statement
        pass

    def _returning(self, query: str, key: Optional[str]) -> str:
        return f'{query} RETURNING "{key}"' if key else query

    def _last_insert_id(self, cursor: Any, key: Optional[str]) -> Optional[int]:
        return cursor.fetchone()[0] if key else None

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT table_name FROM information_schema.tables WHERE table_name = %s"
        results = self.execute_query(query, (table_name,), context="table lookup")
        return len(results) > 0


class DatabaseFactory:
    """Factory for creating database instances."""

    @staticmethod
    def create_database(database_type: str, **kwargs) -> DatabaseManager:
        """Create a database instance based on type."""
        if database_type.lower() == "sqlite":
            return SQLiteDatabase(**kwargs)
        elif database_type.lower() == "postgresql":
            return PostgreSQLDatabase(**kwargs)
        else:
            raise ConfigurationError(f"Unsupported database type: {database_type}")
