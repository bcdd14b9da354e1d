"""
SQLite storage for Warden.

This module is the Storage collaborator of the authorization core. It keeps
users, projects, documents and session tokens in a single SQLite file and
executes the predicates produced by the predicate compiler natively.

Tables:
    - users: Accounts with role and department
    - projects: Projects, optionally owned by a department
    - documents: Documents belonging to a project
    - sessions: Opaque session tokens mapped to users

The store performs no authorization of its own. Resource services decide
before calling it; list queries receive their scope as a Predicate.
"""

import logging
import sqlite3
import uuid
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Generator

from warden.errors import (
    StorageConnectionError,
    StorageReadError,
    StorageWriteError,
    UnsupportedFieldError,
)
from warden.schema import (
    RECORD_MODELS,
    Document,
    Project,
    ResourceType,
    User,
    now_utc,
)
from warden.store.predicate import (
    COLUMNS,
    MATCH_NOTHING,
    TABLES,
    CompiledPredicate,
    Predicate,
    to_db_value,
)

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

# SQL for creating tables
CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    department TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'viewer',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    owner_id TEXT NOT NULL,
    department TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'draft',
    is_locked INTEGER NOT NULL DEFAULT 0,
    project_id TEXT NOT NULL,
    creator_id TEXT NOT NULL,
    last_edited_by_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE,
    FOREIGN KEY (creator_id) REFERENCES users(id) ON DELETE CASCADE,
    FOREIGN KEY (last_edited_by_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_projects_department ON projects(department);
CREATE INDEX IF NOT EXISTS idx_documents_project_id ON documents(project_id);
CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);
"""


def generate_id() -> str:
    """Generate a unique ID for records."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return now_utc().isoformat()


class WardenDB:
    """
    SQLite database for Warden storage.

    Usage:
        db = WardenDB("warden.db")
        project = db.insert(ResourceType.PROJECT, {...})
        rows = db.find(ResourceType.DOCUMENT, predicate, filters={"project_id": project.id})
        db.close()

    Or use as context manager:
        with WardenDB("warden.db") as db:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                     Will be created if it doesn't exist.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            # Enable foreign keys
            self._conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Context manager for database transactions."""
        try:
            yield
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "WardenDB":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Resource Operations
    # =========================================================================

    def find(
        self,
        resource_type: ResourceType,
        predicate: CompiledPredicate,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[Project | Document]:
        """
        Find records matching a compiled predicate.

        Args:
            resource_type: Table to query
            predicate: A Predicate, UNRESTRICTED or MATCH_NOTHING
            filters: Extra equality filters ANDed with the predicate
            order_by: Column to sort by (ascending)

        Returns:
            Matching records; empty without a query for MATCH_NOTHING
        """
        if predicate is MATCH_NOTHING:
            return []

        where, params = self._where_clause(resource_type, predicate, filters)
        sql = f"SELECT * FROM {TABLES[resource_type]}{where}"
        if order_by is not None:
            self._check_column(resource_type, order_by)
            sql += f' ORDER BY "{order_by}"'

        try:
            cursor = self._conn.execute(sql, params)
            model = RECORD_MODELS[resource_type]
            return [model.model_validate(dict(row)) for row in cursor]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="find",
                underlying_error=str(e),
            ) from e

    def count(
        self,
        resource_type: ResourceType,
        predicate: CompiledPredicate,
        *,
        filters: Mapping[str, Any] | None = None,
    ) -> int:
        """Count records matching a compiled predicate."""
        if predicate is MATCH_NOTHING:
            return 0

        where, params = self._where_clause(resource_type, predicate, filters)
        try:
            cursor = self._conn.execute(
                f"SELECT COUNT(*) FROM {TABLES[resource_type]}{where}",
                params,
            )
            return cursor.fetchone()[0]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="count",
                underlying_error=str(e),
            ) from e

    def find_by_id(
        self,
        resource_type: ResourceType,
        record_id: str,
    ) -> Project | Document | None:
        """
        Get a record by ID.

        Returns:
            The record or None if not found
        """
        try:
            cursor = self._conn.execute(
                f"SELECT * FROM {TABLES[resource_type]} WHERE id = ?",
                (record_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return RECORD_MODELS[resource_type].model_validate(dict(row))
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="find_by_id",
                underlying_error=str(e),
            ) from e

    def insert(
        self,
        resource_type: ResourceType,
        data: Mapping[str, Any],
    ) -> Project | Document:
        """
        Insert a record.

        ``id``, ``created_at`` and ``updated_at`` are generated when absent.

        Returns:
            The stored record
        """
        timestamp = now_utc()
        values = {
            "id": generate_id(),
            "created_at": timestamp,
            "updated_at": timestamp,
            **data,
        }
        # Validate before writing so bad rows never reach the table
        record = RECORD_MODELS[resource_type].model_validate(values)
        row = record.model_dump()
        columns = list(row)

        try:
            self._conn.execute(
                f"INSERT INTO {TABLES[resource_type]} "
                f"({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                [to_db_value(row[c]) for c in columns],
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="insert",
                underlying_error=str(e),
            ) from e

        logger.debug("Inserted %s %s", resource_type.value, record.id)
        return record

    def update(
        self,
        resource_type: ResourceType,
        record_id: str,
        data: Mapping[str, Any],
    ) -> Project | Document | None:
        """
        Update columns of a record and bump ``updated_at``.

        Returns:
            The updated record, or None if it does not exist
        """
        values = dict(data)
        values["updated_at"] = now_utc()
        for column in values:
            self._check_column(resource_type, column)

        assignments = ", ".join(f'"{column}" = ?' for column in values)
        params = [to_db_value(v) for v in values.values()]
        params.append(record_id)

        try:
            cursor = self._conn.execute(
                f"UPDATE {TABLES[resource_type]} SET {assignments} WHERE id = ?",
                params,
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="update",
                underlying_error=str(e),
            ) from e

        if cursor.rowcount == 0:
            return None
        return self.find_by_id(resource_type, record_id)

    def delete(
        self,
        resource_type: ResourceType,
        record_id: str,
    ) -> Project | Document | None:
        """
        Delete a record.

        Returns:
            The deleted record, or None if it did not exist
        """
        record = self.find_by_id(resource_type, record_id)
        if record is None:
            return None

        try:
            self._conn.execute(
                f"DELETE FROM {TABLES[resource_type]} WHERE id = ?",
                (record_id,),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="delete",
                underlying_error=str(e),
            ) from e

        return record

    def get_document_with_user_info(self, document_id: str) -> dict[str, Any] | None:
        """
        Get a document joined with its creator's and last editor's names.

        Returns:
            Document fields plus ``creator_name`` and ``last_edited_by_name``
        """
        try:
            cursor = self._conn.execute(
                """
                SELECT d.*, c.name AS creator_name, e.name AS last_edited_by_name
                FROM documents d
                JOIN users c ON c.id = d.creator_id
                JOIN users e ON e.id = d.last_edited_by_id
                WHERE d.id = ?
                """,
                (document_id,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_document_with_user_info",
                underlying_error=str(e),
            ) from e

        if row is None:
            return None
        data = dict(row)
        creator_name = data.pop("creator_name")
        editor_name = data.pop("last_edited_by_name")
        document = Document.model_validate(data).model_dump()
        document["creator_name"] = creator_name
        document["last_edited_by_name"] = editor_name
        return document

    def _where_clause(
        self,
        resource_type: ResourceType,
        predicate: CompiledPredicate,
        filters: Mapping[str, Any] | None,
    ) -> tuple[str, tuple[Any, ...]]:
        clauses: list[Predicate] = []
        if isinstance(predicate, Predicate):
            clauses.append(predicate)
        for column, value in (filters or {}).items():
            self._check_column(resource_type, column)
            clauses.append(Predicate.equals(column, value))

        if not clauses:
            return "", ()
        combined = Predicate.all_of(clauses)
        return f" WHERE {combined.sql}", combined.params

    def _check_column(self, resource_type: ResourceType, column: str) -> None:
        if column not in COLUMNS[resource_type]:
            raise UnsupportedFieldError(
                resource_type=resource_type.value,
                field_name=column,
            )

    # =========================================================================
    # User Operations
    # =========================================================================

    def insert_user(self, user: User) -> User:
        """Store a user account."""
        row = user.model_dump()
        columns = list(row)
        try:
            self._conn.execute(
                f"INSERT INTO users ({', '.join(columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})",
                [to_db_value(row[c]) for c in columns],
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="insert_user",
                underlying_error=str(e),
            ) from e
        return user

    def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        return self._get_user_where("id", user_id)

    def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email address."""
        return self._get_user_where("email", email)

    def _get_user_where(self, column: str, value: str) -> User | None:
        try:
            cursor = self._conn.execute(
                f"SELECT * FROM users WHERE {column} = ?",
                (value,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_user",
                underlying_error=str(e),
            ) from e
        return User.model_validate(dict(row)) if row else None

    def list_users(self) -> list[User]:
        """List all users ordered by department and email."""
        try:
            cursor = self._conn.execute(
                "SELECT * FROM users ORDER BY department, email"
            )
            return [User.model_validate(dict(row)) for row in cursor]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="list_users",
                underlying_error=str(e),
            ) from e

    # =========================================================================
    # Session Operations
    # =========================================================================

    def create_session(self, token: str, user_id: str, expires_at: datetime) -> None:
        """Store a session token for a user."""
        try:
            self._conn.execute(
                "INSERT INTO sessions (token, user_id, created_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (token, user_id, now_iso(), expires_at.isoformat()),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="create_session",
                underlying_error=str(e),
            ) from e

    def get_session(self, token: str) -> tuple[str, datetime] | None:
        """
        Look up a session token.

        Returns:
            (user_id, expires_at) or None if the token is unknown
        """
        try:
            cursor = self._conn.execute(
                "SELECT user_id, expires_at FROM sessions WHERE token = ?",
                (token,),
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_session",
                underlying_error=str(e),
            ) from e
        if row is None:
            return None
        return row["user_id"], datetime.fromisoformat(row["expires_at"])

    def delete_session(self, token: str) -> None:
        """Remove a session token. Unknown tokens are ignored."""
        try:
            self._conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="delete_session",
                underlying_error=str(e),
            ) from e

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear(self) -> None:
        """Delete every row from every data table."""
        with self.transaction():
            for table in ("sessions", "documents", "projects", "users"):
                self._conn.execute(f"DELETE FROM {table}")

    def table_counts(self) -> dict[str, int]:
        """Row counts per data table, for the CLI."""
        counts = {}
        for table in ("users", "projects", "documents", "sessions"):
            cursor = self._conn.execute(f"SELECT COUNT(*) FROM {table}")
            counts[table] = cursor.fetchone()[0]
        return counts

