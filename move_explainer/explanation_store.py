"""
SQLite-backed persistence for explanations.

The store is an explicitly constructed handle: build it with a database
path, ``connect()`` it (which creates the schema), hand it to the service,
and ``close()`` it on shutdown. Each operation runs on its own short-lived
connection, so one handle can be shared by concurrent request threads.

Mutations are single conditional statements inside one write transaction.
The store never treats "no row matched" as an error; it reports the counts
and leaves the decision to the caller.
"""

import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .address import Address
from .errors import MalformedIdError, StorageError
from .models import DeleteAck, Explanation, InsertAck, UpdateAck, require_text

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")

_COLUMNS = (
    "id, package_id, module_name, function_name, owner, content, "
    "created_at, updated_at"
)


def new_explanation_id() -> str:
    return uuid.uuid4().hex


def validate_explanation_id(explanation_id: str) -> str:
    """Raise MalformedIdError unless *explanation_id* looks like a store id."""
    if not isinstance(explanation_id, str) or not _ID_PATTERN.match(explanation_id):
        raise MalformedIdError(f"Id {explanation_id!r} is not a valid identifier")
    return explanation_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExplanationStore:
    """CRUD operations on the ``explanations`` table."""

    def __init__(self, db_path: Union[str, Path], *, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._connected = False

    # ------------------------------------------------------------------ #
    #  Lifecycle
    # ------------------------------------------------------------------ #

    def connect(self) -> "ExplanationStore":
        """Create the database file and schema if needed."""
        if self._connected:
            return self
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS explanations (
                        id            TEXT PRIMARY KEY,
                        package_id    TEXT NOT NULL,
                        module_name   TEXT NOT NULL,
                        function_name TEXT NOT NULL,
                        owner         TEXT NOT NULL,
                        content       TEXT NOT NULL,
                        created_at    TEXT NOT NULL,
                        updated_at    TEXT NOT NULL
                    )
                """)
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_explanations_owner "
                    "ON explanations (owner)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_explanations_function "
                    "ON explanations (package_id, module_name, function_name)"
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Could not open explanation store at {self.db_path}: {e}") from e

        self._connected = True
        logger.info("Explanation store ready at %s", self.db_path)
        return self

    def close(self) -> None:
        if self._connected:
            logger.info("Closing explanation store at %s", self.db_path)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __enter__(self) -> "ExplanationStore":
        return self.connect()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    #  Connection helpers
    # ------------------------------------------------------------------ #

    @contextmanager
    def _db_conn(self):
        """Yield a connection; translate database failures into StorageError."""
        if not self._connected:
            raise StorageError("Explanation store is not connected")
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Could not connect to explanation store: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Explanation store operation failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def _write_txn(self):
        """Connection holding the database write lock until the block ends."""
        with self._db_conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @staticmethod
    def _row_to_explanation(row) -> Explanation:
        id_, package_id, module_name, function_name, owner, content, created, updated = row
        return Explanation(
            id=id_,
            package_id=Address(package_id),
            module_name=module_name,
            function_name=function_name,
            owner=Address(owner),
            content=content,
            created_at=created,
            updated_at=updated,
        )

    # ------------------------------------------------------------------ #
    #  Public API
    # ------------------------------------------------------------------ #

    def create(
        self,
        package_id: Union[str, Address],
        module_name: str,
        function_name: str,
        owner: Union[str, Address],
        content: str,
    ) -> InsertAck:
        """Insert a new explanation and return its generated id."""
        package = Address.parse(str(package_id), field="package_id")
        owner_addr = Address.parse(str(owner), field="owner")
        require_text(module_name, "module_name")
        require_text(function_name, "function_name")
        require_text(content, "content")

        explanation_id = new_explanation_id()
        now = _now()
        with self._write_txn() as conn:
            conn.execute(
                f"INSERT INTO explanations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    explanation_id,
                    package.as_str(),
                    module_name,
                    function_name,
                    owner_addr.as_str(),
                    content,
                    now,
                    now,
                ),
            )
        logger.debug("Created explanation %s for %s::%s", explanation_id, module_name, function_name)
        return InsertAck(inserted_id=explanation_id)

    def update(
        self,
        explanation_id: str,
        package_id: Union[str, Address],
        module_name: str,
        function_name: str,
        owner: Union[str, Address],
        content: str,
    ) -> UpdateAck:
        """Set every field of the matching record. Zero matches is not an error."""
        validate_explanation_id(explanation_id)
        values = (
            Address.parse(str(package_id), field="package_id").as_str(),
            require_text(module_name, "module_name"),
            require_text(function_name, "function_name"),
            Address.parse(str(owner), field="owner").as_str(),
            require_text(content, "content"),
        )
        with self._write_txn() as conn:
            row = conn.execute(
                "SELECT package_id, module_name, function_name, owner, content "
                "FROM explanations WHERE id = ?",
                (explanation_id,),
            ).fetchone()
            if row is None:
                return UpdateAck(matched_count=0, modified_count=0)
            if tuple(row) == values:
                return UpdateAck(matched_count=1, modified_count=0)
            conn.execute(
                "UPDATE explanations SET package_id = ?, module_name = ?, "
                "function_name = ?, owner = ?, content = ?, updated_at = ? "
                "WHERE id = ?",
                values + (_now(), explanation_id),
            )
        return UpdateAck(matched_count=1, modified_count=1)

    def update_content(
        self,
        explanation_id: str,
        content: str,
        *,
        owner: Optional[str] = None,
    ) -> UpdateAck:
        """Replace only ``content``; other fields are left as stored.

        With *owner* given, only a record held by that owner matches.
        """
        validate_explanation_id(explanation_id)
        require_text(content, "content")
        query = "SELECT content FROM explanations WHERE id = ?"
        params: tuple = (explanation_id,)
        if owner is not None:
            query += " AND owner = ?"
            params += (owner,)

        with self._write_txn() as conn:
            row = conn.execute(query, params).fetchone()
            if row is None:
                return UpdateAck(matched_count=0, modified_count=0)
            if row[0] == content:
                return UpdateAck(matched_count=1, modified_count=0)
            conn.execute(
                "UPDATE explanations SET content = ?, updated_at = ? WHERE id = ?",
                (content, _now(), explanation_id),
            )
        return UpdateAck(matched_count=1, modified_count=1)

    def delete(self, explanation_id: str, *, owner: Optional[str] = None) -> DeleteAck:
        """Remove the matching record. Zero matches is not an error."""
        validate_explanation_id(explanation_id)
        query = "DELETE FROM explanations WHERE id = ?"
        params: tuple = (explanation_id,)
        if owner is not None:
            query += " AND owner = ?"
            params += (owner,)

        with self._write_txn() as conn:
            cursor = conn.execute(query, params)
            deleted = cursor.rowcount
        return DeleteAck(deleted_count=deleted)

    def find_by_id(self, explanation_id: str) -> Optional[Explanation]:
        validate_explanation_id(explanation_id)
        with self._db_conn() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM explanations WHERE id = ?",
                (explanation_id,),
            ).fetchone()
        return self._row_to_explanation(row) if row else None

    def find_by_owner(self, owner: str) -> List[Explanation]:
        """Every record whose owner equals *owner* exactly."""
        with self._db_conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM explanations WHERE owner = ? "
                "ORDER BY created_at, id",
                (owner,),
            ).fetchall()
        return [self._row_to_explanation(r) for r in rows]

    def find_by_function(
        self, package_id: str, module_name: str, function_name: str
    ) -> List[Explanation]:
        """Every record sharing one (package, module, function) key."""
        with self._db_conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM explanations "
                "WHERE package_id = ? AND module_name = ? AND function_name = ? "
                "ORDER BY created_at, id",
                (package_id, module_name, function_name),
            ).fetchall()
        return [self._row_to_explanation(r) for r in rows]

    def count(self) -> int:
        with self._db_conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM explanations").fetchone()[0]
