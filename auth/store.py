"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Lifecycle and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The bcrypt hash never leaves this module except through get_credentials(),
  which exists for the single login verification path. Every other method
  returns the hash-stripped User dataclass.

Concurrency:
  Reads are unrestricted. Every write runs inside _write(): a process-wide
  lock plus one database transaction. On SQLite the transaction opens with
  BEGIN IMMEDIATE so writers in other processes serialize too. The checks that
  guard an invariant (user count on first signup, admin count on delete, the
  admin-must-stay-approved rule on status change) run inside the same
  transaction as the write they guard. Raising inside _write() rolls the
  whole transaction back.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError, StoreIntegrityError
from auth.models import Role, Status, User, UserLimits

logger = logging.getLogger("imagedrop.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    # Quota overrides -- NULL means inherit the global default
    Column("max_images", Integer),
    Column("max_single_upload_size_mb", Float),
    Column("max_total_storage_mb", Float),
    Column("created_at", String(32), nullable=False),
)

_LIMIT_FIELDS = frozenset({"max_images", "max_single_upload_size_mb", "max_total_storage_mb"})


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _on_sqlite_connect(dbapi_conn, connection_record) -> None:
    """Hand transaction control to SQLAlchemy and enable WAL.

    pysqlite defers BEGIN until the first INSERT/UPDATE, which would let the
    COUNT(*) in create_user() run outside the transaction. isolation_level=None
    disables that so the "begin" listener below emits BEGIN itself.

    WAL allows readers to proceed while a write is in progress. In-memory
    databases ignore the pragma.
    """
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _on_sqlite_begin(conn: Connection) -> None:
    if conn.info.pop("immediate", False):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
    else:
        conn.exec_driver_sql("BEGIN")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(settings.database_url)
        user = store.create_user("a@example.com", hash_password("secret123"), assign)
        same = store.get_by_id(user.id)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self._sqlite = db_url.startswith("sqlite")
        connect_args: dict = {}
        if self._sqlite:
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if self._sqlite:
            event.listen(self.engine, "connect", _on_sqlite_connect)
            event.listen(self.engine, "begin", _on_sqlite_begin)
        self._write_lock = threading.RLock()
        _metadata.create_all(self.engine)

    @contextmanager
    def _write(self) -> Iterator[Connection]:
        """Serialized write transaction. Commits on exit, rolls back on any exception."""
        with self._write_lock:
            with self.engine.connect() as conn:
                if self._sqlite:
                    conn.info["immediate"] = True
                with conn.begin():
                    yield conn

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        hashed_password: str,
        assign: Callable[[int], tuple[Role, Status]],
    ) -> User:
        """Insert a new user and return it.

        assign(existing_user_count) decides the initial (role, status). It is
        called inside the write transaction, so two concurrent first signups
        cannot both observe a count of zero.

        Raises ConflictError if the email is already registered.
        """
        with self._write() as conn:
            existing = conn.execute(select(func.count()).select_from(_users)).scalar_one()
            role, status = assign(existing)
            taken = conn.execute(select(_users.c.id).where(_users.c.email == email)).first()
            if taken is not None:
                raise ConflictError("A user with this email already exists.")
            user_id = uuid.uuid4().hex
            try:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=email,
                        hashed_password=hashed_password,
                        role=role.value,
                        status=status.value,
                        created_at=_now_iso(),
                    )
                )
            except IntegrityError as exc:
                raise ConflictError("A user with this email already exists.") from exc
            row = conn.execute(_users.select().where(_users.c.id == user_id)).one()
        return _row_to_user(row)

    def update_status(
        self,
        user_id: str,
        status: Status,
        allowed_from: Iterable[Status] | None = None,
    ) -> User | None:
        """Set a user's status. Returns the updated User, or None if not found.

        allowed_from restricts the transition to users currently in one of
        those states; the check runs in the same transaction as the update.

        Raises ConflictError if the current status is not in allowed_from, or
        if the target is an admin and the new status is not approved.
        """
        with self._write() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            current = _row_to_user(row)
            if allowed_from is not None and current.status not in set(allowed_from):
                raise ConflictError(f"Cannot change status from '{current.status.value}' to '{status.value}'.")
            if current.is_admin and status is not Status.approved:
                raise ConflictError("Admin accounts must remain approved.")
            conn.execute(_users.update().where(_users.c.id == user_id).values(status=status.value))
            row = conn.execute(_users.select().where(_users.c.id == user_id)).one()
        return _row_to_user(row)

    def update_limits(self, user_id: str, **fields) -> User | None:
        """Update quota overrides. Returns the updated User, or None if not found.

        Only keys in _LIMIT_FIELDS are accepted; unknown keys raise ValueError
        rather than being silently ignored. A value of None clears the
        override. Keys not passed are left untouched.
        """
        unknown = set(fields) - _LIMIT_FIELDS
        if unknown:
            raise ValueError(f"Unknown limit fields: {sorted(unknown)!r}")
        with self._write() as conn:
            exists = conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first()
            if exists is None:
                return None
            if fields:
                conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            row = conn.execute(_users.select().where(_users.c.id == user_id)).one()
        return _row_to_user(row)

    def delete_user(self, user_id: str, on_delete: Callable[[str], None] | None = None) -> bool:
        """Permanently delete a user. Returns True if deleted, False if not found.

        Refuses (ConflictError) to delete the last approved admin; the admin
        count is read inside the delete transaction.

        on_delete(user_id) runs inside the transaction before the row is
        removed. Collaborators use it to drop data the user owns; if it raises,
        the delete is rolled back.
        """
        with self._write() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return False
            if row.role == Role.admin.value and _count_admins(conn) <= 1:
                raise ConflictError("Cannot delete the last admin account.")
            if on_delete is not None:
                on_delete(user_id)
            conn.execute(_users.delete().where(_users.c.id == user_id))
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_credentials(self, email: str) -> tuple[User, str] | None:
        """Return (user, bcrypt hash) for the login path only."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        if row is None:
            return None
        return _row_to_user(row), row.hashed_password

    def list_users(self) -> list[User]:
        """Return all users, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar_one()

    def count_admins(self) -> int:
        """Return the number of approved admins."""
        with self.engine.connect() as conn:
            return _count_admins(conn)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


def _count_admins(conn: Connection) -> int:
    return conn.execute(
        select(func.count())
        .select_from(_users)
        .where((_users.c.role == Role.admin.value) & (_users.c.status == Status.approved.value))
    ).scalar_one()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    """Validate a raw row into a User. Unknown role/status values are rejected.

    An admin row with a non-approved status is logged, not repaired. Writes
    through this store cannot produce one, so finding it means the table was
    edited out-of-band.
    """
    try:
        role = Role(row.role)
        status = Status(row.status)
    except ValueError as exc:
        raise StoreIntegrityError(f"User {row.id} has an invalid role or status.") from exc
    if role is Role.admin and status is not Status.approved:
        logger.error("Admin user %s has status %r; admins must be approved", row.id, status.value)
    return User(
        id=row.id,
        email=row.email,
        role=role,
        status=status,
        limits=UserLimits(
            max_images=row.max_images,
            max_single_upload_size_mb=row.max_single_upload_size_mb,
            max_total_storage_mb=row.max_total_storage_mb,
        ),
        created_at=row.created_at,
    )
