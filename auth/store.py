"""
auth/store.py -- SQLAlchemy Core credential store.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_user / _row_to_app are the mappers. It satisfies every capability
contract in auth/contracts.py (UserSaver, UserProvider, AdminProvider,
AppProvider) with one engine, plus the management helpers main.py uses to
register apps and grant admin rights.

Concurrency:
  Email uniqueness is a UNIQUE constraint on users.email, so two concurrent
  inserts of the same email resolve inside the database: one commits, the
  other gets IntegrityError, reported as StorageError(USER_EXISTS). The store
  holds no locks of its own.

Errors:
  Every SQLAlchemyError is translated to StorageError so callers never see
  engine types. The original exception is chained for logging.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB path: auth/sso.db unless a database URL is given.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StorageError, StorageErrorKind
from auth.models import App, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sso.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("pass_hash", LargeBinary, nullable=False),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_apps = Table(
    "apps",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("secret", Text, nullable=False),  # per-app HS256 signing key
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _ensure_sqlite_dir(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(db_url)
    database = url.database or ""
    if database and database != ":memory:" and not database.startswith("file:"):
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User and App entities.

    Usage:
        store = CredentialStore("sqlite:///./sso.db")
        app = store.create_app("billing", secrets.token_hex(32))
        uid = store.save_user("alice@example.com", hash_password("S3cret!", 12))
        user = store.get_by_email("alice@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            _ensure_sqlite_dir(db_url)
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def save_user(self, email: str, pass_hash: bytes) -> int:
        """Insert a new user and return its assigned id.

        Raises StorageError(USER_EXISTS) if the email is already registered.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        pass_hash=pass_hash,
                        is_admin=0,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise StorageError(StorageErrorKind.USER_EXISTS, "email already registered") from exc
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"save_user failed: {exc}") from exc

    def get_by_email(self, email: str) -> User:
        """Look up a user by exact email (case-sensitive)."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"get_by_email failed: {exc}") from exc
        if row is None:
            raise StorageError(StorageErrorKind.USER_NOT_FOUND, "user not found")
        return _row_to_user(row)

    def is_admin(self, user_id: int) -> bool:
        try:
            with self.engine.connect() as conn:
                flag = conn.execute(select(_users.c.is_admin).where(_users.c.id == user_id)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"is_admin failed: {exc}") from exc
        if flag is None:
            raise StorageError(StorageErrorKind.USER_NOT_FOUND, "user not found")
        return bool(flag)

    def set_admin(self, user_id: int, is_admin: bool = True) -> bool:
        """Set or clear the admin flag. Returns False if user_id was not found."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(is_admin=1 if is_admin else 0)
                )
                conn.commit()
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"set_admin failed: {exc}") from exc
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------

    def get_app(self, app_id: int) -> App:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_apps.select().where(_apps.c.id == app_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"get_app failed: {exc}") from exc
        if row is None:
            raise StorageError(StorageErrorKind.APP_NOT_FOUND, "app not found")
        return _row_to_app(row)

    def create_app(self, name: str, secret: str) -> App:
        """Register a tenant app with its signing secret. Names are unique.

        Raises StorageError(BACKEND) on a duplicate name; apps are managed by
        operators, not by the auth service, so there is no dedicated kind.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_apps.insert().values(name=name, secret=secret, created_at=created_at))
                conn.commit()
        except IntegrityError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"app {name!r} already exists") from exc
        except SQLAlchemyError as exc:
            raise StorageError(StorageErrorKind.BACKEND, f"create_app failed: {exc}") from exc
        return App(id=result.inserted_primary_key[0], name=name, secret=secret, created_at=created_at)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        pass_hash=bytes(row.pass_hash),
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
    )


def _row_to_app(row) -> App:
    return App(
        id=row.id,
        name=row.name,
        secret=row.secret,
        created_at=row.created_at,
    )
