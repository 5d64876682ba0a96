"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as avatars/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and dependency
code never touches SQL directly.

Emails are case-insensitive: _normalize_email() lower-cases and strips every
email before it reaches SQL, on writes and lookups alike, so the UNIQUE index on
users.email enforces case-insensitive uniqueness.

Bonds, badges and app settings are owned by the user and have no independent
lifecycle, so they are stored as JSON text columns on the user row rather than
in separate tables.

The store performs no authorization. Deciding who may call update_role() or
delete_user() is auth/access.py's job.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Raw passwords enter through create() and set_password() and are hashed
  before any SQL is built; the raw value is never persisted.

Layer rule: no imports from api/ or avatars/. Import from core/ is allowed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import DEFAULT_ROLE, AppSettings, Bond, Role, User
from auth.passwords import hash_password
from core.errors import Conflict, NotFound

logger = logging.getLogger("avatarengine.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # always lower-case
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=DEFAULT_ROLE.value),
    Column("display_name", String(255), nullable=False, server_default=""),
    Column("preferred_voice", String(100), nullable=False, server_default=""),
    Column("app_settings", Text),  # JSON object
    Column("bonds", Text),  # JSON object: avatar slug -> bond fields
    Column("unlocked_badges", Text),  # JSON array
    Column("created_at", String(32), nullable=False),
)

# Columns update_profile() may touch. Role and password have dedicated
# methods; id and created_at are immutable.
_PROFILE_FIELDS: frozenset[str] = frozenset(
    {"email", "display_name", "preferred_voice", "app_settings", "unlocked_badges"}
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


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _dedupe(values) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


def _bonds_to_json(bonds: dict[str, Bond]) -> str:
    return json.dumps({slug: asdict(bond) for slug, bond in bonds.items()})


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///avatarengine.db")
        user = store.create("ada@example.com", "s3cret-pass", display_name="Ada")
        user = store.find_by_email("ADA@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists.

        Used by lifespan startup and POST /setup to detect first-run state.
        """
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def find_by_email(self, email: str) -> Optional[User]:
        """Look up a user by email, ignoring case. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, email: str, raw_password: str, display_name: Optional[str] = None) -> User:
        """Register a new account and return it.

        The role is always DEFAULT_ROLE -- there is no role
        parameter. Elevation goes through update_role().

        Raises Conflict if the email is already registered. The pre-check gives
        a clean error in the common case; the IntegrityError translation covers
        two concurrent registrations of the same email.
        """
        normalized = _normalize_email(email)
        if self.find_by_email(normalized) is not None:
            raise Conflict("A user with that email already exists.")

        hashed = hash_password(raw_password)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=normalized,
                        hashed_password=hashed,
                        role=DEFAULT_ROLE.value,
                        display_name=display_name or "",
                        preferred_voice="",
                        app_settings=json.dumps(asdict(AppSettings())),
                        bonds=json.dumps({}),
                        unlocked_badges=json.dumps([]),
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise Conflict("A user with that email already exists.") from exc

        logger.info("Registered user id=%s", user_id)
        created = self.get_by_id(user_id)
        if created is None:
            raise NotFound("User vanished after creation.")
        return created

    def update_role(self, user_id: int, new_role: Role) -> Optional[User]:
        """Set a user's role. Returns the updated user, or None if not found."""
        role = Role(new_role)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(role=role.value))
            conn.commit()
        if result.rowcount == 0:
            return None
        logger.info("Role for user id=%s set to %s", user_id, role.value)
        return self.get_by_id(user_id)

    def update_profile(self, user_id: int, **fields) -> Optional[User]:
        """Update whitelisted profile fields on an existing user.

        Accepted fields: email, display_name, preferred_voice, app_settings
        (AppSettings or dict), unlocked_badges (iterable of ids, deduplicated).

        Unknown keys raise ValueError rather than being silently ignored.
        Raises Conflict if a new email collides with another account.
        Returns the updated user, or None if user_id was not found.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id)

        values: dict = {}
        if "email" in fields:
            values["email"] = _normalize_email(fields["email"])
        if "display_name" in fields:
            values["display_name"] = fields["display_name"] or ""
        if "preferred_voice" in fields:
            values["preferred_voice"] = fields["preferred_voice"] or ""
        if "app_settings" in fields:
            settings = fields["app_settings"]
            if isinstance(settings, AppSettings):
                settings = asdict(settings)
            values["app_settings"] = json.dumps(settings)
        if "unlocked_badges" in fields:
            values["unlocked_badges"] = json.dumps(_dedupe(fields["unlocked_badges"]))

        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("A user with that email already exists.") from exc
        if result.rowcount == 0:
            return None
        return self.get_by_id(user_id)

    def set_password(self, user_id: int, raw_password: str) -> bool:
        """Hash and store a new password. Returns False if user_id was not found."""
        hashed = hash_password(raw_password)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(hashed_password=hashed))
            conn.commit()
        return result.rowcount > 0

    def save_bonds(self, user_id: int, bonds: dict[str, Bond]) -> bool:
        """Overwrite the user's bond map. Last write wins.

        Returns False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(bonds=_bonds_to_json(bonds))
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Bonds live on the user row and disappear with it.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted user id=%s", user_id)
        return deleted

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    settings = json.loads(row.app_settings) if row.app_settings else {}
    bonds = json.loads(row.bonds) if row.bonds else {}
    badges = json.loads(row.unlocked_badges) if row.unlocked_badges else []
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        display_name=row.display_name or "",
        preferred_voice=row.preferred_voice or "",
        app_settings=AppSettings(**settings),
        bonds={slug: Bond(**fields) for slug, fields in bonds.items()},
        unlocked_badges=list(badges),
        created_at=row.created_at,
    )
