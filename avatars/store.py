"""
avatars/store.py -- SQLAlchemy-backed persistence layer for the avatar catalogue.

Uses SQLAlchemy Core (not ORM) so the dataclasses in avatars/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. AvatarStore is the repository; _row_to_avatar
is the mapper. Route handlers never touch SQL directly.

Progression writes are last-write-wins. save_progression() overwrites level, xp
and the unlock flag in one statement; it does not compare against the values
the caller read, so two concurrent add-xp requests on one avatar can lose an
update.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = AvatarStore("sqlite:///avatarengine.db")
    avatar_id = store.create_avatar(Avatar(name="Byte Knight", type="mentor-bot"))
    avatar = store.get_by_slug("byte-knight")
    store.save_progression("byte-knight", add_xp(avatar.progression, 50))
    store.close()
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func
from sqlalchemy.engine import Engine

from avatars.models import Avatar, AvatarProgression, slugify

logger = logging.getLogger("avatarengine.avatars.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_avatars = Table(
    "avatars",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(100), nullable=False, unique=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("type", String(100), nullable=False),
    Column("style", String(30), nullable=False, server_default="default"),
    Column("rarity", String(20), nullable=False, server_default="common"),
    Column("level", Integer, nullable=False, server_default="1"),
    Column("xp", Integer, nullable=False, server_default="0"),
    Column("unlocked_by_default", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("badges_unlocked", Text),  # JSON array serialized as text
    Column("created_at", String(32), nullable=False),
)

# Fields update_avatar() accepts. Progression has its own write path.
_UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "type", "style", "rarity", "badges_unlocked"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _key(slug: str) -> str:
    return slug.strip().lower()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection because PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AvatarStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when used from FastAPI's
            # threadpool, where one connection may be touched by several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_slug(self, slug: str) -> Optional[Avatar]:
        """Return the avatar with this slug, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_avatars.select().where(_avatars.c.slug == _key(slug))).fetchone()
        return _row_to_avatar(row) if row is not None else None

    def list_avatars(self) -> list[Avatar]:
        """Return every avatar ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(_avatars.select().order_by(_avatars.c.name)).fetchall()
        return [_row_to_avatar(r) for r in rows]

    def find_by_style(self, style: str) -> list[Avatar]:
        """Case-insensitive style match; whitespace in the query is ignored.

        "Cyber Punk" and " CYBERPUNK " both find cyberpunk avatars.
        """
        cleaned = re.sub(r"\s+", "", style).lower()
        with self.engine.connect() as conn:
            rows = conn.execute(
                _avatars.select().where(func.lower(_avatars.c.style) == cleaned).order_by(_avatars.c.name)
            ).fetchall()
        logger.debug("Found %d avatars with style %r", len(rows), cleaned)
        return [_row_to_avatar(r) for r in rows]

    def find_by_rarity(self, rarity: str) -> list[Avatar]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _avatars.select().where(_avatars.c.rarity == rarity).order_by(_avatars.c.name)
            ).fetchall()
        return [_row_to_avatar(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_avatar(self, avatar: Avatar) -> int:
        """Insert a new avatar and return its assigned database ID.

        The slug is derived from the name when empty.
        Raises sqlalchemy.exc.IntegrityError if the slug or name already
        exists; the route layer turns that into 409.
        """
        slug = avatar.slug.strip().lower() if avatar.slug else slugify(avatar.name)
        with self.engine.connect() as conn:
            result = conn.execute(
                _avatars.insert().values(
                    slug=slug,
                    name=avatar.name,
                    type=avatar.type,
                    style=avatar.style,
                    rarity=avatar.rarity,
                    level=avatar.progression.level,
                    xp=avatar.progression.xp,
                    unlocked_by_default=1 if avatar.progression.unlocked_by_default else 0,
                    badges_unlocked=json.dumps(avatar.badges_unlocked),
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_avatar(self, slug: str, **fields) -> Optional[Avatar]:
        """Update descriptive fields. Returns the updated avatar, or None if not found.

        Unknown keys raise ValueError -- fail fast rather than silently dropping
        a field the caller expected to change.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown avatar fields: {unknown!r}")
        if "badges_unlocked" in fields:
            fields["badges_unlocked"] = json.dumps(list(fields["badges_unlocked"]))
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(_avatars.update().where(_avatars.c.slug == _key(slug)).values(**fields))
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_by_slug(slug)

    def save_progression(self, slug: str, progression: AvatarProgression) -> bool:
        """Overwrite the avatar's progression. Returns False if slug was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _avatars.update()
                .where(_avatars.c.slug == _key(slug))
                .values(
                    level=progression.level,
                    xp=progression.xp,
                    unlocked_by_default=1 if progression.unlocked_by_default else 0,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def delete_avatar(self, slug: str) -> bool:
        """Delete an avatar. Returns True if a row was removed.

        Users' bonds that reference the slug are left in place; they are
        inert until an avatar with the same slug exists again.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_avatars.delete().where(_avatars.c.slug == _key(slug)))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_avatar(row) -> Avatar:
    return Avatar(
        id=row.id,
        slug=row.slug,
        name=row.name,
        type=row.type,
        style=row.style,
        rarity=row.rarity,
        progression=AvatarProgression(
            level=row.level,
            xp=row.xp,
            unlocked_by_default=bool(row.unlocked_by_default),
        ),
        badges_unlocked=json.loads(row.badges_unlocked) if row.badges_unlocked else [],
        created_at=row.created_at,
    )
