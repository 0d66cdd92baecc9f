"""
rigwatch.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- lobby_snapshots   — One row per (capture time, lobby id); append-only
- mods              — Mod metadata keyed by mod.io id, filled in lazily
- lobby_mods        — Which mods a lobby reported at a given capture time
- discord_messages  — Lobby → webhook message currently representing it

Times are Unix epoch seconds, matching the capture timestamp the poller
stamps on every snapshot.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Float,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Rigwatch ORM models."""


# ---------------------------------------------------------------------------
# LobbySnapshot — one polled lobby at one capture time
# ---------------------------------------------------------------------------
class LobbySnapshot(Base):
    """A lobby as the matchmaking backend reported it at ``time``.

    Never updated once written; a newer capture of the same ``lobby_id``
    supersedes it.  ``start`` is empty while the crew is still in the
    Space Rig.
    """
    __tablename__ = "lobby_snapshots"

    time: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    lobby_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    host_user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    server_name: Mapped[str] = mapped_column(Text, nullable=False)
    server_name_san: Mapped[str] = mapped_column(Text, default="")
    global_mission_seed: Mapped[int] = mapped_column(BigInteger, default=0)
    mission_seed: Mapped[int] = mapped_column(BigInteger, default=0)
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-based hazard tier
    gamestate: Mapped[int] = mapped_column(Integer, default=0)
    player_count: Mapped[int] = mapped_column(Integer, default=0)
    is_full: Mapped[int] = mapped_column(Integer, default=0)
    region: Mapped[str] = mapped_column(String(32), nullable=False)
    start: Mapped[str] = mapped_column(String(64), default="")
    classes: Mapped[str] = mapped_column(String(64), default="")  # e.g. "0;3;"
    class_lock: Mapped[int] = mapped_column(Integer, default=0)
    mission_structure: Mapped[str] = mapped_column(Text, default="")
    password_required: Mapped[int] = mapped_column(Integer, default=0)
    p2p_address: Mapped[str] = mapped_column(String(64), default="")
    p2p_port: Mapped[int] = mapped_column(Integer, default=0)
    distance: Mapped[float] = mapped_column(Float, default=0.0)

    mods: Mapped[list[LobbyMod]] = relationship(
        back_populates="snapshot", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_lobby_snapshots_lobby_time", "lobby_id", "time"),
    )

    def __repr__(self) -> str:
        return f"<LobbySnapshot time={self.time} lobby={self.lobby_id!r}>"


# ---------------------------------------------------------------------------
# Mod — metadata for a mod.io mod
# ---------------------------------------------------------------------------
class Mod(Base):
    """Mod metadata.  ``name``/``url`` stay NULL until the enrichment job
    resolves them; an unresolved mod renders as a hidden mod."""
    __tablename__ = "mods"

    mod_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str | None] = mapped_column(Text, default=None)
    url: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[int | None] = mapped_column(Integer, default=None)
    mod_metadata: Mapped[Any | None] = mapped_column(
        "metadata", JSON(none_as_null=True), default=None
    )

    def __repr__(self) -> str:
        return f"<Mod id={self.mod_id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# LobbyMod — mod membership of a snapshot
# ---------------------------------------------------------------------------
class LobbyMod(Base):
    __tablename__ = "lobby_mods"

    time: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    lobby_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mod_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("mods.mod_id"), primary_key=True, autoincrement=False
    )
    version: Mapped[str] = mapped_column(String(32), default="")
    category: Mapped[int | None] = mapped_column(Integer, default=None)  # 0=verified 1=approved 2=sandbox

    snapshot: Mapped[LobbySnapshot] = relationship(back_populates="mods")
    mod: Mapped[Mod] = relationship()

    __table_args__ = (
        ForeignKeyConstraint(
            ["time", "lobby_id"],
            ["lobby_snapshots.time", "lobby_snapshots.lobby_id"],
            ondelete="CASCADE",
        ),
        Index("ix_lobby_mods_mod_lobby_time", "mod_id", "lobby_id", "time"),
    )

    def __repr__(self) -> str:
        return f"<LobbyMod time={self.time} lobby={self.lobby_id!r} mod={self.mod_id}>"


# ---------------------------------------------------------------------------
# DiscordMessage — which webhook message mirrors which lobby
# ---------------------------------------------------------------------------
class DiscordMessage(Base):
    """A row exists iff a webhook message is believed to exist for the lobby."""
    __tablename__ = "discord_messages"

    message_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    lobby_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<DiscordMessage id={self.message_id} lobby={self.lobby_id!r}>"
