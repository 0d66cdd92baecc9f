"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from rigwatch.config import RigwatchConfig
from rigwatch.database.models import Base, DiscordMessage, LobbyMod, LobbySnapshot, Mod

NOW = 1_700_000_000

INTERESTING_MOD = 1861561
OTHER_INTERESTING_MOD = 1981468
EXCLUDED_MOD = 1034411
PLAIN_MOD = 555


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Rigwatch tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> RigwatchConfig:
    return RigwatchConfig(
        interesting_mod_ids=frozenset({INTERESTING_MOD, OTHER_INTERESTING_MOD}),
        excluded_mod_ids=frozenset({EXCLUDED_MOD}),
        webhook_avatar_url="https://cdn.example/avatar.png",
        webhook_url="https://discord.example/api/webhooks/1/token",
        steam_web_key="steam-key",
    )


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def add_snapshot(
    engine: Engine,
    *,
    time: int,
    lobby_id: str,
    mods: list[tuple[int, int | None]] = (),
    difficulty: int = 3,
    region: str = "EU",
    classes: str = "0;3;",
    start: str = "",
    host_user_id: str = "76561198000000001",
    server_name: str = "Modded Deep Dive",
) -> None:
    """Insert one snapshot; *mods* is a list of (mod_id, category)."""
    with Session(engine) as s:
        snap = LobbySnapshot(
            time=time,
            lobby_id=lobby_id,
            host_user_id=host_user_id,
            server_name=server_name,
            difficulty=difficulty,
            region=region,
            classes=classes,
            start=start,
        )
        for mod_id, category in mods:
            if s.get(Mod, mod_id) is None:
                s.add(Mod(mod_id=mod_id))
            snap.mods.append(LobbyMod(mod_id=mod_id, category=category))
        s.add(snap)
        s.commit()


def name_mod(engine: Engine, mod_id: int, name: str, url: str) -> None:
    with Session(engine) as s:
        mod = s.get(Mod, mod_id)
        if mod is None:
            mod = Mod(mod_id=mod_id)
            s.add(mod)
        mod.name = name
        mod.url = url
        s.commit()


def add_message(engine: Engine, message_id: str, lobby_id: str, last_updated: int) -> None:
    with Session(engine) as s:
        s.add(DiscordMessage(message_id=message_id, lobby_id=lobby_id, last_updated=last_updated))
        s.commit()


def all_messages(engine: Engine) -> list[DiscordMessage]:
    with Session(engine) as s:
        rows = list(s.query(DiscordMessage).order_by(DiscordMessage.message_id).all())
        s.expunge_all()
        return rows
