"""
rigwatch.services.lobby_store — Snapshot queries & message records
===================================================================

The store-side half of the Discord mirror:

1. :func:`select_eligible_lobbies` picks the lobbies that should have a
   message right now, each paired with its mods and the id of the message
   already posted for it (if any).
2. :func:`upsert_notification` / :func:`delete_notification` keep the
   ``discord_messages`` table in step with what the webhook says exists.
3. :func:`select_stale_notifications` finds messages whose lobby stopped
   being refreshed.

All functions are synchronous; call them through
:func:`rigwatch.database.engine.run_db` from async code.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import Engine, and_, delete, func, select, text
from sqlalchemy.orm import Session

from rigwatch.database.engine import get_session
from rigwatch.database.models import DiscordMessage, LobbyMod, LobbySnapshot, Mod

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ModRef:
    """A mod as seen in one lobby.  ``category`` None means hidden."""
    mod_id: int
    category: int | None = None
    name: str | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class EligibleLobby:
    """Latest qualifying snapshot of a lobby plus its current message id."""
    time: int
    lobby_id: str
    region: str
    difficulty: int
    host_user_id: str
    server_name: str
    classes: str
    start: str
    mods: list[ModRef] = field(default_factory=list)
    message_id: str | None = None


# ---------------------------------------------------------------------------
# Mods
# ---------------------------------------------------------------------------
def query_lobby_mods(
    session: Session,
    time: int,
    lobby_id: str,
    *,
    skip_category: int | None = None,
) -> list[ModRef]:
    """Return the mods reported by one snapshot, ordered by category.

    The category the lobby reported wins; the ``mods`` table's category is
    only a fallback for rows where the lobby sent none.
    """
    category = func.coalesce(LobbyMod.category, Mod.category).label("category")
    q = (
        select(LobbyMod.mod_id, category, Mod.name, Mod.url)
        .outerjoin(Mod, Mod.mod_id == LobbyMod.mod_id)
        .where(LobbyMod.time == time, LobbyMod.lobby_id == lobby_id)
        .order_by(category, LobbyMod.mod_id)
    )
    if skip_category is not None:
        # NULL categories (hidden mods) are kept
        q = q.where(category.is_(None) | (category != skip_category))
    return [
        ModRef(mod_id=row.mod_id, category=row.category, name=row.name, url=row.url)
        for row in session.execute(q).all()
    ]


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------
def select_eligible_lobbies(
    engine: Engine,
    *,
    now: int,
    interesting_mod_ids: Iterable[int],
    excluded_mod_ids: Iterable[int],
    window_seconds: int = 600,
) -> list[EligibleLobby]:
    """Return the lobbies that should be mirrored at *now*, oldest first.

    A snapshot qualifies when:

    * it is the newest snapshot of its lobby captured after
      ``now - window_seconds``;
    * it reports at least one mod from *interesting_mod_ids*;
    * it is **not** the newest snapshot in which the lobby reported a mod
      from *excluded_mod_ids*.  Exclusion is pinned to the last sighting of
      an excluded mod, not re-evaluated against the current mod list.

    Ordering by capture time means older lobbies are sent first and absorb
    the rate limit before newer ones.
    """
    interesting = sorted(set(interesting_mod_ids))
    excluded = sorted(set(excluded_mod_ids))
    cutoff = now - window_seconds

    latest = (
        select(
            LobbySnapshot.lobby_id.label("lobby_id"),
            func.max(LobbySnapshot.time).label("time"),
        )
        .where(LobbySnapshot.time > cutoff)
        .group_by(LobbySnapshot.lobby_id)
        .subquery("latest")
    )
    last_excluded = (
        select(
            LobbyMod.lobby_id.label("lobby_id"),
            func.max(LobbyMod.time).label("time"),
        )
        .where(LobbyMod.mod_id.in_(excluded))
        .group_by(LobbyMod.lobby_id)
        .subquery("last_excluded")
    )
    runs_interesting_mod = (
        select(LobbyMod.mod_id)
        .where(
            LobbyMod.time == LobbySnapshot.time,
            LobbyMod.lobby_id == LobbySnapshot.lobby_id,
            LobbyMod.mod_id.in_(interesting),
        )
        .exists()
    )
    message_id = (
        select(DiscordMessage.message_id)
        .where(DiscordMessage.lobby_id == LobbySnapshot.lobby_id)
        .order_by(DiscordMessage.last_updated.desc())
        .limit(1)
        .scalar_subquery()
    )

    q = (
        select(LobbySnapshot, message_id.label("message_id"))
        .join(
            latest,
            and_(
                latest.c.lobby_id == LobbySnapshot.lobby_id,
                latest.c.time == LobbySnapshot.time,
            ),
        )
        .outerjoin(
            last_excluded,
            and_(
                last_excluded.c.lobby_id == LobbySnapshot.lobby_id,
                last_excluded.c.time == LobbySnapshot.time,
            ),
        )
        .where(last_excluded.c.lobby_id.is_(None), runs_interesting_mod)
        .order_by(LobbySnapshot.time, LobbySnapshot.lobby_id)
    )

    with get_session(engine) as session:
        lobbies = [
            EligibleLobby(
                time=snap.time,
                lobby_id=snap.lobby_id,
                region=snap.region,
                difficulty=snap.difficulty,
                host_user_id=snap.host_user_id,
                server_name=snap.server_name,
                classes=snap.classes,
                start=snap.start,
                mods=query_lobby_mods(session, snap.time, snap.lobby_id),
                message_id=msg_id,
            )
            for snap, msg_id in session.execute(q).all()
        ]

    logger.debug("Eligible lobbies at %d: %d", now, len(lobbies))
    return lobbies


# ---------------------------------------------------------------------------
# Message records
# ---------------------------------------------------------------------------
def upsert_notification(engine: Engine, message_id: str, lobby_id: str, now: int) -> None:
    """Record that *message_id* mirrors *lobby_id*, refreshed at *now*."""
    with get_session(engine) as session:
        session.execute(
            text("""
                INSERT INTO discord_messages (message_id, lobby_id, last_updated)
                VALUES (:mid, :lid, :now)
                ON CONFLICT (message_id)
                DO UPDATE SET last_updated = excluded.last_updated
            """),
            {"mid": message_id, "lid": lobby_id, "now": now},
        )


def delete_notification(engine: Engine, message_id: str) -> int:
    """Forget *message_id*.  Returns the number of rows removed."""
    with get_session(engine) as session:
        result = session.execute(
            delete(DiscordMessage).where(DiscordMessage.message_id == message_id)
        )
        return result.rowcount  # type: ignore[return-value]


def select_stale_notifications(
    engine: Engine, *, now: int, stale_after_seconds: int = 600
) -> list[str]:
    """Return ids of messages not refreshed within *stale_after_seconds*."""
    cutoff = now - stale_after_seconds
    with get_session(engine) as session:
        return list(
            session.scalars(
                select(DiscordMessage.message_id)
                .where(DiscordMessage.last_updated <= cutoff)
                .order_by(DiscordMessage.last_updated)
            ).all()
        )
