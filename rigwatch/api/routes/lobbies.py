"""
rigwatch.api.routes.lobbies — Read-only lobby history
======================================================
"""

from __future__ import annotations

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from rigwatch.api.deps import get_session
from rigwatch.constants import MOD_CATEGORY_VERIFIED
from rigwatch.database.models import LobbySnapshot
from rigwatch.services.embeds import format_difficulty, join_lobby_uri
from rigwatch.services.lobby_store import query_lobby_mods

router = APIRouter(tags=["lobbies"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _lobby_dict(session: Session, snap: LobbySnapshot, include_verified: bool) -> dict:
    mods = query_lobby_mods(
        session,
        snap.time,
        snap.lobby_id,
        skip_category=None if include_verified else MOD_CATEGORY_VERIFIED,
    )
    return {
        "time": snap.time,
        "captured_at": datetime.fromtimestamp(snap.time, UTC).isoformat(),
        "lobby_id": snap.lobby_id,
        "server_name": snap.server_name,
        "region": snap.region,
        "difficulty": snap.difficulty,
        "hazard": format_difficulty(snap.difficulty),
        "host_user_id": snap.host_user_id,
        "join_uri": join_lobby_uri(snap.lobby_id, snap.host_user_id),
        "mods": [
            {"id": m.mod_id, "category": m.category, "name": m.name, "url": m.url}
            for m in mods
            if m.category is not None  # uncategorised mods are hidden
        ],
    }


# ---------------------------------------------------------------------------
# GET /lobbies
# ---------------------------------------------------------------------------
@router.get("/lobbies")
def list_lobbies(
    difficulty: int = Query(4, ge=0, description="0-based hazard tier"),
    hours: int = Query(1, ge=1, le=48),
    include_verified: bool = False,
    session: Session = Depends(get_session),
):
    """Snapshots captured in the last *hours*, oldest first."""
    cutoff = int(time.time()) - hours * 3600
    snaps = session.scalars(
        select(LobbySnapshot)
        .where(LobbySnapshot.time > cutoff, LobbySnapshot.difficulty == difficulty)
        .order_by(LobbySnapshot.time, LobbySnapshot.lobby_id)
    ).all()
    return [_lobby_dict(session, s, include_verified) for s in snaps]


# ---------------------------------------------------------------------------
# GET /lobbies/{time}/{lobby_id}
# ---------------------------------------------------------------------------
@router.get("/lobbies/{capture_time}/{lobby_id}")
def get_lobby(
    capture_time: int,
    lobby_id: str,
    include_verified: bool = False,
    session: Session = Depends(get_session),
):
    snap = session.get(LobbySnapshot, (capture_time, lobby_id))
    if snap is None:
        raise HTTPException(404, "Lobby snapshot not found")
    return _lobby_dict(session, snap, include_verified)
