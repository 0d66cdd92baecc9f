"""
rigwatch.services.poll_service — Lobby list & mod metadata polling
===================================================================

Two fetch-and-store jobs that feed the snapshot tables:

- :func:`poll_lobbies` — asks the matchmaking backend for the public lobby
  list once per difficulty bit, de-duplicates by lobby id, and writes one
  snapshot (plus its mod memberships) per lobby at the capture time.
- :func:`refresh_mod_metadata` — resolves names and profile URLs for mods
  that have none yet, from the mod.io batch endpoint.

Remote payloads are validated with pydantic models that keep the wire
names as aliases.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import Engine, select

from rigwatch.config import RigwatchConfig
from rigwatch.constants import (
    DIFFICULTY_BITS,
    LOBBY_LIST_URL,
    MODIO_API,
    MODIO_GAME_ID,
    MODIO_PAGE_SIZE,
)
from rigwatch.database.engine import get_session, run_db
from rigwatch.database.models import LobbyMod, LobbySnapshot, Mod
from rigwatch.services.errors import UpstreamError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------
class ReportedMod(BaseModel):
    """A mod as a lobby reports it.  ``name`` carries the mod.io id."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    version: str = Field(default="", alias="Version")
    category: int | None = Field(default=None, alias="Category")


class LobbyListing(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Id")
    host_user_id: str = Field(alias="HostUserID")
    server_name: str = Field(alias="DRG_SERVERNAME")
    server_name_san: str = Field(default="", alias="DRG_SERVERNAME_SAN")
    global_mission_seed: int = Field(default=0, alias="DRG_GLOBALMISSION_SEED")
    mission_seed: int = Field(default=0, alias="DRG_MISSION_SEED")
    difficulty: int = Field(alias="DRG_DIFF")
    gamestate: int = Field(default=0, alias="DRG_GAMESTATE")
    player_count: int = Field(default=0, alias="DRG_NUMPLAYERS")
    is_full: int = Field(default=0, alias="DRG_FULL")
    region: str = Field(alias="DRG_REGION")
    start: str = Field(default="", alias="DRG_START")
    classes: str = Field(default="", alias="DRG_CLASSES")
    class_lock: int = Field(default=0, alias="DRG_CLASSLOCK")
    mission_structure: str = Field(default="", alias="DRG_MISSIONSTRUCTURE")
    password_required: int = Field(default=0, alias="DRG_PWREQUIRED")
    p2p_address: str = Field(default="", alias="P2PADDR")
    p2p_port: int = Field(default=0, alias="P2PPORT")
    distance: float = Field(default=0.0, alias="Distance")
    mods: list[ReportedMod] | None = Field(default=None, alias="Mods")


class LobbyList(BaseModel):
    lobbies: list[LobbyListing] = Field(alias="Lobbies")


class ModioMod(BaseModel):
    id: int
    name: str
    profile_url: str


def lobby_list_query(difficulty_bitset: int, ticket: str) -> dict[str, Any]:
    """Request body for the lobby-list endpoint.  *ticket* is passed through opaquely."""
    return {
        "steamTicket": "",
        "steamPingLoc": "",
        "gameTypes": [1, 2, 0, 99],
        "authenticationTicket": ticket,
        "ignoreId": "",
        "distance": 3,
        "dRG_PWREQUIRED": 0,
        "dRG_REGION": "",
        "dRG_VERSION": None,
        "difficultyBitset": difficulty_bitset,
        "missionSeed": 0,
        "globalMissionSeed": 0,
        "searchString": "",
        "deepDive": False,
        "platform": "steam",
    }


# ---------------------------------------------------------------------------
# Lobby list
# ---------------------------------------------------------------------------
async def fetch_lobby_list(
    client: httpx.AsyncClient,
    difficulty_bitset: int,
    ticket: str,
    url: str = LOBBY_LIST_URL,
) -> list[LobbyListing]:
    try:
        resp = await client.post(url, json=lobby_list_query(difficulty_bitset, ticket))
        resp.raise_for_status()
        return LobbyList.model_validate(resp.json()).lobbies
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        raise UpstreamError(
            f"Lobby list fetch failed (difficulty bits {difficulty_bitset:05b}): {exc}"
        ) from exc


def store_lobbies(engine: Engine, time: int, lobbies: list[LobbyListing]) -> dict[str, int]:
    """Write one snapshot per lobby at *time*.  Returns insert counts."""
    mods_stored = 0
    with get_session(engine) as session:
        known_mods = set(session.scalars(select(Mod.mod_id)).all())
        for lobby in lobbies:
            snapshot = LobbySnapshot(
                time=time,
                lobby_id=lobby.id,
                host_user_id=lobby.host_user_id,
                server_name=lobby.server_name,
                server_name_san=lobby.server_name_san,
                global_mission_seed=lobby.global_mission_seed,
                mission_seed=lobby.mission_seed,
                difficulty=lobby.difficulty,
                gamestate=lobby.gamestate,
                player_count=lobby.player_count,
                is_full=lobby.is_full,
                region=lobby.region,
                start=lobby.start,
                classes=lobby.classes,
                class_lock=lobby.class_lock,
                mission_structure=lobby.mission_structure,
                password_required=lobby.password_required,
                p2p_address=lobby.p2p_address,
                p2p_port=lobby.p2p_port,
                distance=lobby.distance,
            )
            seen: set[int] = set()
            for reported in lobby.mods or []:
                try:
                    mod_id = int(reported.name)
                except ValueError:
                    logger.info("Mod has non-numeric ID: %s", reported.name)
                    continue
                if mod_id in seen:
                    continue
                seen.add(mod_id)
                if mod_id not in known_mods:
                    session.add(Mod(mod_id=mod_id))
                    known_mods.add(mod_id)
                snapshot.mods.append(
                    LobbyMod(mod_id=mod_id, version=reported.version, category=reported.category)
                )
                mods_stored += 1
            session.add(snapshot)
    return {"lobbies": len(lobbies), "mods": mods_stored}


async def poll_lobbies(
    engine: Engine,
    client: httpx.AsyncClient,
    cfg: RigwatchConfig,
    now: int,
) -> dict[str, int]:
    """Fetch every difficulty's lobby list and store a snapshot at *now*."""
    lobbies: dict[str, LobbyListing] = {}
    for bit in DIFFICULTY_BITS:
        for lobby in await fetch_lobby_list(client, bit, cfg.matchmaking_ticket):
            lobbies[lobby.id] = lobby

    result = await run_db(store_lobbies, engine, now, list(lobbies.values()))
    logger.info(
        "Stored %d lobby snapshots (%d mod entries) at %d",
        result["lobbies"], result["mods"], now,
    )
    return result


# ---------------------------------------------------------------------------
# Mod metadata
# ---------------------------------------------------------------------------
def _ensure_mod_rows(engine: Engine) -> list[int]:
    """Insert a bare ``mods`` row for every referenced id; return ids lacking metadata."""
    with get_session(engine) as session:
        known = set(session.scalars(select(Mod.mod_id)).all())
        referenced = set(session.scalars(select(LobbyMod.mod_id).distinct()).all())
        for mod_id in sorted(referenced - known):
            session.add(Mod(mod_id=mod_id))
        session.flush()
        return list(
            session.scalars(
                select(Mod.mod_id).where(Mod.mod_metadata.is_(None)).order_by(Mod.mod_id)
            ).all()
        )


def _store_mod_metadata(engine: Engine, entries: list[tuple[ModioMod, dict]]) -> int:
    with get_session(engine) as session:
        for parsed, raw in entries:
            mod = session.get(Mod, parsed.id)
            if mod is None:
                continue
            mod.name = parsed.name
            mod.url = parsed.profile_url
            mod.mod_metadata = raw
    return len(entries)


async def refresh_mod_metadata(
    engine: Engine,
    client: httpx.AsyncClient,
    api_key: str,
    base_url: str = MODIO_API,
) -> int:
    """Resolve name/URL for every mod without metadata.  Returns rows updated."""
    missing = await run_db(_ensure_mod_rows, engine)
    if not missing:
        logger.info("All mods already have metadata")
        return 0

    url = f"{base_url.rstrip('/')}/games/{MODIO_GAME_ID}/mods"
    entries: list[tuple[ModioMod, dict]] = []
    for start in range(0, len(missing), MODIO_PAGE_SIZE):
        chunk = missing[start:start + MODIO_PAGE_SIZE]
        params = {"api_key": api_key, "id-in": ",".join(str(mod_id) for mod_id in chunk)}
        try:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()["data"]
            entries.extend((ModioMod.model_validate(raw), raw) for raw in data)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, ValidationError) as exc:
            raise UpstreamError(f"mod.io metadata fetch failed: {exc}") from exc

    updated = await run_db(_store_mod_metadata, engine, entries)
    logger.info("Resolved metadata for %d/%d mods", updated, len(missing))
    return updated
