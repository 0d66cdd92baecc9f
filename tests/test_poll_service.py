"""
tests/test_poll_service.py — Lobby list & mod.io polling tests
===============================================================
"""

from __future__ import annotations

import json

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import INTERESTING_MOD, NOW, PLAIN_MOD, add_snapshot, run_async
from rigwatch.constants import DIFFICULTY_BITS
from rigwatch.database.models import LobbyMod, LobbySnapshot, Mod
from rigwatch.services.errors import UpstreamError
from rigwatch.services.poll_service import (
    LobbyListing,
    fetch_lobby_list,
    lobby_list_query,
    poll_lobbies,
    refresh_mod_metadata,
    store_lobbies,
)


def _listing(lobby_id: str, mods: list[dict] | None = None, **overrides) -> dict:
    raw = {
        "Id": lobby_id,
        "HostUserID": "76561198000000001",
        "DRG_SERVERNAME": f"Lobby {lobby_id}",
        "DRG_SERVERNAME_SAN": f"Lobby {lobby_id}",
        "DRG_GLOBALMISSION_SEED": 1234,
        "DRG_MISSION_SEED": 99,
        "DRG_DIFF": 3,
        "DRG_GAMESTATE": 1,
        "DRG_NUMPLAYERS": 2,
        "DRG_FULL": 0,
        "DRG_REGION": "EU",
        "DRG_START": "",
        "DRG_CLASSES": "0;3;",
        "DRG_CLASSLOCK": 0,
        "DRG_MISSIONSTRUCTURE": "",
        "DRG_PWREQUIRED": 0,
        "P2PADDR": "steam.123",
        "P2PPORT": 7777,
        "Distance": 1.5,
        "Mods": mods,
    }
    raw.update(overrides)
    return raw


def _mod(mod_id: str, category: int | None = 0) -> dict:
    return {"Name": mod_id, "Version": "1.0", "Category": category}


# ===========================================================================
# Lobby list
# ===========================================================================
def test_lobby_list_query_passes_ticket_through():
    body = lobby_list_query(0b00100, "ticket-xyz")
    assert body["difficultyBitset"] == 0b00100
    assert body["authenticationTicket"] == "ticket-xyz"


def test_fetch_lobby_list_parses_listings():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"Lobbies": [_listing("L1", [_mod("42")])]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    lobbies = run_async(fetch_lobby_list(client, 0b00010, "OtherPlatform", url="https://lobbies.example/list"))

    assert [l.id for l in lobbies] == ["L1"]
    assert lobbies[0].difficulty == 3
    assert lobbies[0].mods[0].name == "42"
    assert seen[0]["difficultyBitset"] == 0b00010


def test_fetch_lobby_list_failure_is_upstream():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="down")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError):
        run_async(fetch_lobby_list(client, 1, "OtherPlatform"))


def test_fetch_lobby_list_bad_shape_is_upstream():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Lobbies": [{"Id": "L1"}]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError):
        run_async(fetch_lobby_list(client, 1, "OtherPlatform"))


class TestStoreLobbies:
    def test_snapshot_and_mods_written(self, db_engine):
        listing = LobbyListing.model_validate(
            _listing("L1", [_mod("42", 0), _mod("43", None), _mod("42", 0)])
        )

        counts = store_lobbies(db_engine, NOW, [listing])

        assert counts == {"lobbies": 1, "mods": 2}
        with Session(db_engine) as s:
            snap = s.get(LobbySnapshot, (NOW, "L1"))
            assert snap is not None
            assert snap.region == "EU"
            assert snap.p2p_port == 7777
            assert sorted((m.mod_id, m.category) for m in snap.mods) == [(42, 0), (43, None)]
            assert sorted(s.scalars(select(Mod.mod_id)).all()) == [42, 43]

    def test_non_numeric_mod_ids_skipped(self, db_engine):
        listing = LobbyListing.model_validate(_listing("L1", [_mod("local-mod"), _mod("7")]))

        counts = store_lobbies(db_engine, NOW, [listing])

        assert counts["mods"] == 1
        with Session(db_engine) as s:
            assert s.scalars(select(LobbyMod.mod_id)).all() == [7]

    def test_vanilla_lobby_has_no_mods(self, db_engine):
        listing = LobbyListing.model_validate(_listing("L1", None))
        assert store_lobbies(db_engine, NOW, [listing]) == {"lobbies": 1, "mods": 0}


def test_poll_lobbies_dedupes_across_difficulties(db_engine, cfg):
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bits = json.loads(request.content)["difficultyBitset"]
        calls.append(bits)
        return httpx.Response(
            200, json={"Lobbies": [_listing("SHARED"), _listing(f"L{bits}")]}
        )

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    result = run_async(poll_lobbies(db_engine, client, cfg, NOW))

    assert calls == list(DIFFICULTY_BITS)
    assert result["lobbies"] == len(DIFFICULTY_BITS) + 1
    with Session(db_engine) as s:
        ids = s.scalars(select(LobbySnapshot.lobby_id).where(LobbySnapshot.time == NOW)).all()
        assert sorted(ids).count("SHARED") == 1


# ===========================================================================
# mod.io enrichment
# ===========================================================================
class TestRefreshModMetadata:
    def test_resolves_missing_mods(self, db_engine):
        add_snapshot(db_engine, time=NOW, lobby_id="L1", mods=[(INTERESTING_MOD, 0), (PLAIN_MOD, 1)])
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [
                {"id": INTERESTING_MOD, "name": "Better Spawns", "profile_url": "https://mod.io/bs"},
            ]})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        updated = run_async(
            refresh_mod_metadata(db_engine, client, "modio-key", base_url="https://modio.example/v1")
        )

        assert updated == 1
        assert seen[0].url.path == "/v1/games/2475/mods"
        assert seen[0].url.params["api_key"] == "modio-key"
        assert sorted(seen[0].url.params["id-in"].split(",")) == sorted(
            [str(INTERESTING_MOD), str(PLAIN_MOD)]
        )
        with Session(db_engine) as s:
            mod = s.get(Mod, INTERESTING_MOD)
            assert (mod.name, mod.url) == ("Better Spawns", "https://mod.io/bs")
            assert mod.mod_metadata["id"] == INTERESTING_MOD
            assert s.get(Mod, PLAIN_MOD).name is None

    def test_nothing_missing_makes_no_request(self, db_engine):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert run_async(refresh_mod_metadata(db_engine, client, "modio-key")) == 0

    def test_failure_is_upstream(self, db_engine):
        add_snapshot(db_engine, time=NOW, lobby_id="L1", mods=[(PLAIN_MOD, 1)])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"code": 401}})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamError):
            run_async(refresh_mod_metadata(db_engine, client, "bad-key"))
