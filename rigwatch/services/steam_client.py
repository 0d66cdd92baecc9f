"""
rigwatch.services.steam_client — Host identity lookup
======================================================

One ``GetPlayerSummaries`` call per lobby host, used to put the host's
persona name and avatar on the embed.  No retries here; the notification
service decides what a failed lookup means for the lobby.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from rigwatch.constants import STEAM_API
from rigwatch.services.errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SteamPlayer:
    steam_id: str
    persona_name: str
    avatar_url: str
    profile_url: str = ""


class SteamClient:
    """Thin wrapper over ``ISteamUser/GetPlayerSummaries``."""

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        base_url: str = STEAM_API,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def get_player(self, steam_id: str) -> SteamPlayer:
        """Return the first profile matching *steam_id*.

        Raises
        ------
        UpstreamError
            The request failed, returned a non-2xx status or an
            unexpected body.
        NotFound
            The API answered but listed no players.
        """
        url = f"{self._base_url}/ISteamUser/GetPlayerSummaries/v0002/"
        try:
            resp = await self._client.get(
                url, params={"key": self._api_key, "steamids": steam_id}
            )
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(f"Steam player lookup failed for {steam_id}: {exc}") from exc

        try:
            players = payload["response"]["players"]
        except (KeyError, TypeError) as exc:
            raise UpstreamError(
                f"Unexpected Steam response for {steam_id}: {payload!r}"
            ) from exc
        if not players:
            raise NotFound(f"No Steam profile for {steam_id}")

        first = players[0]
        try:
            return SteamPlayer(
                steam_id=str(first.get("steamid", steam_id)),
                persona_name=first["personaname"],
                avatar_url=first["avatarfull"],
                profile_url=first.get("profileurl", ""),
            )
        except (KeyError, AttributeError) as exc:
            raise UpstreamError(
                f"Incomplete Steam profile for {steam_id}: {first!r}"
            ) from exc
