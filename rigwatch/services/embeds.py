"""
rigwatch.services.embeds — Discord embed builders for mirrored lobbies
=======================================================================

All embed construction lives here so the notification service only needs
to supply a lobby and its host.  Field values are plain
:class:`EmbedField` records so they can be checked without a Discord
client; :func:`build_lobby_embed` turns them into a
:class:`discord.Embed` and :func:`build_webhook_body` into the JSON the
webhook endpoint expects.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

import discord

from rigwatch.constants import (
    CLASS_GLYPHS,
    EMPTY_SLOT_GLYPH,
    GAME_APP_ID,
    HIDDEN_MOD_LABEL,
    JOIN_LOBBY_URI,
    MOD_FIELD_CHAR_LIMIT,
    MOD_FIELDS,
    PARTY_SIZE,
    STEAM_PROFILE_URL,
    UNKNOWN_CLASS_GLYPH,
)
from rigwatch.services.lobby_store import EligibleLobby, ModRef
from rigwatch.services.steam_client import SteamPlayer

_CLASS_TOKEN = re.compile(r"(\d+);")


@dataclass(frozen=True, slots=True)
class EmbedField:
    name: str
    value: str
    inline: bool = True


# ---------------------------------------------------------------------------
# Field formatting
# ---------------------------------------------------------------------------
def _format_mod(mod: ModRef) -> str:
    if mod.name and mod.url:
        return f"[{mod.name}]({mod.url})"
    return HIDDEN_MOD_LABEL


def format_mod_field(
    mods: Sequence[ModRef],
    category: int,
    label: str,
    limit: int = MOD_FIELD_CHAR_LIMIT,
) -> EmbedField | None:
    """Render the mods of one *category* as a newline-separated field.

    Returns ``None`` when the category has no mods, since Discord rejects
    blank field values.  When the next entry would not fit, rendering
    stops and ``"...and N more"`` counts every entry left out.  Room for
    that summary is kept free while more entries remain, so the value
    never exceeds *limit*.
    """
    selected = [m for m in mods if m.category == category]
    if not selected:
        return None

    reserve = len(f"...and {len(selected)} more")
    value = ""
    for i, mod in enumerate(selected):
        entry = _format_mod(mod) + "\n"
        is_last = i == len(selected) - 1
        budget = limit if is_last else limit - reserve
        if len(value) + len(entry) > budget:
            value += f"...and {len(selected) - i} more"
            break
        value += entry

    return EmbedField(name=label, value=value, inline=True)


def format_classes(classes: str) -> str:
    """Map ``"0;3;"``-style class tokens to glyphs, padded to a full party."""
    glyphs = [
        CLASS_GLYPHS.get(token, UNKNOWN_CLASS_GLYPH)
        for token in _CLASS_TOKEN.findall(classes)
    ][:PARTY_SIZE]
    glyphs.extend([EMPTY_SLOT_GLYPH] * (PARTY_SIZE - len(glyphs)))
    return "".join(glyphs)


def format_difficulty(difficulty: int) -> str:
    return f"Hazard {difficulty + 1}"


def format_status(start: str) -> str:
    return "In Space Rig" if not start else "In Mission"


def build_lobby_fields(lobby: EligibleLobby) -> list[EmbedField]:
    """All embed fields for *lobby*, in display order."""
    fields = [
        EmbedField("Region", lobby.region),
        EmbedField("Difficulty", format_difficulty(lobby.difficulty)),
        EmbedField("Classes", format_classes(lobby.classes)),
        EmbedField("Status", format_status(lobby.start), inline=False),
    ]
    for category, label in MOD_FIELDS:
        mod_field = format_mod_field(lobby.mods, category, label)
        if mod_field is not None:
            fields.append(mod_field)
    return fields


# ---------------------------------------------------------------------------
# Embed / webhook body
# ---------------------------------------------------------------------------
def join_lobby_uri(lobby_id: str, host_id: str, app_id: int = GAME_APP_ID) -> str:
    return JOIN_LOBBY_URI.format(app_id=app_id, lobby_id=lobby_id, host_id=host_id)


def build_lobby_embed(lobby: EligibleLobby, host: SteamPlayer) -> discord.Embed:
    """Build the lobby embed: host as author, join link as description."""
    embed = discord.Embed(
        title=lobby.server_name,
        description=join_lobby_uri(lobby.lobby_id, lobby.host_user_id),
    )
    embed.set_author(
        name=host.persona_name,
        url=STEAM_PROFILE_URL.format(steam_id=lobby.host_user_id),
        icon_url=host.avatar_url,
    )
    for f in build_lobby_fields(lobby):
        embed.add_field(name=f.name, value=f.value, inline=f.inline)
    return embed


def build_webhook_body(embed: discord.Embed, avatar_url: str | None) -> dict:
    """JSON body for ``POST``/``PATCH`` on the webhook."""
    return {
        "avatar_url": avatar_url,
        "embeds": [embed.to_dict()],
    }
