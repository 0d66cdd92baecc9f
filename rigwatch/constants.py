"""
rigwatch.constants — Shared Constants
======================================

Single source of truth for Discord glyphs, mod categories, remote
endpoints and the default tuning values used when ``config.yaml`` leaves
a key out.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Game / Steam
# ---------------------------------------------------------------------------
GAME_APP_ID = 548430
JOIN_LOBBY_URI = "steam://joinlobby/{app_id}/{lobby_id}/{host_id}"
STEAM_PROFILE_URL = "https://steamcommunity.com/profiles/{steam_id}"
STEAM_API = "https://api.steampowered.com"

# ---------------------------------------------------------------------------
# Matchmaking backend + mod.io
# ---------------------------------------------------------------------------
LOBBY_LIST_URL = "https://drg.ghostship.dk/steam/games/list2"
DIFFICULTY_BITS: tuple[int, ...] = (0b00001, 0b00010, 0b00100, 0b01000, 0b10000)
MODIO_API = "https://api.mod.io/v1"
MODIO_GAME_ID = 2475
MODIO_PAGE_SIZE = 100

# ---------------------------------------------------------------------------
# Class glyphs (custom emoji on the mirror server)
# ---------------------------------------------------------------------------
CLASS_GLYPHS: dict[str, str] = {
    "0": "<:driller:964680901621612584>",
    "1": "<:engineer:964680922920255548>",
    "2": "<:gunner:964680948530704404>",
    "3": "<:scout:964680965521813524>",
}
UNKNOWN_CLASS_GLYPH = "<unknown>"
EMPTY_SLOT_GLYPH = "<:empty:964681045347823616>"
PARTY_SIZE = 4

# ---------------------------------------------------------------------------
# Mod categories as reported by the lobby list
# ---------------------------------------------------------------------------
MOD_CATEGORY_VERIFIED = 0
MOD_CATEGORY_APPROVED = 1
MOD_CATEGORY_SANDBOX = 2

MOD_FIELDS: tuple[tuple[int, str], ...] = (
    (MOD_CATEGORY_VERIFIED, "Verified Mods"),
    (MOD_CATEGORY_APPROVED, "Approved Mods"),
    (MOD_CATEGORY_SANDBOX, "Sandboxed Mods"),
)
MOD_FIELD_CHAR_LIMIT = 1000
HIDDEN_MOD_LABEL = "Hidden mod"

# ---------------------------------------------------------------------------
# Discord
# ---------------------------------------------------------------------------
UNKNOWN_MESSAGE_CODE = 10008
DEFAULT_WEBHOOK_AVATAR = (
    "https://cdn.discordapp.com/attachments/878318716801155236/"
    "968174640847523930/engo.png"
)

# ---------------------------------------------------------------------------
# Defaults for config.yaml
# ---------------------------------------------------------------------------
DEFAULT_LOBBY_WINDOW_SECONDS = 600
DEFAULT_STALE_AFTER_SECONDS = 600
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_MATCHMAKING_TICKET = "OtherPlatform"
DEFAULT_API_PORT = 8000

DEFAULT_INTERESTING_MOD_IDS: frozenset[int] = frozenset({
    1861561,
    1897251,
    1775635,
    1137703,
    1137738,
    1143817,
    1729804,
    1703369,
    1137776,
    1727230,
    1981468,  # More Mutators
    1962912,  # Buyable Missions
    2093114,  # Mission Randomizer
})

DEFAULT_EXCLUDED_MOD_IDS: frozenset[int] = frozenset({
    1034411,  # 2x flashlight
    1034683,  # 3x flashlight
    1034060,  # 5x flashlight
    1176984,  # better minigun
    1159061,  # better scout
})
