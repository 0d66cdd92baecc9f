"""
tests/test_embeds.py — Field formatting & embed builder tests
==============================================================
"""

from __future__ import annotations

import re

from rigwatch.constants import (
    CLASS_GLYPHS,
    EMPTY_SLOT_GLYPH,
    MOD_FIELD_CHAR_LIMIT,
    UNKNOWN_CLASS_GLYPH,
)
from rigwatch.services.embeds import (
    EmbedField,
    build_lobby_embed,
    build_lobby_fields,
    build_webhook_body,
    format_classes,
    format_mod_field,
    format_status,
)
from rigwatch.services.lobby_store import EligibleLobby, ModRef
from rigwatch.services.steam_client import SteamPlayer

DRILLER = CLASS_GLYPHS["0"]
SCOUT = CLASS_GLYPHS["3"]
_GLYPH = re.compile(r"<[^<>]+>")


def _lobby(**overrides) -> EligibleLobby:
    values = dict(
        time=1_700_000_000,
        lobby_id="abc123",
        region="EU",
        difficulty=3,
        host_user_id="76561198000000001",
        server_name="Modded Deep Dive",
        classes="0;3;",
        start="",
        mods=[ModRef(1, 0, "Sandbox Utilities", "https://mod.io/g/drg/m/sandbox-utilities")],
    )
    values.update(overrides)
    return EligibleLobby(**values)


# ===========================================================================
# format_mod_field
# ===========================================================================
class TestFormatModField:
    def test_renders_markdown_links(self):
        mods = [
            ModRef(1, 0, "Alpha", "https://mod.io/a"),
            ModRef(2, 0, "Beta", "https://mod.io/b"),
        ]
        field = format_mod_field(mods, 0, "Verified Mods")
        assert field == EmbedField(
            "Verified Mods", "[Alpha](https://mod.io/a)\n[Beta](https://mod.io/b)\n", True
        )

    def test_unresolved_mod_is_hidden(self):
        mods = [ModRef(1, 1, None, None), ModRef(2, 1, "Named", None)]
        field = format_mod_field(mods, 1, "Approved Mods")
        assert field is not None
        assert field.value == "Hidden mod\nHidden mod\n"

    def test_filters_by_category(self):
        mods = [
            ModRef(1, 0, "Verified", "https://mod.io/v"),
            ModRef(2, 2, "Sandboxed", "https://mod.io/s"),
            ModRef(3, None, "Uncategorised", "https://mod.io/u"),
        ]
        field = format_mod_field(mods, 2, "Sandboxed Mods")
        assert field is not None
        assert field.value == "[Sandboxed](https://mod.io/s)\n"

    def test_empty_category_emits_no_field(self):
        mods = [ModRef(1, 0, "Verified", "https://mod.io/v")]
        assert format_mod_field(mods, 1, "Approved Mods") is None
        assert format_mod_field([], 0, "Verified Mods") is None

    def test_hidden_category_never_rendered(self):
        mods = [ModRef(1, None, None, None)]
        for category in (0, 1, 2):
            assert format_mod_field(mods, category, "Mods") is None

    def test_overflow_is_summarised_within_limit(self):
        mods = [
            ModRef(i, 0, f"Mod number {i:03d}", f"https://mod.io/g/drg/m/mod-{i:03d}")
            for i in range(100)
        ]
        field = format_mod_field(mods, 0, "Verified Mods")
        assert field is not None
        assert len(field.value) <= MOD_FIELD_CHAR_LIMIT

        match = re.search(r"\.\.\.and (\d+) more$", field.value)
        assert match is not None
        rendered = field.value.count("](")
        assert int(match.group(1)) == len(mods) - rendered

    def test_last_entry_may_use_summary_room(self):
        mods = [ModRef(i, 0, "N", f"u{i:06d}") for i in range(10)]
        entry = len("[N](u000000)\n")
        limit = entry * 10 + len("...and 10 more")
        field = format_mod_field(mods, 0, "Verified Mods", limit=limit)
        assert field is not None
        assert field.value.count("\n") == 10
        assert "more" not in field.value

    def test_single_oversized_entry(self):
        mods = [ModRef(1, 0, "x" * 2000, "https://mod.io/x")]
        field = format_mod_field(mods, 0, "Verified Mods")
        assert field is not None
        assert field.value == "...and 1 more"

    def test_limit_holds_for_many_sizes(self):
        for count in range(1, 120, 7):
            for name_len in (1, 17, 60, 300):
                mods = [
                    ModRef(i, 1, "n" * name_len, f"https://mod.io/{i}") for i in range(count)
                ]
                field = format_mod_field(mods, 1, "Approved Mods")
                assert field is not None
                assert len(field.value) <= MOD_FIELD_CHAR_LIMIT


# ===========================================================================
# format_classes / status
# ===========================================================================
class TestFormatClasses:
    def test_maps_and_pads(self):
        # tokens fill slots in order, padding goes last (DESIGN.md, "Classes rendering")
        assert format_classes("0;3;") == DRILLER + SCOUT + EMPTY_SLOT_GLYPH * 2

    def test_empty_string_is_all_empty_slots(self):
        assert format_classes("") == EMPTY_SLOT_GLYPH * 4

    def test_unknown_token_gets_placeholder(self):
        assert format_classes("7;") == UNKNOWN_CLASS_GLYPH + EMPTY_SLOT_GLYPH * 3

    def test_always_four_glyphs(self):
        for raw in ("", "0;", "0;1;2;3;", "0;1;2;3;0;1;", "garbage", "2;x;9;"):
            assert len(_GLYPH.findall(format_classes(raw))) == 4

    def test_full_party(self):
        rendered = format_classes("0;1;2;3;")
        assert EMPTY_SLOT_GLYPH not in rendered
        assert rendered == "".join(CLASS_GLYPHS[k] for k in "0123")


def test_status():
    assert format_status("") == "In Space Rig"
    assert format_status("1700000000") == "In Mission"


# ===========================================================================
# Lobby fields & embed
# ===========================================================================
class TestLobbyFields:
    def test_space_rig_lobby_fields(self):
        url = "https://mod.io/g/drg/m/sandbox-utilities"
        fields = build_lobby_fields(_lobby())
        assert [(f.name, f.value) for f in fields] == [
            ("Region", "EU"),
            ("Difficulty", "Hazard 4"),
            # padding goes last, see DESIGN.md "Classes rendering"
            ("Classes", DRILLER + SCOUT + EMPTY_SLOT_GLYPH + EMPTY_SLOT_GLYPH),
            ("Status", "In Space Rig"),
            ("Verified Mods", f"[Sandbox Utilities]({url})\n"),
        ]
        assert [f.inline for f in fields] == [True, True, True, False, True]

    def test_mod_fields_in_category_order(self):
        mods = [
            ModRef(3, 2, "S", "https://s"),
            ModRef(1, 0, "V", "https://v"),
            ModRef(2, 1, "A", "https://a"),
        ]
        names = [f.name for f in build_lobby_fields(_lobby(mods=mods, start="123"))]
        assert names[3:] == ["Status", "Verified Mods", "Approved Mods", "Sandboxed Mods"]


class TestLobbyEmbed:
    def test_embed_author_and_deep_link(self):
        host = SteamPlayer(
            steam_id="76561198000000001",
            persona_name="Karl",
            avatar_url="https://avatars.example/karl.jpg",
        )
        embed = build_lobby_embed(_lobby(), host)
        data = embed.to_dict()

        assert data["title"] == "Modded Deep Dive"
        assert data["description"] == "steam://joinlobby/548430/abc123/76561198000000001"
        assert data["author"]["name"] == "Karl"
        assert data["author"]["icon_url"] == "https://avatars.example/karl.jpg"
        assert data["author"]["url"] == "https://steamcommunity.com/profiles/76561198000000001"
        assert [f["name"] for f in data["fields"]] == [
            "Region", "Difficulty", "Classes", "Status", "Verified Mods",
        ]

    def test_webhook_body_shape(self):
        host = SteamPlayer("1", "Karl", "https://a")
        body = build_webhook_body(build_lobby_embed(_lobby(), host), "https://cdn/avatar.png")
        assert body["avatar_url"] == "https://cdn/avatar.png"
        assert len(body["embeds"]) == 1
        field = body["embeds"][0]["fields"][0]
        assert field == {"name": "Region", "value": "EU", "inline": True}
