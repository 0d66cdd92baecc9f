"""
Rigwatch — Live Lobby Tracker with Discord Mirroring
=====================================================
Polls the public lobby list for Deep Rock Galactic, stores periodic
snapshots, and mirrors the modded lobbies worth joining into a Discord
channel as webhook messages that update in place and vanish once the
lobby is gone.

Package layout::

    rigwatch/
    ├── __main__.py        # CLI: --poll-servers / --poll-mods / --update-discord / --www
    ├── config.py          # YAML + env → typed Python config
    ├── constants.py       # Glyphs, mod categories, defaults
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # Snapshot, mod and message tables
    ├── services/
    │   ├── lobby_store.py          # Eligibility query + message records
    │   ├── embeds.py               # Field formatting + embed builder
    │   ├── steam_client.py         # Host identity lookup
    │   ├── webhook.py              # Discord webhook client + response decoding
    │   ├── throttle.py             # Rate-limit governor
    │   ├── notification_service.py # Create / update / delete reconciliation
    │   └── poll_service.py         # Lobby list + mod metadata polling
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # Read-only lobby endpoints
"""

__version__ = "0.1.0"
