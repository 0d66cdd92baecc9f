"""
rigwatch.__main__ — Entry point for ``python -m rigwatch``
==========================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings) into one :class:`RigwatchConfig`.
3. Create the SQLAlchemy engine and ensure tables exist.
4. Run each requested job once, in order:
   ``--poll-servers`` → ``--poll-mods`` → ``--update-discord`` → ``--www``.

Meant to be driven by cron (or a systemd timer), e.g. every minute::

    python -m rigwatch --poll-servers --update-discord
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time

import httpx
from dotenv import load_dotenv
from sqlalchemy import Engine

from rigwatch.config import RigwatchConfig, load_config
from rigwatch.database.engine import create_db_engine, init_db
from rigwatch.services.notification_service import NotificationSync
from rigwatch.services.poll_service import poll_lobbies, refresh_mod_metadata
from rigwatch.services.steam_client import SteamClient
from rigwatch.services.webhook import WebhookClient

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("rigwatch")


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rigwatch",
        description="Track Deep Rock Galactic lobbies and mirror modded ones to Discord.",
    )
    parser.add_argument(
        "--poll-servers",
        action="store_true",
        help="Poll current server information.",
    )
    parser.add_argument(
        "--poll-mods",
        action="store_true",
        help="Poll and update cached mod information.",
    )
    parser.add_argument(
        "--update-discord",
        action="store_true",
        help="Update the Discord integration.",
    )
    parser.add_argument(
        "--www",
        action="store_true",
        help="Run the read-only lobby API.",
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration file (default: config.yaml).",
    )
    return parser


def _require(value: str, name: str) -> None:
    if not value:
        logger.critical("%s is not set.  Copy .env.example → .env and fill it in.", name)
        sys.exit(1)


async def run_jobs(args: argparse.Namespace, cfg: RigwatchConfig, engine: Engine) -> None:
    """Run the requested fetch / mirror jobs against one shared HTTP client."""
    now = int(time.time())
    logger.info("Run started at %d", now)

    async with httpx.AsyncClient(timeout=cfg.http_timeout) as client:
        if args.poll_servers:
            await poll_lobbies(engine, client, cfg, now)
        if args.poll_mods:
            await refresh_mod_metadata(engine, client, cfg.modio_key)
        if args.update_discord:
            sync = NotificationSync(
                engine,
                cfg,
                WebhookClient(cfg.webhook_url, client),
                SteamClient(cfg.steam_web_key, client),
            )
            await sync.run()


def main(argv: list[str] | None = None) -> None:
    """Bootstrap and run the requested Rigwatch jobs."""
    args = build_cli_parser().parse_args(argv)

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config(args.config)
    if args.poll_mods:
        _require(cfg.modio_key, "MODIO_KEY")
    if args.update_discord:
        _require(cfg.webhook_url, "DISCORD_WEBHOOK")
        _require(cfg.steam_web_key, "STEAM_WEB_KEY")

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Jobs.
    if args.poll_servers or args.poll_mods or args.update_discord:
        asyncio.run(run_jobs(args, cfg, engine))

    if args.www:
        import uvicorn

        logger.info("Starting lobby API on port %d…", cfg.api_port)
        uvicorn.run("rigwatch.api.main:app", host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
