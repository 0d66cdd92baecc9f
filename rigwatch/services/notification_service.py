"""
rigwatch.services.notification_service — Discord lobby mirror
==============================================================

Reconciles the lobbies that qualify right now against the webhook
messages already posted, then clears out messages whose lobby has gone.

Per eligible lobby (strictly one at a time):

    1. **Build** — fields from the snapshot, author from a Steam lookup.
       A failed lookup abandons this lobby only.
    2. **Send** — ``PATCH`` the recorded message, or ``POST`` a new one.
    3. **Classify** the reply:
       - success      → upsert ``discord_messages`` with the returned id;
       - rate limited → sleep ``retry_after`` and resend the same body;
       - error 10008  → the message is gone: drop the record, post again
                        next run;
       - other error  → log and move on.

Between every two webhook calls the :class:`RateLimitGovernor` sleeps off
an exhausted bucket, whatever the previous reply was.

After the batch, every record not refreshed for ``stale_after_seconds``
is deleted remotely (best effort) and then locally **regardless of the
delete's outcome**, so one undeletable message never blocks the sweep.

Crash window: a message posted just before the process dies is not
recorded, and the next run posts a second one for the same lobby.
"""

from __future__ import annotations

import enum
import logging
import time
from collections import Counter
from collections.abc import Callable

from sqlalchemy import Engine

from rigwatch.config import RigwatchConfig
from rigwatch.constants import UNKNOWN_MESSAGE_CODE
from rigwatch.database.engine import run_db
from rigwatch.services.embeds import build_lobby_embed, build_webhook_body
from rigwatch.services.errors import NotFound, UpstreamError
from rigwatch.services.lobby_store import (
    EligibleLobby,
    delete_notification,
    select_eligible_lobbies,
    select_stale_notifications,
    upsert_notification,
)
from rigwatch.services.steam_client import SteamClient
from rigwatch.services.throttle import RateLimitGovernor
from rigwatch.services.webhook import (
    WebhookClient,
    WebhookError,
    WebhookRateLimited,
    WebhookReply,
    WebhookSuccess,
)

logger = logging.getLogger(__name__)


class SyncOutcome(enum.StrEnum):
    """How one lobby's cycle ended."""
    CREATED = "created"
    UPDATED = "updated"
    VANISHED = "vanished"    # message deleted on Discord's side, record dropped
    REJECTED = "rejected"    # any other webhook error
    FAILED = "failed"        # lookup / transport failure before a verdict
    GAVE_UP = "gave_up"      # rate-limit retry cap reached


class NotificationSync:
    """One Discord mirror run over the current lobby snapshots."""

    def __init__(
        self,
        engine: Engine,
        cfg: RigwatchConfig,
        webhook: WebhookClient,
        steam: SteamClient,
        governor: RateLimitGovernor | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.engine = engine
        self.cfg = cfg
        self.webhook = webhook
        self.steam = steam
        self.governor = governor or RateLimitGovernor()
        self._clock = clock or (lambda: int(time.time()))

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    async def run(self, now: int | None = None) -> dict[str, int]:
        """Mirror every eligible lobby, then sweep stale messages.

        Store errors propagate and abort the run.  Everything else is
        contained to the lobby it happened on.
        """
        now = self._clock() if now is None else now
        lobbies = await run_db(
            select_eligible_lobbies,
            self.engine,
            now=now,
            interesting_mod_ids=self.cfg.interesting_mod_ids,
            excluded_mod_ids=self.cfg.excluded_mod_ids,
            window_seconds=self.cfg.lobby_window_seconds,
        )
        logger.info("Mirroring %d eligible lobbies", len(lobbies))

        outcomes: Counter[str] = Counter()
        for lobby in lobbies:
            outcomes[await self.sync_lobby(lobby)] += 1

        swept = await self.sweep_stale(self._clock())

        summary = {"eligible": len(lobbies), "swept": swept}
        summary.update({outcome.value: outcomes[outcome] for outcome in SyncOutcome})
        logger.info("Discord mirror run complete: %s", summary)
        return summary

    # -------------------------------------------------------------------
    # Per-lobby cycle
    # -------------------------------------------------------------------
    async def build_payload(self, lobby: EligibleLobby) -> dict:
        host = await self.steam.get_player(lobby.host_user_id)
        embed = build_lobby_embed(lobby, host)
        return build_webhook_body(embed, self.cfg.webhook_avatar_url)

    async def sync_lobby(self, lobby: EligibleLobby) -> SyncOutcome:
        """Build, send and record one lobby.  Never raises for remote errors."""
        try:
            body = await self.build_payload(lobby)
        except NotFound:
            logger.warning(
                "Lobby %s: host %s has no Steam profile — skipping",
                lobby.lobby_id, lobby.host_user_id,
            )
            return SyncOutcome.FAILED
        except UpstreamError:
            logger.exception("Lobby %s: host lookup failed — skipping", lobby.lobby_id)
            return SyncOutcome.FAILED

        attempts = 0
        while True:
            try:
                reply = await self._send(lobby, body)
            except UpstreamError:
                logger.exception("Lobby %s: webhook call failed", lobby.lobby_id)
                return SyncOutcome.FAILED
            result = reply.result

            if isinstance(result, WebhookSuccess):
                await run_db(
                    upsert_notification,
                    self.engine,
                    result.message_id,
                    lobby.lobby_id,
                    self._clock(),
                )
                if lobby.message_id:
                    return SyncOutcome.UPDATED
                logger.info("Lobby %s: posted message %s", lobby.lobby_id, result.message_id)
                return SyncOutcome.CREATED

            if isinstance(result, WebhookRateLimited):
                attempts += 1
                logger.warning(
                    "Lobby %s: %s; global: %s, retry_after: %.2fs",
                    lobby.lobby_id, result.message, result.is_global, result.retry_after,
                )
                limit = self.cfg.max_rate_limit_retries
                if limit is not None and attempts > limit:
                    logger.error(
                        "Lobby %s: still rate limited after %d retries — giving up",
                        lobby.lobby_id, limit,
                    )
                    return SyncOutcome.GAVE_UP
                self.governor.defer(result.retry_after)
                continue

            return await self._handle_error(lobby, result)

    async def _send(self, lobby: EligibleLobby, body: dict) -> WebhookReply:
        await self.governor.wait()
        if lobby.message_id:
            reply = await self.webhook.edit_message(lobby.message_id, body)
        else:
            reply = await self.webhook.create_message(body)
        self.governor.observe(reply.headers)
        return reply

    async def _handle_error(self, lobby: EligibleLobby, result: WebhookError) -> SyncOutcome:
        if result.code == UNKNOWN_MESSAGE_CODE and lobby.message_id:
            logger.warning(
                "Lobby %s: message %s no longer exists — dropping record",
                lobby.lobby_id, lobby.message_id,
            )
            await run_db(delete_notification, self.engine, lobby.message_id)
            return SyncOutcome.VANISHED

        logger.error(
            "Lobby %s: webhook rejected message: %s (code %d)",
            lobby.lobby_id, result.message, result.code,
        )
        return SyncOutcome.REJECTED

    # -------------------------------------------------------------------
    # Stale sweep
    # -------------------------------------------------------------------
    async def sweep_stale(self, now: int) -> int:
        """Delete messages whose lobby stopped being refreshed.

        Returns the number of records removed.
        """
        stale = await run_db(
            select_stale_notifications,
            self.engine,
            now=now,
            stale_after_seconds=self.cfg.stale_after_seconds,
        )
        for message_id in stale:
            await self.governor.wait()
            try:
                reply = await self.webhook.delete_message(message_id)
            except UpstreamError:
                logger.exception("Delete of message %s failed — forgetting it anyway", message_id)
            else:
                self.governor.observe(reply.headers)
                if isinstance(reply.result, WebhookRateLimited):
                    self.governor.defer(reply.result.retry_after)
                if not isinstance(reply.result, WebhookSuccess):
                    logger.warning(
                        "Delete of message %s returned %s — forgetting it anyway",
                        message_id, reply.result,
                    )
            await run_db(delete_notification, self.engine, message_id)

        if stale:
            logger.info("Swept %d stale messages", len(stale))
        return len(stale)
