"""
rigwatch.services.webhook — Discord webhook client
===================================================

Create / edit / delete messages on a single webhook.  Every call returns a
:class:`WebhookReply`: the decoded :data:`WebhookResult` plus the response
headers, which the rate-limit governor reads after each call.

Discord answers with one of three JSON shapes, told apart by which keys
are present::

    {"id": ...}                                  → WebhookSuccess
    {"global": ..., "message": ..., "retry_after": ...} → WebhookRateLimited
    {"message": ..., "code": ...}                → WebhookError

A 429 whose body is not JSON (a proxy error page) is read from its
``Retry-After`` header instead.  Anything else unreadable raises
:class:`UpstreamError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from rigwatch.services.errors import UpstreamError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Decoded results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WebhookSuccess:
    message_id: str


@dataclass(frozen=True, slots=True)
class WebhookRateLimited:
    retry_after: float
    is_global: bool = False
    message: str = ""


@dataclass(frozen=True, slots=True)
class WebhookError:
    code: int
    message: str = ""


WebhookResult = WebhookSuccess | WebhookRateLimited | WebhookError


@dataclass(frozen=True, slots=True)
class WebhookReply:
    result: WebhookResult
    headers: httpx.Headers
    status_code: int = 200


def parse_webhook_response(payload: Any) -> WebhookResult:
    """Decode a webhook JSON body into its result variant.

    Raises :class:`UpstreamError` when the body matches none of the shapes
    or a numeric field does not parse.
    """
    if not isinstance(payload, dict):
        raise UpstreamError(f"Unexpected webhook response: {payload!r}")
    if "id" in payload:
        return WebhookSuccess(message_id=str(payload["id"]))
    try:
        if "retry_after" in payload:
            return WebhookRateLimited(
                retry_after=float(payload["retry_after"]),
                is_global=bool(payload.get("global", False)),
                message=str(payload.get("message", "")),
            )
        if "code" in payload:
            return WebhookError(
                code=int(payload["code"]),
                message=str(payload.get("message", "")),
            )
    except (TypeError, ValueError) as exc:
        raise UpstreamError(f"Malformed webhook response: {payload!r}") from exc
    raise UpstreamError(f"Unrecognised webhook response: {payload!r}")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class WebhookClient:
    """Messages on one webhook URL, always requested with ``wait=true``."""

    def __init__(self, webhook_url: str, client: httpx.AsyncClient) -> None:
        self._url = webhook_url.rstrip("/")
        self._client = client

    async def create_message(self, body: dict) -> WebhookReply:
        return await self._send("POST", self._url, json=body, params={"wait": "true"})

    async def edit_message(self, message_id: str, body: dict) -> WebhookReply:
        return await self._send(
            "PATCH",
            f"{self._url}/messages/{message_id}",
            json=body,
            params={"wait": "true"},
        )

    async def delete_message(self, message_id: str) -> WebhookReply:
        """Delete *message_id*.  A bodiless 2xx counts as success."""
        return await self._send(
            "DELETE", f"{self._url}/messages/{message_id}", deleted_id=message_id
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        deleted_id: str | None = None,
    ) -> WebhookReply:
        try:
            resp = await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Webhook {method} failed: {exc}") from exc

        if deleted_id is not None and resp.is_success and not resp.content:
            result: WebhookResult = WebhookSuccess(message_id=deleted_id)
        else:
            try:
                payload = resp.json()
            except ValueError as exc:
                if resp.status_code != 429:
                    raise UpstreamError(
                        f"Webhook {method} returned HTTP {resp.status_code} "
                        f"with a non-JSON body: {resp.text[:200]!r}"
                    ) from exc
                result = _rate_limited_from_headers(resp)
            else:
                result = parse_webhook_response(payload)

        return WebhookReply(result=result, headers=resp.headers, status_code=resp.status_code)


def _rate_limited_from_headers(resp: httpx.Response) -> WebhookRateLimited:
    """A 429 without a JSON body: fall back to the ``Retry-After`` header."""
    raw = resp.headers.get("retry-after")
    try:
        retry_after = float(raw)
    except (TypeError, ValueError) as exc:
        raise UpstreamError(
            f"Webhook returned HTTP 429 without a usable Retry-After header: {raw!r}"
        ) from exc
    logger.warning("Rate limited without a JSON body; Retry-After: %.2fs", retry_after)
    return WebhookRateLimited(retry_after=retry_after, message=resp.text[:200])
