"""Push rendered events to Telegram chats through the Bot API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import aiohttp

from ..core.models import EventData, Severity
from .base import SinkDeliveryError

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
DEFAULT_TIMEOUT_S = 15.0


class TelegramSink:
    """Send each message to every configured chat, one chat after another."""

    name = "telegram"
    push = True
    error_event = "telegramError"

    def __init__(
        self,
        api_token: str,
        chat_ids: Sequence[str],
        *,
        session: aiohttp.ClientSession | None = None,
        api_base: str = API_BASE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        if not chat_ids:
            raise ValueError("chat_ids must not be empty")
        self._url = f"{api_base}/bot{api_token}/sendMessage"
        self._chat_ids = list(chat_ids)
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _send(self, chat_id: str, text: str) -> None:
        session = self._get_session()
        try:
            async with session.post(self._url, json={"chat_id": chat_id, "text": text}) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise SinkDeliveryError(
                        f"Telegram API returned {resp.status} for chat {chat_id}: {body[:200]}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SinkDeliveryError(f"Telegram request for chat {chat_id} failed: {exc}") from exc

    async def deliver(self, message: str, severity: Severity, event: EventData) -> None:
        failures: list[str] = []
        for chat_id in self._chat_ids:
            try:
                await self._send(chat_id, message)
            except SinkDeliveryError as exc:
                failures.append(str(exc))
        sent = len(self._chat_ids) - len(failures)
        logger.debug("Sent %s to %d telegram chat(s)", event.event_name, sent)
        if failures:
            raise SinkDeliveryError("; ".join(failures))

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
