"""Telegram Bot API client.

Async helpers over the Bot API HTTP methods. Errors are logged and None is
returned, so a failed reply never breaks webhook handling.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
import logging

import httpx

from . import config

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096


def _method_url(method: str) -> str:
    return f"{config.TELEGRAM_API_URL}/bot{config.TELEGRAM_BOT_TOKEN}/{method}"


async def send_message(
    chat_id: int | str,
    text: str,
    reply_markup: Optional[Dict[str, Any]] = None,
    parse_mode: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Send a text message to a chat, optionally with a keyboard."""
    payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
    if reply_markup:
        payload["reply_markup"] = reply_markup
    if parse_mode:
        payload["parse_mode"] = parse_mode

    async with httpx.AsyncClient(timeout=config.FETCH_TIMEOUT_SECONDS) as client:
        try:
            response = await client.post(_method_url("sendMessage"), json=payload)
            response.raise_for_status()
            logger.info(f"[TELEGRAM] Message sent to {chat_id}")
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[TELEGRAM] Error sending message to {chat_id}: {e.response.text}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"[TELEGRAM] Could not reach Telegram for {chat_id}: {e}")
            return None


async def set_webhook(url: str, secret_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Register the bot webhook URL."""
    payload: Dict[str, Any] = {"url": url}
    if secret_token:
        payload["secret_token"] = secret_token
    async with httpx.AsyncClient(timeout=config.FETCH_TIMEOUT_SECONDS) as client:
        try:
            response = await client.post(_method_url("setWebhook"), json=payload)
            response.raise_for_status()
            logger.info(f"[TELEGRAM] Webhook set to {url}")
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[TELEGRAM] Error setting webhook: {e.response.text}")
            return None
        except httpx.HTTPError as e:
            logger.error(f"[TELEGRAM] Could not reach Telegram to set webhook: {e}")
            return None
