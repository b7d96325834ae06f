"""
Telegram bot update handling.

Commands open the tweet-drafting mini app; drafts sent back from the mini app
(`web_app_data`) are validated and published to the chat.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

from . import config, telegram_client
from .telegram_client import TELEGRAM_MAX_MESSAGE_LENGTH

logger = logging.getLogger(__name__)

WELCOME_TEXT = "Welcome! Use /draft to create a new message."
DRAFT_PROMPT_TEXT = "Click the button below to create a new message."
INVALID_MESSAGE_TEXT = "Invalid message received."
TOO_LONG_TEXT = f"Message exceeds the maximum allowed length of {TELEGRAM_MAX_MESSAGE_LENGTH} characters."
PUBLISHED_TEXT = "Your message has been published successfully!"
PUBLISH_FAILED_TEXT = "An error occurred while publishing your message."

_COMMAND_RE = re.compile(r"^/(\w+)(?:@\w+)?")


def _command(text: str) -> Optional[str]:
    match = _COMMAND_RE.match(text or "")
    return match.group(1).lower() if match else None


def draft_keyboard() -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": "Create Message", "web_app": {"url": config.WEBAPP_URL}}],
        ],
    }


async def handle_web_app_data(chat_id: int, data: str) -> str:
    """Publish a draft returned by the mini app. Returns a short status label."""
    try:
        parsed = json.loads(data)
    except (TypeError, ValueError) as e:
        logger.error(f"[TELEGRAM] Could not parse web_app_data for {chat_id}: {e}")
        await telegram_client.send_message(chat_id, PUBLISH_FAILED_TEXT)
        return "error"

    message = parsed.get("message") if isinstance(parsed, dict) else None
    if not message or not isinstance(message, str):
        await telegram_client.send_message(chat_id, INVALID_MESSAGE_TEXT)
        return "invalid"

    if len(message) > TELEGRAM_MAX_MESSAGE_LENGTH:
        await telegram_client.send_message(chat_id, TOO_LONG_TEXT)
        return "too_long"

    if await telegram_client.send_message(chat_id, message) is None:
        await telegram_client.send_message(chat_id, PUBLISH_FAILED_TEXT)
        return "error"

    await telegram_client.send_message(chat_id, PUBLISHED_TEXT)
    return "published"


async def handle_update(update: Dict[str, Any]) -> str:
    """Route one Telegram update. Returns a status label for logging/tests."""
    message = update.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    if chat_id is None:
        logger.info(f"[TELEGRAM] Ignoring update without chat: {update.get('update_id')}")
        return "ignored"

    web_app_data = message.get("web_app_data")
    if web_app_data:
        return await handle_web_app_data(chat_id, web_app_data.get("data"))

    command = _command(message.get("text", ""))
    if command == "start":
        await telegram_client.send_message(chat_id, WELCOME_TEXT)
        return "start"
    if command == "draft":
        await telegram_client.send_message(chat_id, DRAFT_PROMPT_TEXT, reply_markup=draft_keyboard())
        return "draft"
    if command == "d2":
        link = f"Click [here]({config.WEBAPP_URL}) to open the Web App."
        await telegram_client.send_message(chat_id, link, parse_mode="Markdown")
        return "d2"

    return "ignored"
