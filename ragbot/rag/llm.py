"""Chat-completion adapter around the OpenAI API."""

import logging
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .. import config
from ..exceptions import UpstreamError
from .embedder import _get_openai_client

logger = logging.getLogger(__name__)

CHAT_MODEL = config.CHAT_MODEL


class CompletionClient:
    """Sends a message sequence to the chat model and returns the reply text."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = CHAT_MODEL):
        self.client = client or _get_openai_client()
        self.model = model

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Run one chat completion.

        Returns:
            Trimmed text of the first choice ("" if the model returned no content).

        Raises:
            UpstreamError: If the completion call fails.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
            )
        except openai.OpenAIError as e:
            logger.error(f"[LLM] Completion request failed: {e}")
            raise UpstreamError(f"Completion request failed: {e}") from e

        if not response.choices:
            return ""
        content = response.choices[0].message.content or ""
        return content.strip()
