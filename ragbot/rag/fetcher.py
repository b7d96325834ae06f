"""Downloads source files (Markdown, JSON) referenced by upload requests."""

import json
import logging
from typing import Any

import httpx

from .. import config
from ..exceptions import FetchError, ParseError

logger = logging.getLogger(__name__)


class SourceFetcher:
    """HTTP fetch of a source URL returning text or parsed JSON."""

    def __init__(self, timeout: float = config.FETCH_TIMEOUT_SECONDS, transport: httpx.AsyncBaseTransport = None):
        self.timeout = timeout
        self.transport = transport

    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                logger.error(f"[FETCH] Could not reach {url}: {e}")
                raise FetchError(f"Failed to download file: {e}") from e

        if not response.is_success:
            logger.error(f"[FETCH] {url} answered {response.status_code} {response.reason_phrase}")
            raise FetchError(f"Failed to download file: {response.status_code} {response.reason_phrase}")
        return response

    async def fetch_text(self, url: str) -> str:
        response = await self._get(url)
        logger.info(f"[FETCH] Downloaded {len(response.content):,} bytes from {url}")
        return response.text

    async def fetch_json(self, url: str) -> Any:
        response = await self._get(url)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Failed to parse JSON: {e}") from e
