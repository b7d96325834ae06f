import httpx
import logging

from . import config
from .exceptions import UpstreamError

logger = logging.getLogger(__name__)


async def transcribe_audio_url(audio_url: str) -> str:
    """Transcribe a publicly reachable audio file with Deepgram. Returns the transcript text or raises UpstreamError."""
    headers = {
        "Authorization": f"Token {config.DEEPGRAM_API_KEY}",
        "Content-Type": "application/json",
    }
    logger.info(f"[TRANSCRIPT] Transcribing audio from URL: {audio_url}")
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                config.DEEPGRAM_URL,
                json={"url": audio_url},
                headers=headers,
                timeout=config.FETCH_TIMEOUT_SECONDS,
            )
            if response.status_code != 200:
                logger.error(f"[TRANSCRIPT] Deepgram API error {response.status_code}: {response.text}")
                response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        logger.error(f"[TRANSCRIPT] Deepgram transcription failed: {e}")
        raise UpstreamError(f"Deepgram transcription failed: {e}") from e

    try:
        return data["results"]["channels"][0]["alternatives"][0]["transcript"]
    except (KeyError, IndexError, TypeError) as e:
        logger.error(f"[TRANSCRIPT] Unexpected Deepgram response: {data!r}")
        raise UpstreamError("Deepgram response did not contain a transcript") from e
