# Entry point for the FastAPI app
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional, Tuple
import logging

from . import config, security, telegram_bot, telegram_client, transcription
from .exceptions import ValidationError
from .services import RagServices, build_services

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI()
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

default_message = {"status": "ok", "service": "ragbot"}

# Built on startup; tests swap in a container with fake adapters
services: Optional[RagServices] = None


def get_services() -> RagServices:
    global services
    if services is None:
        services = build_services()
    return services


@app.on_event("startup")
async def startup_event():
    get_services().startup()
    if config.TELEGRAM_WEBHOOK_URL:
        await telegram_client.set_webhook(config.TELEGRAM_WEBHOOK_URL, config.TELEGRAM_WEBHOOK_SECRET)
    logger.info("[STARTUP] Initialization complete")


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _failure(message: str, error: Exception) -> JSONResponse:
    """500 with the generic message, failure details and the error kind."""
    return JSONResponse(status_code=500, content={
        "error": message,
        "details": str(error),
        "error_type": type(error).__name__,
    })


def _invalid_chat_request(data: Dict[str, Any]) -> Optional[str]:
    """Error message for a malformed chat body, or None when it is usable."""
    query = data.get("query")
    if not query or not isinstance(query, str):
        return "Query parameter is required."
    history = data.get("history")
    if history is None:
        return None
    if not isinstance(history, list):
        return "History must be a list of messages."
    for turn in history:
        if (
            not isinstance(turn, dict)
            or not isinstance(turn.get("role"), str)
            or not isinstance(turn.get("content"), (str, type(None)))
        ):
            return "Each history message needs a role and content."
    return None


def _upload_fields(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    return data.get("filename"), data.get("fileUrl")


@app.get("/")
def root():
    return default_message


@app.post("/chat")
async def chat(request: Request):
    data = await _read_json(request)
    error = _invalid_chat_request(data)
    if error:
        return _bad_request(error)
    query = data["query"]

    try:
        answer = await get_services().qa.answer(data.get("history") or [], query)
    except Exception as e:
        logger.exception(f"[API] Error processing query: {e}")
        return _failure("An error occurred while processing your request.", e)
    return {"answer": answer}


@app.post("/draft_tweet")
async def draft_tweet(request: Request):
    data = await _read_json(request)
    error = _invalid_chat_request(data)
    if error:
        return _bad_request(error)
    query = data["query"]

    try:
        answer = await get_services().tweets.answer(data.get("history") or [], query)
    except Exception as e:
        logger.exception(f"[API] Error drafting tweet: {e}")
        return _failure("An error occurred while processing your request.", e)
    return {"answer": answer}


@app.post("/upload")
async def upload_file(request: Request):
    filename, file_url = _upload_fields(await _read_json(request))
    if not filename or not file_url:
        return _bad_request("filename and fileUrl are required.")

    try:
        await get_services().lifecycle.upload(filename, file_url)
    except ValidationError as e:
        return _bad_request(str(e))
    except Exception as e:
        logger.exception(f"[API] Error processing file {filename}: {e}")
        return _failure("Failed to process the file.", e)
    return {"message": "File processed and upserted successfully", "fileUrl": file_url}


@app.put("/upload")
async def update_file(request: Request):
    filename, file_url = _upload_fields(await _read_json(request))
    if not filename or not file_url:
        return _bad_request("filename and fileUrl are required.")

    try:
        await get_services().lifecycle.update(filename, file_url)
    except ValidationError as e:
        return _bad_request(str(e))
    except Exception as e:
        logger.exception(f"[API] Error processing edited file {filename}: {e}")
        return _failure("Failed to process the edited file.", e)
    return {"message": "Edited file processed and upserted successfully", "fileUrl": file_url}


@app.post("/transcript")
async def transcript(request: Request):
    data = await _read_json(request)
    audio_url = data.get("audioURL")
    if not audio_url:
        return _bad_request("audioURL parameter is required.")

    try:
        transcription_text = await transcription.transcribe_audio_url(audio_url)
    except Exception as e:
        logger.exception(f"[API] Error transcribing {audio_url}: {e}")
        return _failure("An error occurred while processing your request.", e)
    return {"transcription": transcription_text}


@app.post("/threads")
async def sync_threads(request: Request):
    data = await _read_json(request)
    threads = data.get("threads")
    if not isinstance(threads, list):
        return _bad_request("threads must be a list.")

    try:
        result = await get_services().lifecycle.sync_threads(threads, data.get("channel") or "Q&A")
    except Exception as e:
        logger.exception(f"[API] Error syncing threads: {e}")
        return _failure("Failed to process the threads.", e)
    return result


@app.post("/telegram/webhook")
async def telegram_webhook(request: Request):
    security.validate_telegram_secret(request)
    update = await _read_json(request)
    status = await telegram_bot.handle_update(update)
    return {"status": status}
