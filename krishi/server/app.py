"""Async HTTP server for the chat UI.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop. Replies are
streamed as server-sent events from ``POST /stream``; each event is written
and drained before the next fragment is requested from the provider.
"""

from __future__ import annotations

import base64
import contextlib
import logging
from pathlib import Path
from typing import Any

from aiohttp import web

from krishi.chat import ReplyPipeline, ReplyRequest, sse_frame
from krishi.chat.pipeline import TextGenerator
from krishi.config import settings
from krishi.conversation.reset import reset_conversation
from krishi.conversation.store import ConversationStore
from krishi.errors import (
    ConfigurationError,
    EmptyAudioError,
    PersistenceError,
    UpstreamProviderError,
    ValidationError,
)
from krishi.llm.client import stream_text
from krishi.location import CoordKey, LocationEnricher
from krishi.memory.models import MemoryFact
from krishi.memory.store import MemoryStore
from krishi.tts import reverie

logger = logging.getLogger(__name__)

PIPELINE = web.AppKey("pipeline", ReplyPipeline)
CONVERSATION = web.AppKey("conversation", ConversationStore)
MEMORY = web.AppKey("memory", MemoryStore)
DB_PATH = web.AppKey("db_path", object)

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def _read_json(request: web.Request) -> dict[str, Any] | None:
    """Parse a JSON object body; None when missing or malformed."""
    if not request.can_read_body:
        return {}
    try:
        payload = await request.json()
    except Exception:
        return None
    return payload if isinstance(payload, dict) else None


def _parse_location(raw: Any) -> CoordKey | None:
    if not isinstance(raw, dict):
        return None
    lat, lon = raw.get("lat"), raw.get("lon")
    if lat is None or lon is None:
        return None
    try:
        return (float(lat), float(lon))
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed location: %r", raw)
        return None


# -- Routes -------------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _history(request: web.Request) -> web.Response:
    """GET /history — the whole conversation, oldest first."""
    try:
        messages = await request.app[CONVERSATION].all()
    except PersistenceError as exc:
        logger.exception("GET /history failed")
        return web.json_response({"error": str(exc)}, status=500)
    return web.json_response({"messages": [m.to_dict() for m in messages]})


async def _list_memories(request: web.Request) -> web.Response:
    """GET /memories — every remembered fact."""
    try:
        facts = await request.app[MEMORY].all()
    except PersistenceError as exc:
        logger.exception("GET /memories failed")
        return web.json_response({"error": str(exc)}, status=500)
    return web.json_response({"memories": [f.model_dump() for f in facts]})


async def _add_memory(request: web.Request) -> web.Response:
    """POST /memories — remember a ``{key, value}`` fact."""
    payload = await _read_json(request)
    if payload is None:
        return web.json_response({"error": "invalid JSON"}, status=400)

    key, value = payload.get("key"), payload.get("value")
    if not isinstance(key, str) or not key.strip() or not isinstance(value, str):
        return web.json_response({"error": "key and value are required"}, status=400)

    try:
        await request.app[MEMORY].append(MemoryFact(key=key.strip(), value=value))
    except PersistenceError as exc:
        logger.exception("POST /memories failed")
        return web.json_response({"error": str(exc)}, status=500)
    return web.json_response({"success": True}, status=201)


async def _new_chat(request: web.Request) -> web.Response:
    """POST /new-chat — wipe messages and facts together."""
    try:
        await reset_conversation(request.app[DB_PATH])
    except PersistenceError:
        logger.exception("POST /new-chat failed")
        return web.json_response({"error": "Server error while clearing chat"}, status=500)
    return web.json_response({"success": True})


async def _stream(request: web.Request) -> web.StreamResponse:
    """POST /stream — stream one reply as server-sent events."""
    payload = await _read_json(request)
    if payload is None:
        return web.json_response({"error": "invalid JSON"}, status=400)

    prompt = payload.get("prompt")
    override = payload.get("langOverride")
    reply_request = ReplyRequest(
        prompt=prompt if isinstance(prompt, str) else "",
        location=_parse_location(payload.get("location")),
        lang_override=override if isinstance(override, str) else None,
    )

    resp = web.StreamResponse(headers=SSE_HEADERS)
    await resp.prepare(request)

    events = request.app[PIPELINE].stream(reply_request)
    try:
        async for event in events:
            await resp.write(sse_frame(event))
    except ConnectionResetError:
        logger.info("POST /stream: client disconnected mid-reply")
        return resp
    finally:
        await events.aclose()

    with contextlib.suppress(ConnectionResetError):
        await resp.write_eof()
    return resp


async def _tts(request: web.Request) -> web.Response:
    """POST /tts — synthesize speech; errors tell the client to fall back."""
    payload = await _read_json(request)
    if payload is None:
        return web.json_response({"error": "invalid JSON"}, status=400)

    text = payload.get("text")
    language = payload.get("language") or reverie.DEFAULT_LANGUAGE
    if not isinstance(text, str):
        text = ""

    try:
        audio = await reverie.synthesize(text, language)
    except ValidationError as exc:
        return web.json_response({"error": str(exc), "fallback": False}, status=400)
    except ConfigurationError as exc:
        logger.error("TTS error: %s", exc)
        return web.json_response({"error": str(exc), "fallback": True}, status=500)
    except EmptyAudioError as exc:
        return web.json_response(
            {"error": str(exc), "fallback": True, "language": language}, status=500
        )
    except UpstreamProviderError as exc:
        return web.json_response(
            {"error": str(exc), "fallback": True, "language": language},
            status=exc.status or 502,
        )
    except Exception:
        logger.exception("POST /tts failed")
        return web.json_response({"error": "TTS generation failed", "fallback": True}, status=500)

    return web.json_response({
        "success": True,
        "audio": base64.b64encode(audio).decode("ascii"),
        "mimeType": reverie.AUDIO_MIME_TYPE,
        "language": language,
    })


async def _close_tts_session(app: web.Application) -> None:
    await reverie.close_session()


def create_app(
    *,
    db_path: Path | None = None,
    generate: TextGenerator = stream_text,
    enricher: LocationEnricher | None = None,
    static_dir: Path | None = None,
) -> web.Application:
    """Build the aiohttp Application with routes.

    *db_path* isolates the stores (tests); by default the shared stores
    on the configured database are used.
    """
    if db_path is None:
        conversation = ConversationStore.get()
        memory = MemoryStore.get()
    else:
        conversation = ConversationStore(db_path=db_path)
        memory = MemoryStore(db_path=db_path)

    app = web.Application()
    app[CONVERSATION] = conversation
    app[MEMORY] = memory
    app[DB_PATH] = db_path
    app[PIPELINE] = ReplyPipeline(
        conversation=conversation,
        memory=memory,
        enricher=enricher or LocationEnricher(),
        generate=generate,
    )

    app.router.add_get("/health", _health)
    app.router.add_get("/history", _history)
    app.router.add_get("/memories", _list_memories)
    app.router.add_post("/memories", _add_memory)
    app.router.add_post("/new-chat", _new_chat)
    app.router.add_post("/stream", _stream)
    app.router.add_post("/tts", _tts)
    app.on_cleanup.append(_close_tts_session)

    static_dir = static_dir or settings.static_dir
    if static_dir is not None:
        _add_static(app, Path(static_dir))

    return app


def _add_static(app: web.Application, root: Path) -> None:
    if not root.is_dir():
        logger.warning("Static directory %s does not exist; UI not served", root)
        return

    index = root / "index.html"

    async def _index(request: web.Request) -> web.StreamResponse:
        if index.exists():
            return web.FileResponse(index)
        raise web.HTTPNotFound()

    app.router.add_get("/", _index)
    app.router.add_static("/", root)
    logger.info("Serving static UI from %s", root)


class AssistantServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, host: str | None = None, port: int | None = None) -> None:
        self.host = host or settings.host
        self.port = port or settings.port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for chat requests."""
        if not settings.anthropic_api_key:
            logger.warning("ANTHROPIC_API_KEY empty; replies will fail until it is set")
        if not settings.tts_configured():
            logger.warning("Reverie credentials empty; /tts will ask clients to fall back")

        app = create_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Krishi server listening on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Krishi server stopped")
