"""HTTP front end that relays OpenAI-style requests to the upstream AI service."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import sys
import time
import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from .config import (
    DEFAULT_MODEL,
    RAYCAST_API_URL,
    Config,
    ConfigError,
    error_body,
    load_config,
    raycast_headers,
    validate_api_key,
)
from .messages import (
    StreamTranslator,
    build_chat_completion,
    build_raycast_request,
    convert_messages,
    parse_sse_response,
)
from .models import ModelCache, ModelFetchError, provider_info

log = logging.getLogger(__name__)

CHAT_TIMEOUT = 5 * 60.0  # seconds
DEFAULT_TEMPERATURE = 0.5

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class _BadRequest(Exception):
    """The chat request body could not be read."""


def _error(status: int, message: str, kind: str, details: str = "") -> JSONResponse:
    return JSONResponse(error_body(message, kind, details), status_code=status)


def _indented_json(payload: object) -> Response:
    body = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    return Response(body, media_type="application/json")


def _parse_chat_request(raw: bytes) -> tuple[list, str, float, bool]:
    """Return (messages, model, temperature, stream) from a request body."""
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise _BadRequest(str(exc)) from exc
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise _BadRequest("request body must be a JSON object")

    messages = payload.get("messages")
    if messages is None:
        messages = []
    if not isinstance(messages, list):
        raise _BadRequest("'messages' must be an array")
    checked = []
    for message in messages:
        if message is None:
            message = {}
        if not isinstance(message, dict):
            raise _BadRequest("each message must be an object")
        role = message.get("role")
        if role is not None and not isinstance(role, str):
            raise _BadRequest("message 'role' must be a string")
        checked.append(message)

    model = payload.get("model")
    if model is None:
        model = ""
    if not isinstance(model, str):
        raise _BadRequest("'model' must be a string")

    temperature = payload.get("temperature")
    if temperature is None:
        temperature = 0.0
    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
        raise _BadRequest("'temperature' must be a number")

    stream = payload.get("stream")
    if stream is None:
        stream = False
    if not isinstance(stream, bool):
        raise _BadRequest("'stream' must be a boolean")

    return checked, model, float(temperature), stream


def _upstream_error_text(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(body)
    except ValueError:
        return text
    if isinstance(parsed, dict):
        return json.dumps(parsed, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return text


async def _relay_stream(upstream: httpx.Response, model: str) -> AsyncIterator[str]:
    translator = StreamTranslator(model)
    try:
        async for piece in upstream.aiter_text():
            for event in translator.feed(piece):
                yield event
    except httpx.HTTPError as exc:
        log.warning("Error reading from response: %s", exc)
    finally:
        await upstream.aclose()
    for event in translator.finish():
        yield event


async def _chat_completions(request: Request) -> Response:
    state = request.app.state
    config: Config = state.config
    client: httpx.AsyncClient = state.client

    try:
        messages, model, temperature, stream = _parse_chat_request(await request.body())
    except _BadRequest as exc:
        return _error(400, "Invalid request body", "invalid_request_error", str(exc))

    if not messages:
        return _error(400, "Missing or invalid 'messages' field", "invalid_request_error")

    model = model or DEFAULT_MODEL
    if temperature == 0:
        temperature = DEFAULT_TEMPERATURE

    try:
        models = await state.model_cache.get_models(config, client)
    except ModelFetchError as exc:
        log.warning("Warning: Using models with possible error: %s", exc)
        models = exc.models or {}

    provider, model_name = provider_info(model, models)
    log.info("Using provider: %s, model: %s", provider, model_name)

    upstream_body = build_raycast_request(
        convert_messages(messages),
        model=model_name,
        provider=provider,
        temperature=temperature,
        thread_id=str(uuid.uuid4()),
    )
    encoded = json.dumps(upstream_body, ensure_ascii=False, separators=(",", ":"))
    log.info("Sending request to Raycast: %s", encoded)

    outgoing = client.build_request(
        "POST",
        RAYCAST_API_URL,
        content=encoded.encode("utf-8"),
        headers=raycast_headers(config.raycast_bearer_token),
        timeout=CHAT_TIMEOUT,
    )
    try:
        upstream = await client.send(outgoing, stream=True)
    except httpx.HTTPError as exc:
        return _error(
            500, f"Error sending request to Raycast: {exc}", "relay_error", str(exc)
        )

    log.info("Response status: %d", upstream.status_code)

    if upstream.status_code != 200:
        try:
            raw = await upstream.aread()
        except httpx.HTTPError:
            raw = b""
        finally:
            await upstream.aclose()
        return _error(
            upstream.status_code,
            f"Raycast API error: {upstream.status_code} {_upstream_error_text(raw)}",
            "relay_error",
        )

    if stream:
        return StreamingResponse(
            _relay_stream(upstream, model),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    try:
        raw = await upstream.aread()
    except httpx.HTTPError as exc:
        return _error(500, "Error reading response body", "server_error", str(exc))
    finally:
        await upstream.aclose()

    text = raw.decode("utf-8", errors="replace")
    log.debug("Raw response: %s", text)
    return _indented_json(build_chat_completion(parse_sse_response(text), model))


async def _list_models(request: Request) -> Response:
    state = request.app.state
    try:
        models = await state.model_cache.get_models(state.config, state.client)
    except ModelFetchError as exc:
        return _error(
            500,
            f"An error occurred while fetching models: {exc}",
            "relay_error",
            str(exc),
        )

    created = int(time.time())
    data = [
        {
            "id": entry.model,
            "object": "model",
            "created": created,
            "owned_by": entry.provider,
        }
        for entry in sorted(models.values(), key=lambda entry: entry.model)
    ]
    return _indented_json({"object": "list", "data": data or None})


async def _refresh_models(request: Request) -> Response:
    state = request.app.state
    await state.model_cache.force_refresh(state.config, state.client)
    return JSONResponse({"status": "success", "message": "Model cache refreshed"})


async def _health(request: Request) -> Response:
    return JSONResponse({"status": "ok"})


def create_app(config: Config, client: httpx.AsyncClient | None = None) -> Starlette:
    """Build the relay application.

    Without ``client`` an HTTP client is opened for the application's lifetime.
    """

    async def gatekeeper(request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        elif not validate_api_key(request.headers.get("Authorization"), config.api_key):
            response = _error(401, "Invalid API key", "authentication_error")
        else:
            stamp = datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")
            log.info("[%s] %s %s", stamp, request.method, request.url.path)
            response = await call_next(request)
        response.headers.update(_CORS_HEADERS)
        return response

    lifespan = None
    if client is None:

        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with httpx.AsyncClient() as owned:
                app.state.client = owned
                yield

    app = Starlette(
        routes=[
            Route("/v1/chat/completions", _chat_completions, methods=["POST"]),
            Route("/v1/models", _list_models, methods=["GET"]),
            Route("/v1/refresh-models", _refresh_models, methods=["GET"]),
            Route("/health", _health, methods=["GET"]),
        ],
        middleware=[Middleware(BaseHTTPMiddleware, dispatch=gatekeeper)],
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.client = client
    app.state.model_cache = ModelCache()
    return app


def main(argv: list[str] | None = None) -> int:
    """Start the relay server configured from the environment."""
    parser = argparse.ArgumentParser(
        prog="rayrelay",
        description="Serve an OpenAI-compatible API backed by the Raycast AI service.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config()
    except ConfigError as exc:
        log.error("%s", exc)
        return 1
    try:
        port = int(config.port)
    except ValueError:
        log.error("Invalid PORT value: %s", config.port)
        return 1

    print(f"rayrelay has been successfully launched! Listening on {config.port}")
    uvicorn.run(create_app(config), host="0.0.0.0", port=port)
    return 0


if __name__ == "__main__":
    sys.exit(main())