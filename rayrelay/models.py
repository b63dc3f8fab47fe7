"""Upstream model catalogue with a time-limited cache."""

from __future__ import annotations

import json
import logging
import time

import httpx

from .config import (
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    MODEL_CACHE_TTL,
    RAYCAST_MODELS_URL,
    Config,
    ModelCacheEntry,
    raycast_headers,
)

log = logging.getLogger(__name__)

FETCH_TIMEOUT = 10.0  # seconds


class ModelFetchError(Exception):
    """Raised when the model list cannot be obtained from upstream.

    ``models`` holds the entries the caller may fall back to, if any.
    """

    def __init__(
        self, message: str, models: dict[str, ModelCacheEntry] | None = None
    ):
        super().__init__(message)
        self.models = models


def _default_models() -> dict[str, ModelCacheEntry]:
    return {
        DEFAULT_MODEL: ModelCacheEntry(model=DEFAULT_MODEL, provider=DEFAULT_PROVIDER)
    }


def _parse_models(body: str) -> dict[str, ModelCacheEntry]:
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ModelFetchError(f"error parsing response: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ModelFetchError("error parsing response: expected a JSON object")
    entries = payload.get("models") or []
    if not isinstance(entries, list):
        raise ModelFetchError("error parsing response: 'models' is not a list")

    models: dict[str, ModelCacheEntry] = {}
    for entry in entries:
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise ModelFetchError("error parsing response: model entry is not an object")
        model = entry.get("model") or ""
        provider = entry.get("provider") or ""
        if not isinstance(model, str) or not isinstance(provider, str):
            raise ModelFetchError("error parsing response: model fields must be strings")
        models[model] = ModelCacheEntry(model=model, provider=provider)
    return models


async def fetch_models(
    config: Config, client: httpx.AsyncClient
) -> dict[str, ModelCacheEntry]:
    """Fetch the model list from upstream, keyed by model name."""
    log.info("Fetching models from Raycast API...")
    try:
        response = await client.get(
            RAYCAST_MODELS_URL,
            headers=raycast_headers(config.raycast_bearer_token),
            timeout=FETCH_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise ModelFetchError(f"error fetching models: {exc}") from exc

    if response.status_code != 200:
        raise ModelFetchError(
            f"raycast api error: {response.status_code} {response.text}"
        )

    body = response.text
    if not body.strip():
        raise ModelFetchError("empty response from Raycast API")

    models = _parse_models(body)
    log.info("Fetched %d models from Raycast API", len(models))
    return models


def provider_info(
    model_id: str, models: dict[str, ModelCacheEntry]
) -> tuple[str, str]:
    """Return (provider, model) for a model id, or the defaults if unknown."""
    entry = models.get(model_id)
    if entry is not None:
        return entry.provider, entry.model
    return DEFAULT_PROVIDER, DEFAULT_MODEL


class ModelCache:
    """Keeps the upstream model list for ``ttl`` seconds."""

    def __init__(self, ttl: float = MODEL_CACHE_TTL):
        self.ttl = ttl
        self._models: dict[str, ModelCacheEntry] = {}
        self._expires_at = time.monotonic()

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    async def get_models(
        self, config: Config, client: httpx.AsyncClient
    ) -> dict[str, ModelCacheEntry]:
        """Return cached models, fetching them again once the cache has expired.

        If fetching fails, expired cached models are returned; with nothing
        cached, ModelFetchError is raised carrying the default model entry.
        """
        if not self.expired and self._models:
            log.debug("Using cached models")
            return dict(self._models)

        try:
            models = await fetch_models(config, client)
        except ModelFetchError as exc:
            log.warning("Error fetching models: %s, using defaults or cached data", exc)
            if self._models:
                log.info("Using expired cached models as fallback")
                return dict(self._models)
            raise ModelFetchError(str(exc), _default_models()) from exc

        self._models = dict(models)
        self._expires_at = time.monotonic() + self.ttl
        log.info("Model cache updated with %d models", len(models))
        return dict(models)

    async def force_refresh(
        self, config: Config, client: httpx.AsyncClient
    ) -> dict[str, ModelCacheEntry]:
        """Expire the cache and fetch again; failures fall back silently."""
        self._expires_at = time.monotonic()
        try:
            return await self.get_models(config, client)
        except ModelFetchError as exc:
            return exc.models or {}