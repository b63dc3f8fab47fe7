"""Settings, client authentication and upstream request headers."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

RAYCAST_API_URL = "https://backend.raycast.com/api/v1/ai/chat_completions"
RAYCAST_MODELS_URL = "https://backend.raycast.com/api/v1/ai/models"
USER_AGENT = "Raycast/1.99.2 (macOS Version 15.5 (Build 24F74))"
DEFAULT_PROVIDER = "anthropic"
DEFAULT_MODEL = "claude-3-7-sonnet-latest"
MODEL_CACHE_TTL = 6 * 60 * 60.0  # seconds
DEFAULT_PORT = "8080"


class ConfigError(Exception):
    """Raised when the environment does not hold a usable configuration."""


@dataclass(frozen=True)
class Config:
    """Runtime settings of the relay."""

    raycast_bearer_token: str = field(repr=False)
    api_key: str = field(default="", repr=False)
    port: str = DEFAULT_PORT


@dataclass(frozen=True)
class ModelCacheEntry:
    """A model known upstream and the provider that serves it."""

    model: str
    provider: str


def error_body(message: str, kind: str, details: str = "") -> dict:
    """Build an OpenAI-style error payload; empty details are left out."""
    error = {"message": message, "type": kind}
    if details:
        error["details"] = details
    return {"error": error}


def validate_api_key(authorization: str | None, api_key: str) -> bool:
    """Check an Authorization header against a comma-separated list of keys.

    An empty ``api_key`` lets every request through.
    """
    if not api_key:
        return True
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        return False
    presented = authorization[len(prefix):]
    return any(key.strip() == presented for key in api_key.split(","))


def raycast_headers(token: str) -> dict[str, str]:
    """Headers sent with every request to the upstream service."""
    return {
        "Host": "backend.raycast.com",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
        "Authorization": "Bearer " + token,
        "Accept-Language": "en-US,en;q=0.9",
        "Content-Type": "application/json",
        "Connection": "close",
    }


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Read the configuration from environment variables."""
    env = os.environ if environ is None else environ
    token = env.get("RAYCAST_BEARER_TOKEN", "")
    api_key = env.get("API_KEY", "")
    port = env.get("PORT", "")

    log.info("RAYCAST_BEARER_TOKEN: %s", "Set" if token else "Not set")
    log.info("API_KEY: %s", "Set" if api_key else "Not set")

    if not token:
        raise ConfigError(
            "Missing required environment variable: RAYCAST_BEARER_TOKEN"
        )
    return Config(
        raycast_bearer_token=token,
        api_key=api_key,
        port=port or DEFAULT_PORT,
    )