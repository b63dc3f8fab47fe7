"""Conversion between OpenAI-style chat payloads and the upstream format."""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import partial

log = logging.getLogger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = "markdown"
DONE_EVENT = "data: [DONE]\n\n"

_compact_json = partial(json.dumps, ensure_ascii=False, separators=(",", ":"))


@dataclass
class ConvertedMessages:
    """Upstream messages plus the system instruction taken from the request."""

    messages: list[dict] = field(default_factory=list)
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION


def _text_parts(content: list) -> str:
    return "".join(
        part["text"]
        for part in content
        if isinstance(part, dict)
        and part.get("type") == "text"
        and isinstance(part.get("text"), str)
    )


def convert_messages(messages: list[dict]) -> ConvertedMessages:
    """Turn OpenAI chat messages into upstream messages.

    A system message in first position becomes the system instruction; later
    system messages and other roles are dropped.
    """
    result = ConvertedMessages()
    for position, message in enumerate(messages):
        role = message.get("role")
        content = message.get("content")
        if role == "system" and position == 0:
            if isinstance(content, str):
                result.system_instruction = content
            elif isinstance(content, list):
                text = _text_parts(content)
                if text:
                    result.system_instruction = text
        elif role in ("user", "assistant"):
            if isinstance(content, str):
                text = content
            elif isinstance(content, list):
                text = _text_parts(content)
            else:
                text = ""
            result.messages.append({"author": role, "content": {"text": text}})
    return result


def _decode_sse_data(data: str) -> tuple[str, str] | None:
    """Return (text, finish_reason) from an SSE data payload, or None if invalid."""
    try:
        payload = json.loads(data)
        if payload is None:
            return "", ""
        if not isinstance(payload, dict):
            raise ValueError("SSE data is not an object")
        text = payload.get("text") or ""
        finish_reason = payload.get("finish_reason") or ""
        if not isinstance(text, str) or not isinstance(finish_reason, str):
            raise ValueError("SSE data holds non-string fields")
    except ValueError as exc:
        log.warning("Failed to parse SSE data: %s", exc)
        return None
    return text, finish_reason


def _data_lines(text: str):
    for line in text.split("\n"):
        if line.startswith("data:"):
            yield line[len("data:"):].strip()


def parse_sse_response(text: str) -> str:
    """Join the text of every data event in an SSE body."""
    pieces = []
    for data in _data_lines(text):
        decoded = _decode_sse_data(data)
        if decoded is not None:
            pieces.append(decoded[0])
    return "".join(pieces)


def build_raycast_request(
    converted: ConvertedMessages,
    model: str,
    provider: str,
    temperature: float,
    thread_id: str,
) -> dict:
    """Build the upstream chat request body."""
    return {
        "additional_system_instructions": "",
        "debug": False,
        "locale": "en-US",
        "messages": converted.messages,
        "model": model,
        "provider": provider,
        "source": "ai_chat",
        "system_instruction": converted.system_instruction,
        "temperature": temperature,
        "thread_id": thread_id,
        "tools": [],
    }


def _completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


def build_chat_completion(text: str, model: str) -> dict:
    """Build a complete OpenAI chat completion response."""
    return {
        "id": _completion_id(),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": text,
                    "refusal": None,
                    "annotations": [],
                },
                "logprobs": None,
                "finish_reason": "length",
            }
        ],
        "usage": {
            "prompt_tokens": 10,
            "completion_tokens": 10,
            "total_tokens": 20,
            "prompt_tokens_details": {"cached_tokens": 0, "audio_tokens": 0},
            "completion_tokens_details": {
                "reasoning_tokens": 0,
                "audio_tokens": 0,
                "accepted_prediction_tokens": 0,
                "rejected_prediction_tokens": 0,
            },
        },
        "service_tier": "default",
        "system_fingerprint": "fp_b376dfbbd5",
    }


def build_stream_chunk(text: str, finish_reason: str, model: str) -> dict:
    """Build one OpenAI streaming chunk."""
    return {
        "id": _completion_id(),
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "delta": {"content": text},
                "finish_reason": finish_reason,
            }
        ],
    }


class StreamTranslator:
    """Turns upstream SSE text into OpenAI streaming events.

    Text is fed in any pieces; events are released once a block of lines
    ends with an empty line. An unterminated tail is dropped on finish.
    """

    def __init__(self, model: str):
        self.model = model
        self._partial = ""
        self._block = ""

    def feed(self, line: str) -> list[str]:
        """Take more upstream text and return the SSE events now ready."""
        self._partial += line
        events: list[str] = []
        while (end := self._partial.find("\n")) != -1:
            complete = self._partial[: end + 1]
            self._partial = self._partial[end + 1:]
            self._block += complete
            if self._block.endswith("\n\n"):
                block, self._block = self._block, ""
                events.extend(self._translate(block))
        return events

    def finish(self) -> list[str]:
        """Discard unterminated input and return the closing event."""
        self._partial = ""
        self._block = ""
        return [DONE_EVENT]

    def _translate(self, block: str) -> list[str]:
        events = []
        for line in block.split("\n"):
            if not line.strip() or not line.startswith("data:"):
                continue
            decoded = _decode_sse_data(line[len("data:"):].strip())
            if decoded is None:
                continue
            chunk = build_stream_chunk(decoded[0], decoded[1], self.model)
            events.append(f"data: {_compact_json(chunk)}\n\n")
        return events