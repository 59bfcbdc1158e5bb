"""
Relay chat turns to the workflow-automation webhook and normalise its reply.

The webhook answers in whatever shape its workflow happens to produce
(plain text, a JSON object, a list of items, or a stream). extract_reply()
turns the non-streaming shapes into one string for the chat widget.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

import requests

from app.aigency.errors import ActionError, UpstreamError, ValidationFailed

logger = logging.getLogger(__name__)

EMPTY_REPLY = "I received your message but got an empty response from the agent."
REPLY_KEYS = ("message", "response", "text", "content", "answer", "output")
DATA_KEYS = ("message", "text", "content")


def last_user_message(messages: Any) -> str:
    if not isinstance(messages, list):
        raise ValidationFailed(["messages: Invalid messages format"])
    last = messages[-1] if messages else None
    content = last.get("content") if isinstance(last, dict) and last.get("role") == "user" else None
    if not isinstance(content, str) or not content.strip():
        raise ValidationFailed(["messages: No user message provided"])
    return content


def build_payload(messages: list[dict], message: str) -> dict[str, Any]:
    return {
        "message": message,
        "messages": messages,
        "conversationHistory": messages[:-1],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _error_text(err: Any) -> str:
    if isinstance(err, str):
        return err
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    return json.dumps(err)


def extract_reply(data: Any) -> str:
    if isinstance(data, dict) and data.get("error"):
        return (
            f"I encountered an error: {_error_text(data['error'])}. "
            "Please try again or contact support if the issue persists."
        )
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        first = data[0] if data else None
        if isinstance(first, str):
            return first
        if isinstance(first, dict):
            if first.get("error"):
                return f"Error: {_error_text(first['error'])}"
            for key in ("message", "text", "content"):
                if first.get(key):
                    return str(first[key])
            return json.dumps(first)
        return json.dumps(data)
    if isinstance(data, dict):
        for key in REPLY_KEYS:
            if data.get(key):
                return str(data[key])
        inner = data.get("data")
        if isinstance(inner, dict):
            for key in DATA_KEYS:
                if inner.get(key):
                    return str(inner[key])
            return json.dumps(inner)
        if isinstance(inner, str) and inner:
            return inner
        return json.dumps(data)
    if data is None:
        return ""
    return str(data)


def parse_body(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def data_stream_frame(text: str) -> str:
    """One AI-SDK data stream text frame: `0:{"text": ...}` plus newline."""
    return "0:" + json.dumps({"text": text}) + "\n"


def forward(url: str, payload: dict[str, Any], timeout: float) -> requests.Response:
    try:
        resp = requests.post(url, json=payload, timeout=timeout, stream=True)
    except requests.RequestException as e:
        logger.error("Chat webhook request failed: %s", e)
        raise UpstreamError("Failed to process chat request") from e

    if not resp.ok:
        body = (resp.text or "")[:500]
        resp.close()
        logger.error("Chat webhook error: status=%s body=%s", resp.status_code, body[:200])
        raise ActionError(
            "Failed to get response from chat agent",
            errors=[f"Webhook returned {resp.status_code}: {body}"],
            status_code=resp.status_code or 500,
        )
    return resp


def is_streaming(resp: requests.Response) -> bool:
    return "stream" in (resp.headers.get("Content-Type") or "").lower()


def relay_chunks(resp: requests.Response) -> Iterator[bytes]:
    """Yield upstream chunks; the connection is released even if the client goes away."""
    try:
        yield from resp.iter_content(chunk_size=None)
    finally:
        resp.close()


def read_body(resp: requests.Response) -> str:
    try:
        return resp.text
    finally:
        resp.close()
