from __future__ import annotations

from flask import Blueprint, Response, current_app, g, stream_with_context

from app.aigency.errors import ActionError
from app.aigency.modules.chat.proxy import (
    EMPTY_REPLY,
    build_payload,
    data_stream_frame,
    extract_reply,
    forward,
    is_streaming,
    last_user_message,
    parse_body,
    read_body,
    relay_chunks,
)
from app.aigency.security import csrf_exempt
from app.aigency.utils import request_payload

bp = Blueprint("chat", __name__)


@bp.post("/chat")
@csrf_exempt
def chat_post():
    url = current_app.config.get("CHAT_WEBHOOK_URL")
    if not url:
        raise ActionError("Chat is not configured.", status_code=503)

    messages = request_payload().get("messages")
    message = last_user_message(messages)
    resp = forward(url, build_payload(messages, message), current_app.config["CHAT_TIMEOUT_SECONDS"])

    if is_streaming(resp):
        current_app.logger.info("Relaying streamed chat reply (request_id=%s)", getattr(g, "request_id", None))
        return Response(
            stream_with_context(relay_chunks(resp)),
            content_type=resp.headers.get("Content-Type"),
            headers={"Cache-Control": "no-cache"},
        )

    reply = extract_reply(parse_body(read_body(resp))).strip() or EMPTY_REPLY
    return Response(
        data_stream_frame(reply),
        content_type="text/plain; charset=utf-8",
        headers={"X-Vercel-AI-Data-Stream": "v1", "Cache-Control": "no-cache"},
    )
