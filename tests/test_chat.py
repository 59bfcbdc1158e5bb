import json

import pytest
import requests

from app.aigency import create_app
from app.aigency.errors import ValidationFailed
from app.aigency.modules.chat import proxy
from app.aigency.modules.chat.proxy import EMPTY_REPLY, data_stream_frame, extract_reply, last_user_message, relay_chunks


class FakeResponse:
    def __init__(self, body="", status=200, content_type="application/json", chunks=None):
        self.text = body
        self.status_code = status
        self.ok = status < 400
        self.headers = {"Content-Type": content_type}
        self._chunks = chunks or []
        self.closed = False

    def iter_content(self, chunk_size=None):
        yield from self._chunks

    def close(self):
        self.closed = True


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CHAT_WEBHOOK_URL", "https://hooks.example.com/chat")
    monkeypatch.setenv("CHAT_TIMEOUT_SECONDS", "5")
    return create_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def webhook(monkeypatch):
    calls = []
    state = {"response": FakeResponse(json.dumps({"output": "Hello there"}))}

    def fake_post(url, json=None, timeout=None, stream=False):
        calls.append({"url": url, "json": json, "timeout": timeout, "stream": stream})
        resp = state["response"]
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(proxy.requests, "post", fake_post)
    state["calls"] = calls
    return state


CONVERSATION = [
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello! How can I help?"},
    {"role": "user", "content": "What does an AI audit cost?"},
]


def test_extract_reply_shapes():
    assert extract_reply("plain") == "plain"
    assert extract_reply({"response": "r"}) == "r"
    assert extract_reply({"output": "o", "text": "t"}) == "t"
    assert extract_reply({"data": {"content": "inner"}}) == "inner"
    assert extract_reply({"data": "inner string"}) == "inner string"
    assert extract_reply(["first", "second"]) == "first"
    assert extract_reply([{"text": "from list"}]) == "from list"
    assert extract_reply([{"error": "boom"}]) == "Error: boom"
    assert extract_reply({"error": {"message": "quota"}}).startswith("I encountered an error: quota.")
    assert extract_reply({"unexpected": 1}) == '{"unexpected": 1}'
    assert extract_reply(None) == ""


def test_last_user_message():
    assert last_user_message(CONVERSATION) == "What does an AI audit cost?"
    with pytest.raises(ValidationFailed):
        last_user_message("nope")
    with pytest.raises(ValidationFailed):
        last_user_message([{"role": "assistant", "content": "hi"}])
    with pytest.raises(ValidationFailed):
        last_user_message([{"role": "user", "content": "   "}])


def test_data_stream_frame():
    assert data_stream_frame('say "hi"') == '0:{"text": "say \\"hi\\""}\n'


def test_chat_forwards_conversation(client, webhook):
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.status_code == 200
    assert r.headers["Content-Type"] == "text/plain; charset=utf-8"
    assert r.headers["X-Vercel-AI-Data-Stream"] == "v1"
    assert r.get_data(as_text=True) == data_stream_frame("Hello there")

    call = webhook["calls"][0]
    assert call["url"] == "https://hooks.example.com/chat"
    assert call["timeout"] == 5.0
    assert call["json"]["message"] == "What does an AI audit cost?"
    assert call["json"]["conversationHistory"] == CONVERSATION[:-1]
    assert call["json"]["timestamp"]


def test_chat_empty_reply_gets_apology(client, webhook):
    webhook["response"] = FakeResponse("   ", content_type="text/plain")
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.get_data(as_text=True) == data_stream_frame(EMPTY_REPLY)
    assert webhook["response"].closed


def test_chat_relays_streams(client, webhook):
    webhook["response"] = FakeResponse(content_type="text/event-stream", chunks=[b"0:\"Hel\"\n", b"0:\"lo\"\n"])
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.status_code == 200
    assert r.get_data() == b"0:\"Hel\"\n0:\"lo\"\n"
    assert webhook["response"].closed


def test_relay_closes_upstream_when_client_leaves():
    upstream = FakeResponse(content_type="text/event-stream", chunks=[b"a", b"b", b"c"])
    chunks = relay_chunks(upstream)
    assert next(chunks) == b"a"
    chunks.close()
    assert upstream.closed


def test_chat_rejects_bad_input(client, webhook):
    r = client.post("/api/chat", json={"messages": [{"role": "assistant", "content": "hi"}]})
    assert r.status_code == 400
    assert r.json["error"] == "messages: No user message provided"
    assert webhook["calls"] == []


def test_chat_upstream_errors(client, webhook):
    webhook["response"] = FakeResponse("rate limited", status=429)
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.status_code == 429
    assert r.json["error"] == "Failed to get response from chat agent"
    assert r.json["errors"] == ["Webhook returned 429: rate limited"]

    webhook["response"] = requests.ConnectionError("refused")
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.status_code == 502
    assert r.json["error"] == "Failed to process chat request"


def test_chat_not_configured(monkeypatch, tmp_path):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("CHAT_WEBHOOK_URL", "")
    client = create_app().test_client()
    r = client.post("/api/chat", json={"messages": CONVERSATION})
    assert r.status_code == 503
