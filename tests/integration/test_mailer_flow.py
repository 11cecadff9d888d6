"""
End-to-end mailer scenarios over in-memory stdio.

The Gmail API is mocked at the client module; the control plane and the
sibling token fetch use real loopback sockets.
"""

import base64
import email
import io
import json
import time
from email import policy
from unittest.mock import Mock, patch

import pytest

from leedz_bridge.core.control_plane import ControlPlane, Role
from leedz_bridge.core.lifecycle import run_daemon
from leedz_bridge.core.token_store import TokenStore
from leedz_bridge.core.transport import LineTransport
from leedz_bridge.providers.gmail_client import GmailClient
from leedz_bridge.servers.mailer import MailerServer

GMAIL_REQUESTS = "leedz_bridge.providers.gmail_client.requests"
BASE = "https://gmail.googleapis.com/gmail/v1/users/me"


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000.0

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch):
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")


@pytest.fixture
def gmail_http():
    with patch(GMAIL_REQUESTS) as mocked:
        mocked.get.return_value = _response(200, {"emailAddress": "me@leedz.com"})
        mocked.post.return_value = _response(200, {"id": "msg-123"})
        yield mocked


def _response(status, payload):
    response = Mock()
    response.status_code = status
    response.json.return_value = payload
    response.text = json.dumps(payload)
    return response


def _build(clock=None, port=0):
    gmail = GmailClient()
    store = TokenStore(probe=gmail.check_token, probe_interval=3600, clock=clock or FakeClock())
    plane = ControlPlane("gmail-mcp", "1.0.0", token_store=store, port=port)
    server = MailerServer(store, gmail, control_plane=plane)
    return server, plane, store


def _call(request_id, arguments):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": "gmail_send", "arguments": arguments},
    }


def _run(server, plane, messages):
    stdin = io.StringIO("".join(json.dumps(m) + "\n" for m in messages))
    stdout = io.StringIO()
    run_daemon(
        server,
        plane,
        transport=LineTransport(stdin, stdout),
        cleanup=[server.token_store.shutdown],
    )
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


def _deposit(plane, token="ya29.valid"):
    response = plane.route("POST", "/gmail-authorize", json.dumps({"token": token}).encode())
    assert response.status == 200


def _decode(raw):
    data = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    return data, email.message_from_bytes(data, policy=policy.default)


class TestSendScenarios:
    """Send and draft through the full stdio stack."""

    def test_send_without_attachment(self, gmail_http):
        server, plane, _ = _build()
        _deposit(plane)

        replies = _run(server, plane, [_call(1, {"to": "a@b.c", "subject": "Hi", "body": "Hello"})])

        assert len(replies) == 1
        text = replies[0]["result"]["content"][0]["text"]
        assert text == "Email sent successfully to a@b.c. Message ID: msg-123"

        assert gmail_http.post.call_count == 1
        args, kwargs = gmail_http.post.call_args
        assert args[0] == f"{BASE}/messages/send"
        assert list(kwargs["json"]) == ["raw"]
        assert kwargs["headers"]["Authorization"] == "Bearer ya29.valid"

        data, parsed = _decode(kwargs["json"]["raw"])
        assert data.startswith(b"To: a@b.c\r\nSubject: Hi\r\nMIME-Version: 1.0\r\n")
        assert list(parsed.keys()) == ["To", "Subject", "MIME-Version", "Content-Type"]
        assert parsed.get_content().strip() == "Hello"

    def test_draft_with_attachment(self, gmail_http):
        gmail_http.post.return_value = _response(200, {"id": "r-77", "message": {"id": "m"}})
        server, plane, _ = _build()
        _deposit(plane)

        replies = _run(
            server,
            plane,
            [
                _call(
                    2,
                    {
                        "to": "x@y.z",
                        "subject": "S",
                        "body": "B",
                        "draft": True,
                        "attachments": [
                            {"filename": "r.pdf", "content": "JVBERi0=", "contentType": "application/pdf"}
                        ],
                    },
                )
            ],
        )

        assert replies[0]["result"]["content"][0]["text"].startswith("Draft created successfully")
        args, kwargs = gmail_http.post.call_args
        assert args[0] == f"{BASE}/drafts"
        _, parsed = _decode(kwargs["json"]["message"]["raw"])
        assert parsed.get_content_type() == "multipart/mixed"
        assert len(list(parsed.iter_parts())) == 2


class TestTokenScenarios:
    """Expired and revoked tokens."""

    def test_expired_token(self, gmail_http):
        clock = FakeClock()
        server, plane, _ = _build(clock=clock)
        _deposit(plane)
        clock.now += 61 * 60

        replies = _run(server, plane, [_call(3, {"to": "a@b.c", "subject": "Hi", "body": "Hello"})])

        assert replies[0]["error"]["code"] == -32001
        gmail_http.post.assert_not_called()

    def test_provider_401_clears_token(self, gmail_http):
        gmail_http.post.return_value = _response(401, {"error": {"message": "Invalid Credentials"}})
        server, plane, store = _build()
        _deposit(plane)
        assert store.probe_active is True

        replies = _run(server, plane, [_call(4, {"to": "a@b.c", "subject": "Hi", "body": "Hello"})])

        assert replies[0]["error"]["code"] == -32001
        assert plane.route("GET", "/health").payload["tokenValid"] is False
        assert store.probe_active is False


class TestSiblingScenario:
    """A second mailer process borrows the primary's token."""

    def test_secondary_fetches_token(self, gmail_http):
        primary_server, primary_plane, primary_store = _build(clock=time.time)
        assert primary_plane.start() is Role.PRIMARY
        try:
            _deposit(primary_plane, "ya29.primary")

            secondary_server, secondary_plane, secondary_store = _build(
                clock=time.time, port=primary_plane.port
            )

            replies = _run(
                secondary_server,
                secondary_plane,
                [_call(5, {"to": "a@b.c", "subject": "Hi", "body": "Hello"})],
            )

            assert secondary_plane.role is Role.SECONDARY
            assert replies[0]["result"]["content"][0]["text"].startswith("Email sent successfully to a@b.c")
            assert gmail_http.post.call_args.kwargs["headers"]["Authorization"] == "Bearer ya29.primary"
            copied = secondary_store.current()
            assert copied.value == "ya29.primary"
            assert copied.expires_at == pytest.approx(primary_store.current().expires_at, abs=0.001)
        finally:
            primary_plane.stop()
            primary_store.shutdown()


class TestProtocolOverStdio:
    def test_handshake_and_noise(self, gmail_http):
        server, plane, _ = _build()
        stdin_messages = [
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        ]
        stdin = io.StringIO(
            "Gmail MCP booting\n"
            + "\n".join(json.dumps(m) for m in stdin_messages)
            + '\n{"jsonrpc":"2.0","id":3,"method":\n'
        )
        stdout = io.StringIO()

        assert run_daemon(server, None, transport=LineTransport(stdin, stdout)) == 0

        replies = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert [r["id"] for r in replies] == [1, 2, "error"]
        assert replies[0]["result"]["serverInfo"] == {"name": "gmail-mcp", "version": "1.0.0"}
        assert replies[1]["result"]["tools"][0]["name"] == "gmail_send"
        assert replies[2]["error"] == {"code": -32603, "message": "Internal error"}
