"""
Loopback HTTP control plane shared by the tool servers.

Browser extension traffic (token deposit, health checks) and sibling
instances (token sharing) talk to the daemon here. Only one process can own
the port: the first one becomes PRIMARY, later ones run as SECONDARY and
pull the token from the primary through GET /token.
"""

import errno
import json
import logging
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .token_store import TokenStore, TokenValidationError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


_ADDRESS_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


class _LoopbackServer(ThreadingHTTPServer):
    # On Windows SO_REUSEADDR lets a second process steal a bound port
    allow_reuse_address = sys.platform != "win32"
    daemon_threads = True


class Role(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class ControlResponse:
    status: int
    payload: Optional[Dict[str, Any]] = field(default=None)


class ControlPlane:
    """
    Routes control requests and owns the HTTP listener.

    Args:
        service: Service name reported by /health
        version: Version reported by /health
        token_store: Token store to expose, or None for a health-only plane
        host: Bind address (loopback)
        port: Bind port; 0 picks a free one
    """

    def __init__(
        self,
        service: str,
        version: str,
        token_store: Optional[TokenStore] = None,
        host: str = "127.0.0.1",
        port: int = 3001,
    ):
        self.service = service
        self.version = version
        self.token_store = token_store
        self.host = host
        self.port = port
        self.role: Optional[Role] = None
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    # -- routing --------------------------------------------------------------

    def route(self, method: str, path: str, body: bytes = b"") -> ControlResponse:
        method = method.upper()
        path = urlparse(path).path

        if method == "OPTIONS":
            return ControlResponse(HTTPStatus.OK)
        if method == "GET" and path == "/health":
            return self._health()
        if self.token_store is not None:
            if method == "GET" and path == "/token":
                return self._share_token()
            if method == "POST" and path == "/gmail-authorize":
                return self._authorize(body)

        return ControlResponse(HTTPStatus.NOT_FOUND, {"error": "Not found"})

    def _health(self) -> ControlResponse:
        token = self.token_store.current() if self.token_store else None
        logger.debug(f"Health check - token valid: {token is not None}")
        return ControlResponse(
            HTTPStatus.OK,
            {
                "status": "ok",
                "service": self.service,
                "version": self.version,
                "tokenValid": token is not None,
                "tokenExpiry": token.expiry_iso if token else None,
            },
        )

    def _share_token(self) -> ControlResponse:
        token = self.token_store.current()
        if token is None:
            return ControlResponse(HTTPStatus.NOT_FOUND, {"error": "No valid token"})
        logger.info("Shared token with sibling instance")
        return ControlResponse(HTTPStatus.OK, {"token": token.value, "expiry": token.expiry_iso})

    def _authorize(self, body: bytes) -> ControlResponse:
        try:
            data = json.loads(body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Error parsing authorize request: {e}")
            return ControlResponse(HTTPStatus.BAD_REQUEST, {"error": "Invalid JSON"})

        value = data.get("token") if isinstance(data, dict) else None
        if not isinstance(value, str) or not value.strip():
            return ControlResponse(HTTPStatus.BAD_REQUEST, {"error": "Missing token"})

        try:
            token = self.token_store.authorize(value.strip())
        except TokenValidationError as e:
            return ControlResponse(
                HTTPStatus.UNAUTHORIZED,
                {"error": "Token validation failed", "detail": str(e)},
            )

        return ControlResponse(
            HTTPStatus.OK,
            {"success": True, "expiresAt": token.expiry_iso, "validated": True},
        )

    # -- lifecycle ------------------------------------------------------------

    def start(self) -> Role:
        """
        Bind the port and serve on a background thread.

        Returns:
            Role.PRIMARY if the port was bound, Role.SECONDARY if another
            process already owns it.
        """
        try:
            server = _LoopbackServer((self.host, self.port), _make_handler(self))
        except OSError as e:
            if e.errno in _ADDRESS_IN_USE:
                logger.warning(
                    f"Port {self.port} already in use, running as secondary instance"
                )
                self.role = Role.SECONDARY
                return self.role
            raise

        self._server = server
        self.port = server.server_address[1]
        self._thread = threading.Thread(
            target=server.serve_forever, name="control-plane", daemon=True
        )
        self._thread.start()
        self.role = Role.PRIMARY
        logger.info(f"HTTP control plane listening on http://{self.host}:{self.port}")
        return self.role

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            logger.info("HTTP control plane stopped")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def _make_handler(plane: ControlPlane):
    class ControlRequestHandler(BaseHTTPRequestHandler):
        server_version = "LeedzBridge"

        def _dispatch(self, method: str) -> None:
            body = b""
            length = int(self.headers.get("Content-Length", "0") or "0")
            if length > 0:
                body = self.rfile.read(length)
            response = plane.route(method, self.path, body)
            self._send(response)

        def _send(self, response: ControlResponse) -> None:
            data = b""
            if response.payload is not None:
                data = json.dumps(response.payload).encode("utf-8")
            self.send_response(response.status)
            for name, value in CORS_HEADERS.items():
                self.send_header(name, value)
            if response.payload is not None:
                self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def do_GET(self):
            self._dispatch("GET")

        def do_POST(self):
            self._dispatch("POST")

        def do_OPTIONS(self):
            self._dispatch("OPTIONS")

        def do_PUT(self):
            self._dispatch("PUT")

        def do_DELETE(self):
            self._dispatch("DELETE")

        def log_message(self, format, *args):
            # stderr is reserved for warnings; access lines go to the log file
            logger.debug("%s - %s", self.address_string(), format % args)

    return ControlRequestHandler
