"""
Line-framed JSON-RPC transport over stdin/stdout.

One JSON value per line in each direction. The parent host may print
banner text on the same pipe, so anything that does not start like JSON is
skipped, and a broken line only earns an error reply when it was clearly
meant as JSON-RPC.

By default the raw byte streams behind stdin/stdout are used, so the wire is
always UTF-8 whatever the console code page says.
"""

import io
import json
import logging
import sys
import threading
from typing import IO, Any, Iterator, Optional

from .protocol import INTERNAL_ERROR, failure

logger = logging.getLogger(__name__)


def looks_like_json(text: str) -> bool:
    return text.startswith("{") or text.startswith("[")


def should_answer_parse_error(line: str) -> bool:
    """Only lines that carry JSON-RPC markers get an error reply."""
    return '"jsonrpc"' in line or '"method"' in line


class LineTransport:
    """
    Reads requests from and writes envelopes to a pair of streams.

    Either binary or text streams are accepted. Bytes are decoded as UTF-8
    with invalid sequences replaced, so a corrupt line becomes noise or a
    parse error instead of an exception.
    """

    def __init__(self, instream: Optional[IO] = None, outstream: Optional[IO] = None):
        self._in = instream if instream is not None else getattr(sys.stdin, "buffer", sys.stdin)
        self._out = outstream if outstream is not None else getattr(sys.stdout, "buffer", sys.stdout)
        self._write_lock = threading.Lock()
        self._closed = False

    def _read_line(self) -> str:
        try:
            raw = self._in.readline()
        except UnicodeDecodeError as e:
            logger.warning(f"Undecodable input line dropped: {e}")
            return "\n"
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw

    def messages(self) -> Iterator[Any]:
        """
        Yield decoded JSON values until the input stream closes.

        Malformed lines that look like JSON-RPC are answered here with an
        "Internal error" envelope (id "error"); all other noise is dropped.
        """
        for raw in iter(self._read_line, ""):
            if self._closed:
                break
            line = raw.strip()
            if not line or not looks_like_json(line):
                if line:
                    logger.debug(f"Ignoring non-JSON input: {line[:50]}")
                continue

            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON received ({e}): {line[:100]}")
                if should_answer_parse_error(line):
                    self.send(failure("error", INTERNAL_ERROR, "Internal error"))
                continue

            yield message

        logger.info("Input stream closed")

    def send(self, envelope: Any) -> None:
        """Write one envelope (or batch array) as a compact JSON line."""
        line = json.dumps(envelope, separators=(",", ":"), ensure_ascii=False) + "\n"
        with self._write_lock:
            if isinstance(self._out, io.TextIOBase):
                try:
                    self._out.write(line)
                except UnicodeEncodeError:
                    # Narrow console encoding: fall back to \u escapes
                    self._out.write(json.dumps(envelope, separators=(",", ":")) + "\n")
            else:
                self._out.write(line.encode("utf-8"))
            self._out.flush()

    def close(self) -> None:
        """Stop yielding messages after the line currently being read."""
        self._closed = True
