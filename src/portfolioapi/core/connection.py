"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted client socket, owned by one worker for its whole life.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONNECTION LIFECYCLE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ─┐      │
    │              ▲                                                │      │
    │              └────────────────────────────────────────────────┘      │
    │                                                                      │
    │   any state ──► CLOSING ──► CLOSED                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Framing: a request is its header block (up to the first blank line) plus
exactly Content-Length bytes of body. Bytes past that stay in the buffer
for the next request, so pipelined requests are served in order.

    first request on the socket      waits up to ``timeout``
    later requests (keep-alive)      wait up to ``keep_alive_timeout``,
                                     silence there just ends the connection
=============================================================================
"""

import logging
import re
import socket
import time
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


logger = logging.getLogger(__name__)


HEADER_END = b"\r\n\r\n"

_CONTENT_LENGTH_RE = re.compile(rb"^content-length:[ \t]*(\d+)[ \t]*$", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLarge(Exception):
    """More than max_request_size bytes for a single request."""


def declared_body_length(head: bytes) -> int:
    """Content-Length of a raw header block; 0 when absent or unreadable."""
    match = _CONTENT_LENGTH_RE.search(head.replace(b"\r\n", b"\n"))
    return int(match.group(1)) if match else 0


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short tag used in log lines.
        requests_handled: Complete requests read so far.
    """

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 2 * 1024 * 1024

    _pending: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def idle_for(self) -> float:
        return time.time() - self.last_activity

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Next complete request from the socket.

        Returns:
            Raw request bytes, or None when the peer closed the socket or a
            keep-alive wait ran out.

        Raises:
            TimeoutError: Nothing complete arrived for the first request.
            RequestTooLarge: Headers plus declared body exceed the limit.
        """
        self.state = ConnectionState.READING
        waiting_for_first = self.requests_handled == 0
        self.socket.settimeout(self.timeout if waiting_for_first else self.keep_alive_timeout)

        try:
            head_size = self._fill_until_header_end()
            if head_size is None:
                return None

            total = head_size + declared_body_length(bytes(self._pending[:head_size]))
            if total > self.max_request_size:
                raise RequestTooLarge(f"Request of {total} bytes exceeds {self.max_request_size}")

            # a short body is left for the parser to reject
            self._fill_to(total)
        except socket.timeout:
            if waiting_for_first:
                raise TimeoutError("Request read timeout")
            logger.debug(f"[{self.id}] Idle keep-alive connection timed out")
            return None
        finally:
            if self.state is not ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

        raw = bytes(self._pending[:total])
        del self._pending[:total]
        self.requests_handled += 1
        return raw

    def _fill_until_header_end(self) -> Optional[int]:
        """Buffer until the blank line; size of the header block incl. CRLFCRLF."""
        while True:
            index = self._pending.find(HEADER_END)
            if index >= 0:
                return index + len(HEADER_END)
            if len(self._pending) > self.max_request_size:
                raise RequestTooLarge(f"Header block exceeds {self.max_request_size} bytes")
            if not self._receive():
                return None

    def _fill_to(self, size: int) -> None:
        while len(self._pending) < size:
            if not self._receive():
                return

    def _receive(self) -> bool:
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            chunk = b""
        if chunk:
            self._pending.extend(chunk)
            self.last_activity = time.time()
        return bool(chunk)

    # =========================================================================
    # WRITING / CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """Write ``data`` in full. False when the peer is gone."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Could not write response: {e}")
            return False
        self.last_activity = time.time()
        return True

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """Stop writing, drain what the peer still sends, release the socket."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        with suppress(OSError):
            self.socket.shutdown(socket.SHUT_WR)
        with suppress(OSError):
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                continue
        with suppress(OSError):
            self.socket.close()

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Closed {self.client_ip} after {self.requests_handled} request(s)")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
