"""
TCP listener: bind, listen, accept, hand each connection to a callback.

    start(handler)
        ├── create_server()  SO_REUSEADDR, TCP_NODELAY, backlog
        ├── SIGINT / SIGTERM → shutdown()   (main thread only)
        └── accept loop, waking every second to notice shutdown()
                └── handler(Connection(...))
"""

import logging
import signal
import socket
import threading
from contextlib import suppress
from typing import Callable, Dict, Optional, Tuple

from ..config import AppConfig
from .connection import Connection


logger = logging.getLogger(__name__)


ACCEPT_POLL_SECONDS = 1.0


class SocketServer:

    def __init__(self, config: AppConfig):
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._running = False
        self._stopped = threading.Event()
        self._previous_handlers: Dict[int, object] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured pair before start()."""
        if self._listener is not None:
            return self._listener.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _listen(self) -> socket.socket:
        endpoint = (self.config.host, self.config.port)
        try:
            listener = socket.create_server(endpoint, backlog=self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {endpoint[0]}:{endpoint[1]}: {e}")
            raise
        listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        listener.settimeout(ACCEPT_POLL_SECONDS)
        return listener

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return

        def on_signal(signum, frame):
            logger.info(f"{signal.Signals(signum).name} received, stopping")
            self.shutdown()

        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[signum] = signal.signal(signum, on_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler)

    def start(self, on_connection: Callable[[Connection], None]) -> None:
        """Listen and dispatch connections until shutdown(). Blocks."""
        self._running = True
        self._stopped.clear()
        try:
            self._listener = self._listen()
        except OSError:
            self._running = False
            raise
        self._install_signal_handlers()
        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

        try:
            while self._running:
                try:
                    client, peer = self._listener.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self._running:
                        logger.error(f"accept() failed: {e}")
                    break
                logger.debug(f"Connection from {peer[0]}:{peer[1]}")
                on_connection(self._wrap(client, peer))
        finally:
            self._restore_signal_handlers()
            with suppress(OSError):
                self._listener.close()
            self._listener = None
            self._running = False
            logger.info("Listener closed")

    def _wrap(self, client: socket.socket, peer: Tuple[str, int]) -> Connection:
        return Connection(
            socket=client,
            address=peer,
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )

    def shutdown(self) -> None:
        """Stop accepting. Safe from any thread, and more than once."""
        self._running = False
        self._stopped.set()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)
