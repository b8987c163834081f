"""
=============================================================================
HTTP SERVER
=============================================================================

Puts the API on a socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ──accept──► Connection ──submit──► ThreadPool        │
    │                                                        │             │
    │                                                        ▼             │
    │                                      worker: keep-alive loop        │
    │                                        read_request()                │
    │                                        RequestParser.parse()         │
    │                                        app.handle(request)           │
    │                                        send_response()               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Failures outside the application answer with the error envelope and close
the connection:

    malformed request        400 / 405 / 505   (HTTPParseError)
    request too large        413
    first request too slow   408
    pool queue full          503 "Server overloaded"

SIGINT / SIGTERM stop the accept loop; in-flight requests get up to 30s to
finish before the pool is torn down.
=============================================================================
"""

import logging
import logging.handlers
from typing import Optional

from .app import PortfolioApp
from .config import AppConfig
from .core import Connection, ConnectionState, RequestTooLarge, SocketServer, ThreadPool
from .http.request import HTTPParseError, RequestParser
from .http.response import error
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: AppConfig) -> None:
    """
    Configure the root logger from LOG_LEVEL and LOG_FILE.

    With a log file, records are also written there and rotated at
    midnight, keeping 30 days.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.handlers.TimedRotatingFileHandler(
            config.log_file, when="midnight", backupCount=30, encoding="utf-8",
        ))
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT,
                        handlers=handlers, force=True)
    logging.getLogger("portfolioapi").setLevel(level)


class HTTPServer:
    """
    Thread-pool HTTP/1.1 server for a PortfolioApp.

        app = create_app(config)
        HTTPServer(app).run()
    """

    SHUTDOWN_TIMEOUT = 30.0

    def __init__(self, app: PortfolioApp, config: Optional[AppConfig] = None):
        self.app = app
        self.config = config or app.config
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """Serve until interrupted. Blocks."""
        self._running = True
        self._thread_pool.start()
        logger.info(
            f"{self.config.server_name} serving on http://{self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )
        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask the accept loop to stop; run() then shuts down."""
        self._socket_server.shutdown()

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.SHUTDOWN_TIMEOUT)
        self.app.close()
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
        )
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection from {conn.client_ip}")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Rejected malformed request: {e.message}")
                        self._send_error(conn, HTTPStatus(e.status_code), e.message)
                        break

                    conn.state = ConnectionState.PROCESSING
                    response = self.app.handle(request)

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break
                    if not keep_alive or response.headers.get("Connection") == "close":
                        break
                    conn.set_keep_alive()

                except RequestTooLarge as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request entity too large")
                    break

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str) -> None:
        response = error(message, status=status, headers={"Connection": "close"})
        conn.send_response(response.to_bytes(self.config.server_name))
