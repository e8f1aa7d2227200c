"""One-shot local HTTP listener for the OAuth redirect.

The browser is redirected to ``http://localhost:<port>/<path>?code=...`` once
the user signs in. The listener captures that single code and hands it to the
waiting caller through a one-shot future.

Example:
    >>> with CallbackListener.from_redirect_uri("http://localhost:8080/callback") as listener:
    ...     print("Open the sign-in URL in your browser")
    ...     code = listener.await_authorization_code(timeout=300)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlsplit

from kindle_sender.azure.exceptions import AuthError, CodeNotReceivedError

logger = logging.getLogger(__name__)

SUCCESS_PAGE = b"<html><body>You can close this tab and return to the CLI.</body></html>"
FAILURE_PAGE = b"<html><body>Sign-in failed. Check the CLI for details.</body></html>"


class CodeHandoff:
    """Single-use slot carrying the authorization code to one consumer.

    The first ``deliver`` or ``fail`` wins; later calls are ignored. The
    result can be taken exactly once.
    """

    def __init__(self):
        self._future: Future[str] = Future()
        self._lock = threading.Lock()
        self._taken = False

    @property
    def done(self) -> bool:
        return self._future.done()

    def deliver(self, code: str) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_result(code)
            return True

    def fail(self, error: AuthError) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._future.set_exception(error)
            return True

    def take(self, timeout: float | None = None) -> str:
        """Block until the code arrives and hand it over.

        Raises:
            CodeNotReceivedError: On timeout or if the code was already taken.
            AuthError: If the redirect reported an error.
        """
        with self._lock:
            if self._taken:
                raise CodeNotReceivedError("authorization code already consumed")
            self._taken = True

        try:
            return self._future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise CodeNotReceivedError(f"no redirect within {timeout:g} seconds") from e


class _CallbackServer(HTTPServer):
    allow_reuse_address = True

    def __init__(self, address, callback_path: str, handoff: CodeHandoff, expected_state: str | None):
        self.callback_path = callback_path
        self.handoff = handoff
        self.expected_state = expected_state
        super().__init__(address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def do_GET(self):
        url = urlsplit(self.path)
        if url.path.rstrip("/") != self.server.callback_path.rstrip("/"):
            self._reply(404, b"Not found")
            return

        params = parse_qs(url.query)
        code = _first(params, "code")
        error = _first(params, "error")

        if self.server.expected_state and _first(params, "state") != self.server.expected_state:
            logger.warning("Ignoring OAuth redirect with unexpected state")
            self._reply(400, FAILURE_PAGE)
            return

        if error:
            description = _first(params, "error_description") or error
            self.server.handoff.fail(AuthError(f"Authorization failed: {description}"))
            self._reply(200, FAILURE_PAGE)
            return

        if not code:
            self._reply(400, FAILURE_PAGE)
            return

        if self.server.handoff.deliver(code):
            logger.debug("Authorization code received")
        self._reply(200, SUCCESS_PAGE)

    def _reply(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("callback: " + format, *args)


def _first(params: dict[str, list[str]], key: str) -> str | None:
    values = params.get(key)
    return values[0] if values else None


class CallbackListener:
    """Local HTTP endpoint that captures one authorization code.

    Use as a context manager: the port is bound on enter and released on
    exit. The server runs on a daemon thread; only the handoff is shared
    with the caller.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8080,
        path: str = "/callback",
        expected_state: str | None = None,
    ):
        self.host = host
        self.requested_port = port
        self.path = path or "/"
        self.expected_state = expected_state

        self._handoff = CodeHandoff()
        self._server: _CallbackServer | None = None
        self._thread: threading.Thread | None = None
        self._waiting = False
        self._wait_lock = threading.Lock()

    @classmethod
    def from_redirect_uri(cls, redirect_uri: str, expected_state: str | None = None) -> CallbackListener:
        """Create a listener matching the host, port and path of a redirect URI."""
        url = urlsplit(redirect_uri)
        if url.scheme != "http":
            raise AuthError(f"Redirect URI must be a plain http://localhost URL: {redirect_uri}")
        return cls(
            host=url.hostname or "localhost",
            port=url.port or 80,
            path=url.path or "/",
            expected_state=expected_state,
        )

    @property
    def port(self) -> int:
        """Port actually bound (differs from the requested one when it was 0)."""
        if self._server is None:
            return self.requested_port
        return self._server.server_address[1]

    @property
    def running(self) -> bool:
        return self._server is not None

    def start(self) -> None:
        if self._server is not None:
            return

        bind_host = "127.0.0.1" if self.host == "localhost" else self.host
        try:
            self._server = _CallbackServer(
                (bind_host, self.requested_port), self.path, self._handoff, self.expected_state
            )
        except OSError as e:
            raise AuthError(f"Cannot listen on {bind_host}:{self.requested_port}: {e}") from e

        self._thread = threading.Thread(
            target=self._server.serve_forever, name="oauth-callback", daemon=True
        )
        self._thread.start()
        logger.debug(f"Callback listener on http://{bind_host}:{self.port}{self.path}")

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None

    def await_authorization_code(self, timeout: float | None = None) -> str:
        """Block until the redirect delivers a code.

        Args:
            timeout: Seconds to wait. None waits until the user finishes.

        Returns:
            The authorization code.

        Raises:
            AuthError: If the listener isn't running, another caller is already
                waiting, the redirect carried an error, or no code arrived.
        """
        if self._server is None and not self._handoff.done:
            raise AuthError("Callback listener is not running")

        with self._wait_lock:
            if self._waiting:
                raise AuthError("Another caller is already waiting for the authorization code")
            self._waiting = True

        try:
            return self._handoff.take(timeout)
        finally:
            with self._wait_lock:
                self._waiting = False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
