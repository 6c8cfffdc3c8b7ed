"""HTTP origin server for the built output tree.

The server is single-threaded and checks its stop flag between requests, so a
restart never cuts a response short. Reload channels live on a separate server
and are unaffected by restarts of this one.
"""

import logging
import socket
import threading
import time
from typing import Optional

from werkzeug.middleware.shared_data import SharedDataMiddleware
from werkzeug.serving import WSGIRequestHandler, make_server
from werkzeug.wrappers import Response

from inkwell_site.config import SiteConfig
from inkwell_site.errors import ServerError

logger = logging.getLogger(__name__)

NOT_FOUND_FALLBACK = "<h1>404 Not Found</h1>\n"

# Seconds a connection may stay silent before it is dropped, so a stalled
# client can only delay a restart this long. Kept below the total bind backoff
# at the default settings.
REQUEST_TIMEOUT = 5

RELOAD_SCRIPT = """<script>
(function() {{
  function connect() {{
    var ws = new WebSocket('{url}');
    var keepalive = null;
    ws.onopen = function() {{
      keepalive = setInterval(function() {{ ws.send('ping'); }}, 1000);
    }};
    ws.onmessage = function(event) {{
      if (event.data === 'reload') {{
        location.reload();
      }}
    }};
    ws.onclose = function() {{
      clearInterval(keepalive);
      setTimeout(connect, 2000);
    }};
  }}
  connect();
}})();
</script>"""


def reload_script(url: str) -> str:
    return RELOAD_SCRIPT.format(url=url)


class NotFoundApp:
    """Fallback app for paths the output tree doesn't have.

    Serves the built 404 document, or a fixed body if that is missing too.
    """

    def __init__(self, config: SiteConfig):
        self.config = config

    def __call__(self, environ, start_response):
        logger.debug(f"Not found: {environ.get('PATH_INFO', '')}")
        document = self.config.output_path / self.config.not_found_document
        try:
            body = document.read_bytes()
        except OSError:
            body = NOT_FOUND_FALLBACK.encode("utf-8")
        start_response(
            "404 Not Found",
            [("Content-Type", "text/html; charset=utf-8"), ("Content-Length", str(len(body)))],
        )
        return [body]


class IndexMiddleware:
    """Middleware that serves the index document for the site root."""

    def __init__(self, app, index_document: str):
        self.app = app
        self.index_path = "/" + index_document.lstrip("/")

    def __call__(self, environ, start_response):
        path = environ.get("PATH_INFO", "")
        if path == "/" or path == "":
            environ["PATH_INFO"] = self.index_path
        return self.app(environ, start_response)


class ReadOnlyMiddleware:
    """Middleware that answers anything but GET and HEAD with 405."""

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD", "GET") not in ("GET", "HEAD"):
            response = Response(
                "Method Not Allowed",
                status=405,
                mimetype="text/plain",
                headers={"Allow": "GET, HEAD"},
            )
            return response(environ, start_response)
        return self.app(environ, start_response)


class ReloadScriptMiddleware:
    """Middleware that appends the reload client script to HTML responses.

    The wrapped apps return the full body for HEAD requests too, so the
    Content-Length computed here matches the GET response. The body itself is
    dropped for HEAD when the response is sent.
    """

    def __init__(self, app, reload_url: str):
        self.app = app
        self.script = reload_script(reload_url).encode("utf-8")

    def __call__(self, environ, start_response):
        response = Response.from_app(self.app, environ)
        if response.mimetype == "text/html":
            response.set_data(response.get_data() + self.script)
        return response(environ, start_response)


def create_static_app(config: SiteConfig):
    """Serve the output tree, without reload script injection."""
    app = SharedDataMiddleware(
        NotFoundApp(config), {"/": str(config.output_path)}, cache=False
    )
    app = IndexMiddleware(app, config.index_document)
    return ReadOnlyMiddleware(app)


def create_app(config: SiteConfig, reload_url: str):
    """Create the WSGI application with all middleware."""
    return ReloadScriptMiddleware(create_static_app(config), reload_url)


class TimeoutRequestHandler(WSGIRequestHandler):
    timeout = REQUEST_TIMEOUT


class ServerHandle:
    """Stop flag shared between the orchestrator and one server instance."""

    def __init__(self):
        self._stop = False
        self._lock = threading.Lock()

    def request_stop(self):
        with self._lock:
            self._stop = True

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop


def bind_socket(host: str, port: int, retries: int, backoff: float):
    """Bind a listening socket, retrying while the port is briefly held."""
    attempt = 0
    while True:
        try:
            return socket.create_server((host, port))
        except OSError as e:
            if attempt >= retries:
                raise ServerError(f"Cannot bind HTTP server to {host}:{port}: {e}") from e
            delay = backoff * (2**attempt)
            logger.debug(f"Bind to {host}:{port} failed ({e}), retrying in {delay:.2f}s")
            time.sleep(delay)
            attempt += 1


class OriginServer:
    """One HTTP server instance: bound on construction, served on a thread.

    A new instance is created for every restart.
    """

    def __init__(
        self,
        config: SiteConfig,
        app,
        port: Optional[int] = None,
        poll_interval: float = 0.1,
    ):
        self.config = config
        self.host = config.host
        self.handle = ServerHandle()
        self._thread: Optional[threading.Thread] = None

        # make_server calls sys.exit when its own bind fails, so the socket is
        # bound here and handed over, as run_simple does with WERKZEUG_SERVER_FD.
        sock = bind_socket(
            self.host,
            config.http_port if port is None else port,
            config.bind_retries,
            config.bind_backoff,
        )
        try:
            self._server = make_server(
                self.host,
                sock.getsockname()[1],
                app,
                request_handler=TimeoutRequestHandler,
                fd=sock.fileno(),
            )
        finally:
            # make_server duplicated the descriptor.
            sock.close()
        self._server.timeout = poll_interval
        self.port = self._server.socket.getsockname()[1]

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def address(self) -> str:
        return f"http://{self.host}:{self.port}"

    def run(self):
        """Accept requests one at a time until the handle is stopped."""
        try:
            while not self.handle.stop_requested:
                self._server.handle_request()
        finally:
            self._server.server_close()
            logger.info(f"HTTP server on {self.address} stopped")

    def start(self, target=None):
        self._thread = threading.Thread(
            target=target or self.run, name=f"inkwell-http-{self.port}", daemon=True
        )
        self._thread.start()
        logger.info(f"HTTP server listening on {self.address}")

    def stop(self, timeout: float) -> bool:
        """Signal stop and wait up to ``timeout``. Returns True if it stopped."""
        self.handle.request_stop()
        if self._thread is None:
            self._server.server_close()
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()
