from __future__ import annotations

from http import HTTPStatus
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

from jinja2 import TemplateError
from websockets.datastructures import Headers
from websockets.http11 import Request, Response
from websockets.sync.server import ServerConnection

from beady.cli.formatter import OutputFormatter
from beady.core.templates import TemplateStore
from beady.runtime.endpoint import UpgradeEndpoint
from beady.runtime.reload_contracts import RELOAD_MESSAGE
from beady.utils.diagnostics import TemplateNotFoundError

LIVE_RELOAD_SCRIPT_PATH = "/livereload.js"

LIVE_RELOAD_SCRIPT = """\
// Live reload WebSocket connection
(function() {
    const protocol = window.location.protocol === 'https:' ? 'wss:' : 'ws:';
    const ws = new WebSocket(protocol + '//' + window.location.host + '%(ws_path)s');

    ws.onmessage = function(event) {
        if (event.data === '%(message)s') {
            window.location.reload();
        }
    };

    ws.onclose = function() {
        setTimeout(function() {
            window.location.reload();
        }, 1000);
    };
})();
"""

CONTENT_TYPES = {
    ".css": "text/css; charset=utf-8",
    ".js": "application/javascript; charset=utf-8",
    ".html": "text/html; charset=utf-8",
}


def http_response(
    status: HTTPStatus,
    body: bytes | str = b"",
    content_type: str = "text/plain; charset=utf-8",
) -> Response:
    """Build a complete non-upgrade HTTP response."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    headers = Headers()
    if content_type:
        headers["Content-Type"] = content_type
    headers["Content-Length"] = str(len(body))
    headers["Connection"] = "close"
    return Response(status.value, status.phrase, headers, body)


class DevRoutes:
    """``process_request`` hook serving the dev server's plain HTTP paths.

    Returns None for the live-reload path so the WebSocket upgrade proceeds.
    """

    def __init__(
        self,
        assets_dir: Path,
        template_store: TemplateStore,
        endpoint: UpgradeEndpoint,
        static_dir: str = "static",
        template_dir: str = "templates",
        dev: bool = False,
    ) -> None:
        self.assets_dir = assets_dir
        self.template_store = template_store
        self.endpoint = endpoint
        self.static_dir = static_dir
        self.template_dir = template_dir
        self.dev = dev

    def __call__(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        path = urlsplit(request.path).path

        if self.endpoint.accepts(path):
            return None
        if path == "/":
            return self.index()
        if path == LIVE_RELOAD_SCRIPT_PATH and self.dev:
            script = LIVE_RELOAD_SCRIPT % {"ws_path": self.endpoint.path, "message": RELOAD_MESSAGE}
            return http_response(HTTPStatus.OK, script, CONTENT_TYPES[".js"])
        if path.startswith("/static/"):
            return self.static(unquote(path[len("/static/"):]))
        return http_response(HTTPStatus.NOT_FOUND, "404 page not found\n")

    def index(self) -> Response:
        try:
            body = self.template_store.render(
                "index.html",
                dev_mode=self.dev,
                live_reload_script=LIVE_RELOAD_SCRIPT_PATH if self.dev else None,
            )
        except TemplateNotFoundError:
            return http_response(HTTPStatus.NOT_FOUND, "404 page not found\n")
        except TemplateError as exc:
            OutputFormatter.log(f"Error rendering index.html: {exc}", severity="error")
            return http_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error\n")

        return http_response(HTTPStatus.OK, body, CONTENT_TYPES[".html"])

    def static(self, relative_path: str) -> Response:
        # Static first, then templates for older asset layouts.
        for directory in (self.static_dir, self.template_dir):
            content = self._read_asset(directory, relative_path)
            if content is not None:
                suffix = Path(relative_path).suffix.lower()
                content_type = CONTENT_TYPES[suffix] if suffix in (".css", ".js") else "application/octet-stream"
                return http_response(HTTPStatus.OK, content, content_type)

        return http_response(HTTPStatus.NOT_FOUND, "404 page not found\n")

    def _read_asset(self, directory: str, relative_path: str) -> Optional[bytes]:
        base = (self.assets_dir / directory).resolve()
        candidate = (base / relative_path).resolve()
        if not candidate.is_relative_to(base) or not candidate.is_file():
            return None
        try:
            return candidate.read_bytes()
        except OSError:
            return None
