from __future__ import annotations

from typing import Any

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import ServerConnection

from beady.cli.formatter import OutputFormatter
from beady.runtime.registry import ConnectionRegistry, RegistryClosedError

LIVE_RELOAD_PATH = "/ws"


class WebSocketConnection:
    """Registry connection backed by a ``websockets`` server connection."""

    def __init__(self, websocket: ServerConnection) -> None:
        self.websocket = websocket

    @property
    def remote_address(self) -> Any:
        return self.websocket.remote_address

    def send(self, message: str) -> None:
        self.websocket.send(message)

    def receive(self) -> Any:
        return self.websocket.recv()

    def close(self) -> None:
        self.websocket.close()

    def __repr__(self) -> str:
        return f"WebSocketConnection({self.remote_address!r})"


class UpgradeEndpoint:
    """Registers upgraded live-reload sockets and holds them until the peer leaves.

    Incoming frames are read and discarded; they only serve to notice a closed
    or broken connection.
    """

    def __init__(self, registry: ConnectionRegistry, enabled: bool = True, path: str = LIVE_RELOAD_PATH) -> None:
        self.registry = registry
        self.enabled = enabled
        self.path = path

    def accepts(self, request_path: str) -> bool:
        return self.enabled and request_path == self.path

    def handle(self, websocket: ServerConnection) -> None:
        self.serve_connection(WebSocketConnection(websocket))

    def serve_connection(self, connection: WebSocketConnection) -> None:
        try:
            registration = self.registry.register(connection)
        except RegistryClosedError as exc:
            OutputFormatter.log(f"Rejecting live-reload client: {exc}", severity="warning")
            connection.close()
            return

        try:
            with registration:
                self._read_until_closed(connection)
        finally:
            connection.close()

    def _read_until_closed(self, connection: WebSocketConnection) -> None:
        while True:
            try:
                connection.receive()
            except ConnectionClosed as exc:
                if exc.rcvd is None and exc.sent is None:
                    OutputFormatter.log(f"Live-reload connection lost: {exc}", severity="warning")
                return
            except OSError as exc:
                OutputFormatter.log(f"Live-reload read failed: {exc}", severity="warning")
                return
