from __future__ import annotations

import socket
import threading
from typing import List, Optional

from websockets.sync.server import Server, serve

from beady.cli.formatter import OutputFormatter
from beady.core.context import BeadyContext
from beady.core.templates import TemplateStore
from beady.runtime.coordinator import ReloadCoordinator
from beady.runtime.endpoint import UpgradeEndpoint
from beady.runtime.lifecycle import ProcessLifecycle
from beady.runtime.registry import ConnectionRegistry, TimerFactory
from beady.runtime.reload_contracts import WatchKind, WatchTarget
from beady.runtime.watcher import FileChangeWatcher, ObserverFactory
from beady.web.routes import DevRoutes


def allocate_ephemeral_port(host: str = "127.0.0.1") -> int:
    """Return a currently free TCP port on host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])


class DevServer:
    """Wires templates, the live-reload runtime and the listener together."""

    def __init__(
        self,
        context: BeadyContext,
        lifecycle: Optional[ProcessLifecycle] = None,
        timer_factory: Optional[TimerFactory] = None,
        observer_factory: Optional[ObserverFactory] = None,
    ) -> None:
        self.context = context
        self.lifecycle = lifecycle or ProcessLifecycle()
        self.observer_factory = observer_factory

        live_reload = context.live_reload
        self.template_store = TemplateStore(context.template_root, live_reload.template_extension)
        self.registry = ConnectionRegistry(
            exit_process=self.lifecycle.exit,
            grace_period_seconds=live_reload.grace_period_seconds,
            send_timeout_seconds=live_reload.send_timeout_seconds,
            timer_factory=timer_factory,
        )
        self.endpoint = UpgradeEndpoint(self.registry, enabled=context.server.dev)
        self.routes = DevRoutes(
            assets_dir=context.assets_dir,
            template_store=self.template_store,
            endpoint=self.endpoint,
            static_dir=live_reload.static_dir,
            template_dir=live_reload.template_dir,
            dev=context.server.dev,
        )
        self.coordinator = ReloadCoordinator(
            registry=self.registry,
            template_store=self.template_store,
            template_root=context.template_root,
            template_extension=live_reload.template_extension,
            exit_process=self.lifecycle.exit,
        )

        self.watcher: Optional[FileChangeWatcher] = None
        self.reload_thread: Optional[threading.Thread] = None
        self._server: Optional[Server] = None
        self._listener_lock = threading.Lock()
        self._listener_closed = False

    @property
    def host(self) -> str:
        return self.context.server.host

    @property
    def port(self) -> int:
        if self._server is not None:
            return int(self._server.socket.getsockname()[1])
        return self.context.server.port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def load_initial(self) -> None:
        """Parse templates once; TemplateParseError is fatal to the caller."""
        self.template_store.reparse_all()

    def watch_targets(self) -> List[WatchTarget]:
        targets = [WatchTarget(path=self.context.template_root, kind=WatchKind.TEMPLATE)]
        if self.context.static_root.is_dir():
            targets.append(WatchTarget(path=self.context.static_root, kind=WatchKind.STATIC))
        return targets

    def start_live_reload(self, background: bool = True) -> None:
        """Start the watcher and, in background mode, the reload loop thread."""
        if self.watcher is not None:
            return

        self.watcher = FileChangeWatcher(
            self.watch_targets(),
            use_polling=self.context.live_reload.use_polling,
            polling_interval_ms=self.context.live_reload.polling_interval_ms,
            observer_factory=self.observer_factory,
        )
        self.watcher.start()

        if background:
            self.reload_thread = threading.Thread(
                target=self.coordinator.run,
                args=(self.watcher.events(),),
                name="beady-live-reload",
                daemon=True,
            )
            self.reload_thread.start()

    def stop_live_reload(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()

        if self.reload_thread is not None and self.reload_thread.is_alive():
            self.reload_thread.join(timeout=1)

        self.watcher = None
        self.reload_thread = None

    def start(self) -> None:
        """Bind the listener. Shutdown hooks stop it when the lifecycle exits."""
        if self._server is not None:
            return

        self._server = serve(
            self.endpoint.handle,
            self.context.server.host,
            self.context.server.port,
            process_request=self.routes,
            close_timeout=2,
        )
        self.lifecycle.add_shutdown_hook(self._shutdown_listener)

    def serve_forever(self) -> None:
        if self._server is None:
            self.start()
        self._server.serve_forever()

    def close(self) -> None:
        """Stop watching, drop live clients and release the listener."""
        self.stop_live_reload()

        for connection in self.registry:
            try:
                connection.close()
            except Exception as exc:
                OutputFormatter.log(f"Error closing live-reload client: {exc}", severity="warning")

        self.registry.close()

        self._shutdown_listener()

    def _shutdown_listener(self) -> None:
        with self._listener_lock:
            if self._server is None or self._listener_closed:
                return
            self._listener_closed = True
            server = self._server
        server.shutdown()
