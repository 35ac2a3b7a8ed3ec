"""Live-reload runtime: connection registry, idle shutdown, watcher and coordinator."""

from beady.runtime.coordinator import ReloadCoordinator
from beady.runtime.endpoint import UpgradeEndpoint, WebSocketConnection
from beady.runtime.lifecycle import ProcessLifecycle
from beady.runtime.registry import (
	Connection,
	ConnectionRegistry,
	Registration,
	RegistryClosedError,
)
from beady.runtime.reload_contracts import (
	RELOAD_MESSAGE,
	ChangeEvent,
	ChangeKind,
	IdleState,
	ReloadOutcome,
	WatchKind,
	WatchTarget,
)
from beady.runtime.watcher import FileChangeWatcher

__all__ = [
	"RELOAD_MESSAGE",
	"ChangeEvent",
	"ChangeKind",
	"Connection",
	"ConnectionRegistry",
	"FileChangeWatcher",
	"IdleState",
	"ProcessLifecycle",
	"Registration",
	"RegistryClosedError",
	"ReloadCoordinator",
	"ReloadOutcome",
	"UpgradeEndpoint",
	"WatchKind",
	"WatchTarget",
	"WebSocketConnection",
]
