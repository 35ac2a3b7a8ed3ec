from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, wait
from functools import partial
from typing import Callable, Iterator, List, Optional, Protocol, Set, Tuple

from beady.cli.formatter import OutputFormatter
from beady.runtime.reload_contracts import IdleEvent, IdleState, transition_idle_state


class Connection(Protocol):
    """One live real-time channel; set membership uses object identity."""

    def send(self, message: str) -> None:
        ...

    def close(self) -> None:
        ...


class TimerHandle(Protocol):
    def start(self) -> None:
        ...

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def default_timer_factory(interval: float, callback: Callable[[], None]) -> TimerHandle:
    """Return an unstarted daemon ``threading.Timer``."""
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    return timer


class RegistryClosedError(RuntimeError):
    """Raised when registering after shutdown or after the registry was closed."""


class Registration:
    """Handle returned by ``ConnectionRegistry.register``.

    Releasing it unregisters the connection; repeated releases are no-ops.
    """

    def __init__(self, registry: "ConnectionRegistry", connection: Connection) -> None:
        self.registry = registry
        self.connection = connection
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.registry.unregister(self.connection)

    def __enter__(self) -> "Registration":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class ConnectionRegistry:
    """Live connection set plus the idle-shutdown timer, guarded by one lock.

    - ``register`` adds a client and revokes any pending shutdown.
    - ``unregister`` removes a client; emptying the set arms the shutdown timer.
    - ``broadcast`` fans a message out and evicts clients whose send fails.

    Sends run outside the lock on a small worker pool and are bounded by
    ``send_timeout_seconds``; a send that errors or times out counts as failed.
    """

    def __init__(
        self,
        exit_process: Callable[[int], None],
        grace_period_seconds: float = 5.0,
        send_timeout_seconds: float = 1.0,
        timer_factory: Optional[TimerFactory] = None,
        max_send_workers: int = 8,
    ) -> None:
        self.exit_process = exit_process
        self.grace_period_seconds = grace_period_seconds
        self.send_timeout_seconds = send_timeout_seconds
        self.timer_factory: TimerFactory = timer_factory or default_timer_factory

        self._lock = threading.Lock()
        self._connections: Set[Connection] = set()
        # Evicted by broadcast; their owner has not unregistered yet.
        self._evicted: Set[Connection] = set()
        self._state = IdleState.IDLE
        self._shutdown_timer: Optional[TimerHandle] = None
        self._timer_generation = 0
        self._closed = False
        self._send_pool = ThreadPoolExecutor(
            max_workers=max_send_workers,
            thread_name_prefix="beady-broadcast",
        )

    @property
    def state(self) -> IdleState:
        with self._lock:
            return self._state

    @property
    def shutdown_pending(self) -> bool:
        with self._lock:
            return self._shutdown_timer is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        with self._lock:
            return connection in self._connections

    def __iter__(self) -> Iterator[Connection]:
        with self._lock:
            return iter(list(self._connections))

    def register(self, connection: Connection) -> Registration:
        """Add a connection and cancel any pending idle shutdown."""
        with self._lock:
            if self._closed or self._state == IdleState.TERMINATED:
                raise RegistryClosedError("Connection registry has shut down.")

            self._connections.add(connection)
            self._cancel_shutdown_timer()
            self._state = transition_idle_state(self._state, IdleEvent.CLIENT_REGISTERED)
            count = len(self._connections)

        OutputFormatter.log(f"Live-reload client connected ({count} active).", severity="info")
        return Registration(self, connection)

    def unregister(self, connection: Connection) -> bool:
        """Remove a connection; returns False when it was not registered."""
        with self._lock:
            if connection in self._connections:
                self._connections.discard(connection)
            elif connection in self._evicted:
                self._evicted.discard(connection)
            else:
                return False

            count = len(self._connections)
            if self._closed or self._state == IdleState.TERMINATED:
                return True

            if count:
                self._state = transition_idle_state(self._state, IdleEvent.CLIENT_UNREGISTERED)
            elif self._state == IdleState.ACTIVE:
                self._state = transition_idle_state(self._state, IdleEvent.LAST_CLIENT_UNREGISTERED)
                self._arm_shutdown_timer()

        OutputFormatter.log(f"Live-reload client disconnected ({count} active).", severity="info")
        if not count:
            OutputFormatter.log(
                f"No clients connected; shutting down in {self.grace_period_seconds:g}s unless one reconnects.",
                severity="info",
            )
        return True

    def broadcast(self, message: str) -> int:
        """Send ``message`` to every registered connection; returns deliveries."""
        with self._lock:
            if self._closed:
                return 0
            recipients = list(self._connections)

        if not recipients:
            return 0

        futures = {self._send_pool.submit(connection.send, message): connection for connection in recipients}
        done, not_done = wait(futures, timeout=self.send_timeout_seconds)

        failed: List[Tuple[Connection, BaseException]] = []
        for future in done:
            exc = future.exception()
            if exc is not None:
                failed.append((futures[future], exc))

        timed_out: List[Connection] = []
        skipped = 0
        for future in not_done:
            if future.cancel():
                # Never started: the pool was busy with stalled peers, not this one.
                skipped += 1
                continue
            timed_out.append(futures[future])
            failed.append(
                (futures[future], TimeoutError(f"send exceeded {self.send_timeout_seconds:g}s"))
            )

        if skipped:
            OutputFormatter.log(
                f"Skipped {skipped} live-reload client(s); all send workers were busy.",
                severity="warning",
            )

        if failed:
            with self._lock:
                for connection, _ in failed:
                    if connection in self._connections:
                        self._connections.discard(connection)
                        self._evicted.add(connection)

            for connection, exc in failed:
                OutputFormatter.log(f"Dropping live-reload client after failed send: {exc}", severity="warning")
                if connection in timed_out:
                    # The stuck send may hold the transport; close off-thread and off the pool.
                    threading.Thread(
                        target=self._close_quietly,
                        args=(connection,),
                        name="beady-close",
                        daemon=True,
                    ).start()
                else:
                    self._close_quietly(connection)

        return len(recipients) - len(failed) - skipped

    def close(self) -> None:
        """Cancel any pending timer and release the send pool."""
        with self._lock:
            self._closed = True
            self._cancel_shutdown_timer()
        self._send_pool.shutdown(wait=False, cancel_futures=True)

    def _arm_shutdown_timer(self) -> None:
        # Caller holds self._lock.
        if self._shutdown_timer is not None:
            self._shutdown_timer.cancel()
        self._timer_generation += 1
        timer = self.timer_factory(
            self.grace_period_seconds,
            partial(self._on_idle_timeout, self._timer_generation),
        )
        self._shutdown_timer = timer
        timer.start()

    def _cancel_shutdown_timer(self) -> None:
        # Caller holds self._lock. The fire path re-checks, so a lost race is harmless.
        if self._shutdown_timer is None:
            return
        self._shutdown_timer.cancel()
        self._shutdown_timer = None
        if self._state == IdleState.ARMED:
            self._state = IdleState.IDLE

    def _on_idle_timeout(self, generation: int) -> None:
        with self._lock:
            if self._shutdown_timer is None or generation != self._timer_generation:
                return
            if self._connections:
                return
            self._shutdown_timer = None
            self._state = transition_idle_state(self._state, IdleEvent.TIMER_FIRED)

        OutputFormatter.log("No clients connected, shutting down...", severity="warning")
        self.exit_process(0)

    @staticmethod
    def _close_quietly(connection: Connection) -> None:
        try:
            connection.close()
        except Exception as exc:
            OutputFormatter.log(f"Error closing live-reload client: {exc}", severity="warning")
