from __future__ import annotations

import threading
from typing import Callable, List, Optional

from beady.cli.formatter import OutputFormatter


class ProcessLifecycle:
    """Process-exit collaborator shared by the idle guard and the reload loop.

    ``exit`` records the first exit code, runs shutdown hooks once and wakes
    anyone blocked in ``wait``. The CLI turns the recorded code into the
    process exit status.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._exit_code: Optional[int] = None
        self._stopped = threading.Event()
        self._shutdown_hooks: List[Callable[[], None]] = []

    @property
    def exit_code(self) -> Optional[int]:
        with self._lock:
            return self._exit_code

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def add_shutdown_hook(self, hook: Callable[[], None]) -> None:
        with self._lock:
            self._shutdown_hooks.append(hook)

    def exit(self, code: int = 0) -> None:
        with self._lock:
            if self._exit_code is not None:
                return
            self._exit_code = code
            hooks = list(self._shutdown_hooks)

        self._stopped.set()
        for hook in hooks:
            try:
                hook()
            except Exception as exc:
                OutputFormatter.log(f"Shutdown hook failed: {exc}", severity="error")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)
