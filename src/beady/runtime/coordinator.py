from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from beady.cli.formatter import OutputFormatter
from beady.runtime.reload_contracts import (
    RELOAD_MESSAGE,
    RELOAD_TRIGGER_KINDS,
    ChangeEvent,
    ReloadOutcome,
)
from beady.utils.diagnostics import BeadyDiagnostic, TemplateParseError


class TemplateReparser(Protocol):
    def reparse_all(self) -> object:
        ...


class Broadcaster(Protocol):
    def broadcast(self, message: str) -> int:
        ...


class ReloadCoordinator:
    """Turns file change events into template re-parses and reload broadcasts.

    Every qualifying event is handled on its own; nothing is debounced.
    """

    def __init__(
        self,
        registry: Broadcaster,
        template_store: TemplateReparser,
        template_root: Path,
        template_extension: str = ".html",
        exit_process: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.registry = registry
        self.template_store = template_store
        self.template_root = Path(os.path.abspath(template_root))
        self.template_extension = template_extension
        self.exit_process = exit_process

    def is_template(self, path: Path) -> bool:
        absolute = Path(os.path.abspath(path))
        return absolute.suffix == self.template_extension and absolute.is_relative_to(self.template_root)

    def handle_event(self, event: ChangeEvent) -> ReloadOutcome | None:
        """Handle one event; returns None for kinds that do not trigger reloads.

        TemplateParseError propagates to the caller.
        """
        if event.kind not in RELOAD_TRIGGER_KINDS:
            return None

        OutputFormatter.log(f"File changed: {event.path}", severity="info")

        reparsed = False
        if self.is_template(event.path):
            OutputFormatter.log("Re-parsing templates", severity="info")
            self._reparse(event.path)
            reparsed = True

        OutputFormatter.log("Broadcasting reload to clients", severity="info")
        delivered = self.registry.broadcast(RELOAD_MESSAGE)
        return ReloadOutcome(path=event.path, reparsed=reparsed, delivered=delivered)

    def _reparse(self, path: Path) -> None:
        # Every re-parse failure is fatal, not only template syntax errors.
        try:
            self.template_store.reparse_all()
        except TemplateParseError:
            raise
        except Exception as exc:
            raise TemplateParseError(
                f"Error re-parsing templates after change to {path}: {exc}",
                [
                    BeadyDiagnostic(
                        file_path=str(path),
                        error_code="ERR_TEMPLATE_RELOAD",
                        message=str(exc),
                        severity="critical",
                    )
                ],
            ) from exc

    def run(self, events: Iterable[ChangeEvent]) -> None:
        """Consume events until the source ends; a failed re-parse ends the process."""
        for event in events:
            try:
                self.handle_event(event)
            except TemplateParseError as exc:
                OutputFormatter.print_diagnostics(exc.diagnostics)
                OutputFormatter.log(f"Template re-parse failed: {exc.message}", severity="critical")
                if self.exit_process is None:
                    raise
                self.exit_process(1)
                return
