from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

from jinja2 import DictLoader, Environment, Template, TemplateSyntaxError, select_autoescape

from beady.cli.formatter import OutputFormatter
from beady.utils.diagnostics import BeadyDiagnostic, TemplateNotFoundError, TemplateParseError


def _lower(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


def _string(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


TEMPLATE_FILTERS = {
    "lower": _lower,
    "upper": lambda value: _string(value).upper(),
    "title": lambda value: _string(value).title(),
    "string": _string,
}


@dataclass(frozen=True)
class TemplateSnapshot:
    """Immutable parsed template set published by one parse cycle."""

    templates: Mapping[str, Template] = field(default_factory=dict)

    @property
    def names(self) -> List[str]:
        return sorted(self.templates.keys())


class TemplateStore:
    """Parsed template cache with snapshot publication.

    A parse cycle builds a complete new snapshot before swapping it in, so
    concurrent renderers see either the previous set or the new one.
    """

    def __init__(self, template_dir: Path, extension: str = ".html") -> None:
        self.template_dir = template_dir
        self.extension = extension
        self._lock = threading.Lock()
        self._snapshot = TemplateSnapshot()

    @property
    def snapshot(self) -> TemplateSnapshot:
        with self._lock:
            return self._snapshot

    def reparse_all(self) -> TemplateSnapshot:
        """Parse every template file and publish the result.

        Raises TemplateParseError without touching the published snapshot.
        """
        snapshot = self._build_snapshot()
        with self._lock:
            self._snapshot = snapshot

        OutputFormatter.log(
            f"Parsed {len(snapshot.templates)} templates: {', '.join(snapshot.names)}",
            severity="info",
        )
        return snapshot

    def render(self, name: str, **data: Any) -> str:
        template = self.snapshot.templates.get(name)
        if template is None:
            raise TemplateNotFoundError(name)
        return template.render(**data)

    def _build_snapshot(self) -> TemplateSnapshot:
        try:
            entries = sorted(self.template_dir.iterdir())
        except OSError as exc:
            raise TemplateParseError(
                f"Error reading templates directory: {exc}",
                [
                    BeadyDiagnostic(
                        file_path=str(self.template_dir),
                        error_code="ERR_TEMPLATE_DIR",
                        message=str(exc),
                        severity="critical",
                    )
                ],
            ) from exc

        sources: Dict[str, str] = {}
        for entry in entries:
            if not entry.is_file() or entry.suffix != self.extension:
                continue
            try:
                sources[entry.name] = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise TemplateParseError(
                    f"Error reading template {entry}: {exc}",
                    [
                        BeadyDiagnostic(
                            file_path=str(entry),
                            error_code="ERR_TEMPLATE_READ",
                            message=str(exc),
                        )
                    ],
                ) from exc

        if not sources:
            raise TemplateParseError(
                f"No templates parsed from {self.template_dir} (checked {len(entries)} entries)",
                [
                    BeadyDiagnostic(
                        file_path=str(self.template_dir),
                        error_code="ERR_NO_TEMPLATES",
                        message=f"No '*{self.extension}' templates found.",
                        severity="critical",
                    )
                ],
            )

        env = Environment(
            loader=DictLoader(sources),
            autoescape=select_autoescape(enabled_extensions=("html", "htm", "xml")),
        )
        env.filters.update(TEMPLATE_FILTERS)

        templates: Dict[str, Template] = {}
        for name in sources:
            try:
                templates[name] = env.get_template(name)
            except TemplateSyntaxError as exc:
                file_path = str(self.template_dir / (exc.name or name))
                raise TemplateParseError(
                    f"Error parsing template {file_path}: {exc.message}",
                    [
                        BeadyDiagnostic(
                            file_path=file_path,
                            error_code="ERR_TEMPLATE_SYNTAX",
                            message=exc.message or str(exc),
                            line_number=exc.lineno,
                        )
                    ],
                ) from exc

        return TemplateSnapshot(templates=templates)
