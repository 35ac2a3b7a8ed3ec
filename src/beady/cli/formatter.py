import logging
from typing import List
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from beady.utils.diagnostics import BeadyDiagnostic

# System messages never touch stdout
error_console = Console(stderr=True)

SEVERITY_STYLES = {
    "info": "white",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "critical": "bold red",
}

LIBRARY_LOGGERS = ("websockets", "watchdog")


class OutputFormatter:
    """
    Console output for the dev server: status lines and diagnostic tables on stderr.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        style = SEVERITY_STYLES.get(severity, "white")
        error_console.print(f"[{style}][SYSTEM] {message}[/{style}]", markup=True, highlight=False)

    @staticmethod
    def print_diagnostics(diagnostics: List[BeadyDiagnostic]) -> None:
        """
        Render template/setup diagnostics as a table, adding a hint column when any carry one.
        """
        if not diagnostics:
            return

        with_hints = any(diag.suggestion for diag in diagnostics)

        table = Table(title="Beady Diagnostics", border_style="red", header_style="bold red")
        for column in ("Severity", "Code", "Message", "Location"):
            table.add_column(column, style="bold" if column == "Severity" else None)
        if with_hints:
            table.add_column("Hint", style="dim")

        for diag in diagnostics:
            style = SEVERITY_STYLES.get(diag.severity, "red")
            location = diag.file_path if not diag.line_number else f"{diag.file_path}:{diag.line_number}"
            row = [f"[{style}]{diag.severity.upper()}[/{style}]", diag.error_code, diag.message, location]
            if with_hints:
                row.append(diag.suggestion or "")
            table.add_row(*row)

        error_console.print(table)
        error_console.print()


def configure_library_logging(level: str = "INFO") -> None:
    """Route websockets/watchdog stdlib loggers through the rich stderr console."""
    handler = RichHandler(console=error_console, show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    for name in LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers = [handler]
        library_logger.setLevel(level.upper())
        library_logger.propagate = False
