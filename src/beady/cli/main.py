import signal
import threading
import webbrowser
import typer
from pathlib import Path
from typing import Optional

from beady import __build_date__, __commit__, __version__
from beady.cli.formatter import OutputFormatter, configure_library_logging
from beady.config.loader import load_config
from beady.core.context import BeadyContext
from beady.utils.diagnostics import TemplateParseError, WatchSetupError
from beady.web.server import DevServer

app = typer.Typer(name="beady", help="Beady web UI with live reload", rich_markup_mode=None)

CONFIG_FILE_NAME = "beady.yaml"


def _coerce_bool_like(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off", ""}:
            return False
    return bool(value)


def _resolve_optional_bool_flag(enabled: object, disabled: object, flag_name: str) -> Optional[bool]:
    enabled_bool = _coerce_bool_like(enabled)
    disabled_bool = _coerce_bool_like(disabled)
    if enabled_bool and disabled_bool:
        raise typer.BadParameter(f"Cannot use --{flag_name} and --no-{flag_name} together.")
    if enabled_bool:
        return True
    if disabled_bool:
        return False
    return None


def _read_option_value(tokens: list[str], index: int, option_name: str) -> tuple[str, int]:
    if index + 1 >= len(tokens):
        raise typer.BadParameter(f"Option {option_name} requires a value.")
    return tokens[index + 1], index + 2


def _parse_port(value: str, option_name: str = "--port") -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Option {option_name} must be an integer.") from exc
    if not (1 <= port <= 65535):
        raise typer.BadParameter(f"Option {option_name} must be between 1 and 65535.")
    return port


def _build_context(
    config_path: Optional[Path],
    root: Optional[Path],
    host: Optional[str],
    port: Optional[int],
    dev: Optional[bool],
    open_browser: Optional[bool],
) -> BeadyContext:
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILE_NAME
        if root is not None and (root / CONFIG_FILE_NAME).exists():
            config_path = root / CONFIG_FILE_NAME

    context = BeadyContext(config_dict=load_config(config_path))

    server_updates: dict = {}
    if root is not None:
        server_updates["assets_dir"] = str(root)
    if host is not None:
        server_updates["host"] = host
    if port is not None:
        server_updates["port"] = port
    if dev is not None:
        server_updates["dev"] = dev
    if open_browser is not None:
        server_updates["open_browser"] = open_browser

    if server_updates:
        context.server = context.server.model_copy(update=server_updates)
    return context


def _install_sigterm_handler(server: DevServer):
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handle_sigterm(signum, frame) -> None:
        OutputFormatter.log("Received SIGTERM, shutting down server...", severity="info")
        server.lifecycle.exit(0)

    return signal.signal(signal.SIGTERM, _handle_sigterm)


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def serve(
    ctx: typer.Context,
):
    """
    Start the web UI server. Use -d/--dev for live reload.

    Usage: beady serve [ROOT] [PORT] [--host H] [-d|--dev] [--open|--no-open] [--config FILE]
    """
    root: Optional[Path] = None
    host: Optional[str] = None
    port: Optional[int] = None
    config_path: Optional[Path] = None
    dev = False
    no_dev = False
    open_flag = False
    no_open = False

    tokens = list(ctx.args)
    extras: list[str] = []
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token in ("--root", "-r"):
            root_value, index = _read_option_value(tokens, index, token)
            root = Path(root_value)
            continue
        if token.startswith("--root="):
            root = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token in ("--config", "-c"):
            config_value, index = _read_option_value(tokens, index, token)
            config_path = Path(config_value)
            continue
        if token.startswith("--config="):
            config_path = Path(token.split("=", 1)[1])
            index += 1
            continue
        if token == "--host":
            host, index = _read_option_value(tokens, index, token)
            continue
        if token.startswith("--host="):
            host = token.split("=", 1)[1]
            index += 1
            continue
        if token == "--port":
            port_value, index = _read_option_value(tokens, index, token)
            port = _parse_port(port_value)
            continue
        if token.startswith("--port="):
            port = _parse_port(token.split("=", 1)[1])
            index += 1
            continue
        if token in ("--dev", "-d"):
            dev = True
            index += 1
            continue
        if token == "--no-dev":
            no_dev = True
            index += 1
            continue
        if token == "--open":
            open_flag = True
            index += 1
            continue
        if token == "--no-open":
            no_open = True
            index += 1
            continue
        if token.startswith("-"):
            raise typer.BadParameter(f"Unknown option: {token}")
        extras.append(token)
        index += 1

    if extras and root is None:
        root = Path(extras.pop(0))
    if extras and port is None:
        port = _parse_port(extras.pop(0), option_name="PORT")
    if extras:
        raise typer.BadParameter(f"Unexpected arguments: {' '.join(extras)}")

    context = _build_context(
        config_path=config_path,
        root=root,
        host=host,
        port=port,
        dev=_resolve_optional_bool_flag(dev, no_dev, "dev"),
        open_browser=_resolve_optional_bool_flag(open_flag, no_open, "open"),
    )
    log_level = context.settings.log_level.upper()
    configure_library_logging("DEBUG" if log_level == "DEBUG" else "WARNING")

    if context.server.dev and not context.template_root.is_dir():
        OutputFormatter.log(
            f"Development mode requires the assets directory ({context.template_root} not found).",
            severity="error",
        )
        raise typer.Exit(code=1)

    server = DevServer(context)

    try:
        server.load_initial()
    except TemplateParseError as exc:
        OutputFormatter.print_diagnostics(exc.diagnostics)
        OutputFormatter.log(exc.message, severity="critical")
        raise typer.Exit(code=1)

    try:
        if context.server.dev:
            OutputFormatter.log("Starting file watcher for live reload", severity="info")
            server.start_live_reload(background=True)
        server.start()
    except WatchSetupError as exc:
        OutputFormatter.log(str(exc), severity="critical")
        server.close()
        raise typer.Exit(code=1)
    except OSError as exc:
        OutputFormatter.log(f"Error starting server: {exc}", severity="error")
        server.close()
        raise typer.Exit(code=1)

    OutputFormatter.log(f"Starting beads web UI at {server.url}", severity="success")
    if context.server.dev:
        OutputFormatter.log("Development mode enabled with live reload", severity="info")
    OutputFormatter.log("Press Ctrl+C to stop", severity="info")

    if context.server.dev and context.server.open_browser:
        OutputFormatter.log(f"Opening browser to {server.url}", severity="info")
        try:
            if not webbrowser.open(server.url):
                OutputFormatter.log("Open browser failed: no runnable browser found.", severity="warning")
        except webbrowser.Error as exc:
            OutputFormatter.log(f"Open browser failed: {exc}", severity="warning")

    previous_sigterm = _install_sigterm_handler(server)

    try:
        if not server.lifecycle.stopped:
            server.serve_forever()
    except KeyboardInterrupt:
        OutputFormatter.log("Shutting down server...", severity="info")
    finally:
        server.close()
        if previous_sigterm is not None:
            signal.signal(signal.SIGTERM, previous_sigterm)

    OutputFormatter.log("Server stopped", severity="info")
    exit_code = server.lifecycle.exit_code or 0
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command()
def version():
    """
    Show version information.
    """
    typer.echo(f"beady {__version__}")
    typer.echo(f"  commit: {__commit__}")
    typer.echo(f"  built:  {__build_date__}")


if __name__ == "__main__":
    app()
