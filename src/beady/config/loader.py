import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

from beady.cli.formatter import OutputFormatter

# ${NAME} or ${NAME:fallback}
ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

CONFIG_SECTIONS = ("beady", "server", "live_reload")


def interpolate_env_vars(content: str) -> str:
    """Expand ${VAR} / ${VAR:default}; unset variables without a default become empty."""
    return ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), content)


def load_config(path: Path) -> Dict[str, Any]:
    """
    Read beady.yaml and return its known sections (beady, server, live_reload).

    Any problem reading or parsing the file is reported and yields an empty
    config so the built-in defaults apply.
    """
    if not path.is_file():
        return {}

    try:
        raw = yaml.safe_load(interpolate_env_vars(path.read_text(encoding="utf-8")))
    except (OSError, yaml.YAMLError) as exc:
        OutputFormatter.log(f"Ignoring unreadable config {path}: {exc}", severity="warning")
        return {}

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        OutputFormatter.log(f"Ignoring config {path}: top level must be a mapping", severity="warning")
        return {}

    return {section: raw[section] for section in CONFIG_SECTIONS if section in raw}
