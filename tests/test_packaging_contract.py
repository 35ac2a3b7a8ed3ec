import tomllib
from pathlib import Path


def _pyproject():
    pyproject_path = Path(__file__).resolve().parents[1] / "pyproject.toml"
    return tomllib.loads(pyproject_path.read_text(encoding="utf-8"))


def test_pyproject_declares_runtime_stack():
    dependencies = " ".join(_pyproject()["project"]["dependencies"])

    for name in ("typer", "rich", "pydantic", "pydantic-settings", "PyYAML", "Jinja2", "websockets", "watchdog"):
        assert name in dependencies


def test_pyproject_exposes_cli_entry_point():
    scripts = _pyproject()["project"]["scripts"]
    assert scripts["beady"] == "beady.cli.main:app"
