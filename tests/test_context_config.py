import pytest
from pathlib import Path
from pydantic import ValidationError

from beady.core.context import BeadyContext
from beady.core.models import LiveReloadSettings, ServerSettings

def test_context_init_with_config():
    config_data = {
        "beady": {
            "app_name": "Test App",
            "env": "test"
        },
        "server": {
            "host": "0.0.0.0",
            "port": 9001,
            "dev": True,
            "assets_dir": "web/assets",
        },
        "live_reload": {
            "template_dir": "views",
            "static_dir": "public",
            "grace_period_seconds": 1.5,
            "use_polling": True,
        },
    }

    ctx = BeadyContext(config_dict=config_data)

    assert ctx.settings.app_name == "Test App"
    assert ctx.settings.env == "test"
    assert ctx.server.host == "0.0.0.0"
    assert ctx.server.port == 9001
    assert ctx.server.dev is True
    assert ctx.live_reload.grace_period_seconds == 1.5
    assert ctx.live_reload.use_polling is True
    assert ctx.template_root == Path("web/assets/views")
    assert ctx.static_root == Path("web/assets/public")

def test_context_default_init():
    ctx = BeadyContext()
    assert ctx.settings.app_name == "Beady"
    assert ctx.server.host == "127.0.0.1"
    assert ctx.server.port == 8080
    assert ctx.server.dev is False
    assert ctx.server.open_browser is True
    assert ctx.template_root == Path("assets/beady/templates")
    assert ctx.static_root == Path("assets/beady/static")
    assert ctx.live_reload.grace_period_seconds == 5.0
    assert ctx.live_reload.send_timeout_seconds == 1.0
    assert ctx.live_reload.template_extension == ".html"

def test_framework_settings_read_environment(monkeypatch):
    monkeypatch.setenv("BEADY_LOG_LEVEL", "DEBUG")
    ctx = BeadyContext()
    assert ctx.settings.log_level == "DEBUG"

def test_context_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        BeadyContext(unknown=True)

def test_server_port_range_is_validated():
    with pytest.raises(ValidationError):
        ServerSettings(port=70000)
    with pytest.raises(ValidationError):
        BeadyContext(config_dict={"server": {"port": 0}})

def test_template_extension_gets_leading_dot():
    assert LiveReloadSettings(template_extension="tmpl").template_extension == ".tmpl"
    with pytest.raises(ValidationError):
        LiveReloadSettings(template_extension="  ")

def test_grace_period_must_be_positive():
    with pytest.raises(ValidationError):
        LiveReloadSettings(grace_period_seconds=0)
