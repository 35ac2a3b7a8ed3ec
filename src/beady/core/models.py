from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FrameworkSettings(BaseSettings):
    """
    Framework-level settings (the 'beady' section in beady.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='BEADY_', extra='ignore')

    env: str = "development"
    app_name: str = "Beady"
    log_level: str = "INFO"


class ServerSettings(BaseModel):
    """
    HTTP/WebSocket listener settings (the 'server' section in beady.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    dev: bool = False
    open_browser: bool = True
    assets_dir: str = "assets/beady"


class LiveReloadSettings(BaseModel):
    """
    Live-reload runtime settings (the 'live_reload' section in beady.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    template_dir: str = "templates"
    static_dir: str = "static"
    template_extension: str = ".html"
    grace_period_seconds: float = Field(default=5.0, gt=0)
    send_timeout_seconds: float = Field(default=1.0, gt=0)
    use_polling: bool = False
    polling_interval_ms: int = Field(default=1000, ge=100)

    @field_validator("template_extension")
    @classmethod
    def _ensure_leading_dot(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("template_extension cannot be empty.")
        return value if value.startswith(".") else f".{value}"

    def template_root(self, assets_dir: Path) -> Path:
        return assets_dir / self.template_dir

    def static_root(self, assets_dir: Path) -> Path:
        return assets_dir / self.static_dir
