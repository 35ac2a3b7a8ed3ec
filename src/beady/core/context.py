from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict
from beady.core.models import FrameworkSettings, ServerSettings, LiveReloadSettings


class BeadyContext(BaseModel):
    """
    Validated runtime configuration shared by the CLI and the dev server.
    """
    model_config = ConfigDict(extra="forbid")

    # Framework Settings (Maps to 'beady' section)
    settings: FrameworkSettings = Field(default_factory=FrameworkSettings)

    # Listener Settings (Maps to 'server' section)
    server: ServerSettings = Field(default_factory=ServerSettings)

    # Live Reload Settings (Maps to 'live_reload' section)
    live_reload: LiveReloadSettings = Field(default_factory=LiveReloadSettings)

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally with a configuration dictionary.
        """
        if config_dict:
            # Seed fields from config_dict if not explicitly provided in data
            if 'settings' not in data:
                data['settings'] = FrameworkSettings(**(config_dict.get('beady') or {}))
            if 'server' not in data:
                data['server'] = ServerSettings(**(config_dict.get('server') or {}))
            if 'live_reload' not in data:
                data['live_reload'] = LiveReloadSettings(**(config_dict.get('live_reload') or {}))

        super().__init__(**data)

    @property
    def assets_dir(self) -> Path:
        return Path(self.server.assets_dir).expanduser()

    @property
    def template_root(self) -> Path:
        return self.live_reload.template_root(self.assets_dir)

    @property
    def static_root(self) -> Path:
        return self.live_reload.static_root(self.assets_dir)
