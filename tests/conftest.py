import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

INDEX_TEMPLATE = """<!doctype html>
<html>
<head><title>{{ title|default("beads")|title }}</title></head>
<body>
<h1>{{ heading|upper }}</h1>
{% if live_reload_script %}<script src="{{ live_reload_script }}"></script>{% endif %}
</body>
</html>
"""


@pytest.fixture
def assets_dir(tmp_path):
    """
    Returns a temporary assets root with templates/ and static/ populated.
    """
    root = tmp_path / "assets"
    templates = root / "templates"
    static = root / "static"
    templates.mkdir(parents=True)
    static.mkdir()

    (templates / "index.html").write_text(INDEX_TEMPLATE)
    (templates / "legacy.css").write_text("h1 { color: red; }")
    (static / "app.js").write_text("console.log('beads');")
    (static / "app.css").write_text("body { margin: 0; }")
    (static / "logo.png").write_bytes(b"\x89PNG")
    return root
