import pytest

from beady.core.templates import TemplateStore
from beady.runtime.coordinator import ReloadCoordinator
from beady.runtime.reload_contracts import ChangeEvent, ChangeKind
from beady.utils.diagnostics import BeadyDiagnostic, TemplateParseError


class FakeTemplateStore:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.reparse_calls = 0

    def reparse_all(self):
        self.reparse_calls += 1
        if self.error is not None:
            raise self.error


class FakeRegistry:
    def __init__(self, clients: int = 2):
        self.clients = clients
        self.messages = []

    def broadcast(self, message: str) -> int:
        self.messages.append(message)
        return self.clients


def _coordinator(tmp_path, store=None, registry=None, exits=None):
    return ReloadCoordinator(
        registry=registry or FakeRegistry(),
        template_store=store or FakeTemplateStore(),
        template_root=tmp_path / "assets" / "templates",
        template_extension=".html",
        exit_process=exits.append if exits is not None else None,
    )


def _parse_error() -> TemplateParseError:
    return TemplateParseError(
        "Error parsing template index.html: unexpected end of template",
        [BeadyDiagnostic(file_path="index.html", error_code="ERR_TEMPLATE_SYNTAX", message="unexpected end")],
    )


def test_template_write_reparses_then_broadcasts(tmp_path):
    store = FakeTemplateStore()
    registry = FakeRegistry(clients=2)
    coordinator = _coordinator(tmp_path, store, registry)
    path = tmp_path / "assets" / "templates" / "index.html"

    outcome = coordinator.handle_event(ChangeEvent(path=path, kind=ChangeKind.WRITE))

    assert store.reparse_calls == 1
    assert registry.messages == ["reload"]
    assert outcome.reparsed is True
    assert outcome.delivered == 2
    assert outcome.path == path


def test_static_write_broadcasts_without_reparse(tmp_path):
    store = FakeTemplateStore()
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry)

    outcome = coordinator.handle_event(
        ChangeEvent(path=tmp_path / "assets" / "static" / "app.js", kind=ChangeKind.WRITE)
    )

    assert store.reparse_calls == 0
    assert registry.messages == ["reload"]
    assert outcome.reparsed is False


def test_create_event_triggers_reload(tmp_path):
    store = FakeTemplateStore()
    coordinator = _coordinator(tmp_path, store)

    outcome = coordinator.handle_event(
        ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=ChangeKind.CREATE)
    )

    assert outcome is not None
    assert store.reparse_calls == 1


@pytest.mark.parametrize("kind", [ChangeKind.REMOVE, ChangeKind.RENAME])
def test_remove_and_rename_are_ignored(tmp_path, kind):
    store = FakeTemplateStore()
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry)

    outcome = coordinator.handle_event(
        ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=kind)
    )

    assert outcome is None
    assert store.reparse_calls == 0
    assert registry.messages == []


def test_template_root_without_extension_is_not_a_template(tmp_path):
    coordinator = _coordinator(tmp_path)

    assert coordinator.is_template(tmp_path / "assets" / "templates" / "index.html")
    assert not coordinator.is_template(tmp_path / "assets" / "templates" / "legacy.css")
    assert not coordinator.is_template(tmp_path / "assets" / "static" / "page.html")
    assert not coordinator.is_template(tmp_path / "assets" / "templates-old" / "index.html")


def test_every_event_is_handled_without_debounce(tmp_path):
    store = FakeTemplateStore()
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry)
    path = tmp_path / "assets" / "templates" / "index.html"

    coordinator.run([ChangeEvent(path=path, kind=ChangeKind.WRITE)] * 3)

    assert store.reparse_calls == 3
    assert registry.messages == ["reload"] * 3


def test_reparse_failure_propagates_without_broadcast(tmp_path):
    store = FakeTemplateStore(error=_parse_error())
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry)

    with pytest.raises(TemplateParseError):
        coordinator.handle_event(
            ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=ChangeKind.WRITE)
        )

    assert registry.messages == []


def test_run_exits_with_status_one_on_reparse_failure(tmp_path, capsys):
    exits = []
    store = FakeTemplateStore(error=_parse_error())
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry, exits=exits)
    template = ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=ChangeKind.WRITE)
    static = ChangeEvent(path=tmp_path / "assets" / "static" / "app.js", kind=ChangeKind.WRITE)

    coordinator.run([template, static])

    assert exits == [1]
    # The loop stops at the fatal event.
    assert registry.messages == []
    err = capsys.readouterr().err
    assert "Template re-parse failed" in err
    assert "ERR_TEMPLATE_SYNTAX" in err


def test_run_without_exit_process_reraises(tmp_path):
    coordinator = _coordinator(tmp_path, FakeTemplateStore(error=_parse_error()))
    event = ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=ChangeKind.WRITE)

    with pytest.raises(TemplateParseError):
        coordinator.run([event])


def test_undecodable_template_change_exits(tmp_path):
    templates = tmp_path / "assets" / "templates"
    templates.mkdir(parents=True)
    index = templates / "index.html"
    index.write_text("<p>ok</p>")
    store = TemplateStore(templates)
    store.reparse_all()
    exits = []
    registry = FakeRegistry()
    coordinator = _coordinator(tmp_path, store, registry, exits=exits)

    index.write_bytes(b"<h1>\xff\xfe</h1>")
    coordinator.run([ChangeEvent(path=index, kind=ChangeKind.WRITE)])

    assert exits == [1]
    assert registry.messages == []


def test_unexpected_reparse_error_is_fatal(tmp_path):
    exits = []
    registry = FakeRegistry()
    store = FakeTemplateStore(error=RuntimeError("template loader crashed"))
    coordinator = _coordinator(tmp_path, store, registry, exits=exits)
    event = ChangeEvent(path=tmp_path / "assets" / "templates" / "index.html", kind=ChangeKind.WRITE)

    with pytest.raises(TemplateParseError) as excinfo:
        coordinator.handle_event(event)
    assert excinfo.value.diagnostics[0].error_code == "ERR_TEMPLATE_RELOAD"

    coordinator.run([event])

    assert exits == [1]
    assert registry.messages == []
