"""Change classification and filtering tests."""

from pathlib import Path

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from livedev.events.normalizer import classify, is_ignored_name, normalize_event
from livedev.events.types import ChangeKind


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.mark.parametrize(
    ("relative", "expected_type"),
    [
        ("styles/app.css", "css-update"),
        ("app.js", "js-update"),
        ("index.html", "reload"),
        ("images/logo.PNG", "reload"),
        ("THEME.CSS", "css-update"),
    ],
)
def test_change_is_classified_by_extension(root: Path, relative: str, expected_type: str) -> None:
    """Stylesheets, scripts and everything else map to their update kinds."""
    change = normalize_event(FileModifiedEvent(str(root / relative)), root)

    assert change is not None
    assert change.event.type.value == expected_type
    assert change.event.path == "/" + relative


def test_stylesheet_change_message_shape(root: Path) -> None:
    """The wire message is a flat type/path object."""
    change = normalize_event(FileModifiedEvent(str(root / "styles" / "app.css")), root)

    assert change is not None
    assert change.event.model_dump(mode="json") == {
        "type": "css-update",
        "path": "/styles/app.css",
    }


def test_classify_defaults_to_reload() -> None:
    assert classify("/README") is ChangeKind.RELOAD


@pytest.mark.parametrize(
    "name",
    [".hidden.html", "notes.txt~", "draft.tmp", "index.html.swp"],
)
def test_hidden_and_temporary_files_are_ignored(root: Path, name: str) -> None:
    """Hidden files and editor temporaries never produce a change."""
    assert is_ignored_name(name)
    assert normalize_event(FileModifiedEvent(str(root / name)), root) is None


def test_files_inside_hidden_directories_are_ignored(root: Path) -> None:
    assert normalize_event(FileModifiedEvent(str(root / ".git" / "index")), root) is None


def test_excluded_directories_are_ignored(root: Path) -> None:
    """Changes under an excluded directory are dropped, siblings are kept."""
    excluded = [(root / "node_modules").resolve()]

    inside = normalize_event(
        FileModifiedEvent(str(root / "node_modules" / "lib" / "x.js")), root, excluded
    )
    sibling = normalize_event(
        FileModifiedEvent(str(root / "node_modules_backup.js")), root, excluded
    )

    assert inside is None
    assert sibling is not None


def test_exclusion_is_anchored_at_the_root(root: Path) -> None:
    """Relative exclusions are anchored at the root, not matched by name."""
    excluded = [(root / "node_modules").resolve()]

    nested = normalize_event(
        FileModifiedEvent(str(root / "pkg" / "node_modules" / "lib" / "x.js")), root, excluded
    )

    assert nested is not None
    assert nested.event.path == "/pkg/node_modules/lib/x.js"


def test_directory_events_are_ignored(root: Path) -> None:
    assert normalize_event(DirModifiedEvent(str(root / "styles")), root) is None


def test_non_mutating_operations_are_ignored(root: Path) -> None:
    assert normalize_event(FileClosedEvent(str(root / "index.html")), root) is None


@pytest.mark.parametrize("event_class", [FileCreatedEvent, FileDeletedEvent, FileModifiedEvent])
def test_mutating_operations_are_reported(root: Path, event_class: type) -> None:
    change = normalize_event(event_class(str(root / "page.html")), root)

    assert change is not None
    assert change.operation == event_class.event_type


def test_move_reports_destination(root: Path) -> None:
    """Editors that save via rename are reported under the final name."""
    change = normalize_event(
        FileMovedEvent(str(root / "page.html.tmp"), str(root / "page.html")), root
    )

    assert change is not None
    assert change.event.path == "/page.html"
    assert change.operation == "moved"


def test_events_outside_root_are_dropped(root: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
    elsewhere = tmp_path_factory.mktemp("elsewhere").resolve()
    assert normalize_event(FileModifiedEvent(str(elsewhere / "x.html")), root) is None


def test_metadata_carries_paths_and_operation(root: Path) -> None:
    change = normalize_event(FileModifiedEvent(str(root / "app.js")), root)

    assert change is not None
    metadata = change.metadata()
    assert metadata["event"] == "file_change"
    assert metadata["type"] == "js-update"
    assert metadata["path"] == str(root / "app.js")
    assert metadata["relative_path"] == "/app.js"
    assert metadata["operation"] == "modified"
    assert metadata["timestamp"]
