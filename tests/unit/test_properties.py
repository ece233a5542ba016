from __future__ import annotations

from buildstamp.tools.properties import format_properties, publish_property, write_properties_file


def test_publish_once_per_prefix() -> None:
    store: dict[str, str] = {}

    publish_property(store, "version", "1.2.3", ["a", "b"])

    assert store == {"a.version": "1.2.3", "b.version": "1.2.3"}


def test_publish_overwrites_existing_keys() -> None:
    store = {"git.branch": "old", "other": "kept"}

    publish_property(store, "branch", "main", ("git",))

    assert store == {"git.branch": "main", "other": "kept"}


def test_publish_without_prefixes_is_a_no_op() -> None:
    store: dict[str, str] = {}

    publish_property(store, "branch", "main", [])

    assert store == {}


def test_format_properties_sorts_and_escapes() -> None:
    store = {
        "git.footer": "line\nbreak",
        "git.branch": "main",
        "git.path": "C:\\work",
        "key with space": " padded=yes",
    }

    assert format_properties(store) == (
        "git.branch=main\n"
        "git.footer=line\\nbreak\n"
        "git.path=C\\:\\\\work\n"
        "key\\ with\\ space=\\ padded\\=yes\n"
    )
    assert format_properties({}) == ""


def test_write_properties_file_creates_parents(tmp_path) -> None:
    target = tmp_path / "build" / "git.properties"

    written = write_properties_file({"git.branch": "main"}, target)

    assert written == target.resolve()
    assert target.read_text(encoding="utf-8") == "git.branch=main\n"
