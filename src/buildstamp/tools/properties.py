"""Helpers for publishing resolved values into a key/value property store."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, MutableMapping
from pathlib import Path

DEFAULT_PROPERTY_PREFIXES: tuple[str, ...] = ("buildstamp", "git")

_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "=": "\\=",
    ":": "\\:",
}


def publish_property(
    store: MutableMapping[str, str],
    name: str,
    value: str,
    prefixes: Iterable[str],
) -> None:
    """Store ``value`` once per prefix as ``<prefix>.<name>``."""
    for prefix in prefixes:
        store[f"{prefix}.{name}"] = value


def _escape(text: str, *, key: bool) -> str:
    escaped = "".join(_ESCAPES.get(char, char) for char in text)
    if key:
        escaped = escaped.replace(" ", "\\ ")
    elif escaped.startswith(" "):
        escaped = "\\" + escaped
    return escaped


def format_properties(store: Mapping[str, str]) -> str:
    """Render ``store`` in Java properties syntax, one sorted entry per line."""
    lines = [f"{_escape(key, key=True)}={_escape(value, key=False)}" for key, value in sorted(store.items())]
    return "\n".join(lines) + ("\n" if lines else "")


def write_properties_file(store: Mapping[str, str], path: Path, *, encoding: str = "utf-8") -> Path:
    """Persist ``store`` to ``path`` and return the resolved location."""
    target = Path(path).resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(format_properties(store), encoding=encoding)
    return target


__all__ = [
    "DEFAULT_PROPERTY_PREFIXES",
    "format_properties",
    "publish_property",
    "write_properties_file",
]
