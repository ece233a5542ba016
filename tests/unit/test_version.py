from __future__ import annotations

import sys
import types

from buildstamp.tools.version import current_version


def _install(monkeypatch, name: str, **attributes) -> None:
    module = types.ModuleType(name)
    for key, value in attributes.items():
        setattr(module, key, value)
    monkeypatch.setitem(sys.modules, name, module)


def test_missing_module_yields_none() -> None:
    assert current_version("buildstamp_tests_absent_info") is None


def test_version_is_read_from_module(monkeypatch) -> None:
    _install(monkeypatch, "stamp_info_ok", get_version=lambda: "1.2.3")

    assert current_version("stamp_info_ok") == "1.2.3"


def test_missing_accessor_yields_none(monkeypatch) -> None:
    _install(monkeypatch, "stamp_info_bare", VERSION="1.2.3")

    assert current_version("stamp_info_bare") is None


def test_non_string_version_yields_none(monkeypatch) -> None:
    _install(monkeypatch, "stamp_info_number", get_version=lambda: 123)

    assert current_version("stamp_info_number") is None


def test_failing_accessor_yields_none(monkeypatch) -> None:
    def _boom() -> str:
        raise RuntimeError("corrupt build info")

    _install(monkeypatch, "stamp_info_broken", get_version=_boom)

    assert current_version("stamp_info_broken") is None
