"""Best-effort lookup of the buildstamp version."""

from __future__ import annotations

from importlib import import_module

GIT_INFO_MODULE = "buildstamp.git_info"


def current_version(module_name: str = GIT_INFO_MODULE) -> str | None:
    """Return the version recorded in the generated git info module.

    The module is produced at build time by the ``info-module`` task.  When
    it is missing, lacks ``get_version()``, or does not return a string,
    ``None`` is returned instead of raising.
    """
    try:
        module = import_module(module_name)
        version = module.get_version()
    except Exception:
        return None
    if not isinstance(version, str):
        return None
    return version


__all__ = ["GIT_INFO_MODULE", "current_version"]
