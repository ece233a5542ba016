"""Generate a Python module recording git metadata at build time.

The generated module exposes constants plus ``get_version()``, which is
what :func:`buildstamp.tools.version.current_version` looks up.
"""

from __future__ import annotations

from datetime import datetime

from .base import TaskContext

_MODULE_HEADER = '"""Git metadata recorded by buildstamp at build time."""'


class InfoModuleTask:
    """Write the git info module; ``options.version`` overrides the tag description."""

    name = "info-module"
    produces_output = True
    comment_prefix = "# "

    def run(self, context: TaskContext) -> None:
        repository = context.require_repository()
        commit = repository.head_commit()
        abbrev = repository.abbreviate(commit.sha)
        dirty = context.is_dirty()
        description = repository.describe()

        describe = description.describe if description is not None else abbrev
        version = context.config.option("version", context.flag_dirty(describe, dirty))
        values = {
            "VERSION": str(version),
            "COMMIT_ID": commit.sha,
            "COMMIT_ABBREV": abbrev,
            "BRANCH": repository.branch(),
            "TAG": description.name if description is not None else "",
            "DIRTY": dirty,
            "BUILD_DATE": datetime.now().astimezone().strftime(context.config.date_format),
        }

        context.write_line(_MODULE_HEADER)
        context.write_line()
        for key, value in values.items():
            context.write_line(f"{key} = {value!r}")
        context.write_line()
        context.write_line()
        context.write_line("def get_version() -> str:")
        context.write_line("    return VERSION")


__all__ = ["InfoModuleTask"]
