"""Render a plain-text changelog from the commit history."""

from __future__ import annotations

from ..config import ConfigurationError
from ..tools.output import unescape_line_breaks
from .base import TaskContext

DEFAULT_HEADER = "Changelog\\n========="
DEFAULT_TAG_PREFIX = "\\nVersion "
DEFAULT_COMMIT_PREFIX = " * "


def _max_commits(value: object) -> int | None:
    if value is None:
        return None
    try:
        count = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f"max_commits must be an integer, got {value!r}.") from error
    if count < 1:
        raise ConfigurationError(f"max_commits must be positive, got {count}.")
    return count


class ChangelogTask:
    """Write commit subjects newest first, grouped under the tags that contain them.

    Options: ``header``, ``tag_prefix``, ``commit_prefix`` and ``max_commits``.
    """

    name = "changelog"
    produces_output = True

    def run(self, context: TaskContext) -> None:
        config = context.config
        header = unescape_line_breaks(str(config.option("header", DEFAULT_HEADER)))
        tag_prefix = unescape_line_breaks(str(config.option("tag_prefix", DEFAULT_TAG_PREFIX)))
        commit_prefix = unescape_line_breaks(str(config.option("commit_prefix", DEFAULT_COMMIT_PREFIX)))
        max_commits = _max_commits(config.options.get("max_commits"))

        repository = context.require_repository()
        tags = repository.tags_by_commit()

        if header:
            context.write_line(header)
        for commit in repository.log(max_count=max_commits):
            names = tags.get(commit.sha)
            if names:
                context.write_line(f"{tag_prefix}{', '.join(names)}")
            context.write_line(f"{commit_prefix}{commit.subject}")


__all__ = ["ChangelogTask"]
