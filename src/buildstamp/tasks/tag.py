"""Publish the nearest tag of the resolved commit."""

from __future__ import annotations

from .base import TaskContext


class TagTask:
    """Set ``tag.describe`` and ``tag.name``.

    Without a reachable tag the description falls back to the abbreviated
    commit id and the name is empty.
    """

    name = "tag"
    produces_output = False

    def run(self, context: TaskContext) -> None:
        repository = context.require_repository()
        description = repository.describe()
        if description is None:
            describe = repository.abbreviate(repository.head_commit().sha)
            tag_name = ""
        else:
            describe = description.describe
            tag_name = description.name

        context.add_property("tag.describe", context.flag_dirty(describe, context.is_dirty()))
        context.add_property("tag.name", tag_name)


__all__ = ["TagTask"]
