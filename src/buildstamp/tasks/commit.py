"""Publish identity and authorship of the resolved commit."""

from __future__ import annotations

from .base import TaskContext


class CommitTask:
    """Set the ``commit.*`` properties for the configured ref.

    ``commit.abbrev``, ``commit.id`` and ``commit.sha`` carry the dirty flag
    when the working tree has uncommitted changes; ``commit.dirty`` always
    reports the raw state.
    """

    name = "commit"
    produces_output = False

    def run(self, context: TaskContext) -> None:
        repository = context.require_repository()
        commit = repository.head_commit()
        abbrev = repository.abbreviate(commit.sha)
        dirty = context.is_dirty()

        context.add_property("commit.abbrev", context.flag_dirty(abbrev, dirty))
        context.add_property("commit.id", context.flag_dirty(commit.sha, dirty))
        context.add_property("commit.sha", context.flag_dirty(commit.sha, dirty))
        context.add_property("commit.dirty", "true" if dirty else "false")

        context.add_property("commit.author.name", commit.author_name)
        context.add_property("commit.author.email", commit.author_email)
        context.add_property("commit.author.date", context.format_date(commit.author_date))
        context.add_property("commit.committer.name", commit.committer_name)
        context.add_property("commit.committer.email", commit.committer_email)
        context.add_property("commit.committer.date", context.format_date(commit.committer_date))


__all__ = ["CommitTask"]
