"""Publish the checked-out branch."""

from __future__ import annotations

from .base import TaskContext


class BranchTask:
    """Set ``branch`` to the current branch, or the commit id when detached."""

    name = "branch"
    produces_output = False

    def run(self, context: TaskContext) -> None:
        context.add_property("branch", context.require_repository().branch())


__all__ = ["BranchTask"]
