"""Task names, registry and execution ordering."""

from __future__ import annotations

from enum import Enum

from .base import (
    ExecutionResult,
    ExecutionStatus,
    MetadataTask,
    Severity,
    TaskContext,
    TaskError,
    TaskExecution,
    execute_task,
)
from .branch import BranchTask
from .changelog import ChangelogTask
from .commit import CommitTask
from .contributors import ContributorsTask
from .info_module import InfoModuleTask
from .tag import TagTask


class TaskName(str, Enum):
    """Enumeration of the supported metadata tasks."""

    BRANCH = "branch"
    COMMIT = "commit"
    TAG = "tag"
    CONTRIBUTORS = "contributors"
    CHANGELOG = "changelog"
    INFO_MODULE = "info-module"


TASK_SEQUENCE = [
    TaskName.BRANCH,
    TaskName.COMMIT,
    TaskName.TAG,
    TaskName.CONTRIBUTORS,
    TaskName.CHANGELOG,
    TaskName.INFO_MODULE,
]

_TASK_TYPES = {
    TaskName.BRANCH: BranchTask,
    TaskName.COMMIT: CommitTask,
    TaskName.TAG: TagTask,
    TaskName.CONTRIBUTORS: ContributorsTask,
    TaskName.CHANGELOG: ChangelogTask,
    TaskName.INFO_MODULE: InfoModuleTask,
}


def build_task(name: TaskName | str) -> MetadataTask:
    """Instantiate the task registered under ``name``."""
    return _TASK_TYPES[TaskName(name)]()


__all__ = [
    "ExecutionResult",
    "ExecutionStatus",
    "MetadataTask",
    "Severity",
    "TASK_SEQUENCE",
    "TaskContext",
    "TaskError",
    "TaskExecution",
    "TaskName",
    "build_task",
    "execute_task",
]
