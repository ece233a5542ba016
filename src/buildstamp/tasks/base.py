"""Execution lifecycle shared by every metadata task.

A task only implements :meth:`MetadataTask.run`.  :class:`TaskExecution`
owns everything around it:

1. parameters are resolved (:func:`buildstamp.config.resolve_parameters`),
2. the repository is opened and positioned on the configured ref,
3. output tasks get a sink (stdout or an owned file),
4. ``run`` executes and output tasks receive the footer,
5. the sink and the repository are released on every exit path.

Output tasks may declare a ``comment_prefix`` so the footer is written as
comment lines of the generated format.

Configuration, repository and output failures never escape as exceptions.
They are returned as an :class:`ExecutionResult` tagged with a
:class:`Severity`: ``HARD`` stops the build, ``SOFT``
(``fail_gracefully``) lets it continue.  A missing repository is
reported as a skip when ``skip_no_git`` is set.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, MutableMapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, TextIO, runtime_checkable

from ..config import ConfigurationError, TaskConfig, resolve_parameters
from ..tools.output import OutputError, OutputSink, close_sink, open_sink, write_footer
from ..tools.properties import publish_property
from ..tools.vcs import GitError, RepositoryHandle, open_repository
from ..tools.version import current_version

LOGGER = logging.getLogger(__name__)

RepositoryOpener = Callable[[Path, Optional[Path], str], RepositoryHandle]


class TaskError(RuntimeError):
    """Single failure type surfaced by a task execution."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class Severity(str, Enum):
    """How a failed execution affects the surrounding build."""

    SOFT = "soft"
    HARD = "hard"


class ExecutionStatus(str, Enum):
    """Terminal states of a task execution."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one task execution."""

    task: str
    status: ExecutionStatus
    severity: Severity | None = None
    message: str | None = None
    error: TaskError | None = None

    @property
    def ok(self) -> bool:
        return self.status != ExecutionStatus.FAILED

    @property
    def halts_build(self) -> bool:
        return self.severity == Severity.HARD


@dataclass(slots=True)
class TaskContext:
    """Resources and settings handed to :meth:`MetadataTask.run`."""

    config: TaskConfig
    properties: MutableMapping[str, str] = field(default_factory=dict)
    repository: RepositoryHandle | None = None
    sink: OutputSink | None = None

    def add_property(self, name: str, value: str) -> None:
        """Publish ``value`` under every configured prefix."""
        publish_property(self.properties, name, value, self.config.property_prefixes)

    def require_repository(self) -> RepositoryHandle:
        if self.repository is None:
            raise TaskError("No repository is available to this task.")
        return self.repository

    def write_line(self, text: str = "") -> None:
        if self.sink is None:
            raise TaskError("This task has no output sink.")
        self.sink.write_line(text)

    def format_date(self, value: str) -> str:
        """Render an ISO-8601 timestamp from git with the configured date format."""
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return value
        return parsed.strftime(self.config.date_format)

    def is_dirty(self) -> bool:
        repository = self.require_repository()
        return repository.is_dirty(ignore_untracked=self.config.dirty_ignore_untracked)

    def flag_dirty(self, value: str, dirty: bool) -> str:
        """Append the dirty flag to ``value`` when enabled and ``dirty``."""
        if dirty and self.config.dirty_flag:
            return value + self.config.dirty_flag
        return value


@runtime_checkable
class MetadataTask(Protocol):
    """Capability interface implemented by concrete tasks."""

    name: str
    produces_output: bool

    def run(self, context: TaskContext) -> None: ...


def _default_opener(base_dir: Path, git_dir: Optional[Path], head: str) -> RepositoryHandle:
    return open_repository(base_dir, git_dir, head=head)


_COMPONENT_ERRORS = (ConfigurationError, GitError, OutputError)


class TaskExecution:
    """Drive one task through init, run and cleanup."""

    def __init__(
        self,
        task: MetadataTask,
        config: TaskConfig,
        *,
        properties: MutableMapping[str, str] | None = None,
        stdout: TextIO | None = None,
        repository_opener: RepositoryOpener = _default_opener,
        version_provider: Callable[[], str | None] = current_version,
    ) -> None:
        self.task = task
        self.raw_config = config
        self.context = TaskContext(config=config, properties=properties if properties is not None else {})
        self._stdout = stdout
        self._open_repository = repository_opener
        self._version_provider = version_provider

    @property
    def config(self) -> TaskConfig:
        return self.context.config

    def execute(self) -> ExecutionResult:
        """Run the task and return its classified outcome."""

        name = self.task.name
        if self.raw_config.skip:
            LOGGER.info("Skipping %s: execution disabled by configuration.", name)
            return ExecutionResult(task=name, status=ExecutionStatus.SKIPPED, message="skipped by configuration")

        usable = False
        try:
            usable = self.init()
            if not usable:
                return ExecutionResult(
                    task=name,
                    status=ExecutionStatus.SKIPPED,
                    message="no git repository found",
                )
            self._run()
        except TaskError as error:
            return self._failure(error)
        finally:
            if usable:
                self.cleanup()

        return ExecutionResult(task=name, status=ExecutionStatus.SUCCESS)

    def init(self) -> bool:
        """Resolve parameters and acquire resources.

        Returns ``False`` when no repository could be opened and
        ``skip_no_git`` is set.
        """

        try:
            self.context.config = resolve_parameters(self.raw_config)
        except ConfigurationError as error:
            raise TaskError(str(error), error) from error

        config = self.config
        try:
            self.context.repository = self._open_repository(config.base_dir, config.git_dir, config.head)
        except GitError as error:
            if config.skip_no_git:
                LOGGER.info("Skipping %s: %s", self.task.name, error)
                return False
            raise TaskError(f"Unable to initialize Git repository: {error}", error) from error

        if self.task.produces_output:
            try:
                self.context.sink = open_sink(config.output_file, config.encoding, stdout=self._stdout)
            except OutputError as error:
                self.cleanup()
                raise TaskError(str(error), error) from error
        return True

    def _run(self) -> None:
        config = self.config
        try:
            self.task.run(self.context)
            if self.context.sink is not None:
                write_footer(
                    self.context.sink,
                    config.footer,
                    config.date_format,
                    version_provider=self._version_provider,
                    line_prefix=getattr(self.task, "comment_prefix", ""),
                )
        except _COMPONENT_ERRORS as error:
            raise TaskError(str(error), error) from error

    def cleanup(self) -> None:
        """Release the sink and the repository; safe to call repeatedly."""

        sink, self.context.sink = self.context.sink, None
        if sink is not None:
            close_sink(sink)

        repository, self.context.repository = self.context.repository, None
        if repository is not None:
            try:
                repository.close()
            except Exception as error:
                LOGGER.warning("Failed to close repository for %s: %s", self.task.name, error)

    def _failure(self, error: TaskError) -> ExecutionResult:
        severity = Severity.SOFT if self.raw_config.fail_gracefully else Severity.HARD
        if severity == Severity.SOFT:
            LOGGER.warning("%s failed (continuing): %s", self.task.name, error.message)
        else:
            LOGGER.error("%s failed: %s", self.task.name, error.message)
        return ExecutionResult(
            task=self.task.name,
            status=ExecutionStatus.FAILED,
            severity=severity,
            message=error.message,
            error=error,
        )


def execute_task(task: MetadataTask, config: TaskConfig, **kwargs: Any) -> ExecutionResult:
    """Execute ``task`` with ``config``; see :class:`TaskExecution` for keyword arguments."""
    return TaskExecution(task, config, **kwargs).execute()


__all__ = [
    "ExecutionResult",
    "ExecutionStatus",
    "MetadataTask",
    "RepositoryOpener",
    "Severity",
    "TaskContext",
    "TaskError",
    "TaskExecution",
    "execute_task",
]
