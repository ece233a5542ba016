"""Building blocks shared by the metadata tasks."""

from .output import OutputError, OutputSink, close_sink, open_sink, render_footer, write_footer
from .properties import DEFAULT_PROPERTY_PREFIXES, format_properties, publish_property, write_properties_file
from .vcs import (
    CommitInfo,
    GitError,
    GitRepository,
    RepositoryAccessError,
    RepositoryHandle,
    RepositoryUnavailableError,
    TagDescription,
    open_repository,
)
from .version import current_version

__all__ = [
    "CommitInfo",
    "DEFAULT_PROPERTY_PREFIXES",
    "GitError",
    "GitRepository",
    "OutputError",
    "OutputSink",
    "RepositoryAccessError",
    "RepositoryHandle",
    "RepositoryUnavailableError",
    "TagDescription",
    "close_sink",
    "current_version",
    "format_properties",
    "open_repository",
    "open_sink",
    "publish_property",
    "render_footer",
    "write_footer",
    "write_properties_file",
]
