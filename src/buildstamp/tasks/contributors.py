"""Render the list of commit authors."""

from __future__ import annotations

from typing import Dict, List, Tuple

from ..config import ConfigurationError
from ..tools.output import unescape_line_breaks
from .base import TaskContext

DEFAULT_HEADER = "Contributors\\n============"
DEFAULT_PREFIX = " * "
SORT_ORDERS = ("count", "name")


class ContributorsTask:
    """Write one line per author reachable from the configured ref.

    Options: ``header``, ``contributor_prefix`` and ``sort`` (``count``
    orders by number of commits, ``name`` alphabetically).
    """

    name = "contributors"
    produces_output = True

    def run(self, context: TaskContext) -> None:
        config = context.config
        sort = str(config.option("sort", "count"))
        if sort not in SORT_ORDERS:
            raise ConfigurationError(f"Unknown contributor ordering {sort!r}; expected one of {', '.join(SORT_ORDERS)}.")
        header = unescape_line_breaks(str(config.option("header", DEFAULT_HEADER)))
        prefix = str(config.option("contributor_prefix", DEFAULT_PREFIX))

        counts: Dict[Tuple[str, str], int] = {}
        for commit in context.require_repository().log():
            key = (commit.author_name, commit.author_email)
            counts[key] = counts.get(key, 0) + 1

        authors: List[Tuple[str, str]] = sorted(counts, key=lambda item: (item[0].lower(), item[1]))
        if sort == "count":
            authors.sort(key=lambda item: counts[item], reverse=True)

        if header:
            context.write_line(header)
        for author_name, author_email in authors:
            context.write_line(f"{prefix}{author_name} ({author_email})")


__all__ = ["ContributorsTask"]
