"""Output sinks for tasks that render text instead of publishing properties.

A sink is either the shared standard output stream, which is never closed
here, or a file opened for the duration of one task execution.  Footers
are rendered from printf-style templates with two slots: the buildstamp
version and the generation timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence, TextIO

import logging
import re
import sys

from .version import current_version

LOGGER = logging.getLogger(__name__)

_ESCAPED_LINE_BREAK = re.compile(r"(?<!\\)\\n")
_FORMAT_TOKEN = re.compile(r"%(?:(\d+)\$)?s|%%|%n")


class OutputError(RuntimeError):
    """Raised when generated output cannot be written."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass(slots=True)
class OutputSink:
    """Text stream receiving generated output."""

    stream: TextIO
    path: Path | None = None
    closed: bool = False

    @property
    def owned(self) -> bool:
        """File-backed sinks are owned by the execution that opened them."""
        return self.path is not None

    def write(self, text: str) -> None:
        if self.closed:
            raise OutputError("Output sink is closed.", self.path)
        try:
            self.stream.write(text)
        except (OSError, UnicodeEncodeError) as error:
            target = self.path.as_posix() if self.path else "<stdout>"
            raise OutputError(f"Could not write to {target}: {error}", self.path) from error

    def write_line(self, text: str = "") -> None:
        self.write(f"{text}\n")


def open_sink(output_file: Path | str | None, encoding: str = "utf-8", *, stdout: TextIO | None = None) -> OutputSink:
    """Return the sink for ``output_file``, or the shared stdout sink when absent."""

    if output_file is None:
        return OutputSink(stream=stdout if stdout is not None else sys.stdout)

    target = Path(output_file).resolve()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        stream = target.open("w", encoding=encoding, newline="\n")
    except (OSError, LookupError) as error:
        raise OutputError(f'Could not open output file "{target}" for writing.', target) from error
    LOGGER.debug("Writing output to %s (%s)", target, encoding)
    return OutputSink(stream=stream, path=target)


def close_sink(sink: OutputSink) -> None:
    """Flush ``sink`` and close it when file-backed; failures are only logged."""

    if sink.closed:
        return
    try:
        sink.stream.flush()
    except (OSError, ValueError) as error:
        LOGGER.warning("Failed to flush output %s: %s", sink.path or "<stdout>", error)
    if not sink.owned:
        return
    sink.closed = True
    try:
        sink.stream.close()
    except OSError as error:
        LOGGER.warning("Failed to close output file %s: %s", sink.path, error)


def unescape_line_breaks(template: str) -> str:
    """Turn literal ``\\n`` sequences into line breaks unless escaped themselves."""
    return _ESCAPED_LINE_BREAK.sub("\n", template)


def format_template(template: str, values: Sequence[str | None]) -> str:
    """Substitute ``%s`` slots in ``template`` with ``values``.

    Slots are filled in order; ``%1$s`` picks a value explicitly, ``%%``
    yields a percent sign and ``%n`` a line break.  ``None`` and missing
    values render as the empty string, surplus values are ignored.
    """

    position = 0

    def _substitute(match: re.Match[str]) -> str:
        nonlocal position
        token = match.group(0)
        if token == "%%":
            return "%"
        if token == "%n":
            return "\n"
        explicit = match.group(1)
        if explicit is not None:
            index = int(explicit) - 1
        else:
            index = position
            position += 1
        if 0 <= index < len(values):
            value = values[index]
            return "" if value is None else str(value)
        return ""

    return _FORMAT_TOKEN.sub(_substitute, template)


def render_footer(
    template: str,
    date_format: str,
    *,
    version: str | None,
    now: datetime,
) -> str | None:
    """Return the rendered footer, or ``None`` when ``template`` is empty."""

    if not template:
        return None
    return format_template(unescape_line_breaks(template), [version, now.strftime(date_format)])


def write_footer(
    sink: OutputSink,
    template: str,
    date_format: str,
    *,
    version_provider: Callable[[], str | None] = current_version,
    now: datetime | None = None,
    line_prefix: str = "",
) -> None:
    """Append the footer to ``sink`` when a template is configured.

    ``line_prefix`` is prepended to every non-empty footer line.
    """

    if not template:
        return
    timestamp = now if now is not None else datetime.now().astimezone()
    footer = render_footer(template, date_format, version=version_provider(), now=timestamp)
    if line_prefix:
        footer = "\n".join(f"{line_prefix}{line}" if line else line for line in footer.split("\n"))
    sink.write_line(footer)


__all__ = [
    "OutputError",
    "OutputSink",
    "close_sink",
    "format_template",
    "open_sink",
    "render_footer",
    "unescape_line_breaks",
    "write_footer",
]
