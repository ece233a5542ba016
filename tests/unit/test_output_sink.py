from __future__ import annotations

import io
import logging
from datetime import datetime

import pytest

from buildstamp.tools.output import (
    OutputError,
    OutputSink,
    close_sink,
    format_template,
    open_sink,
    render_footer,
    unescape_line_breaks,
    write_footer,
)


def test_missing_path_uses_shared_stdout() -> None:
    stdout = io.StringIO()

    sink = open_sink(None, stdout=stdout)
    sink.write_line("hello")
    close_sink(sink)
    close_sink(sink)

    assert sink.stream is stdout
    assert not sink.owned
    assert not stdout.closed
    assert stdout.getvalue() == "hello\n"


def test_file_sink_creates_parents_and_closes_once(tmp_path) -> None:
    target = tmp_path / "a" / "b" / "out.txt"

    sink = open_sink(target, "utf-8")
    sink.write_line("café")
    close_sink(sink)
    close_sink(sink)

    assert sink.owned and sink.closed
    assert sink.stream.closed
    assert target.read_bytes() == "café\n".encode("utf-8")


def test_file_sink_honours_encoding(tmp_path) -> None:
    target = tmp_path / "latin.txt"

    sink = open_sink(target, "latin-1")
    sink.write("café")
    close_sink(sink)

    assert target.read_bytes() == b"caf\xe9"


def test_unknown_encoding_is_output_error(tmp_path) -> None:
    target = tmp_path / "out.txt"

    with pytest.raises(OutputError) as excinfo:
        open_sink(target, "no-such-codec")

    assert str(target.resolve()) in str(excinfo.value)
    assert excinfo.value.path == target.resolve()


def test_unwritable_target_is_output_error(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(OutputError, match="for writing"):
        open_sink(blocker / "out.txt")


def test_writing_to_closed_sink_fails(tmp_path) -> None:
    sink = open_sink(tmp_path / "out.txt")
    close_sink(sink)

    with pytest.raises(OutputError, match="closed"):
        sink.write_line("late")


def test_unescape_only_converts_unescaped_sequences() -> None:
    assert unescape_line_breaks("a\\nb") == "a\nb"
    assert unescape_line_breaks("\\nlead") == "\nlead"
    assert unescape_line_breaks("keep\\\\nthis") == "keep\\\\nthis"
    assert unescape_line_breaks("plain") == "plain"


def test_format_template_slots() -> None:
    assert format_template("%s and %s", ["a", "b"]) == "a and b"
    assert format_template("%2$s before %1$s", ["a", "b"]) == "b before a"
    assert format_template("100%% %s", [None]) == "100% "
    assert format_template("%s|%s|%s", ["a"]) == "a||"
    assert format_template("only %s", ["a", "surplus"]) == "only a"
    assert format_template("line%nbreak", []) == "line\nbreak"


def test_footer_with_absent_version_renders_empty_placeholder() -> None:
    now = datetime(2024, 1, 2, 3, 4)
    stream = io.StringIO()

    rendered = render_footer("\\nGenerated by X at %s %s", "%Y-%m-%d %H:%M", version=None, now=now)
    write_footer(
        OutputSink(stream=stream),
        "\\nGenerated by X at %s %s",
        "%Y-%m-%d %H:%M",
        version_provider=lambda: None,
        now=now,
    )

    assert rendered == "\nGenerated by X at  2024-01-02 03:04"
    assert stream.getvalue() == "\nGenerated by X at  2024-01-02 03:04\n"


def test_footer_includes_version() -> None:
    stream = io.StringIO()

    write_footer(
        OutputSink(stream=stream),
        "built by %s on %s",
        "%Y",
        version_provider=lambda: "1.2.3",
        now=datetime(2024, 1, 2),
    )

    assert stream.getvalue() == "built by 1.2.3 on 2024\n"


def test_empty_footer_writes_nothing() -> None:
    stream = io.StringIO()
    calls: list = []

    write_footer(OutputSink(stream=stream), "", "%Y", version_provider=lambda: calls.append(1))

    assert stream.getvalue() == ""
    assert calls == []
    assert render_footer("", "%Y", version=None, now=datetime(2024, 1, 2)) is None


def test_footer_line_prefix_skips_blank_lines() -> None:
    stream = io.StringIO()

    write_footer(
        OutputSink(stream=stream),
        "\\nfirst\\nsecond %s",
        "%Y",
        version_provider=lambda: "9",
        now=datetime(2024, 1, 2),
        line_prefix="# ",
    )

    assert stream.getvalue() == "\n# first\n# second 9\n"


class _FailingStream(io.StringIO):
    flush_calls = 0
    close_calls = 0

    def flush(self) -> None:
        self.flush_calls += 1
        if self.flush_calls == 1:
            raise OSError("disk full")

    def close(self) -> None:
        self.close_calls += 1
        if self.close_calls == 1:
            raise OSError("device gone")
        super().close()


def test_close_failures_are_logged_not_raised(tmp_path, caplog) -> None:
    stream = _FailingStream()
    sink = OutputSink(stream=stream, path=tmp_path / "out.txt")

    with caplog.at_level(logging.WARNING, logger="buildstamp.tools.output"):
        close_sink(sink)
        close_sink(sink)

    assert sink.closed
    assert stream.close_calls == 1
    assert "Failed to flush output" in caplog.text
    assert "Failed to close output file" in caplog.text
    assert caplog.text.count("device gone") == 1


def test_unencodable_text_is_output_error(tmp_path) -> None:
    sink = open_sink(tmp_path / "ascii.txt", "ascii")

    with pytest.raises(OutputError, match="Could not write"):
        sink.write_line("José")
    close_sink(sink)
