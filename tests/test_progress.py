import pytest

from esrflow.core.progress import (
    DIAGNOSTIC_CAPACITY,
    DiagnosticBuffer,
    FileCountProgress,
    PercentProgress,
    count_input_files,
    parse_percent_line,
)


def test_parse_percent_line():
    assert parse_percent_line("53.23%") == pytest.approx(0.5323)
    assert parse_percent_line("100.00%") == pytest.approx(1.0)
    assert parse_percent_line("0.00%") == 0.0
    assert parse_percent_line("  7.5%  ") == pytest.approx(0.075)


def test_parse_percent_line_rejects_other_text():
    assert parse_percent_line("[0 NVIDIA GeForce]  queueC=2[8]") is None
    assert parse_percent_line("") is None
    assert parse_percent_line("done 100%") is None
    assert parse_percent_line("abc%") is None
    assert parse_percent_line("1.2.3%") is None
    assert parse_percent_line("-5.00%") is None
    assert parse_percent_line("+5.00%") is None


def test_parse_percent_line_caps_at_one():
    assert parse_percent_line("250.00%") == 1.0
    assert parse_percent_line("100.01%") == 1.0


def test_percent_progress_sequence():
    p = PercentProgress()
    values = [p.feed(line) for line in ("10.00%", "loading", "55.50%", "100.00%")]
    assert values[1] is None
    assert [v for v in values if v is not None] == pytest.approx([0.10, 0.555, 1.0])
    assert p.last == pytest.approx(1.0)


def test_diagnostic_buffer_keeps_most_recent_oldest_first():
    buf = DiagnosticBuffer()
    for n in range(DIAGNOSTIC_CAPACITY + 4):
        buf.append(f"line {n}")
    assert len(buf) == DIAGNOSTIC_CAPACITY
    lines = buf.text().splitlines()
    assert lines[0] == "line 4"
    assert lines[-1] == f"line {DIAGNOSTIC_CAPACITY + 3}"


def test_file_count_progress():
    fc = FileCountProgress(4, existing=["old.png"])
    assert fc.feed("/out/old.png") is None
    values = [fc.feed(f"/out/{n}.png") for n in range(4)]
    assert values == pytest.approx([0.25, 0.5, 0.75, 1.0])
    # repeated notification for the same file
    assert fc.feed("/out/3.png") is None
    assert fc.created == 4


def test_file_count_progress_is_capped():
    fc = FileCountProgress(1)
    assert fc.feed("a.png") == 1.0
    assert fc.feed("a.png.tmp") == 1.0


def test_file_count_progress_without_inputs():
    assert FileCountProgress(0).feed("a.png") is None


def test_count_input_files(image_folder):
    assert count_input_files(image_folder) == 4


def test_signed_percent_is_kept_as_diagnostic():
    p = PercentProgress()
    assert p.feed("-5.00%") is None
    assert p.last is None
    assert p.feed("250.00%") == 1.0
    assert p.last == 1.0
