"""
Smoke tests for decoder traces and the replay CLI.

The goal is to push a small synthetic decode through the full
trace -> session -> reporters wiring so regressions in the plumbing or in
the output layout are caught early.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from complexity.cli import main as cli_main
from complexity.errors import ContractViolation, TraceFormatError
from complexity.report import MemoryReporter
from complexity.session import PictureSession
from complexity.trace import TraceEvent, load_trace, replay, write_trace


def _synthetic_events() -> list:
    """Two 48x32 pictures, the first decoded twice (ffmpeg quirk)."""
    events = []
    for poc in (0, 0, 1):
        events.append(TraceEvent("start", poc=poc, width=48, height=32))
        # left 32x32: one big unit
        events.append(TraceEvent("unit", x=0, y=0, size=32, bits=90 + poc, qp=30))
        # right column: 8x8 units in the top cell, a native cell below
        for x, y in [(32, 0), (40, 0), (32, 8), (40, 8)]:
            events.append(TraceEvent("unit", x=x, y=y, size=8, bits=5, qp=26))
        events.append(TraceEvent("unit", x=32, y=16, size=16, bits=12, qp=28))
        events.append(TraceEvent("group", index=0, x=0, y=0, size=64, bits=150, qp=30))
        events.append(TraceEvent("finish"))
    return events


def _write_jsonl(path: Path, rows) -> Path:
    with open(path, "w") as f:
        for row in rows:
            f.write(json.dumps(row) + "\n")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "COMPLEXITY_FILENAME",
        "COMPLEXITY_CTU_FILENAME",
        "COMPLEXITY_JSONL_FILENAME",
        "COMPLEXITY_HEATMAP_DIR",
        "COMPLEXITY_DUMP_XY",
        "complexity_DUMP_XY",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Tests: Traces
# ---------------------------------------------------------------------------


class TestTrace:
    def test_write_and_load(self, tmp_path):
        events = _synthetic_events()
        path = write_trace(events, tmp_path / "trace.jsonl")
        assert load_trace(path) == events

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "trace.jsonl"
        path.write_text('{"event": "start", "poc": 0, "width": 16, "height": 16}\n\n{"event": "finish"}\n')
        assert [e.kind for e in load_trace(path)] == ["start", "finish"]

    def test_unknown_event(self, tmp_path):
        path = _write_jsonl(tmp_path / "bad.jsonl", [{"event": "finish"}, {"event": "slice"}])
        with pytest.raises(TraceFormatError, match=":2:"):
            load_trace(path)

    def test_missing_field(self, tmp_path):
        path = _write_jsonl(tmp_path / "bad.jsonl", [{"event": "unit", "x": 0, "y": 0}])
        with pytest.raises(TraceFormatError, match="size"):
            load_trace(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text("{not json\n")
        with pytest.raises(TraceFormatError):
            load_trace(path)

    def test_line_not_an_object(self, tmp_path):
        path = tmp_path / "bad.jsonl"
        path.write_text("[1, 2]\n")
        with pytest.raises(TraceFormatError, match=":1:"):
            load_trace(path)

    def test_unhashable_event_name(self, tmp_path):
        path = _write_jsonl(tmp_path / "bad.jsonl", [{"event": ["start"]}])
        with pytest.raises(TraceFormatError, match="Unknown event"):
            load_trace(path)

    @pytest.mark.parametrize(
        "row",
        [
            {"event": "start", "poc": 0, "width": "16", "height": 16},
            {"event": "start", "poc": None, "width": 16, "height": 16},
            {"event": "unit", "x": 0, "y": 0, "size": 16.0, "bits": 5, "qp": 30},
            {"event": "unit", "x": 0, "y": 0, "size": 16, "bits": True, "qp": 30},
            {"event": "group", "index": 0, "x": 0, "y": 0, "size": 64, "bits": 5, "qp": "30"},
        ],
    )
    def test_wrong_field_type(self, tmp_path, row):
        path = _write_jsonl(tmp_path / "bad.jsonl", [row])
        with pytest.raises(TraceFormatError, match="wrong type"):
            load_trace(path)

    def test_float_qp_accepted(self, tmp_path):
        row = {"event": "unit", "x": 0, "y": 0, "size": 16, "bits": 5, "qp": 27.5}
        path = _write_jsonl(tmp_path / "trace.jsonl", [row])
        assert load_trace(path)[0].qp == 27.5

    def test_replay(self):
        reporter = MemoryReporter()
        session = PictureSession(reporter)
        reports = replay(_synthetic_events(), session)

        assert reports == reporter.reports
        assert [(r.picture_index, r.poc) for r in reports] == [(0, 0), (1, 1)]
        assert session.duplicates == 1
        # 48x32 picture: 2 rows x 3 cols, group clipped to all six cells
        for report in reports:
            assert (report.max_row, report.max_col) == (1, 2)
            assert report.total_bits == 150
        assert reports[0].grid.cell(0, 2).quality == 26.0

    def test_replay_propagates_violation(self):
        events = [
            TraceEvent("start", poc=0, width=32, height=32),
            TraceEvent("unit", x=0, y=0, size=32, bits=500, qp=30),
            TraceEvent("group", index=0, x=0, y=0, size=32, bits=100, qp=30),
            TraceEvent("finish"),
        ]
        with pytest.raises(ContractViolation):
            replay(events, PictureSession())


# ---------------------------------------------------------------------------
# Tests: CLI
# ---------------------------------------------------------------------------


def test_cli_replay_smoke(tmp_path):
    trace = write_trace(_synthetic_events(), tmp_path / "trace.jsonl")
    out = tmp_path / "out"

    status = cli_main(
        [
            "replay",
            str(trace),
            "--cells-out", str(out / "cells.txt"),
            "--groups-out", str(out / "groups.txt"),
            "--jsonl-out", str(out / "pictures.jsonl"),
            "--heatmap-dir", str(out / "heatmaps"),
        ]
    )
    assert status == 0

    cells = (out / "cells.txt").read_text().splitlines()
    assert cells[0] == "Picture 0, POC 0"
    assert cells[7] == "Picture 1, POC 1"
    assert len(cells) == 2 * (1 + 6)

    groups = (out / "groups.txt").read_text().splitlines()
    assert groups == ["Picture 0, POC 0", "0\t150\t30", "Picture 1, POC 1", "0\t150\t30"]

    rows = [json.loads(line) for line in (out / "pictures.jsonl").read_text().splitlines()]
    assert [r["poc"] for r in rows] == [0, 1]

    heatmaps = sorted(p.name for p in (out / "heatmaps").glob("*.png"))
    assert heatmaps == ["picture_00000_poc_0.png", "picture_00001_poc_1.png"]


def test_cli_replay_uses_env(tmp_path, monkeypatch):
    trace = write_trace(_synthetic_events(), tmp_path / "trace.jsonl")
    cells = tmp_path / "env_cells.txt"
    monkeypatch.setenv("COMPLEXITY_FILENAME", str(cells))
    monkeypatch.setenv("COMPLEXITY_DUMP_XY", "1")

    assert cli_main(["replay", str(trace)]) == 0
    assert cells.read_text().splitlines()[1] == "0,0\t0\t28\t30"


def test_cli_replay_contract_violation(tmp_path):
    trace = _write_jsonl(
        tmp_path / "bad.jsonl",
        [
            {"event": "start", "poc": 0, "width": 32, "height": 32},
            {"event": "unit", "x": 8, "y": 0, "size": 16, "bits": 10, "qp": 30},
            {"event": "finish"},
        ],
    )
    assert cli_main(["replay", str(trace)]) == 1


@pytest.mark.parametrize(
    "content",
    [
        "[1]\n",
        '{"event": "start", "poc": 0, "width": "16", "height": 16}\n{"event": "finish"}\n',
        '{"event": {"kind": "start"}}\n',
    ],
)
def test_cli_malformed_trace(tmp_path, content):
    trace = tmp_path / "bad.jsonl"
    trace.write_text(content)
    assert cli_main(["replay", str(trace)]) == 1


def test_cli_empty_trace(tmp_path):
    trace = tmp_path / "empty.jsonl"
    trace.write_text("")
    assert cli_main(["summary", str(trace)]) == 1


def test_cli_summary(tmp_path):
    trace = write_trace(_synthetic_events(), tmp_path / "trace.jsonl")
    assert cli_main(["--debug", "summary", str(trace)]) == 0
