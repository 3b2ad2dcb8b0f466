"""CLI for replaying recorded decoder traces through the complexity grid.

Usage:
    python -m complexity.cli replay   <trace>...  [--cells-out P] [--groups-out P]
                                                  [--jsonl-out P] [--heatmap-dir D] [--dump-xy]
    python -m complexity.cli summary  <trace>...

Subcommands:
  replay   : Resample every picture of the traces and write the enabled reports.
             Sinks not given on the command line fall back to the
             COMPLEXITY_* environment variables.
  summary  : Resample in memory and log per-picture totals.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from complexity.config import ReportConfig
from complexity.errors import ContractViolation, TraceFormatError
from complexity.report import MemoryReporter, PictureReport, Reporter, build_reporter
from complexity.session import PictureSession
from complexity.trace import load_trace, replay

logger = logging.getLogger("complexity")


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _replay_traces(paths: List[str], reporter: Reporter) -> int:
    """Replay each trace with a fresh session.  Returns an exit code."""
    status = 0
    pictures = 0
    for trace_path in paths:
        path = Path(trace_path)
        try:
            events = load_trace(path)
        except (OSError, TraceFormatError) as e:
            logger.error("Cannot read trace %s: %s", path, e)
            status = 1
            continue

        if not events:
            logger.error("No events in %s", path)
            status = 1
            continue

        session = PictureSession(reporter)
        try:
            reports = replay(events, session)
        except ContractViolation as e:
            logger.error(
                "%s: picture %s (POC %s) aborted: %s",
                path.name, session.picture_index, session.poc, e,
            )
            status = 1
            continue

        pictures += len(reports)
        logger.info(
            "%s: %d pictures, %d duplicates suppressed",
            path.name, len(reports), session.duplicates,
        )

    logger.info("Total: %d pictures", pictures)
    return status


# ---- Subcommand: replay ----

def cmd_replay(args):
    config = ReportConfig.from_env()
    if args.cells_out:
        config.cells_path = Path(args.cells_out)
    if args.groups_out:
        config.groups_path = Path(args.groups_out)
    if args.jsonl_out:
        config.jsonl_path = Path(args.jsonl_out)
    if args.heatmap_dir:
        config.heatmap_dir = Path(args.heatmap_dir)
    if args.dump_xy:
        config.dump_xy = True

    if not config.any_enabled:
        logger.warning("No report sinks enabled; pictures will only be validated")

    with build_reporter(config) as reporter:
        return _replay_traces(args.traces, reporter)


# ---- Subcommand: summary ----

def _log_summary(report: PictureReport) -> None:
    quality = report.quality_plane()
    logger.info(
        "%s: %dx%d cells, %d bits, mean qp %.2f, %d groups",
        report.header,
        report.max_row + 1,
        report.max_col + 1,
        report.total_bits,
        float(quality.mean()) if quality.size else 0.0,
        sum(1 for _ in report.groups()),
    )


def cmd_summary(args):
    reporter = MemoryReporter()
    status = _replay_traces(args.traces, reporter)
    for report in reporter.reports:
        _log_summary(report)
    return status


# ---- Argument parser ----

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="complexity",
        description="Resample decoder bits/QP reports onto a uniform 16x16 grid.",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # -- replay --
    p_replay = sub.add_parser("replay", help="Replay traces and write reports")
    p_replay.add_argument("traces", nargs="+", help="JSONL decoder trace files")
    p_replay.add_argument("--cells-out", default=None,
                          help="Per-cell text report path")
    p_replay.add_argument("--groups-out", default=None,
                          help="Per-group text report path")
    p_replay.add_argument("--jsonl-out", default=None,
                          help="JSONL report path (one object per picture)")
    p_replay.add_argument("--heatmap-dir", default=None,
                          help="Directory for per-picture heat map PNGs")
    p_replay.add_argument("--dump-xy", action="store_true",
                          help="Prefix text records with col,row")
    p_replay.set_defaults(func=cmd_replay)

    # -- summary --
    p_summary = sub.add_parser("summary", help="Log per-picture totals")
    p_summary.add_argument("traces", nargs="+", help="JSONL decoder trace files")
    p_summary.set_defaults(func=cmd_summary)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
