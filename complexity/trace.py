"""Recorded decoder callback traces.

The decoder drives a session through ``start`` / unit / group / ``finish``
callbacks.  A trace records those callbacks as JSONL so a decode can be
replayed offline::

    {"event": "start", "poc": 0, "width": 1920, "height": 1080}
    {"event": "unit", "x": 0, "y": 0, "size": 32, "bits": 412, "qp": 27}
    {"event": "group", "index": 0, "x": 0, "y": 0, "size": 64, "bits": 1630, "qp": 27}
    {"event": "finish"}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from complexity.errors import TraceFormatError
from complexity.report import PictureReport
from complexity.session import PictureSession

logger = logging.getLogger(__name__)

# required fields per event kind
EVENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "start": ("poc", "width", "height"),
    "unit": ("x", "y", "size", "bits", "qp"),
    "group": ("index", "x", "y", "size", "bits", "qp"),
    "finish": (),
}


@dataclass
class TraceEvent:
    """One decoder callback."""
    kind: str
    poc: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    index: Optional[int] = None     # group index
    x: Optional[int] = None
    y: Optional[int] = None
    size: Optional[int] = None
    bits: Optional[int] = None
    qp: Optional[float] = None

    def to_dict(self) -> dict:
        d = {"event": self.kind}
        for name in EVENT_FIELDS[self.kind]:
            d[name] = getattr(self, name)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "TraceEvent":
        if not isinstance(d, dict):
            raise TraceFormatError(f"Expected a JSON object, got {type(d).__name__}")
        kind = d.get("event")
        if not isinstance(kind, str) or kind not in EVENT_FIELDS:
            raise TraceFormatError(f"Unknown event {kind!r}")
        missing = [name for name in EVENT_FIELDS[kind] if name not in d]
        if missing:
            raise TraceFormatError(f"{kind} event missing {', '.join(missing)}")
        for name in EVENT_FIELDS[kind]:
            value = d[name]
            allowed = (int, float) if name == "qp" else int
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, allowed):
                raise TraceFormatError(f"{kind} event field {name}={value!r} has the wrong type")
        return cls(kind=kind, **{name: d[name] for name in EVENT_FIELDS[kind]})


def load_trace(path: Path) -> List[TraceEvent]:
    """Load events from a JSONL trace, skipping blank lines."""
    events = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(TraceEvent.from_dict(json.loads(line)))
            except json.JSONDecodeError as e:
                raise TraceFormatError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e
            except TraceFormatError as e:
                raise TraceFormatError(f"{path}:{lineno}: {e}") from e
    logger.debug("Loaded %d events from %s", len(events), path)
    return events


def write_trace(events: Iterable[TraceEvent], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for event in events:
            f.write(json.dumps(event.to_dict()) + "\n")
    return path


def replay(events: Iterable[TraceEvent], session: PictureSession) -> List[PictureReport]:
    """Drive ``session`` with ``events``.

    Returns the reports of the pictures that were emitted; suppressed
    duplicates produce none.  Contract violations propagate.
    """
    reports = []
    for event in events:
        if event.kind == "start":
            session.start(event.poc, event.width, event.height)
        elif event.kind == "unit":
            session.add_unit(event.x, event.y, event.size, event.bits, event.qp)
        elif event.kind == "group":
            session.add_group(event.index, event.x, event.y, event.size, event.bits, event.qp)
        elif event.kind == "finish":
            report = session.finish()
            if report is not None:
                reports.append(report)
    return reports
