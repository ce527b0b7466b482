from __future__ import annotations

"""
Load trace: one `timestamp event=name key=value ...` line per event.

Writes go to the file opened by `init_load_debug_log`; hosts that want the
events in memory (diagnostic panels, tests) use `capture_load_events`. With
neither active, `load_debug_log` does nothing.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
import datetime as dt
import os
from pathlib import Path
from threading import Lock


_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None
_CAPTURES: list[list[LoadEvent]] = []


@dataclass(frozen=True, slots=True)
class LoadEvent:
    event: str
    fields: dict[str, object] = field(default_factory=dict)


def _format_value(value: object) -> str:
    text = str(value)
    return text.replace("\n", "\\n")


def _format_fields(fields: dict[str, object]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))


def load_debug_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


def init_load_debug_log(*, base_dir: Path, level: str, preset: str) -> Path:
    level_name = str(level).strip().lower() or "unknown"
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = base_dir / "logs" / "load" / f"load-{level_name}-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = path

    load_debug_log("init", level=level_name, preset=str(preset), pid=int(os.getpid()))
    return path


def load_debug_log(event: str, **fields: object) -> None:
    name = str(event).strip()
    with _TRACE_LOCK:
        path = _TRACE_PATH
        for sink in _CAPTURES:
            sink.append(LoadEvent(name, dict(fields)))
        if path is None:
            return
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
        line = f"{timestamp} event={name}"
        payload = _format_fields(fields)
        if payload:
            line += f" {payload}"
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


@contextmanager
def capture_load_events() -> Iterator[list[LoadEvent]]:
    events: list[LoadEvent] = []
    with _TRACE_LOCK:
        _CAPTURES.append(events)
    try:
        yield events
    finally:
        with _TRACE_LOCK:
            _CAPTURES.remove(events)


def close_load_debug_log() -> None:
    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = None


__all__ = [
    "LoadEvent",
    "capture_load_events",
    "close_load_debug_log",
    "init_load_debug_log",
    "load_debug_log",
    "load_debug_log_path",
]
