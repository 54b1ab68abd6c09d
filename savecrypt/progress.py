"""Progress notifications emitted while validating a save file."""

import dataclasses
import os
import shutil
import sys
import threading
import time
from typing import Protocol

PROGRESS_BAR_WIDTH = 30


@dataclasses.dataclass(frozen=True)
class ProgressEvent:
    percent: int
    message: str

    def __post_init__(self):
        object.__setattr__(self, "percent", max(0, min(100, int(self.percent))))


class ProgressSink(Protocol):
    def start(self, name: str, size: int | None) -> None: ...

    def report(self, event: ProgressEvent) -> None: ...

    def complete(self, outcome) -> None: ...


class NullProgress:
    """Sink that ignores everything; the default for every call."""

    def start(self, name: str, size: int | None) -> None:
        pass

    def report(self, event: ProgressEvent) -> None:
        pass

    def complete(self, outcome) -> None:
        pass


NULL_PROGRESS = NullProgress()


class RecordingProgress:
    def __init__(self):
        self.started: list[tuple[str, int | None]] = []
        self.events: list[ProgressEvent] = []
        self.outcomes: list = []

    def start(self, name: str, size: int | None) -> None:
        self.started.append((name, size))

    def report(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def complete(self, outcome) -> None:
        self.outcomes.append(outcome)

    @property
    def percents(self) -> list[int]:
        return [event.percent for event in self.events]

    @property
    def messages(self) -> list[str]:
        return [event.message for event in self.events]


def human_readable_size(num_bytes: int) -> str:
    units = ["B", "KiB", "MiB", "GiB"]
    value = float(num_bytes)
    for unit in units:
        if value < 1024.0 or unit == units[-1]:
            return f"{value:.2f} {unit}"
        value /= 1024.0
    return f"{value:.2f} TiB"


class TerminalProgress:
    """Single-line textual progress bar.

    On a TTY the line is redrawn in place; otherwise one line is printed per
    reported milestone.
    """

    def __init__(self, stream=None, min_interval: float = 0.05, plain: bool | None = None):
        self.stream = stream or sys.stderr
        self._min_interval = max(0.0, float(min_interval))
        self._is_tty = bool(getattr(self.stream, "isatty", lambda: False)())
        if plain is None:
            plain = bool(os.getenv("NO_COLOR"))
        self._green = "" if plain else "\033[32m"
        self._reset = "" if plain else "\033[0m"
        self._lock = threading.Lock()
        self._printed = False
        self._last_render = 0.0
        self._label = ""
        self._size_text = ""
        try:
            self._term_width = shutil.get_terminal_size().columns
        except (OSError, ValueError):
            self._term_width = 80

    def _render_bar(self, fraction: float, width: int | None = None) -> str:
        width = width or PROGRESS_BAR_WIDTH
        fraction = max(0.0, min(1.0, fraction))
        filled = int(fraction * width)
        if filled >= width:
            return f"({self._green}{'❚' * width}{self._reset})"
        return f"({'❚' * filled}{' ' * (width - filled)})"

    def _write(self, line: str, force: bool = False) -> None:
        now = time.monotonic()
        if not force and self._printed and (now - self._last_render) < self._min_interval:
            return
        line = line.replace("\n", " ")
        if len(line) > self._term_width:
            line = line[:self._term_width]
        if self._is_tty:
            self.stream.write("\r\x1b[2K" + line)
        else:
            self.stream.write(line + "\n")
        self.stream.flush()
        self._printed = True
        self._last_render = now

    def start(self, name: str, size: int | None) -> None:
        with self._lock:
            self._label = name
            self._size_text = f" ({human_readable_size(size)})" if size is not None else ""
            self._printed = False

    def report(self, event: ProgressEvent) -> None:
        with self._lock:
            bar = self._render_bar(event.percent / 100.0)
            label = f" [{self._label}]" if self._label else ""
            self._write(f"{bar} {event.percent:3d}% {event.message}{label}{self._size_text}", force=event.percent >= 100)

    def complete(self, outcome) -> None:
        with self._lock:
            if self._printed and self._is_tty:
                self.stream.write("\n")
                self.stream.flush()
            self._printed = False


__all__ = [
    "NULL_PROGRESS",
    "NullProgress",
    "PROGRESS_BAR_WIDTH",
    "ProgressEvent",
    "ProgressSink",
    "RecordingProgress",
    "TerminalProgress",
    "human_readable_size",
]
