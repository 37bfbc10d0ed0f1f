"""Animated status-line indicator using rich."""

import logging
import threading
from enum import Enum
from pathlib import PurePath
from urllib.parse import urlsplit

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

logger = logging.getLogger(__name__)

PASTEL_CYAN = "#afeeee"
PASTEL_PINK = "#ffc0cb"
PASTEL_LAVENDER = "#e6e6fa"
PASTEL_GREEN = "#98fb98"
PASTEL_YELLOW = "#ffffe0"
PASTEL_RED = "#ff8080"

# (lit dot position, colour) for each frame, in display order
FRAMES: list[tuple[int, str]] = [
    (0, PASTEL_CYAN),
    (1, PASTEL_PINK),
    (2, PASTEL_LAVENDER),
    (3, PASTEL_GREEN),
    (2, PASTEL_LAVENDER),
    (1, PASTEL_PINK),
]

DEFAULT_DELAY = 0.08
DEFAULT_MAX_WIDTH = 40
ELLIPSIS = "..."


class IndicatorStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "IndicatorStatus | str") -> "IndicatorStatus":
        if isinstance(value, IndicatorStatus):
            return value
        return _STATUS_ALIASES.get(value.lower(), cls.OTHER)


_STATUS_ALIASES = {
    "success": IndicatorStatus.SUCCESS,
    "ok": IndicatorStatus.SUCCESS,
    "done": IndicatorStatus.SUCCESS,
    "warning": IndicatorStatus.WARNING,
    "warn": IndicatorStatus.WARNING,
    "error": IndicatorStatus.ERROR,
    "fail": IndicatorStatus.ERROR,
    "failed": IndicatorStatus.ERROR,
}

STATUS_GLYPHS = {
    IndicatorStatus.SUCCESS: ("✓", PASTEL_GREEN, "Complete"),
    IndicatorStatus.WARNING: ("⚠", PASTEL_YELLOW, "Warning"),
    IndicatorStatus.ERROR: ("✗", PASTEL_RED, "Failed"),
    IndicatorStatus.OTHER: ("●", PASTEL_CYAN, ""),
}

_active_lock = threading.Lock()
_active: "Indicator | None" = None


def render_frame(index: int) -> Text:
    lit, colour = FRAMES[index % len(FRAMES)]
    dots = ["○"] * 4
    dots[lit] = "●"
    frame = Text()
    frame.append("".join(dots[: lit + 1]), style=colour)
    frame.append("".join(dots[lit + 1 :]))
    return frame


def truncate_label(label: str, max_width: int = DEFAULT_MAX_WIDTH) -> str:
    if len(label) <= max_width:
        return label
    return label[: max_width - len(ELLIPSIS)] + ELLIPSIS


def network_label(operation: str, url: str) -> str:
    """Label for a network operation, e.g. ``Download: example.com``."""
    host = urlsplit(url).netloc or url.split("/")[0]
    return f"{operation}: {host}"


def file_label(operation: str, path: str) -> str:
    return f"{operation}: {PurePath(path).name}"


class Indicator:
    """Background spinner owning one status line on the stderr console.

    Only one indicator animates at a time; starting one silently halts
    whichever indicator was active before.

    Frames are drawn on a plain thread rather than through
    ``rich.progress.Progress``, because each frame carries its own colour
    and a ``SpinnerColumn`` spinner is styled once for all frames.
    """

    def __init__(
        self,
        console: Console | None = None,
        delay: float = DEFAULT_DELAY,
        max_width: int = DEFAULT_MAX_WIDTH,
    ):
        self.console = console or Console(stderr=True)
        self.delay = delay
        self.max_width = max_width
        self.message = ""
        self.frame_index = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, label: str) -> None:
        global _active

        with _active_lock:
            previous = _active
            _active = self
        if previous is not None and previous is not self:
            previous._halt()
        self._halt()

        self.message = truncate_label(label, self.max_width)
        self.frame_index = 0
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="caddroid-indicator", daemon=True
        )
        self._thread.start()

    def stop(
        self,
        status: IndicatorStatus | str = IndicatorStatus.SUCCESS,
        message: str = "",
    ) -> None:
        global _active

        self._halt()
        with _active_lock:
            if _active is self:
                _active = None

        parsed = IndicatorStatus.parse(status)
        glyph, colour, default = STATUS_GLYPHS[parsed]
        if not message:
            message = default or str(getattr(status, "value", status))

        line = Text()
        line.append(glyph, style=colour)
        line.append(" ")
        line.append(message)
        self.console.print(line, highlight=False)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if self.console.is_terminal:
                self._clear_line()
                self.console.print(
                    render_frame(self.frame_index),
                    Text(self.message, style=PASTEL_CYAN),
                    end="",
                    highlight=False,
                )
            self.frame_index = (self.frame_index + 1) % len(FRAMES)
            self._stop_event.wait(self.delay)

    def _halt(self) -> None:
        """Stop the loop and clear the line without printing a status line."""
        thread = self._thread
        self._thread = None
        if thread is None:
            return

        self._stop_event.set()
        try:
            thread.join(timeout=max(self.delay * 10, 1.0))
        except RuntimeError as e:
            logger.debug("Could not join indicator thread: %s", e)
        if thread.is_alive():
            logger.debug("Indicator thread did not exit in time")
        self._clear_line()

    def _clear_line(self) -> None:
        self.console.control(
            Control(ControlType.CARRIAGE_RETURN, (ControlType.ERASE_IN_LINE, 2))
        )
