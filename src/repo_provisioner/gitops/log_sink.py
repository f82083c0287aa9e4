"""Append-only deployment log and the marker lines written to it."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, TextIO, Union

SUCCESS_MARKER = "Cloned Custom Git"
FAILURE_MARKER = "ERROR Cloning Custom Git"


def clone_started_message(url: str, destination: object) -> str:
    return f"Cloning Repo Custom {url} to {destination}: ✅"


def clone_succeeded_message(url: str, destination: object) -> str:
    return f"{SUCCESS_MARKER} {url} to {destination}: ✅"


def clone_failed_message(detail: object) -> str:
    return f"{FAILURE_MARKER}: {detail}: ❌"


def missing_reference_message() -> str:
    return "Error: ❌ Repository not found"


def marker_line(message: str) -> str:
    """Markers sit on their own line, separated from streamed git output."""
    return f"\n{message}\n"


class FileLogSink:
    """Log file opened in append mode.

    Writes after :meth:`close` are dropped silently, so late output from a
    child process never raises.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._handle: Optional[TextIO] = None

    def __enter__(self) -> "FileLogSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> "FileLogSink":
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("a", encoding="utf-8")
        return self

    @property
    def writable(self) -> bool:
        return self._handle is not None and not self._handle.closed

    def write(self, text: str) -> None:
        if not self.writable:
            return
        assert self._handle is not None
        self._handle.write(text)
        self._handle.flush()

    def write_marker(self, message: str) -> None:
        self.write(marker_line(message))

    def close(self) -> None:
        if self._handle is not None and not self._handle.closed:
            self._handle.close()
