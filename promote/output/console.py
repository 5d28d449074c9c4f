"""Console output abstraction.

Pipeline components report progress through ConsoleProtocol rather than
printing. The CLI injects RichConsole; tests inject MockConsole and assert on
the captured records.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()
    STATE = auto()  # pipeline state transition

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Protocol for console output."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...

    def state(self, name: str, detail: str = "") -> None:
        """Announce that the job entered a new state."""
        ...

    def field(self, key: str, value: str) -> None:
        """Print an aligned `key: value` line (summaries, outcomes)."""
        ...

    def newline(self) -> None: ...


class RichConsole:
    """Console implementation using the Rich library.

    Fetch and repackage run on worker threads, so writes are serialized.
    """

    def __init__(self, *, stderr: bool = False) -> None:
        # Import Rich lazily to avoid import-time dependency
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)
        self._lock = threading.Lock()
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
            Style.STATE: "magenta bold",
        }

    def _emit(self, message: str = "", style: str = "") -> None:
        with self._lock:
            if style:
                self._console.print(message, style=style)
            else:
                self._console.print(message)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit(message, self._style_map.get(style, ""))

    def success(self, message: str) -> None:
        self._emit(f"[green]OK[/green] {message}")

    def error(self, message: str) -> None:
        self._emit(f"[red bold]error:[/red bold] {message}")

    def warning(self, message: str) -> None:
        self._emit(f"[yellow]warning:[/yellow] {message}")

    def info(self, message: str) -> None:
        self._emit(f"[cyan]info:[/cyan] {message}")

    def header(self, message: str) -> None:
        self._emit(f"\n[blue bold]{message}[/blue bold]")

    def state(self, name: str, detail: str = "") -> None:
        suffix = f" [dim]{detail}[/dim]" if detail else ""
        self._emit(f"[magenta bold]=> {name}[/magenta bold]{suffix}")

    def field(self, key: str, value: str) -> None:
        self._emit(f"  [bold]{key:<16}[/bold] {value}")

    def newline(self) -> None:
        self._emit()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console implementation that captures output for testing."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"OK {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def state(self, name: str, detail: str = "") -> None:
        text = f"=> {name} {detail}".rstrip()
        self.outputs.append(OutputRecord(text, Style.STATE))

    def field(self, key: str, value: str) -> None:
        self.outputs.append(OutputRecord(f"{key}: {value}", Style.DEFAULT))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    # Test helpers

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        """Find all outputs containing a substring."""
        return [o for o in self.outputs if substring in o.message]

    def states(self) -> list[str]:
        """Names of the announced states, in order."""
        return [o.message[3:].split(" ", 1)[0] for o in self.outputs if o.style == Style.STATE]
