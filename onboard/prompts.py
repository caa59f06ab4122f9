"""Prompting collaborator: the interface the wizard talks to, plus a rich-based terminal implementation."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

Validator = Callable[[str], str | None]


class WizardCancelled(Exception):
    """Operator aborted the wizard. Nothing further may be written."""


@dataclass(frozen=True)
class SelectOption:
    value: Any
    label: str
    hint: str | None = None


class ProgressHandle(ABC):
    """Spinner handle. Used as a context manager it is stopped on any exception."""

    def __enter__(self) -> "ProgressHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.stop("Interrupted.")
        return False

    @abstractmethod
    def update(self, message: str) -> None:
        pass

    @abstractmethod
    def stop(self, message: str | None = None) -> None:
        pass


class WizardPrompter(ABC):
    """Everything the onboarding core needs from the terminal.

    Each prompt returns a typed value or raises WizardCancelled.
    """

    @abstractmethod
    def intro(self, title: str) -> None:
        pass

    @abstractmethod
    def outro(self, message: str) -> None:
        pass

    @abstractmethod
    def note(self, message: str, title: str | None = None) -> None:
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = True) -> bool:
        pass

    @abstractmethod
    def select(self, message: str, options: list[SelectOption], initial_value: Any = None) -> Any:
        pass

    @abstractmethod
    def multiselect(self, message: str, options: list[SelectOption], initial_values: list[Any] | None = None) -> list[Any]:
        pass

    @abstractmethod
    def text(
        self,
        message: str,
        initial_value: str = "",
        placeholder: str | None = None,
        validate: Validator | None = None,
        password: bool = False,
    ) -> str:
        pass

    @abstractmethod
    def progress(self, label: str) -> ProgressHandle:
        pass


def parse_multi_select(raw: str, max_index: int) -> list[int]:
    """Parse multi-select input like '1,3' or 'all' into 0-based indices."""
    text = raw.strip().lower()
    if not text:
        return []
    if text == "all":
        return list(range(max_index))

    picked: list[int] = []
    seen: set[int] = set()
    for part in text.split(","):
        p = part.strip()
        if not p.isdigit():
            continue
        idx = int(p) - 1
        if 0 <= idx < max_index and idx not in seen:
            picked.append(idx)
            seen.add(idx)
    return picked


@contextmanager
def _cancellable() -> Iterator[None]:
    try:
        yield
    except (KeyboardInterrupt, EOFError) as e:
        raise WizardCancelled("cancelled by operator") from e


class _StatusProgress(ProgressHandle):
    def __init__(self, console: Console, label: str):
        self._console = console
        self._status = console.status(f"[bold cyan]{label}[/bold cyan]", spinner="dots")
        self._status.start()

    def update(self, message: str) -> None:
        self._status.update(f"[bold cyan]{message}[/bold cyan]")

    def stop(self, message: str | None = None) -> None:
        self._status.stop()
        if message:
            self._console.print(f"[dim]{message}[/dim]")


class RichPrompter(WizardPrompter):
    """Plain terminal prompter built on rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def intro(self, title: str) -> None:
        self.console.print()
        self.console.print(Panel(f"[bold]{title}[/bold]", border_style="blue", width=70))

    def outro(self, message: str) -> None:
        self.console.print(f"\n[bold green]{message}[/bold green]\n")

    def note(self, message: str, title: str | None = None) -> None:
        self.console.print(Panel(message, title=title, border_style="yellow", width=70))

    def confirm(self, message: str, default: bool = True) -> bool:
        with _cancellable():
            return Confirm.ask(message, default=default, console=self.console)

    def _print_options(self, options: list[SelectOption]) -> None:
        table = Table(show_header=False, width=70, padding=(0, 1))
        table.add_column("#", style="bold", width=3)
        table.add_column("Option", width=28)
        table.add_column("", style="dim", width=35)
        for i, option in enumerate(options, 1):
            table.add_row(str(i), option.label, option.hint or "")
        self.console.print(table)

    def select(self, message: str, options: list[SelectOption], initial_value: Any = None) -> Any:
        if not options:
            raise ValueError("select() needs at least one option")
        self.console.print(f"\n[bold]{message}[/bold]")
        self._print_options(options)
        default = "1"
        for i, option in enumerate(options, 1):
            if option.value == initial_value:
                default = str(i)
                break
        with _cancellable():
            choice = Prompt.ask(
                "Enter a number",
                choices=[str(i) for i in range(1, len(options) + 1)],
                default=default,
                console=self.console,
            )
        return options[int(choice) - 1].value

    def multiselect(self, message: str, options: list[SelectOption], initial_values: list[Any] | None = None) -> list[Any]:
        self.console.print(f"\n[bold]{message}[/bold]")
        self._print_options(options)
        initial = initial_values or []
        default = ",".join(str(i) for i, o in enumerate(options, 1) if o.value in initial)
        with _cancellable():
            raw = Prompt.ask(
                "Numbers (comma-separated, 'all', or blank for none)",
                default=default,
                console=self.console,
            )
        return [options[i].value for i in parse_multi_select(raw, len(options))]

    def text(
        self,
        message: str,
        initial_value: str = "",
        placeholder: str | None = None,
        validate: Validator | None = None,
        password: bool = False,
    ) -> str:
        label = message
        if placeholder and not initial_value:
            label += f" [dim]({placeholder})[/dim]"
        while True:
            with _cancellable():
                value = Prompt.ask(
                    label,
                    default=initial_value,
                    password=password,
                    console=self.console,
                )
            value = (value or "").strip()
            error = validate(value) if validate else None
            if error is None:
                return value
            self.console.print(f"[red]{error}[/red]")

    def progress(self, label: str) -> ProgressHandle:
        return _StatusProgress(self.console, label)
