from __future__ import annotations

from typing import Any

import pytest

from onboard.prompts import ProgressHandle, SelectOption, WizardCancelled, WizardPrompter


class _NullProgress(ProgressHandle):
    def __init__(self, log: list[str]):
        self._log = log

    def update(self, message: str) -> None:
        self._log.append(message)

    def stop(self, message: str | None = None) -> None:
        if message:
            self._log.append(message)


class ScriptedPrompter(WizardPrompter):
    """Replays (message fragment, answer) pairs in order.

    A fragment of None matches any message. An answer that is an exception
    instance is raised instead of returned. Text answers that fail the
    prompt's validator are recorded in `rejected` and the next answer is used.
    """

    def __init__(self, answers: list[tuple[str | None, Any]] | None = None):
        self.answers = list(answers or [])
        self.asked: list[tuple[str, str]] = []
        self.notes: list[tuple[str | None, str]] = []
        self.progress_log: list[str] = []
        self.rejected: list[str] = []
        self.select_options: dict[str, list[SelectOption]] = {}
        self.outros: list[str] = []

    def _next(self, kind: str, message: str) -> Any:
        self.asked.append((kind, message))
        if not self.answers:
            raise AssertionError(f"unscripted {kind} prompt: {message!r}")
        fragment, answer = self.answers.pop(0)
        if fragment is not None and fragment not in message:
            raise AssertionError(f"expected prompt containing {fragment!r}, got {kind} {message!r}")
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def intro(self, title: str) -> None:
        pass

    def outro(self, message: str) -> None:
        self.outros.append(message)

    def note(self, message: str, title: str | None = None) -> None:
        self.notes.append((title, message))

    def confirm(self, message: str, default: bool = True) -> bool:
        return bool(self._next("confirm", message))

    def select(self, message: str, options: list[SelectOption], initial_value: Any = None) -> Any:
        self.select_options[message] = list(options)
        answer = self._next("select", message)
        values = [o.value for o in options]
        if answer not in values:
            raise AssertionError(f"{answer!r} is not an option of {message!r}: {values}")
        return answer

    def multiselect(self, message: str, options: list[SelectOption], initial_values: list[Any] | None = None) -> list[Any]:
        return list(self._next("multiselect", message))

    def text(
        self,
        message: str,
        initial_value: str = "",
        placeholder: str | None = None,
        validate=None,
        password: bool = False,
    ) -> str:
        while True:
            answer = self._next("text", message)
            if answer is None:
                answer = initial_value
            error = validate(answer) if validate else None
            if error is None:
                return answer
            self.rejected.append(answer)

    def progress(self, label: str) -> ProgressHandle:
        self.progress_log.append(label)
        return _NullProgress(self.progress_log)

    def note_titles(self) -> list[str | None]:
        return [title for title, _ in self.notes]


@pytest.fixture
def make_prompter():
    return ScriptedPrompter


@pytest.fixture
def cancel() -> WizardCancelled:
    return WizardCancelled("cancelled by operator")
