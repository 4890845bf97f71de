"""
User interaction — the only way installer code talks to a human.

Installer and Uninstaller never read stdin or print directly; they are
given a ``UserInterface``. The CLI passes a ``ConsoleUI``; tests and
automated callers pass a ``ScriptedUI`` with pre-recorded answers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable

import click


class UserInterface(ABC):
    """Status output plus the two interactive questions keg ever asks."""

    @abstractmethod
    def say(self, message: str) -> None:
        """Report normal progress."""

    @abstractmethod
    def alert_warning(self, message: str) -> None:
        """Report a non-fatal problem."""

    @abstractmethod
    def alert_error(self, message: str) -> None:
        """Report a failure that stopped the current action."""

    @abstractmethod
    def choose(self, question: str, options: list[str]) -> str:
        """Show a numbered list and return the raw answer text.

        Options are numbered from 1. Interpreting the answer is the
        caller's job.
        """

    @abstractmethod
    def confirm(self, question: str) -> bool:
        """Ask a yes/no question. Anything but an explicit yes is no."""


class ConsoleUI(UserInterface):
    """Terminal interaction through click."""

    def say(self, message: str) -> None:
        click.echo(message)

    def alert_warning(self, message: str) -> None:
        click.secho(f"WARNING: {message}", fg="yellow", err=True)

    def alert_error(self, message: str) -> None:
        click.secho(f"ERROR: {message}", fg="red", err=True)

    def choose(self, question: str, options: list[str]) -> str:
        click.echo(question)
        for index, option in enumerate(options, start=1):
            click.echo(f" {index}. {option}")
        return click.prompt(">", default="", show_default=False)

    def confirm(self, question: str) -> bool:
        return click.confirm(question, default=False)


class ScriptedUI(UserInterface):
    """Non-interactive UI answering from a script and recording output.

    Args:
        answers: Responses consumed in order by ``choose`` (as text) and
            ``confirm`` (truthy = yes). Running out of answers raises
            ``LookupError`` so an unexpected question fails loudly.
    """

    def __init__(self, answers: Iterable[str | bool] = ()):
        self._answers: deque[str | bool] = deque(answers)
        self.messages: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.questions: list[str] = []

    def say(self, message: str) -> None:
        self.messages.append(message)

    def alert_warning(self, message: str) -> None:
        self.warnings.append(message)

    def alert_error(self, message: str) -> None:
        self.errors.append(message)

    def choose(self, question: str, options: list[str]) -> str:
        self.questions.append(question)
        return str(self._next(question))

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        answer = self._next(question)
        if isinstance(answer, str):
            return answer.strip().lower().startswith("y")
        return bool(answer)

    def _next(self, question: str) -> str | bool:
        if not self._answers:
            raise LookupError(f"No scripted answer for: {question}")
        return self._answers.popleft()
