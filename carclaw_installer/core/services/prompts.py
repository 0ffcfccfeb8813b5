"""
User prompts — the wizard's only channel to a human.

The setup wizard asks questions through a ``UserPrompt``. Every
question carries a stable id (``"services"``, ``"telegram_token"``,
``"agents"`` ...) so scripted answers can be keyed by it.

Implementations:
    ClickPrompt      interactive terminal, via click
    DefaultsPrompt   non-interactive: accept defaults, decline optional services
    ScriptedPrompt   canned answers for tests
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import click

logger = logging.getLogger(__name__)

_LEVEL_STYLE = {
    "ok": ("[OK]", "green"),
    "skip": ("[SKIP]", "yellow"),
    "info": ("[INFO]", "cyan"),
    "warn": ("[WARN]", "yellow"),
    "fail": ("[FAIL]", "red"),
}


class UserPrompt(ABC):
    """Question/answer capability injected into the wizard."""

    @abstractmethod
    def ask(self, question_id: str, text: str, default: str = "") -> str: ...

    @abstractmethod
    def ask_secret(self, question_id: str, text: str) -> str: ...

    @abstractmethod
    def confirm(self, question_id: str, text: str, default: bool = False) -> bool: ...

    @abstractmethod
    def choose_many(
        self,
        question_id: str,
        text: str,
        options: list[tuple[str, str]],
    ) -> list[str]:
        """Pick any subset of ``options`` (value, label); returns values."""

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None: ...


class ClickPrompt(UserPrompt):
    """Interactive terminal prompts.

    Args:
        err: Write prompts and notices to stderr (keeps stdout clean
            for ``--json``).
    """

    def __init__(self, err: bool = False):
        self._err = err

    def ask(self, question_id: str, text: str, default: str = "") -> str:
        return click.prompt(text, default=default, show_default=bool(default), err=self._err).strip()

    def ask_secret(self, question_id: str, text: str) -> str:
        return click.prompt(text, default="", hide_input=True, show_default=False, err=self._err).strip()

    def confirm(self, question_id: str, text: str, default: bool = False) -> bool:
        return click.confirm(text, default=default, err=self._err)

    def choose_many(
        self,
        question_id: str,
        text: str,
        options: list[tuple[str, str]],
    ) -> list[str]:
        click.echo(text, err=self._err)
        click.echo("", err=self._err)
        for i, (_, label) in enumerate(options, start=1):
            click.echo(f"  {click.style(str(i) + ')', bold=True)} {label}", err=self._err)
        click.echo("", err=self._err)

        raw = click.prompt(
            "Enter numbers separated by spaces (e.g. 1 2)",
            default="",
            show_default=False,
            err=self._err,
        )
        return parse_selection(raw, options)

    def notify(self, message: str, level: str = "info") -> None:
        tag, color = _LEVEL_STYLE.get(level, _LEVEL_STYLE["info"])
        click.echo(f"{click.style(tag, fg=color)} {message}", err=self._err)


class DefaultsPrompt(UserPrompt):
    """Non-interactive answers: defaults everywhere, no optional services."""

    def __init__(self, err: bool = True, echo: bool = True):
        self._err = err
        self._echo = echo

    def ask(self, question_id: str, text: str, default: str = "") -> str:
        return default

    def ask_secret(self, question_id: str, text: str) -> str:
        return ""

    def confirm(self, question_id: str, text: str, default: bool = False) -> bool:
        return default

    def choose_many(
        self,
        question_id: str,
        text: str,
        options: list[tuple[str, str]],
    ) -> list[str]:
        return []

    def notify(self, message: str, level: str = "info") -> None:
        logger.info("%s: %s", level, message)
        if self._echo:
            tag, color = _LEVEL_STYLE.get(level, _LEVEL_STYLE["info"])
            click.echo(f"{click.style(tag, fg=color)} {message}", err=self._err)


class ScriptedPrompt(DefaultsPrompt):
    """Canned answers keyed by question id; falls back to defaults.

    Records every question asked and every notice shown.
    """

    def __init__(self, answers: dict[str, Any] | None = None):
        super().__init__(echo=False)
        self.answers = dict(answers or {})
        self.asked: list[str] = []
        self.messages: list[tuple[str, str]] = []

    def ask(self, question_id: str, text: str, default: str = "") -> str:
        self.asked.append(question_id)
        return str(self.answers.get(question_id, default))

    def ask_secret(self, question_id: str, text: str) -> str:
        self.asked.append(question_id)
        return str(self.answers.get(question_id, ""))

    def confirm(self, question_id: str, text: str, default: bool = False) -> bool:
        self.asked.append(question_id)
        return bool(self.answers.get(question_id, default))

    def choose_many(
        self,
        question_id: str,
        text: str,
        options: list[tuple[str, str]],
    ) -> list[str]:
        self.asked.append(question_id)
        allowed = {value for value, _ in options}
        return [v for v in self.answers.get(question_id, []) if v in allowed]

    def notify(self, message: str, level: str = "info") -> None:
        self.messages.append((level, message))


def parse_selection(raw: str, options: list[tuple[str, str]]) -> list[str]:
    """``"1 3"`` → values of options 1 and 3. Out-of-range and junk ignored."""
    chosen: list[str] = []
    for token in raw.replace(",", " ").split():
        if not token.isdigit():
            continue
        idx = int(token) - 1
        if 0 <= idx < len(options) and options[idx][0] not in chosen:
            chosen.append(options[idx][0])
    return chosen
