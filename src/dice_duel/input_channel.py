from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Literal, Protocol, Sequence, Union

from dice_duel.settings import DuelSettings

logger = logging.getLogger("dice_duel.input")

Token = Literal["exit", "help"]


class InputValidationError(ValueError):
    """Raw input is neither a token nor an integer in range. Handled by re-prompting."""


@dataclass(frozen=True)
class Ok:
    value: int


@dataclass(frozen=True)
class Cancelled:
    reason: str = "exit"


Choice = Union[Ok, Cancelled]


class InputChannel(Protocol):
    def ask(self, prompt: str, options: Sequence[str], *, help_text: str | None = None) -> Choice: ...


def parse_choice(raw: str, max_value: int, settings: DuelSettings) -> int | Token:
    text = raw.strip().upper()
    if text == settings.exit_token.upper():
        return "exit"
    if text == settings.help_token.upper():
        return "help"
    try:
        value = int(text)
    except ValueError:
        raise InputValidationError(f"not a number: {raw.strip()!r}") from None
    if not 0 <= value <= max_value:
        raise InputValidationError(f"{value} is outside 0..{max_value}")
    return value


class ConsoleChannel:
    """Line-oriented prompt/read/validate loop over input() and print()."""

    def __init__(
        self,
        settings: DuelSettings | None = None,
        *,
        input_fn: Callable[[str], str] | None = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self._settings = settings or DuelSettings()
        self._input = input_fn or input
        self._out = output

    def ask(self, prompt: str, options: Sequence[str], *, help_text: str | None = None) -> Choice:
        if not options:
            raise ValueError("options must not be empty")
        max_value = len(options) - 1
        exit_token = self._settings.exit_token
        help_token = self._settings.help_token

        self._out(prompt)
        for i, label in enumerate(options):
            self._out(f"{i} - {label}")
        self._out(f"{exit_token} - exit")
        self._out(f"{help_token} - help")

        while True:
            try:
                raw = self._read("Your selection: ")
            except EOFError:
                return Cancelled("eof")
            except TimeoutError:
                self._out(f"No input within {self._settings.input_timeout:g} seconds.")
                return Cancelled("timeout")

            try:
                choice = parse_choice(raw, max_value, self._settings)
            except InputValidationError as exc:
                logger.debug("rejected input: %s", exc)
                self._out(f"Pick a number between 0 and {max_value}, {exit_token} to exit, or {help_token} for help.")
                continue

            if choice == "exit":
                return Cancelled("exit")
            if choice == "help":
                self._out(help_text or f"Type a number from 0 to {max_value}, or {exit_token} to exit.")
                continue
            return Ok(choice)

    def _read(self, prompt: str) -> str:
        timeout = self._settings.input_timeout
        if timeout is None:
            return self._input(prompt)

        # input() cannot be interrupted, so the read runs on a daemon thread.
        lines: list[str] = []
        errors: list[BaseException] = []

        def _target() -> None:
            try:
                lines.append(self._input(prompt))
            except Exception as exc:  # re-raised on the caller's thread
                errors.append(exc)

        t = threading.Thread(target=_target, daemon=True)
        t.start()
        t.join(timeout)
        if t.is_alive():
            raise TimeoutError("Timed out waiting for input")
        if errors:
            raise errors[0]
        return lines[0]
