from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DuelSettings:
    exit_token: str = "X"
    help_token: str = "?"
    # Seconds to wait at a prompt before the match is cancelled. None waits forever.
    input_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.input_timeout is not None and self.input_timeout <= 0:
            raise ValueError("input_timeout must be positive")
        if self.exit_token.upper() == self.help_token.upper():
            raise ValueError("exit and help tokens must differ")
