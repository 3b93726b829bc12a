from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Literal, Sequence

Side = Literal["human", "computer"]
Outcome = Literal["human_win", "computer_win", "tie"]

USAGE_EXAMPLE = "dice-duel play 2,2,4,4,9,9 1,1,6,6,8,8 3,3,5,5,7,7"
MIN_DICE = 3


class ConfigurationError(ValueError):
    """Startup dice list is unusable."""


@dataclass(frozen=True)
class Die:
    faces: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.faces:
            raise ConfigurationError("a die needs at least one face")

    @property
    def num_faces(self) -> int:
        return len(self.faces)

    def face(self, index: int) -> int:
        return self.faces[index % self.num_faces]

    def __str__(self) -> str:
        return "[" + ",".join(str(f) for f in self.faces) + "]"


@dataclass(frozen=True)
class DiceSet:
    dice: tuple[Die, ...]

    def __post_init__(self) -> None:
        if len(self.dice) < MIN_DICE:
            raise ConfigurationError(
                f"You need at least {MIN_DICE} dice, got {len(self.dice)}. Example: {USAGE_EXAMPLE}"
            )

    def __len__(self) -> int:
        return len(self.dice)

    def __getitem__(self, index: int) -> Die:
        return self.dice[index]

    def __iter__(self) -> Iterator[Die]:
        return iter(self.dice)


def parse_die(text: str) -> Die:
    faces: list[int] = []
    for part in text.split(","):
        try:
            faces.append(int(part.strip()))
        except ValueError:
            raise ConfigurationError(
                f"Not an integer face value: {part!r} in {text!r}. Example: {USAGE_EXAMPLE}"
            ) from None
    return Die(tuple(faces))


def parse_dice(args: Sequence[str]) -> DiceSet:
    return DiceSet(tuple(parse_die(arg) for arg in args))


def determine_outcome(human_face: int, computer_face: int) -> Outcome:
    if human_face == computer_face:
        return "tie"
    return "human_win" if human_face > computer_face else "computer_win"
