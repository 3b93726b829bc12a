from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction

from dice_duel.protocol import DiceSet, Die


def _count_pairs(a: Die, b: Die) -> tuple[int, int]:
    wins = ties = 0
    for fa in a.faces:
        for fb in b.faces:
            if fa > fb:
                wins += 1
            elif fa == fb:
                ties += 1
    return wins, ties


def win_fraction(a: Die, b: Die) -> Fraction:
    wins, _ = _count_pairs(a, b)
    return Fraction(wins, a.num_faces * b.num_faces)


def win_probability(a: Die, b: Die) -> float:
    """Chance that a single roll of ``a`` shows a strictly higher face than ``b``."""
    return float(win_fraction(a, b))


def tie_fraction(a: Die, b: Die) -> Fraction:
    _, ties = _count_pairs(a, b)
    return Fraction(ties, a.num_faces * b.num_faces)


@dataclass(frozen=True)
class ProbabilityMatrix:
    # cells[i][j] = P(die i beats die j); None on the diagonal.
    cells: tuple[tuple[float | None, ...], ...]

    @classmethod
    def build(cls, dice: DiceSet) -> "ProbabilityMatrix":
        rows = []
        for i, a in enumerate(dice):
            rows.append(tuple(None if i == j else win_probability(a, b) for j, b in enumerate(dice)))
        return cls(cells=tuple(rows))

    def __len__(self) -> int:
        return len(self.cells)

    def get(self, i: int, j: int) -> float | None:
        return self.cells[i][j]

    def format_table(self) -> str:
        labels = [f"Die {i}" for i in range(len(self.cells))]
        width = max(8, max(len(label) for label in labels))

        lines: list[str] = []
        header = f"{'':{width}}" + "".join(f"  {label:>{width}}" for label in labels)
        lines.append(header)
        lines.append("-" * len(header))
        for label, row in zip(labels, self.cells):
            cells = "".join(f"  {_percent(p):>{width}}" for p in row)
            lines.append(f"{label:{width}}{cells}")
        return "\n".join(lines)


def _percent(p: float | None) -> str:
    return "-" if p is None else f"{p * 100:.2f}%"
