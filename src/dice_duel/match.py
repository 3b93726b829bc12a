from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from dice_duel.commit_reveal import CommitmentRound, Reveal
from dice_duel.input_channel import Cancelled, InputChannel
from dice_duel.probability import ProbabilityMatrix
from dice_duel.protocol import DiceSet, Die, Outcome, Side, determine_outcome
from dice_duel.sampler import UnbiasedSampler

logger = logging.getLogger("dice_duel.match")


class MatchPhase(Enum):
    START = "start"
    COIN_FLIP = "coin_flip"
    DIE_SELECTION = "die_selection"
    COMPUTER_ROLL = "computer_roll"
    HUMAN_ROLL = "human_roll"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


# Every phase that waits on the human can move to CANCELLED. RESOLVED and CANCELLED are terminal.
TRANSITIONS: dict[MatchPhase, frozenset[MatchPhase]] = {
    MatchPhase.START: frozenset({MatchPhase.COIN_FLIP}),
    MatchPhase.COIN_FLIP: frozenset({MatchPhase.DIE_SELECTION, MatchPhase.CANCELLED}),
    MatchPhase.DIE_SELECTION: frozenset({MatchPhase.COMPUTER_ROLL, MatchPhase.CANCELLED}),
    MatchPhase.COMPUTER_ROLL: frozenset({MatchPhase.HUMAN_ROLL, MatchPhase.CANCELLED}),
    MatchPhase.HUMAN_ROLL: frozenset({MatchPhase.RESOLVED, MatchPhase.CANCELLED}),
    MatchPhase.RESOLVED: frozenset(),
    MatchPhase.CANCELLED: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


class MatchCancelled(Exception):
    """Raised when the input channel returns Cancelled; unwinds the match."""


@dataclass
class MatchState:
    phase: MatchPhase = MatchPhase.START
    first_picker: Side | None = None
    human_die: int | None = None
    computer_die: int | None = None
    computer_roll: int | None = None
    human_roll: int | None = None
    outcome: Outcome | None = None
    report: ProbabilityMatrix | None = None
    # Audit transcript, kept even when the match is cancelled.
    reveals: list[Reveal] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return not TRANSITIONS[self.phase]

    def advance(self, to: MatchPhase) -> None:
        if to not in TRANSITIONS[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {to.value}")
        logger.debug("phase %s -> %s", self.phase.value, to.value)
        self.phase = to

    def cancel(self) -> None:
        self.advance(MatchPhase.CANCELLED)
        self.first_picker = None
        self.human_die = None
        self.computer_die = None
        self.computer_roll = None
        self.human_roll = None
        self.outcome = None
        self.report = None


class MatchOrchestrator:
    """Runs one human-vs-computer duel. Every random decision that the human
    could dispute goes through a commit-reveal round."""

    def __init__(
        self,
        dice: DiceSet,
        channel: InputChannel,
        *,
        sampler: UnbiasedSampler | None = None,
        output: Callable[[str], None] = print,
    ) -> None:
        self.dice = dice
        self.state = MatchState()
        self._channel = channel
        self._sampler = sampler or UnbiasedSampler()
        self._out = output

    def run(self) -> MatchState:
        if self.state.phase is not MatchPhase.START:
            raise InvalidTransition("a match can only be run once")
        try:
            self._coin_flip()
            self._select_dice()
            self._computer_roll()
            self._human_roll()
        except MatchCancelled as exc:
            logger.info("match cancelled in phase %s (%s)", self.state.phase.value, exc)
            self.state.cancel()
            self._out("Game cancelled.")
            return self.state

        self._resolve()
        return self.state

    # --- Phases ---
    def _coin_flip(self) -> None:
        self.state.advance(MatchPhase.COIN_FLIP)
        self._out("Let's determine who makes the first move.")
        result = self._fair_number(1, "Try to guess my selection.", [str(i) for i in range(2)])
        # Combined 0 means the guess matched the committed bit.
        self.state.first_picker = "human" if result == 0 else "computer"
        logger.info("first picker: %s", self.state.first_picker)

    def _select_dice(self) -> None:
        self.state.advance(MatchPhase.DIE_SELECTION)
        if self.state.first_picker == "computer":
            self.state.computer_die = self._computer_pick(first=True)
            self.state.human_die = self._human_pick()
        else:
            self._out("You make the first move.")
            self.state.human_die = self._human_pick()
            self.state.computer_die = self._computer_pick(first=False)

    def _computer_roll(self) -> None:
        self.state.advance(MatchPhase.COMPUTER_ROLL)
        self._out("It's time for my roll.")
        die = self.dice[self._require(self.state.computer_die)]
        self.state.computer_roll = self._fair_roll(die)

    def _human_roll(self) -> None:
        self.state.advance(MatchPhase.HUMAN_ROLL)
        self._out("It's time for your roll.")
        die = self.dice[self._require(self.state.human_die)]
        self.state.human_roll = self._fair_roll(die)

    def _resolve(self) -> None:
        human = self._require(self.state.human_roll)
        computer = self._require(self.state.computer_roll)
        self.state.advance(MatchPhase.RESOLVED)
        self.state.outcome = determine_outcome(human, computer)
        self._out(f"Your roll: {human}")
        self._out(f"My roll: {computer}")
        if self.state.outcome == "human_win":
            self._out(f"You win ({human} > {computer})!")
        elif self.state.outcome == "computer_win":
            self._out(f"I win ({computer} > {human})!")
        else:
            self._out(f"It's a tie ({human} = {computer}).")

        self.state.report = ProbabilityMatrix.build(self.dice)
        self._out("\nPairwise win probability table:")
        self._out(self.state.report.format_table())

    # --- Helpers ---
    def _computer_pick(self, *, first: bool) -> int:
        index = self._sampler.sample(len(self.dice) - 1)
        lead = "I make the first move and choose" if first else "I choose"
        self._out(f"{lead} the {self.dice[index]} dice.")
        return index

    def _human_pick(self) -> int:
        index = self._ask(
            "Choose your dice:",
            [str(d) for d in self.dice],
            help_text="Each die is listed with its faces. Higher face wins a roll; type the die's number.",
        )
        self._out(f"You choose the {self.dice[index]} dice.")
        return index

    def _fair_roll(self, die: Die) -> int:
        index = self._fair_number(
            die.num_faces - 1,
            f"Add your number modulo {die.num_faces}.",
            [str(i) for i in range(die.num_faces)],
        )
        return die.face(index)

    def _fair_number(self, max_value: int, prompt: str, options: list[str]) -> int:
        round_ = CommitmentRound(max_value, self._sampler)
        digest = round_.publish()
        self._out(f"I selected a random value in the range 0..{max_value} (HMAC={digest}).")
        contribution = self._ask(
            prompt,
            options,
            help_text=(
                "I have already fixed my number; the HMAC above proves it. "
                "Your number is added to mine, so neither of us controls the result."
            ),
        )
        reveal = round_.reveal(contribution)
        self.state.reveals.append(reveal)
        self._out(f"My number is {reveal.committed_value} (KEY={reveal.secret_key}).")
        self._out(f"The fair number generation result is {reveal.result.describe()}.")
        return reveal.result.combined_result

    def _ask(self, prompt: str, options: list[str], *, help_text: str | None = None) -> int:
        choice = self._channel.ask(prompt, options, help_text=help_text)
        if isinstance(choice, Cancelled):
            raise MatchCancelled(choice.reason)
        return choice.value

    @staticmethod
    def _require(value: int | None) -> int:
        if value is None:
            raise InvalidTransition("phase reached before its inputs were set")
        return value
