from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"
sys.path.insert(0, str(SRC_DIR))

from dice_duel.commit_reveal import verify_commitment  # type: ignore[import-not-found]  # noqa: E402
from dice_duel.input_channel import Cancelled, ConsoleChannel, Ok  # type: ignore[import-not-found]  # noqa: E402
from dice_duel.match import (  # type: ignore[import-not-found]  # noqa: E402
    TRANSITIONS,
    InvalidTransition,
    MatchOrchestrator,
    MatchPhase,
    MatchState,
)
from dice_duel.protocol import parse_dice  # type: ignore[import-not-found]  # noqa: E402
from dice_duel.sampler import EntropyUnavailable, UnbiasedSampler  # type: ignore[import-not-found]  # noqa: E402

CLASSIC = ["2,2,4,4,9,9", "1,1,6,6,8,8", "3,3,5,5,7,7"]
WAITING = [MatchPhase.COIN_FLIP, MatchPhase.DIE_SELECTION, MatchPhase.COMPUTER_ROLL, MatchPhase.HUMAN_ROLL]


class ZeroEntropy:
    # Every committed value and every computer pick comes out as 0.
    def token_bytes(self, num_bytes: int) -> bytes:
        return b"\x00" * num_bytes


class FailingEntropy:
    def token_bytes(self, num_bytes: int) -> bytes:
        raise EntropyUnavailable("no randomness")


class ScriptedChannel:
    def __init__(self, answers: list[int | None]) -> None:
        self.answers = list(answers)
        self.prompts: list[str] = []

    def ask(self, prompt, options, *, help_text=None):
        self.prompts.append(prompt)
        answer = self.answers.pop(0)
        return Cancelled("exit") if answer is None else Ok(answer)


def _orchestrator(channel, entropy=None, out=None) -> MatchOrchestrator:
    return MatchOrchestrator(
        parse_dice(CLASSIC),
        channel,
        sampler=UnbiasedSampler(entropy or ZeroEntropy()),
        output=(out.append if out is not None else lambda _: None),
    )


def test_human_first_and_computer_wins() -> None:
    # guess 0 (matches) -> human first, picks die 0; computer picks die 0.
    # Computer roll 0+5 -> face 9, human roll 0+0 -> face 2.
    out: list[str] = []
    state = _orchestrator(ScriptedChannel([0, 0, 5, 0]), out=out).run()

    assert state.phase is MatchPhase.RESOLVED
    assert state.first_picker == "human"
    assert (state.human_die, state.computer_die) == (0, 0)
    assert (state.computer_roll, state.human_roll) == (9, 2)
    assert state.outcome == "computer_win"
    assert state.report is not None
    assert "I win (9 > 2)!" in out
    assert "Pairwise win probability table:" in "\n".join(out)


def test_computer_first_and_human_wins() -> None:
    channel = ScriptedChannel([1, 1, 0, 4])
    state = _orchestrator(channel).run()

    assert state.first_picker == "computer"
    assert (state.computer_die, state.human_die) == (0, 1)
    assert (state.computer_roll, state.human_roll) == (2, 8)
    assert state.outcome == "human_win"
    assert channel.prompts == [
        "Try to guess my selection.",
        "Choose your dice:",
        "Add your number modulo 6.",
        "Add your number modulo 6.",
    ]


def test_tie() -> None:
    state = _orchestrator(ScriptedChannel([0, 0, 3, 3])).run()
    assert state.outcome == "tie"
    assert state.human_roll == state.computer_roll == 4


def test_digest_published_before_input_and_reveals_verify() -> None:
    out: list[str] = []

    class Recording(ScriptedChannel):
        def ask(self, prompt, options, *, help_text=None):
            # The HMAC line for this round is already printed when we are asked.
            if prompt != "Choose your dice:":
                assert out[-1].startswith("I selected a random value") and "HMAC=" in out[-1]
            return super().ask(prompt, options, help_text=help_text)

    orch = MatchOrchestrator(parse_dice(CLASSIC), Recording([1, 2, 3, 4]), output=out.append)
    state = orch.run()

    assert state.phase is MatchPhase.RESOLVED
    assert len(state.reveals) == 3
    for reveal in state.reveals:
        assert verify_commitment(
            expected_digest=reveal.digest,
            secret_key=reveal.secret_key,
            value=reveal.committed_value,
        )
        assert f"KEY={reveal.secret_key}" in "\n".join(out)


@pytest.mark.parametrize("answered", [0, 1, 2, 3])
def test_exit_at_any_prompt_cancels(answered: int) -> None:
    out: list[str] = []
    answers: list[int | None] = [0, 0, 5, 0][:answered] + [None]
    state = _orchestrator(ScriptedChannel(answers), out=out).run()

    assert state.phase is MatchPhase.CANCELLED
    assert state.finished
    assert state.computer_roll is None and state.human_roll is None
    assert state.outcome is None and state.report is None
    assert out[-1] == "Game cancelled."
    assert not any("probability" in line for line in out)


def test_exit_via_console_channel() -> None:
    lines = iter(["0", "X"])
    out: list[str] = []
    channel = ConsoleChannel(input_fn=lambda _: next(lines), output=out.append)
    state = _orchestrator(channel, out=out).run()
    assert state.phase is MatchPhase.CANCELLED
    assert state.human_die is None


def test_entropy_failure_aborts() -> None:
    orch = _orchestrator(ScriptedChannel([0, 0, 0, 0]), entropy=FailingEntropy())
    with pytest.raises(EntropyUnavailable):
        orch.run()
    assert orch.state.outcome is None


def test_match_runs_once() -> None:
    orch = _orchestrator(ScriptedChannel([0, 0, 0, 0]))
    orch.run()
    with pytest.raises(InvalidTransition):
        orch.run()


def test_cancelled_reachable_from_every_waiting_phase() -> None:
    for phase in WAITING:
        assert MatchPhase.CANCELLED in TRANSITIONS[phase]
    assert not TRANSITIONS[MatchPhase.RESOLVED]
    assert not TRANSITIONS[MatchPhase.CANCELLED]
    assert set(TRANSITIONS) == set(MatchPhase)


def test_illegal_transitions_rejected() -> None:
    state = MatchState()
    with pytest.raises(InvalidTransition):
        state.advance(MatchPhase.HUMAN_ROLL)
    with pytest.raises(InvalidTransition):
        state.cancel()

    for phase in WAITING:
        state.advance(phase)
    state.advance(MatchPhase.RESOLVED)
    with pytest.raises(InvalidTransition):
        state.cancel()
