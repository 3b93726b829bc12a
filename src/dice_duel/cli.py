from __future__ import annotations

import argparse
import itertools
import logging
import re
import sys

from dice_duel.commit_reveal import SCHEME_ID, verify_commitment
from dice_duel.input_channel import ConsoleChannel
from dice_duel.match import MatchOrchestrator
from dice_duel.probability import ProbabilityMatrix
from dice_duel.protocol import USAGE_EXAMPLE, ConfigurationError, parse_dice
from dice_duel.sampler import EntropyUnavailable
from dice_duel.settings import DuelSettings

logger = logging.getLogger("dice_duel.cli")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

DICE_COMMANDS = frozenset({"play", "table"})
VALUE_OPTIONS = frozenset({"--log-level", "--timeout"})
# "-1,2,3" is a die with a negative face, not an option.
NEGATIVE_DIE = re.compile(r"^-\d")


def split_dice_args(argv: list[str]) -> tuple[list[str], list[str]]:
    """Separate die specs from options so argparse never sees a negative face.

    Returns (options for argparse, die specs in command-line order).
    """
    head: list[str] = []
    dice: list[str] = []
    command: str | None = None
    tokens = iter(argv)
    for token in tokens:
        if command in DICE_COMMANDS and token == "--":
            dice.extend(tokens)
            break
        if token in VALUE_OPTIONS:
            head.append(token)
            head.extend(itertools.islice(tokens, 1))
        elif command is None:
            head.append(token)
            if not token.startswith("-"):
                command = token
        elif command in DICE_COMMANDS and (not token.startswith("-") or NEGATIVE_DIE.match(token)):
            dice.append(token)
        else:
            head.append(token)
    return head, dice


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="dice-duel", description="Provably fair non-transitive dice duel")
    parser.add_argument("--log-level", default="WARNING", choices=LOG_LEVELS, type=str.upper)
    sub = parser.add_subparsers(dest="cmd", required=True)

    play = sub.add_parser("play", help="Play one match against the computer")
    play.add_argument("dice", nargs="*", metavar="FACES", help="Comma-separated faces, e.g. 2,2,4,4,9,9")
    play.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait at each prompt before cancelling the match (default: wait forever)",
    )

    table = sub.add_parser("table", help="Print the pairwise win probability table and exit")
    table.add_argument("dice", nargs="*", metavar="FACES")

    verify = sub.add_parser("verify", help=f"Check a revealed key/value against a published HMAC ({SCHEME_ID})")
    verify.add_argument("--digest", required=True, help="HMAC shown before your input")
    verify.add_argument("--key", required=True, help="KEY shown after the reveal (hex)")
    verify.add_argument("--value", required=True, type=int, help="Number revealed by the computer")

    head, dice_args = split_dice_args(sys.argv[1:] if argv is None else list(argv))
    args = parser.parse_args(head)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.cmd == "verify":
        ok = verify_commitment(expected_digest=args.digest, secret_key=args.key, value=args.value)
        print("Commitment verified." if ok else "Commitment MISMATCH: the revealed key/value do not match the HMAC.")
        return 0 if ok else 1

    try:
        dice = parse_dice(dice_args)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        print(f"Usage: {USAGE_EXAMPLE}")
        return 2

    if args.cmd == "table":
        print(ProbabilityMatrix.build(dice).format_table())
        return 0

    if args.cmd == "play":
        try:
            settings = DuelSettings(input_timeout=args.timeout)
        except ValueError as exc:
            raise SystemExit(f"--timeout: {exc}")

        orchestrator = MatchOrchestrator(dice, ConsoleChannel(settings))
        try:
            orchestrator.run()
        except EntropyUnavailable as exc:
            logger.error("aborting match: %s", exc)
            print(f"Fatal: {exc}. The match cannot be played fairly without a secure random source.")
            return 1
        except KeyboardInterrupt:
            print("\nGame cancelled.")
            return 130
        return 0

    raise SystemExit("unhandled command")


if __name__ == "__main__":
    raise SystemExit(main())
