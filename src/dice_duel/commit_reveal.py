from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Final

from dice_duel.sampler import UnbiasedSampler

SCHEME_ID: Final[str] = "dice-hmac-sha3-256"
# Pinned. Auditors in other implementations must be able to recompute digests.
DIGEST_ALGORITHM: Final[str] = "sha3_256"
KEY_BYTES: Final[int] = 32


class ProtocolError(RuntimeError):
    """A commitment round was driven out of order."""


class CommitPhase(Enum):
    CREATED = "created"
    PUBLISHED = "published"
    REVEALED = "revealed"


@dataclass(frozen=True)
class Commitment:
    secret_key: bytes
    committed_value: int
    max_value: int
    digest: str


@dataclass(frozen=True)
class RoundResult:
    committed_value: int
    counterpart_value: int
    combined_result: int
    modulus: int

    def describe(self) -> str:
        return f"{self.committed_value} + {self.counterpart_value} = {self.combined_result} (mod {self.modulus})"


@dataclass(frozen=True)
class Reveal:
    digest: str
    secret_key: str
    committed_value: int
    result: RoundResult


def compute_digest(secret_key: bytes, value: int) -> str:
    message = str(value).encode("ascii")
    return hmac.new(secret_key, message, getattr(hashlib, DIGEST_ALGORITHM)).hexdigest().upper()


def verify_commitment(*, expected_digest: str, secret_key: bytes | str, value: int) -> bool:
    if isinstance(secret_key, str):
        try:
            secret_key = bytes.fromhex(secret_key)
        except ValueError:
            return False
    computed = compute_digest(secret_key, value)
    # Bytes comparison: str compare_digest raises TypeError on non-ASCII input.
    return hmac.compare_digest(expected_digest.strip().upper().encode("utf-8"), computed.encode("ascii"))


def combine(committed_value: int, counterpart_value: int, max_value: int) -> int:
    return (committed_value + counterpart_value) % (max_value + 1)


def create_commitment(max_value: int, sampler: UnbiasedSampler) -> Commitment:
    secret_key = sampler.secret_key(KEY_BYTES)
    value = sampler.sample(max_value)
    return Commitment(
        secret_key=secret_key,
        committed_value=value,
        max_value=max_value,
        digest=compute_digest(secret_key, value),
    )


class CommitmentRound:
    """One commit-reveal exchange: the committer fixes a value, publishes its digest,
    accepts the counterpart's contribution, then reveals key and value.

    The combined result is uniform as long as either party picks uniformly:
    for a fixed committed value, counterpart -> combined is a bijection on [0, max].
    """

    def __init__(self, max_value: int, sampler: UnbiasedSampler) -> None:
        if max_value < 0:
            raise ValueError("max_value must be non-negative")
        self._commitment = create_commitment(max_value, sampler)
        self._phase = CommitPhase.CREATED

    @property
    def phase(self) -> CommitPhase:
        return self._phase

    @property
    def max_value(self) -> int:
        return self._commitment.max_value

    @property
    def digest(self) -> str:
        if self._phase is CommitPhase.CREATED:
            raise ProtocolError("digest requested before publish()")
        return self._commitment.digest

    def publish(self) -> str:
        if self._phase is not CommitPhase.CREATED:
            raise ProtocolError(f"cannot publish in phase {self._phase.value}")
        self._phase = CommitPhase.PUBLISHED
        return self._commitment.digest

    def reveal(self, counterpart_value: int) -> Reveal:
        if self._phase is not CommitPhase.PUBLISHED:
            raise ProtocolError(f"cannot reveal in phase {self._phase.value}")
        if not 0 <= counterpart_value <= self.max_value:
            raise ValueError(f"counterpart value must be in [0, {self.max_value}]")

        c = self._commitment
        result = RoundResult(
            committed_value=c.committed_value,
            counterpart_value=counterpart_value,
            combined_result=combine(c.committed_value, counterpart_value, c.max_value),
            modulus=c.max_value + 1,
        )
        reveal = Reveal(
            digest=c.digest,
            secret_key=c.secret_key.hex().upper(),
            committed_value=c.committed_value,
            result=result,
        )
        self._phase = CommitPhase.REVEALED
        return reveal
