from __future__ import annotations

import logging
import secrets
from typing import Protocol

logger = logging.getLogger("dice_duel.sampler")


class EntropyUnavailable(RuntimeError):
    """The secure random source could not supply bytes. Never recovered from."""


class EntropySource(Protocol):
    def token_bytes(self, num_bytes: int) -> bytes: ...


class SystemEntropy:
    """OS CSPRNG via the secrets module."""

    def token_bytes(self, num_bytes: int) -> bytes:
        try:
            raw = secrets.token_bytes(num_bytes)
        except (OSError, NotImplementedError) as exc:
            raise EntropyUnavailable(f"secure random source failed: {exc}") from exc
        if len(raw) != num_bytes:
            raise EntropyUnavailable(f"short read from random source ({len(raw)} of {num_bytes} bytes)")
        return raw


class UnbiasedSampler:
    def __init__(self, entropy: EntropySource | None = None) -> None:
        self._entropy = entropy if entropy is not None else SystemEntropy()

    def sample(self, max_value: int) -> int:
        """Uniform integer in [0, max_value] by rejection sampling (no modulo bias)."""
        if max_value < 0:
            raise ValueError("max_value must be non-negative")
        if max_value == 0:
            return 0

        bits = max_value.bit_length()
        num_bytes = (bits + 7) // 8
        mask = (1 << bits) - 1
        draws = 0
        while True:
            draws += 1
            value = int.from_bytes(self._draw(num_bytes), "big") & mask
            if value <= max_value:
                if draws > 1:
                    logger.debug("sample(%d) needed %d draws", max_value, draws)
                return value

    def secret_key(self, num_bytes: int) -> bytes:
        return self._draw(num_bytes)

    def _draw(self, num_bytes: int) -> bytes:
        raw = self._entropy.token_bytes(num_bytes)
        # Custom sources are held to the same contract as SystemEntropy.
        if len(raw) != num_bytes:
            raise EntropyUnavailable(f"entropy source returned {len(raw)} bytes, expected {num_bytes}")
        return raw
