"""Provably fair non-transitive dice duel."""

__version__ = "0.1.0"
