"""Small helpers for working with individual bits of integer registers."""

from __future__ import annotations


def get_bit(value: int, bit: int) -> int:
    """Return bit number ``bit`` of ``value`` as 0 or 1."""
    return (value >> bit) & 1


def set_bit(value: int, bit: int) -> int:
    """Return ``value`` with bit number ``bit`` set."""
    return value | (1 << bit)


def clear_bit(value: int, bit: int) -> int:
    """Return ``value`` with bit number ``bit`` cleared."""
    return value & ~(1 << bit)