from __future__ import annotations

from typing import Callable

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280


def _to_int32(x: int) -> int:
    x &= 0xFFFFFFFF
    return x - 0x100000000 if x & 0x80000000 else x


def string_hash32(key: str) -> int:
    """
    Signed 32-bit rolling hash (h = h * 31 + unit) over the UTF-16 code
    units of `key`. Stable across processes, unlike the builtin hash().
    """
    data = key.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32((h << 5) - h + unit)
    return h


def seeded_uniform(key: str) -> Callable[[], float]:
    """Deterministic uniform stream in [0, 1) seeded from a string key."""
    state = abs(string_hash32(key))

    def next_value() -> float:
        nonlocal state
        state = (state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return state / LCG_MODULUS

    return next_value
