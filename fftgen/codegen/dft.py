"""Unrolled in-place small DFTs.

``dft_code(o, r, invert)`` emits ``dft<r>(real2_t *v0, ..., real2_t *v<r-1>)``
which overwrites its arguments with their size-r DFT. Every output is
written as an explicit sum with constant coefficients; rotations by
multiples of a quarter turn are emitted as swaps and sign flips, so radix 2
and 4 reduce to add/subtract butterflies.
"""

from __future__ import annotations

import math

from fftgen.errors import InvalidConfigurationError

from .source import Param, SourceBuilder

# Largest radix with an unrolled body; bigger prime factors go through Bluestein
MAX_DFT_RADIX = 16

# (cos, sin) for quarter turns 0, 1, 2, 3
_QUARTER_TURNS = ((1, 0), (0, 1), (-1, 0), (0, -1))


def root_of_unity(t: int, r: int, sign: int) -> tuple[float, float]:
    """(cos, sin) of ``sign * 2*pi*t/r``; exact for quarter turns."""
    t %= r
    if (4 * t) % r == 0:
        c, s = _QUARTER_TURNS[4 * t // r]
        return float(c), float(sign * s)
    alpha = sign * 2.0 * math.pi * t / r
    return math.cos(alpha), math.sin(alpha)


def _sum(o: SourceBuilder, terms: list[tuple[float, str]]) -> str:
    parts: list[str] = []
    for coef, operand in terms:
        if coef == 0.0:
            continue
        negative = coef < 0
        magnitude = abs(coef)
        text = operand if magnitude == 1.0 else f"{o.literal(magnitude)} * {operand}"
        if not parts:
            parts.append(f"-{text}" if negative else text)
        else:
            parts.append(f"{'-' if negative else '+'} {text}")
    return " ".join(parts) if parts else "0"


def dft_code(o: SourceBuilder, radix: int, invert: bool) -> None:
    if not 2 <= radix <= MAX_DFT_RADIX:
        raise InvalidConfigurationError(
            f"No small-DFT body for radix {radix} (supported: 2..{MAX_DFT_RADIX})"
        )
    sign = 1 if invert else -1
    params = [Param.value("real2_t *", f"v{i}") for i in range(radix)]
    with o.function("void", f"dft{radix}", params):
        for i in range(radix):
            o.line(f"const real2_t x{i} = *v{i};")
        for q in range(radix):
            re: list[tuple[float, str]] = []
            im: list[tuple[float, str]] = []
            for j in range(radix):
                c, s = root_of_unity(j * q, radix, sign)
                re += [(c, f"x{j}.x"), (-s, f"x{j}.y")]
                im += [(s, f"x{j}.x"), (c, f"x{j}.y")]
            o.line(f"v{q}->x = {_sum(o, re)};")
            o.line(f"v{q}->y = {_sum(o, im)};")


def dft_call(radix: int) -> str:
    args = ", ".join(f"&v{i}" for i in range(radix))
    return f"dft{radix}({args});"
