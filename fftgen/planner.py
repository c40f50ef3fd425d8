"""Length planning: radix decomposition and stage selection.

A transform of length N runs as a sequence of stages. Factors made of the
supported primes become Cooley-Tukey radix stages; any other prime factor q
becomes a Bluestein stage, a length-q DFT computed as a power-of-two
convolution of length ``convolution_size(q)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .codegen.dft import MAX_DFT_RADIX
from .config import PlannerConfig
from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


def alignup(x: int, a: int) -> int:
    """Smallest multiple of ``a`` that is >= ``x``."""
    if a < 1:
        raise InvalidConfigurationError(f"Alignment must be >= 1, got {a}")
    if x < 0:
        raise InvalidConfigurationError(f"Cannot align negative value {x}")
    return (x + a - 1) // a * a


@dataclass(frozen=True)
class Radix:
    """One butterfly fan-in size stored as ``value = base ** exponent``."""

    base: int
    exponent: int = 1

    @property
    def value(self) -> int:
        return self.base**self.exponent

    def __str__(self) -> str:
        if self.exponent == 1:
            return str(self.base)
        return f"{self.base}^{self.exponent}"


@dataclass(frozen=True)
class Stage:
    """A radix applied after ``p`` samples' worth of earlier stages.

    ``convolution`` is None for a Cooley-Tukey stage, otherwise the padded
    Bluestein convolution length.
    """

    radix: Radix
    p: int
    convolution: int | None = None

    @property
    def bluestein(self) -> bool:
        return self.convolution is not None


def prime_factors(n: int) -> list[tuple[int, int]]:
    """Return ``[(prime, exponent), ...]`` in ascending prime order."""
    factors: list[tuple[int, int]] = []
    d = 2
    while d * d <= n:
        if n % d == 0:
            e = 0
            while n % d == 0:
                n //= d
                e += 1
            factors.append((d, e))
        d += 1 if d == 2 else 2
    if n > 1:
        factors.append((n, 1))
    return factors


class Planner:
    """Pure function of N and the supported radix set; never raises for n >= 1."""

    def __init__(self, config: PlannerConfig | None = None):
        self.config = config or PlannerConfig()
        if self.config.max_radix > MAX_DFT_RADIX:
            raise InvalidConfigurationError(
                f"max_radix {self.config.max_radix} exceeds the largest unrolled DFT ({MAX_DFT_RADIX})"
            )

    @property
    def max_radix(self) -> int:
        return self.config.max_radix

    def is_supported(self, radix: Radix) -> bool:
        return radix.base in self.config.radix_primes and radix.value <= self.max_radix

    def _check_length(self, n: int) -> None:
        if n < 1:
            raise InvalidConfigurationError(f"Transform length must be >= 1, got {n}")

    def factor(self, n: int) -> list[Radix]:
        """Decompose ``n`` into radices whose values multiply to ``n``.

        Supported primes are grouped into the largest powers that fit under
        ``max_radix``; other primes are returned as ``Radix(q)``.
        """
        self._check_length(n)
        radices: list[Radix] = []
        for base, exponent in prime_factors(n):
            if base not in self.config.radix_primes or base > self.max_radix:
                radices.extend(Radix(base) for _ in range(exponent))
                continue
            step = 1
            while base ** (step + 1) <= self.max_radix:
                step += 1
            while exponent > 0:
                e = min(step, exponent)
                radices.append(Radix(base, e))
                exponent -= e
        return radices

    def convolution_size(self, n: int) -> int:
        """Bluestein padding: the next power of two >= 2n - 1."""
        self._check_length(n)
        target = 2 * n - 1
        m = 1
        while m < target:
            m *= 2
        return m

    def uses_bluestein(self, n: int) -> bool:
        return any(not self.is_supported(r) for r in self.factor(n))

    def stages(self, n: int) -> list[Stage]:
        stages: list[Stage] = []
        p = 1
        for radix in self.factor(n):
            if self.is_supported(radix):
                stages.append(Stage(radix, p))
            else:
                stages.append(Stage(radix, p, self.convolution_size(radix.value)))
            p *= radix.value
        logger.debug(f"Stages for n={n}: {', '.join(describe_stage(s) for s in stages)}")
        return stages


def describe_stage(stage: Stage) -> str:
    if stage.bluestein:
        return f"{stage.radix}(bluestein, m={stage.convolution})"
    return str(stage.radix)
