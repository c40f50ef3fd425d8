from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import numpy as np
import yaml

from .errors import InvalidConfigurationError

BackendName = Literal["auto", "opencl", "cuda"]


class Precision(str, Enum):
    """Width of a real component in generated kernels."""

    SINGLE = "single"
    DOUBLE = "double"

    @property
    def real_type(self) -> str:
        return "float" if self is Precision.SINGLE else "double"

    @property
    def complex_type(self) -> str:
        return f"{self.real_type}2"

    @property
    def real_dtype(self) -> type[np.floating[Any]]:
        return np.float32 if self is Precision.SINGLE else np.float64

    @property
    def complex_dtype(self) -> type[np.complexfloating[Any, Any]]:
        return np.complex64 if self is Precision.SINGLE else np.complex128

    @property
    def complex_size(self) -> int:
        """Bytes per complex sample."""
        return 8 if self is Precision.SINGLE else 16


class Dialect(str, Enum):
    """Device language the source builder emits."""

    OPENCL = "opencl"
    CUDA = "cuda"


@dataclass(frozen=True)
class GeneratorConfig:
    """Generation-time switches threaded through every code emitter."""

    precision: Precision = Precision.SINGLE
    dialect: Dialect = Dialect.OPENCL
    # Ask the compiler for relaxed/fast math on radix stages
    fast_math: bool = True
    # Upper bound for the transpose tile edge (power of two)
    transpose_max_block: int = 128

    def __post_init__(self) -> None:
        # Accept plain strings from YAML / CLI
        object.__setattr__(self, "precision", Precision(self.precision))
        object.__setattr__(self, "dialect", Dialect(self.dialect))
        block = self.transpose_max_block
        if block < 1 or block & (block - 1):
            raise InvalidConfigurationError(
                f"transpose_max_block must be a power of two, got {block}"
            )

    def fast_math_options(self) -> str:
        if not self.fast_math:
            return ""
        if self.dialect is Dialect.OPENCL:
            return "-cl-mad-enable -cl-fast-relaxed-math"
        return "--use_fast_math"


@dataclass
class PlannerConfig:
    # Largest radix compiled into a dedicated small-DFT body
    max_radix: int = 8
    # Primes handled by Cooley-Tukey stages; anything else goes through Bluestein
    radix_primes: list[int] = field(default_factory=lambda: [2, 3, 5])

    def __post_init__(self) -> None:
        # Environment overrides arrive as "2,3,5" or a single int
        if isinstance(self.radix_primes, str):
            self.radix_primes = [int(p) for p in self.radix_primes.split(",") if p.strip()]
        elif isinstance(self.radix_primes, int):
            self.radix_primes = [self.radix_primes]
        if not isinstance(self.max_radix, int) or isinstance(self.max_radix, bool):
            raise InvalidConfigurationError(f"max_radix must be an integer, got {self.max_radix!r}")
        if self.max_radix < 2:
            raise InvalidConfigurationError(f"max_radix must be >= 2, got {self.max_radix}")
        if 2 not in self.radix_primes:
            # Bluestein convolution lengths are powers of two
            raise InvalidConfigurationError("radix_primes must include 2")
        for prime in self.radix_primes:
            if prime < 2 or any(prime % d == 0 for d in range(2, prime)):
                raise InvalidConfigurationError(f"radix_primes entry {prime} is not prime")


@dataclass
class BackendConfig:
    name: BackendName = "auto"
    # Substring matched against OpenCL platform names
    platform: str | None = None
    # Device index within the platform (OpenCL) or CUDA device ordinal
    device: int = 0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class AppConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS: dict[str, type[Any]] = {
    "backend": BackendConfig,
    "generator": GeneratorConfig,
    "planner": PlannerConfig,
    "logging": LoggingConfig,
}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InvalidConfigurationError("Config root must be a mapping")
        return data


def _build_section(name: str, data: Any) -> Any:
    cls = _SECTIONS[name]
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Config section '{name}' must be a mapping")
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown key(s) in config section '{name}': {', '.join(unknown)}"
        )
    try:
        return cls(**data)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"Invalid config section '{name}': {exc}") from exc


def load_config(path_str: str | None = None) -> AppConfig:
    raw: dict[str, Any] = _read_yaml(Path(path_str)) if path_str else {}

    # Environment overrides (prefix FFTGEN__SECTION__KEY)
    # Example: FFTGEN__GENERATOR__PRECISION=double
    prefix = "FFTGEN__"
    for k, v in os_environ_items():
        if not k.startswith(prefix):
            continue
        parts = k[len(prefix) :].split("__")
        if len(parts) != 2:
            continue
        section, key = parts[0].lower(), parts[1].lower()
        if section not in _SECTIONS:
            continue
        raw.setdefault(section, {})
        if isinstance(raw[section], dict):
            raw[section][key] = coerce_env_value(v)

    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise InvalidConfigurationError(f"Unknown config section(s): {', '.join(unknown)}")

    sections = {name: _build_section(name, raw.get(name, {})) for name in _SECTIONS}
    return AppConfig(**sections)


def coerce_env_value(val: str) -> Any:
    # Basic bool/int/float coercion for convenience
    lower = val.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    try:
        return int(val)
    except ValueError:
        pass
    try:
        return float(val)
    except ValueError:
        return val


def os_environ_items() -> list[tuple[str, str]]:
    # Wrapped for testability
    from os import environ

    return [(k, v) for k, v in environ.items()]
