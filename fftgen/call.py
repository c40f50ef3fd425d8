"""Execution descriptors: one compiled, bound and sized pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from .codegen.source import Param, ParamKind
from .config import Precision
from .errors import ArgumentBindingError, InvalidConfigurationError
from .typing import Extent

if TYPE_CHECKING:
    from .backends.base import Kernel, Program

_UINT_MAX = 2**32 - 1


@dataclass(frozen=True)
class KernelArg:
    """A typed launch argument: a device buffer, a uint32 or a real scalar."""

    kind: ParamKind
    value: Any

    @classmethod
    def buffer(cls, buf: Any) -> KernelArg:
        return cls(ParamKind.BUFFER, buf)

    @classmethod
    def uint(cls, value: int) -> KernelArg:
        if not 0 <= int(value) <= _UINT_MAX:
            raise ArgumentBindingError(f"uint argument {value} does not fit in 32 bits")
        return cls(ParamKind.UINT, np.uint32(value))

    @classmethod
    def real(cls, value: float, precision: Precision) -> KernelArg:
        return cls(ParamKind.REAL, precision.real_dtype(value))


@dataclass(frozen=True)
class LaunchGeometry:
    """Global extent and work-group extent, one to three axes each.

    ``local_size`` of None leaves the work-group shape to the backend.
    """

    global_size: Extent
    local_size: Extent | None = None

    def __post_init__(self) -> None:
        if not 1 <= len(self.global_size) <= 3:
            raise InvalidConfigurationError(f"Launch must have 1-3 axes, got {self.global_size}")
        if any(g < 1 for g in self.global_size):
            raise InvalidConfigurationError(f"Empty launch extent {self.global_size}")
        if self.local_size is None:
            return
        if len(self.local_size) != len(self.global_size):
            raise InvalidConfigurationError(
                f"Local extent {self.local_size} does not match global {self.global_size}"
            )
        for g, l in zip(self.global_size, self.local_size):
            if l < 1 or g % l:
                raise InvalidConfigurationError(
                    f"Global extent {self.global_size} is not a multiple of local {self.local_size}"
                )

    @property
    def groups(self) -> Extent:
        """Work-groups per axis (CUDA grid dimensions)."""
        local = self.local_size or (1,) * len(self.global_size)
        return tuple(g // l for g, l in zip(self.global_size, local))


@dataclass
class KernelCall:
    """A pipeline stage ready to launch.

    ``once`` marks stages whose output depends only on the problem shape
    (chirp tables and their transforms); a plan launches them a single time.
    ``program`` is kept here so it outlives every launch of ``kernel``.
    """

    once: bool
    desc: str
    program: Program
    kernel: Kernel
    params: tuple[Param, ...]
    args: tuple[KernelArg, ...]
    geometry: LaunchGeometry
    count: int = field(default=0)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check ``args`` against the kernel's declared parameter list."""
        if len(self.args) != len(self.params):
            raise ArgumentBindingError(
                f"{self.desc}: {len(self.args)} argument(s) for {len(self.params)} parameter(s)"
            )
        for index, (param, arg) in enumerate(zip(self.params, self.args)):
            if param.kind is not arg.kind:
                raise ArgumentBindingError(
                    f"{self.desc}: argument {index} ({param.name}) expects "
                    f"{param.kind.value}, got {arg.kind.value}"
                )

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(arg.value for arg in self.args)

    def __str__(self) -> str:
        return self.desc
