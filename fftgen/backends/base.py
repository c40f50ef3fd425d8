"""Base classes for compute backends.

A backend is the generator's only view of the accelerator: it compiles
source text into programs, hands out kernel handles, owns device buffers and
submits launches to a single in-order command queue.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from fftgen.config import Dialect
from fftgen.typing import Extent

if TYPE_CHECKING:
    from fftgen.call import KernelCall


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    local_mem_size: int
    max_work_group_size: int
    supports_double: bool = True
    # Work-groups allowed along each launch axis; None when unbounded (OpenCL)
    max_grid_size: Extent | None = None


class Kernel(Protocol):
    name: str

    @property
    def preferred_multiple(self) -> int:
        """Preferred work-group size multiple for this kernel on the device."""
        ...


class Program(Protocol):
    def kernel(self, name: str) -> Kernel: ...


class Backend(ABC):
    """Abstract compute backend.

    All backends must implement build/launch and buffer transfer. Launches
    are executed in submission order; plans rely on that for correctness.
    """

    dialect: Dialect

    def __init__(self) -> None:
        # Compiled programs by (source, options)
        self._programs: dict[tuple[str, str], Program] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier ('opencl', 'cuda')."""

    @abstractmethod
    def device_info(self) -> DeviceInfo:
        pass

    @abstractmethod
    def build(self, source: str, options: str = "") -> Program:
        """Compile ``source``.

        Raises:
            BuildError: carrying the compiler log
        """

    def compile(self, source: str, options: str = "") -> Program:
        """Build ``source`` once per backend; identical requests share the program."""
        key = (source, options)
        program = self._programs.get(key)
        if program is None:
            program = self.build(source, options)
            self._programs[key] = program
        return program

    @abstractmethod
    def empty(self, size: int, dtype: Any) -> Any:
        """Allocate an uninitialised device buffer of ``size`` elements."""

    @abstractmethod
    def write(self, buffer: Any, array: np.ndarray) -> None:
        """Copy a host array of matching size into an existing device buffer."""

    @abstractmethod
    def to_host(self, buffer: Any) -> np.ndarray:
        pass

    @abstractmethod
    def launch(self, call: KernelCall) -> None:
        """Submit one kernel call to the queue."""

    def finish(self) -> None:
        """Block until every submitted launch completed."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(device={self.device_info().name!r})"
