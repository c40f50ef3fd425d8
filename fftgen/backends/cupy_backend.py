"""CuPy backend - NVIDIA CUDA GPUs through NVRTC.

Generated CUDA-dialect source is compiled with cupy.RawModule and launched
on the current stream.

Install: pip install cupy-cuda12x (adjust for your CUDA version)
Requires: NVIDIA GPU with CUDA support
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from fftgen.config import Dialect
from fftgen.errors import BackendUnavailableError, BuildError

from .base import Backend, DeviceInfo

if TYPE_CHECKING:
    from fftgen.call import KernelCall

logger = logging.getLogger(__name__)

# Try to import CuPy
_cp: Any | None = None
CUPY_AVAILABLE = False

try:
    import cupy as cp

    _cp = cp
    CUPY_AVAILABLE = True
except ImportError:
    pass


@dataclass
class CuPyKernel:
    name: str
    handle: Any
    preferred_multiple: int


@dataclass
class CuPyProgram:
    module: Any
    warp_size: int
    source: str
    _kernels: dict[str, CuPyKernel] = field(default_factory=dict)

    def kernel(self, name: str) -> CuPyKernel:
        if name not in self._kernels:
            self._kernels[name] = CuPyKernel(
                name, self.module.get_function(name), self.warp_size
            )
        return self._kernels[name]


class CuPyBackend(Backend):
    """CUDA backend using CuPy's NVRTC compiler and current stream."""

    dialect = Dialect.CUDA

    def __init__(self, device: int = 0, **_: Any):
        """Select a CUDA device.

        Args:
            device: CUDA device ordinal

        Raises:
            BackendUnavailableError: If CuPy is not installed or no CUDA GPU
        """
        if not CUPY_AVAILABLE or _cp is None:
            raise BackendUnavailableError(
                "CuPy not available. Install with: pip install cupy-cuda12x\n"
                "Requires NVIDIA GPU with CUDA support"
            )
        super().__init__()
        self._cp = _cp
        try:
            self.device = self._cp.cuda.Device(device)
            self.device.use()
            props = self._cp.cuda.runtime.getDeviceProperties(device)
        except self._cp.cuda.runtime.CUDARuntimeError as e:
            raise BackendUnavailableError(f"CUDA device {device} unavailable: {e}") from e

        gpu_name = props.get("name", b"Unknown")
        self._name = gpu_name.decode() if isinstance(gpu_name, bytes) else str(gpu_name)
        self._warp_size = int(self.device.attributes.get("WarpSize", 32))
        logger.info(f"CuPy backend initialized on {self._name}")

    @property
    def name(self) -> str:
        return "cuda"

    def device_info(self) -> DeviceInfo:
        attrs = self.device.attributes
        return DeviceInfo(
            name=self._name,
            local_mem_size=int(attrs["MaxSharedMemoryPerBlock"]),
            max_work_group_size=int(attrs["MaxThreadsPerBlock"]),
            max_grid_size=(
                int(attrs["MaxGridDimX"]),
                int(attrs["MaxGridDimY"]),
                int(attrs["MaxGridDimZ"]),
            ),
        )

    def build(self, source: str, options: str = "") -> CuPyProgram:
        module = self._cp.RawModule(code=source, options=tuple(options.split()), backend="nvrtc")
        try:
            module.compile()
        except self._cp.cuda.compiler.CompileException as e:
            raise BuildError("NVRTC build failed", log=e.get_message(), source=source) from e
        return CuPyProgram(module, self._warp_size, source)

    def empty(self, size: int, dtype: Any) -> Any:
        return self._cp.empty(size, dtype=dtype)

    def write(self, buffer: Any, array: np.ndarray) -> None:
        buffer.set(np.ascontiguousarray(array))

    def to_host(self, buffer: Any) -> np.ndarray:
        return self._cp.asnumpy(buffer)

    def launch(self, call: KernelCall) -> None:
        geometry = call.geometry
        block = geometry.local_size or (1,) * len(geometry.global_size)
        call.kernel.handle(geometry.groups, block, call.values)

    def finish(self) -> None:
        self._cp.cuda.get_current_stream().synchronize()


def is_available() -> bool:
    """Check if CuPy backend is available."""
    return CUPY_AVAILABLE
