"""pyopencl backend - OpenCL devices (GPUs, and CPUs through pocl).

Install: pip install pyopencl (add the ``pocl`` extra for a CPU device)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from fftgen.codegen.source import ParamKind
from fftgen.config import Dialect
from fftgen.errors import BackendUnavailableError, BuildError

from .base import Backend, DeviceInfo

if TYPE_CHECKING:
    from fftgen.call import KernelCall

logger = logging.getLogger(__name__)

# Try to import pyopencl
_cl: Any | None = None
_cl_array: Any | None = None
PYOPENCL_AVAILABLE = False

try:
    import pyopencl as cl
    import pyopencl.array as cl_array

    _cl = cl
    _cl_array = cl_array
    PYOPENCL_AVAILABLE = True
except ImportError:
    pass


@dataclass
class OpenCLKernel:
    name: str
    handle: Any
    preferred_multiple: int


@dataclass
class OpenCLProgram:
    handle: Any
    device: Any
    _kernels: dict[str, OpenCLKernel] = field(default_factory=dict)

    def kernel(self, name: str) -> OpenCLKernel:
        if name not in self._kernels:
            assert _cl is not None
            handle = _cl.Kernel(self.handle, name)
            multiple = handle.get_work_group_info(
                _cl.kernel_work_group_info.PREFERRED_WORK_GROUP_SIZE_MULTIPLE, self.device
            )
            self._kernels[name] = OpenCLKernel(name, handle, int(multiple))
        return self._kernels[name]


class OpenCLBackend(Backend):
    """OpenCL backend on one device with one in-order command queue."""

    dialect = Dialect.OPENCL

    def __init__(self, platform: str | None = None, device: int = 0, queue: Any = None):
        """Open a context and queue.

        Args:
            platform: Substring of the platform name to use (first match)
            device: Device index within the platform
            queue: Existing pyopencl.CommandQueue to reuse instead

        Raises:
            BackendUnavailableError: pyopencl missing or no matching device
        """
        if not PYOPENCL_AVAILABLE or _cl is None:
            raise BackendUnavailableError(
                "pyopencl not available. Install with: pip install pyopencl"
            )
        super().__init__()
        self._cl = _cl

        if queue is None:
            queue = self._open_queue(platform, device)
        self.queue = queue
        self.context = queue.context
        self.device = queue.device
        logger.info(f"OpenCL backend initialized on {self.device.name.strip()}")

    def _open_queue(self, platform: str | None, index: int) -> Any:
        try:
            platforms = self._cl.get_platforms()
        except self._cl.Error as e:
            raise BackendUnavailableError(f"No OpenCL platform: {e}") from e

        for plat in platforms:
            if platform and platform.lower() not in plat.name.lower():
                continue
            try:
                devices = plat.get_devices()
            except self._cl.Error as e:
                logger.debug(f"Skipping platform {plat.name}: {e}")
                continue
            if index < len(devices):
                context = self._cl.Context([devices[index]])
                return self._cl.CommandQueue(context)
        raise BackendUnavailableError(
            f"No OpenCL device {index} on platform matching {platform!r}"
        )

    @property
    def name(self) -> str:
        return "opencl"

    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            name=self.device.name.strip(),
            local_mem_size=int(self.device.local_mem_size),
            max_work_group_size=int(self.device.max_work_group_size),
            supports_double="cl_khr_fp64" in self.device.extensions
            or "cl_amd_fp64" in self.device.extensions,
        )

    def build(self, source: str, options: str = "") -> OpenCLProgram:
        program = self._cl.Program(self.context, source)
        try:
            program.build(options=options.split())
        except self._cl.Error as e:
            try:
                log = program.get_build_info(self.device, self._cl.program_build_info.LOG)
            except self._cl.Error:
                log = ""
            raise BuildError(f"OpenCL build failed: {e}", log=log, source=source) from e
        return OpenCLProgram(program, self.device)

    def empty(self, size: int, dtype: Any) -> Any:
        assert _cl_array is not None
        return _cl_array.empty(self.queue, size, dtype)

    def write(self, buffer: Any, array: np.ndarray) -> None:
        buffer.set(np.ascontiguousarray(array), queue=self.queue)

    def to_host(self, buffer: Any) -> np.ndarray:
        return buffer.get(queue=self.queue)

    def launch(self, call: KernelCall) -> None:
        kernel = call.kernel.handle
        kernel.set_args(
            *(arg.value.data if arg.kind is ParamKind.BUFFER else arg.value for arg in call.args)
        )
        self._cl.enqueue_nd_range_kernel(
            self.queue, kernel, call.geometry.global_size, call.geometry.local_size
        )

    def finish(self) -> None:
        self.queue.finish()


def is_available() -> bool:
    """Check if the pyopencl backend is available."""
    return PYOPENCL_AVAILABLE
