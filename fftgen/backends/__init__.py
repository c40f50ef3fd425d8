"""Compute backends that compile and launch generated kernels.

- opencl: any OpenCL device through pyopencl (GPUs, CPUs via pocl)
- cuda: NVIDIA GPUs through CuPy and NVRTC

Usage:
    from fftgen.backends import get_backend, available_backends

    # Auto-detect the first usable backend
    backend = get_backend()

    # Or pick one explicitly
    backend = get_backend("opencl", platform="Portable", device=0)
"""

from .base import Backend, DeviceInfo, Kernel, Program
from .registry import available_backends, backend_from_config, get_backend, register

__all__ = [
    "Backend",
    "DeviceInfo",
    "Kernel",
    "Program",
    "available_backends",
    "backend_from_config",
    "get_backend",
    "register",
]
