"""Compute backend registry with auto-detection.

Priority order (auto mode):
1. pyopencl (OpenCL dialect) - any OpenCL GPU or CPU device
2. CuPy (CUDA dialect) - NVIDIA GPU

There is no host fallback: when nothing is available, auto mode raises.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from fftgen.config import BackendConfig
from fftgen.errors import BackendUnavailableError

from .base import Backend

logger = logging.getLogger(__name__)

_PRIORITY = ("opencl", "cuda")

# Backend registry
_BACKENDS: dict[str, type[Backend]] = {}
_discovered = False


def register(name: str) -> Callable[[type[Backend]], type[Backend]]:
    """Decorator to register a compute backend.

    Args:
        name: Backend identifier (e.g., 'opencl', 'cuda')
    """

    def decorator(cls: type[Backend]) -> type[Backend]:
        _BACKENDS[name] = cls
        return cls

    return decorator


def _try_create_backend(name: str, **kwargs: Any) -> Backend | None:
    """Try to create a backend, returning None if unavailable."""
    if name not in _BACKENDS:
        return None

    try:
        return _BACKENDS[name](**kwargs)
    except BackendUnavailableError as e:
        logger.debug(f"Backend '{name}' not available: {e}")
        return None


def get_backend(name: str = "auto", **kwargs: Any) -> Backend:
    """Get a backend by name or auto-detect the first available one.

    Args:
        name: 'auto', 'opencl' or 'cuda'
        **kwargs: Backend-specific arguments (platform, device, queue)

    Raises:
        BackendUnavailableError: requested backend (or, for 'auto', every
            backend) cannot be created
    """
    _ensure_registered()

    if name == "auto":
        skipped: list[str] = []
        for candidate in _PRIORITY:
            backend = _try_create_backend(candidate, **kwargs)
            if backend is None:
                if candidate in _BACKENDS:
                    skipped.append(candidate)
                continue
            if skipped:
                logger.warning(
                    f"Falling back to compute backend {backend.name} "
                    f"({', '.join(skipped)} could not open a device)"
                )
            logger.info(f"Auto-selected compute backend: {backend.name}")
            return backend
        raise BackendUnavailableError(
            "No compute backend available. Install pyopencl or cupy-cuda12x"
        )

    if name not in _BACKENDS:
        known = ", ".join(sorted(_BACKENDS)) or "none"
        raise BackendUnavailableError(f"Unknown or unavailable backend '{name}' (available: {known})")
    return _BACKENDS[name](**kwargs)


def backend_from_config(config: BackendConfig) -> Backend:
    kwargs: dict[str, Any] = {"device": config.device}
    if config.platform is not None:
        kwargs["platform"] = config.platform
    return get_backend(config.name, **kwargs)


def available_backends() -> list[str]:
    """Names of backends that can open a device right now."""
    _ensure_registered()

    available = []
    for name in _BACKENDS:
        backend = _try_create_backend(name)
        if backend is not None:
            available.append(name)
            del backend

    return available


def _ensure_registered() -> None:
    """Ensure all built-in backends are registered."""
    global _discovered
    if _discovered:
        return
    _discovered = True

    from .cupy_backend import CuPyBackend
    from .cupy_backend import is_available as cupy_available
    from .opencl_backend import OpenCLBackend
    from .opencl_backend import is_available as opencl_available

    if opencl_available():
        _BACKENDS["opencl"] = OpenCLBackend
    if cupy_available():
        _BACKENDS["cuda"] = CuPyBackend

    logger.debug(f"Registered compute backends: {list(_BACKENDS.keys())}")
