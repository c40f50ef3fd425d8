"""Shared pytest fixtures for fftgen tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pytest

from fftgen.backends.base import Backend, DeviceInfo
from fftgen.call import KernelCall
from fftgen.config import Dialect, GeneratorConfig, Precision
from fftgen.errors import BackendUnavailableError


@dataclass
class FakeKernel:
    name: str
    preferred_multiple: int


@dataclass
class FakeProgram:
    source: str
    options: str
    preferred_multiple: int
    kernels: dict[str, FakeKernel] = field(default_factory=dict)

    def kernel(self, name: str) -> FakeKernel:
        if name not in self.kernels:
            self.kernels[name] = FakeKernel(name, self.preferred_multiple)
        return self.kernels[name]


class FakeBackend(Backend):
    """Records builds and launches; buffers are host numpy arrays, nothing executes."""

    def __init__(
        self,
        dialect: Dialect = Dialect.OPENCL,
        preferred_multiple: int = 32,
        info: DeviceInfo | None = None,
        fail_on: str | None = None,
    ):
        self.dialect = dialect
        self.preferred_multiple = preferred_multiple
        self.info = info or DeviceInfo(
            name="fake", local_mem_size=32768, max_work_group_size=256
        )
        self.fail_on = fail_on
        super().__init__()
        self.builds: list[FakeProgram] = []
        self.launches: list[KernelCall] = []
        self.writes = 0
        self.finished = 0

    @property
    def name(self) -> str:
        return "fake"

    def device_info(self) -> DeviceInfo:
        return self.info

    def build(self, source: str, options: str = "") -> FakeProgram:
        program = FakeProgram(source, options, self.preferred_multiple)
        self.builds.append(program)
        return program

    def empty(self, size: int, dtype: Any) -> np.ndarray:
        return np.zeros(size, dtype=dtype)

    def write(self, buffer: Any, array: np.ndarray) -> None:
        buffer[:] = array
        self.writes += 1

    def to_host(self, buffer: Any) -> np.ndarray:
        return np.array(buffer)

    def launch(self, call: KernelCall) -> None:
        if self.fail_on and self.fail_on in call.desc:
            raise RuntimeError("CL_OUT_OF_RESOURCES")
        self.launches.append(call)

    def finish(self) -> None:
        self.finished += 1


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def single_config() -> GeneratorConfig:
    return GeneratorConfig(precision=Precision.SINGLE, dialect=Dialect.OPENCL)


@pytest.fixture
def double_config() -> GeneratorConfig:
    return GeneratorConfig(precision=Precision.DOUBLE, dialect=Dialect.OPENCL)


@pytest.fixture(scope="session")
def opencl_backend() -> Backend:
    """First OpenCL device (pocl provides a CPU one); skips when there is none."""
    pytest.importorskip("pyopencl")
    from fftgen.backends.opencl_backend import OpenCLBackend

    try:
        return OpenCLBackend()
    except BackendUnavailableError as e:
        pytest.skip(f"No OpenCL device: {e}")


@pytest.fixture
def random_complex():
    """Factory for reproducible complex test data."""

    def _generate(shape: Any, dtype: Any = np.complex64, seed: int = 42) -> np.ndarray:
        rng = np.random.default_rng(seed)
        data = rng.standard_normal(shape) + 1j * rng.standard_normal(shape)
        return data.astype(dtype)

    return _generate


@pytest.fixture
def make_fake_backend():
    """Factory for fake backends with custom device limits or failures."""
    return FakeBackend
