"""Numerical tests running generated kernels on an OpenCL device.

pocl supplies a CPU device when no GPU is present; without any OpenCL
device these tests are skipped.
"""

import numpy as np
import pytest

from fftgen.codegen import kernels
from fftgen.config import Dialect, GeneratorConfig, Precision
from fftgen.plan import Plan
from fftgen.planner import Radix

pytestmark = pytest.mark.device

# Relative to the largest output magnitude; single precision runs with fast math
TOLERANCE = {Precision.SINGLE: 1e-3, Precision.DOUBLE: 1e-9}


def _config(precision: Precision) -> GeneratorConfig:
    return GeneratorConfig(precision=precision, dialect=Dialect.OPENCL)


def _precision_config(backend, precision: Precision) -> GeneratorConfig:
    if precision is Precision.DOUBLE and not backend.device_info().supports_double:
        pytest.skip("Device has no double precision support")
    return _config(precision)


def _assert_close(actual, expected, precision=Precision.SINGLE):
    scale = max(float(np.max(np.abs(expected))), 1.0)
    error = float(np.max(np.abs(actual - expected))) / scale
    assert error < TOLERANCE[precision], f"relative error {error:.3e}"


class TestRadixStage:
    """A single stage with p=1 and radix=N is the direct DFT."""

    @pytest.mark.parametrize("n", [2, 3, 4, 5, 8])
    def test_direct_dft(self, opencl_backend, random_complex, n):
        config = _config(Precision.SINGLE)
        data = random_complex(n)
        src = opencl_backend.empty(n, np.complex64)
        dst = opencl_backend.empty(n, np.complex64)
        opencl_backend.write(src, data)

        call = kernels.radix_kernel(opencl_backend, config, n, 1, False, Radix(n), 1, src, dst)
        opencl_backend.launch(call)
        opencl_backend.finish()

        _assert_close(opencl_backend.to_host(dst), np.fft.fft(data))


class TestPlans:
    """Whole transforms compared with numpy.fft."""

    def test_impulse_gives_ones(self, opencl_backend):
        plan = Plan(opencl_backend, 12, config=_config(Precision.SINGLE))
        impulse = np.zeros(12, dtype=np.complex64)
        impulse[0] = 1

        _assert_close(plan.execute(impulse), np.ones(12))

    @pytest.mark.parametrize("n", [16, 60, 1000, 7, 14, 11 * 8])
    def test_forward_matches_numpy(self, opencl_backend, random_complex, n):
        plan = Plan(opencl_backend, n, config=_config(Precision.SINGLE))
        data = random_complex(n)

        _assert_close(plan.execute(data), np.fft.fft(data))

    @pytest.mark.parametrize("n", [12, 7])
    def test_inverse_is_unnormalised(self, opencl_backend, random_complex, n):
        plan = Plan(opencl_backend, n, inverse=True, config=_config(Precision.SINGLE))
        data = random_complex(n)

        _assert_close(plan.execute(data), np.fft.ifft(data) * n)

    @pytest.mark.parametrize("precision", [Precision.SINGLE, Precision.DOUBLE])
    @pytest.mark.parametrize("n", [48, 49])
    def test_round_trip(self, opencl_backend, random_complex, precision, n):
        """Forward then inverse, scaled by 1/N, restores the input."""
        config = _precision_config(opencl_backend, precision)
        forward = Plan(opencl_backend, n, config=config)
        inverse = Plan(opencl_backend, n, inverse=True, config=config)
        data = random_complex(n, dtype=precision.complex_dtype)

        restored = inverse.execute(forward.execute(data)) / n

        _assert_close(restored, data, precision)

    def test_batched(self, opencl_backend, random_complex):
        plan = Plan(opencl_backend, 20, batch=3, config=_config(Precision.SINGLE))
        data = random_complex((3, 20))

        _assert_close(plan.execute(data), np.fft.fft(data, axis=1))

    def test_replay_is_repeatable(self, opencl_backend, random_complex):
        """Once stages are skipped on later runs without changing the result."""
        plan = Plan(opencl_backend, 7, config=_config(Precision.SINGLE))
        data = random_complex(7)

        first = plan.execute(data)
        second = plan.execute(data)

        np.testing.assert_allclose(first, second, rtol=1e-6, atol=1e-6)

    @pytest.mark.parametrize(
        "lengths,batch", [((3, 5), 1), ((8, 6), 1), ((7, 4), 1), ((3, 5), 2), ((4, 3, 5), 1)]
    )
    def test_multidimensional(self, opencl_backend, random_complex, lengths, batch):
        plan = Plan(opencl_backend, lengths, batch=batch, config=_config(Precision.SINGLE))
        shape = lengths if batch == 1 else (batch, *lengths)
        data = random_complex(shape)
        axes = tuple(range(len(shape) - len(lengths), len(shape)))

        _assert_close(plan.execute(data), np.fft.fftn(data, axes=axes))

    def test_double_precision(self, opencl_backend, random_complex):
        config = _precision_config(opencl_backend, Precision.DOUBLE)
        plan = Plan(opencl_backend, 30, config=config)
        data = random_complex(30, dtype=np.complex128)

        _assert_close(plan.execute(data), np.fft.fft(data), Precision.DOUBLE)


class TestBluesteinChirp:
    def _chirp(self, backend, n, inverse, precision=Precision.DOUBLE):
        config = _precision_config(backend, precision)
        out = backend.empty(n, precision.complex_dtype)
        call = kernels.bluestein_twiddle_kernel(backend, config, n, inverse, out)
        backend.launch(call)
        backend.finish()
        return backend.to_host(out)

    def test_matches_closed_form(self, opencl_backend):
        n = 7
        x = np.arange(n)
        expected = np.exp(-1j * np.pi * (x * x % (2 * n)) / n)

        _assert_close(self._chirp(opencl_backend, n, False), expected, Precision.DOUBLE)

    def test_inverse_is_conjugate(self, opencl_backend):
        forward = self._chirp(opencl_backend, 11, False)
        inverse = self._chirp(opencl_backend, 11, True)

        _assert_close(inverse, np.conj(forward), Precision.DOUBLE)

    def test_symmetric_about_n(self, opencl_backend):
        """chirp(x) == chirp(2n - x), seen through a table of length 2n."""
        n = 5
        table = self._chirp(opencl_backend, 2 * n, False)
        # a length-2n table holds exp(-i pi x^2 / 2n); squaring maps it to the length-n chirp
        chirp = table**2
        for x in range(1, n):
            assert chirp[x] == pytest.approx(chirp[2 * n - x], abs=1e-9)


class TestTranspose:
    def test_three_by_five(self, opencl_backend):
        config = _config(Precision.SINGLE)
        matrix = (np.arange(15) + 1j * np.arange(15)[::-1]).astype(np.complex64).reshape(3, 5)
        src = opencl_backend.empty(15, np.complex64)
        dst = opencl_backend.empty(15, np.complex64)
        opencl_backend.write(src, matrix.reshape(-1))

        call = kernels.transpose_kernel(opencl_backend, config, 5, 3, src, dst)
        opencl_backend.launch(call)
        opencl_backend.finish()

        np.testing.assert_array_equal(opencl_backend.to_host(dst).reshape(5, 3), matrix.T)
