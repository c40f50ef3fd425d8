"""Execution plans: the ordered kernel calls for one transform shape.

Usage:
    from fftgen import Plan, get_backend

    backend = get_backend()
    plan = Plan(backend, (64, 48), inverse=False)
    spectrum = plan.execute(samples)
    print(plan.describe())

A plan owns every device buffer its calls are bound to. ``replay()`` runs
the calls strictly in list order on the backend's in-order queue; calls
marked ``once`` (chirp tables and their transforms) only run the first time.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from .backends.base import Backend
from .call import KernelCall
from .codegen import kernels
from .config import GeneratorConfig
from .errors import InvalidConfigurationError, LaunchError
from .planner import Planner, Stage
from .typing import Extent, NDArrayComplex

logger = logging.getLogger(__name__)


class _PingPong:
    """Two equally sized buffers; ``src`` holds the current data."""

    def __init__(self, a: Any, b: Any):
        self.buffers = [a, b]
        self.index = 0

    @property
    def src(self) -> Any:
        return self.buffers[self.index]

    @property
    def dst(self) -> Any:
        return self.buffers[1 - self.index]

    def swap(self) -> None:
        self.index = 1 - self.index


class Plan:
    """Batched 1-D or N-D complex FFT of a fixed shape.

    Args:
        backend: compute backend the calls are compiled for and launched on
        lengths: transform length, or one length per axis (row-major)
        inverse: compute the unnormalised inverse transform
        batch: number of independent transforms stored back to back
        config: generator settings (precision, dialect, fast math)
        planner: radix decomposer

    Raises:
        InvalidConfigurationError: empty shape, a length or batch < 1, or a
            generator dialect that does not match the backend
        BuildError: a generated kernel failed to compile
    """

    def __init__(
        self,
        backend: Backend,
        lengths: int | Sequence[int],
        inverse: bool = False,
        batch: int = 1,
        config: GeneratorConfig | None = None,
        planner: Planner | None = None,
    ):
        if isinstance(lengths, int):
            lengths = (lengths,)
        self.lengths: Extent = tuple(int(n) for n in lengths)
        if not self.lengths:
            raise InvalidConfigurationError("Transform needs at least one axis")
        if any(n < 1 for n in self.lengths):
            raise InvalidConfigurationError(f"Transform lengths must be >= 1, got {self.lengths}")
        if batch < 1:
            raise InvalidConfigurationError(f"Batch must be >= 1, got {batch}")

        self.backend = backend
        self.inverse = inverse
        self.batch = batch
        self.config = config or GeneratorConfig(dialect=backend.dialect)
        self.planner = planner or Planner()
        self.size = math.prod(self.lengths)
        self.dtype = self.config.precision.complex_dtype
        self.calls: list[KernelCall] = []
        # every device allocation, kept alive for the lifetime of the plan
        self.buffers: list[Any] = []

        total = self.size * batch
        self.input = self._alloc(total)
        data = _PingPong(self.input, self._alloc(total))

        nontrivial = [n for n in self.lengths if n > 1]
        for n in reversed(self.lengths):
            if n == 1:
                continue
            self._transform(n, total // n, inverse, data, once=False)
            if len(nontrivial) > 1:
                # rotate the next axis into the contiguous position
                self._add(
                    kernels.transpose_kernel(
                        backend, self.config, n, total // n, data.src, data.dst
                    )
                )
                data.swap()
        if len(nontrivial) > 1 and batch > 1:
            # axes rotated back into place, batch index ended up last
            self._add(
                kernels.transpose_kernel(backend, self.config, batch, self.size, data.src, data.dst)
            )
            data.swap()

        self.output = data.src
        logger.info(
            f"Built {'inverse' if inverse else 'forward'} plan for lengths={self.lengths} "
            f"batch={batch}: {len(self.calls)} kernel call(s)"
        )

    def _alloc(self, size: int) -> Any:
        buffer = self.backend.empty(size, self.dtype)
        self.buffers.append(buffer)
        return buffer

    def _add(self, call: KernelCall) -> None:
        logger.debug(f"Plan stage {len(self.calls)}: {call.desc}")
        self.calls.append(call)

    def _transform(self, n: int, batch: int, inverse: bool, data: _PingPong, once: bool) -> None:
        """1-D transform of ``batch`` contiguous rows of length ``n``; result ends in ``data.src``."""
        for stage in self.planner.stages(n):
            if stage.bluestein:
                self._bluestein(stage, n, batch, inverse, data)
            else:
                self._add(
                    kernels.radix_kernel(
                        self.backend,
                        self.config,
                        n,
                        batch,
                        inverse,
                        stage.radix,
                        stage.p,
                        data.src,
                        data.dst,
                        once=once,
                    )
                )
            data.swap()

    def _bluestein(self, stage: Stage, n: int, batch: int, inverse: bool, data: _PingPong) -> None:
        """A prime radix stage as a chirp-z convolution; writes ``data.dst``."""
        radix = stage.radix.value
        m = stage.convolution
        assert m is not None
        threads = n // radix
        backend, config = self.backend, self.config

        # shape-only part: chirp, padded conjugate chirp and its spectrum
        chirp = self._alloc(radix)
        self._add(kernels.bluestein_twiddle_kernel(backend, config, radix, inverse, chirp))
        kernel = _PingPong(self._alloc(m), self._alloc(m))
        self._add(kernels.bluestein_pad_kernel(backend, config, radix, m, chirp, kernel.src))
        self._transform(m, 1, False, kernel, once=True)

        conv = _PingPong(self._alloc(batch * threads * m), self._alloc(batch * threads * m))
        self._add(
            kernels.bluestein_mul_in(
                backend,
                config,
                inverse,
                batch,
                radix,
                stage.p,
                threads,
                m,
                data.src,
                chirp,
                conv.src,
            )
        )
        self._transform(m, batch * threads, False, conv, once=False)
        self._add(
            kernels.bluestein_mul(
                backend, config, m, batch * threads, conv.src, kernel.src, conv.dst
            )
        )
        conv.swap()
        self._transform(m, batch * threads, True, conv, once=False)
        self._add(
            kernels.bluestein_mul_out(
                backend,
                config,
                batch,
                stage.p,
                radix,
                threads,
                m,
                conv.src,
                chirp,
                data.dst,
            )
        )

    def replay(self) -> None:
        """Launch every call in order, skipping ``once`` calls that already ran.

        Raises:
            LaunchError: the backend rejected a launch; carries the stage description
        """
        for call in self.calls:
            if call.once and call.count:
                continue
            try:
                self.backend.launch(call)
            except Exception as e:
                raise LaunchError(call.desc, e) from e
            call.count += 1

    def execute(self, data: np.ndarray) -> NDArrayComplex:
        """Transform ``data`` (``batch * prod(lengths)`` samples) and return the result.

        The result has shape ``lengths`` for a single transform and
        ``(batch, *lengths)`` otherwise.
        """
        samples = np.asarray(data, dtype=self.dtype)
        if samples.size != self.size * self.batch:
            raise InvalidConfigurationError(
                f"Expected {self.size * self.batch} samples for lengths={self.lengths} "
                f"batch={self.batch}, got {samples.size}"
            )
        self.backend.write(self.input, samples.reshape(-1))
        self.replay()
        self.backend.finish()
        result = self.backend.to_host(self.output)
        if self.batch == 1:
            return result.reshape(self.lengths)
        return result.reshape((self.batch, *self.lengths))

    def describe(self) -> str:
        return "\n".join(call.desc for call in self.calls)

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return (
            f"Plan(lengths={self.lengths}, inverse={self.inverse}, batch={self.batch}, "
            f"backend={self.backend.name!r}, calls={len(self.calls)})"
        )
