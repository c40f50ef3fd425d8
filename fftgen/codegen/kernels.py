"""Kernel generators for FFT stages.

Each stage has two entry points:
- ``*_source(config, ...)`` returns the SourceBuilder for the stage, so the
  text can be inspected without a device;
- ``*_kernel(backend, config, ...)`` compiles it, binds the buffers and
  scalars, sizes the launch and returns a KernelCall.

Launch extents are rounded up to the kernel's preferred work-group multiple;
every kernel bounds-checks the padded region.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from fftgen.backends.base import Backend, DeviceInfo
from fftgen.call import KernelArg, KernelCall, LaunchGeometry
from fftgen.config import GeneratorConfig, Precision
from fftgen.errors import InvalidConfigurationError
from fftgen.planner import Radix, alignup

from .dft import dft_call, dft_code
from .primitives import chirp_sign, conjugate_code, kernel_common, mul_code, twiddle_code
from .source import Param, SourceBuilder

logger = logging.getLogger(__name__)


def _compile(
    backend: Backend, config: GeneratorConfig, o: SourceBuilder, name: str, options: str = ""
) -> tuple[Any, Any]:
    if backend.dialect is not config.dialect:
        raise InvalidConfigurationError(
            f"Generator dialect {config.dialect.value} does not match backend {backend.name}"
        )
    if config.precision is Precision.DOUBLE and not backend.device_info().supports_double:
        raise InvalidConfigurationError(
            f"Device {backend.device_info().name} has no double precision support"
        )
    program = backend.compile(o.source(), options)
    return program, program.kernel(name)


def _call(
    backend: Backend,
    once: bool,
    desc: str,
    program: Any,
    kernel: Any,
    o: SourceBuilder,
    args: list[KernelArg],
    geometry: LaunchGeometry,
) -> KernelCall:
    limit = backend.device_info().max_grid_size
    if limit is not None:
        for axis, (groups, most) in enumerate(zip(geometry.groups, limit)):
            if groups > most:
                raise InvalidConfigurationError(
                    f"{desc}: {groups} work-groups along axis {axis} exceed the device limit {most}"
                )
    call = KernelCall(
        once=once,
        desc=desc,
        program=program,
        kernel=kernel,
        params=o.kernels[kernel.name],
        args=tuple(args),
        geometry=geometry,
    )
    logger.debug(f"Built {desc}")
    return call


# -- Cooley-Tukey radix stage ----------------------------------------------


def radix_source(config: GeneratorConfig, radix: Radix, invert: bool) -> SourceBuilder:
    """One decimation stage: twiddle, size-r DFT, scatter by the outgoing stride."""
    r = radix.value
    o = SourceBuilder(config)
    kernel_common(o)
    mul_code(o, invert)
    twiddle_code(o)
    dft_code(o, r, invert)

    params = [
        Param.buffer("x", const=True),
        Param.buffer("y"),
        Param.uint("p"),
        Param.uint("threads"),
    ]
    with o.kernel("radix", params):
        o.line(f"const size_t i = {o.global_id(0)};")
        o.line("if(i >= threads) return;")

        # index in input sequence, in 0..P-1
        o.line("const size_t k = i % p;")
        o.line(f"const size_t batch_offset = {o.global_id(1)} * threads * {r};")

        o.line("x += i + batch_offset;")
        for i in range(r):
            o.line(f"real2_t v{i} = x[{i} * threads];")

        with o.block("if(p != 1)"):
            for i in range(1, r):
                alpha = -2.0 * math.pi * i / r
                o.line(f"v{i} = mul(v{i}, twiddle({o.literal(alpha)} * k / p));")

        o.line(dft_call(r))

        o.line(f"const size_t j = k + (i - k) * {r};")
        o.line("y += j + batch_offset;")
        for i in range(r):
            o.line(f"y[{i} * p] = v{i};")
    return o


def radix_kernel(
    backend: Backend,
    config: GeneratorConfig,
    n: int,
    batch: int,
    invert: bool,
    radix: Radix,
    p: int,
    src: Any,
    dst: Any,
    once: bool = False,
) -> KernelCall:
    if n % radix.value or n < 1:
        raise InvalidConfigurationError(f"Radix {radix} does not divide n={n}")
    if (n // radix.value) % p:
        raise InvalidConfigurationError(f"p={p} is not a stride of n={n} for radix {radix}")

    o = radix_source(config, radix, invert)
    program, kernel = _compile(backend, config, o, "radix", config.fast_math_options())

    m = n // radix.value
    wg = kernel.preferred_multiple
    threads = alignup(m, wg)

    desc = (
        f"dft{{r={radix}, p={p}, n={n}, batch={batch}, "
        f"threads={m}({threads}), wg={wg}}}"
    )
    args = [KernelArg.buffer(src), KernelArg.buffer(dst), KernelArg.uint(p), KernelArg.uint(m)]
    geometry = LaunchGeometry((threads, batch), (wg, 1))
    return _call(backend, once, desc, program, kernel, o, args, geometry)


# -- transpose -------------------------------------------------------------


def transpose_block_size(info: DeviceInfo, precision: Precision, max_block: int = 128) -> int:
    """Largest power-of-two tile edge whose tile fits local memory and one work-group."""
    block_size = max_block
    while block_size > 1 and block_size * block_size * precision.complex_size > info.local_mem_size:
        block_size //= 2
    while block_size > 1 and block_size * block_size > info.max_work_group_size:
        block_size //= 2
    return block_size


def transpose_source(config: GeneratorConfig, block_size: int) -> SourceBuilder:
    o = SourceBuilder(config)
    kernel_common(o)

    params = [
        Param.buffer("input", const=True),
        Param.buffer("output"),
        Param.uint("width"),
        Param.uint("height"),
    ]
    with o.kernel("transpose", params):
        o.shared_array("real2_t", "block", block_size * block_size)
        o.line(f"const size_t global_x = {o.global_id(0)};")
        o.line(f"const size_t global_y = {o.global_id(1)};")
        o.line(f"const size_t local_x = {o.local_id(0)};")
        o.line(f"const size_t local_y = {o.local_id(1)};")
        o.line(f"const size_t group_x = {o.group_id(0)};")
        o.line(f"const size_t group_y = {o.group_id(1)};")
        o.line(f"const size_t block_size = {block_size};")

        with o.block("if(global_x < width && global_y < height)"):
            o.line("block[local_y * block_size + local_x] = input[global_y * width + global_x];")

        # wait until the whole tile is filled
        o.barrier()

        # swapped tile coordinates: row target_y of the output is column target_y of the input
        o.line("const size_t target_x = group_y * block_size + local_x;")
        o.line("const size_t target_y = group_x * block_size + local_y;")
        with o.block("if(target_x < height && target_y < width)"):
            o.line("output[target_y * height + target_x] = block[local_x * block_size + local_y];")
    return o


def transpose_kernel(
    backend: Backend,
    config: GeneratorConfig,
    width: int,
    height: int,
    src: Any,
    dst: Any,
) -> KernelCall:
    """Transpose a row-major ``height x width`` matrix into ``width x height``."""
    block_size = transpose_block_size(
        backend.device_info(), config.precision, config.transpose_max_block
    )
    o = transpose_source(config, block_size)
    program, kernel = _compile(backend, config, o, "transpose")

    # range multiple of the tile, last tiles may be partially filled
    r_w = alignup(width, block_size)
    r_h = alignup(height, block_size)

    desc = f"transpose{{w={width}({r_w}), h={height}({r_h}), bs={block_size}}}"
    args = [
        KernelArg.buffer(src),
        KernelArg.buffer(dst),
        KernelArg.uint(width),
        KernelArg.uint(height),
    ]
    geometry = LaunchGeometry((r_w, r_h), (block_size, block_size))
    return _call(backend, False, desc, program, kernel, o, args, geometry)


# -- Bluestein -------------------------------------------------------------


def bluestein_twiddle_source(config: GeneratorConfig, inverse: bool) -> SourceBuilder:
    """Chirp table ``output[x] = exp(sign * i*pi * (x^2 mod 2n) / n)``."""
    o = SourceBuilder(config)
    kernel_common(o)
    twiddle_code(o)

    with o.kernel("bluestein_twiddle", [Param.buffer("output"), Param.uint("n")]):
        o.line(f"const size_t x = {o.global_id(0)};")
        o.line("if(x >= n) return;")
        o.line(f"const size_t xx = (({o.wide_uint})x * x) % (2 * ({o.wide_uint})n);")
        o.line(f"output[x] = twiddle({o.literal(chirp_sign(inverse) * math.pi)} * xx / n);")
    return o


def bluestein_twiddle_kernel(
    backend: Backend, config: GeneratorConfig, n: int, inverse: bool, out: Any
) -> KernelCall:
    o = bluestein_twiddle_source(config, inverse)
    program, kernel = _compile(backend, config, o, "bluestein_twiddle")

    wg = kernel.preferred_multiple
    threads = alignup(n, wg)
    desc = f"bluestein_twiddle{{n={n}({threads}), inverse={int(inverse)}}}"
    args = [KernelArg.buffer(out), KernelArg.uint(n)]
    geometry = LaunchGeometry((threads,), (wg,))
    return _call(backend, True, desc, program, kernel, o, args, geometry)


def bluestein_pad_source(config: GeneratorConfig) -> SourceBuilder:
    """Zero-padded, conjugated, mirrored copy of the chirp (the convolution kernel)."""
    o = SourceBuilder(config)
    kernel_common(o)
    conjugate_code(o)

    params = [
        Param.buffer("input", const=True),
        Param.buffer("output"),
        Param.uint("n"),
        Param.uint("m"),
    ]
    with o.kernel("bluestein_pad_kernel", params):
        o.line(f"const size_t x = {o.global_id(0)};")
        o.line("if(x >= m) return;")
        with o.block("if(x < n || m - x < n)"):
            o.line("output[x] = conjugate(input[x < m - x ? x : m - x]);")
        with o.block("else"):
            o.line("real2_t r = {0, 0};")
            o.line("output[x] = r;")
    return o


def bluestein_pad_kernel(
    backend: Backend, config: GeneratorConfig, n: int, m: int, src: Any, dst: Any
) -> KernelCall:
    if m < 2 * n - 1:
        raise InvalidConfigurationError(f"Convolution length {m} < 2n-1 for n={n}")
    o = bluestein_pad_source(config)
    program, kernel = _compile(backend, config, o, "bluestein_pad_kernel")

    wg = kernel.preferred_multiple
    threads = alignup(m, wg)
    desc = f"bluestein_pad_kernel{{n={n}, m={m}({threads})}}"
    args = [KernelArg.buffer(src), KernelArg.buffer(dst), KernelArg.uint(n), KernelArg.uint(m)]
    geometry = LaunchGeometry((threads,), (wg,))
    return _call(backend, True, desc, program, kernel, o, args, geometry)


def bluestein_mul_in_source(config: GeneratorConfig, inverse: bool) -> SourceBuilder:
    """Window the input, multiply by chirp and Cooley-Tukey twiddle, zero-pad to the stride."""
    o = SourceBuilder(config)
    kernel_common(o)
    mul_code(o, False)
    twiddle_code(o)

    wide = o.wide_uint
    params = [
        Param.buffer("data", const=True),
        Param.buffer("exp", const=True),
        Param.buffer("output"),
        Param.uint("radix"),
        Param.uint("p"),
        Param.uint("out_stride"),
    ]
    with o.kernel("bluestein_mul_in", params):
        o.line(f"const size_t thread = {o.global_id(0)};")
        o.line(f"const size_t threads = {o.global_size(0)};")
        o.line(f"const size_t batch = {o.global_id(1)};")
        o.line(f"const size_t element = {o.global_id(2)};")
        o.line("if(element >= out_stride) return;")

        o.line("const size_t in_off = thread + batch * radix * threads + element * threads;")
        o.line("const size_t out_off = thread * out_stride + batch * out_stride * threads + element;")
        with o.block("if(element < radix)"):
            o.line("real2_t w = exp[element];")
            with o.block("if(p != 1)"):
                o.line(f"const {wide} a = ({wide})element * (thread % p);")
                o.line(f"const {wide} b = ({wide})radix * p;")
                angle = o.literal(2 * chirp_sign(inverse) * math.pi)
                o.line(f"real2_t t = twiddle({angle} * (a % (2 * b)) / b);")
                o.line("w = mul(w, t);")
            o.line("output[out_off] = mul(data[in_off], w);")
        with o.block("else"):
            o.line("real2_t r = {0, 0};")
            o.line("output[out_off] = r;")
    return o


def bluestein_mul_in(
    backend: Backend,
    config: GeneratorConfig,
    inverse: bool,
    batch: int,
    radix: int,
    p: int,
    threads: int,
    stride: int,
    data: Any,
    exp: Any,
    out: Any,
) -> KernelCall:
    o = bluestein_mul_in_source(config, inverse)
    program, kernel = _compile(backend, config, o, "bluestein_mul_in")

    wg = kernel.preferred_multiple
    stride_pad = alignup(stride, wg)
    desc = (
        f"bluestein_mul_in{{batch={batch}, radix={radix}, p={p}, threads={threads}, "
        f"stride={stride}({stride_pad}), wg={wg}}}"
    )
    args = [
        KernelArg.buffer(data),
        KernelArg.buffer(exp),
        KernelArg.buffer(out),
        KernelArg.uint(radix),
        KernelArg.uint(p),
        KernelArg.uint(stride),
    ]
    geometry = LaunchGeometry((threads, batch, stride_pad), (1, 1, wg))
    return _call(backend, False, desc, program, kernel, o, args, geometry)


def bluestein_mul_out_source(config: GeneratorConfig) -> SourceBuilder:
    """Normalise the convolution, multiply by the chirp and scatter like a radix stage."""
    o = SourceBuilder(config)
    kernel_common(o)
    mul_code(o, False)

    params = [
        Param.buffer("data", const=True),
        Param.buffer("exp", const=True),
        Param.buffer("output"),
        Param.real("div"),
        Param.uint("p"),
        Param.uint("in_stride"),
        Param.uint("radix"),
    ]
    with o.kernel("bluestein_mul_out", params):
        o.line(f"const size_t i = {o.global_id(0)};")
        o.line(f"const size_t threads = {o.global_size(0)};")
        o.line(f"const size_t b = {o.global_id(1)};")
        o.line(f"const size_t l = {o.global_id(2)};")
        o.line("if(l >= radix) return;")

        o.line("const size_t k = i % p;")
        o.line("const size_t j = k + (i - k) * radix;")
        o.line("const size_t in_off = i * in_stride + b * in_stride * threads + l;")
        o.line("const size_t out_off = j + b * threads * radix + l * p;")
        o.line("real2_t v = data[in_off];")
        o.line("v.x *= div;")
        o.line("v.y *= div;")
        o.line("output[out_off] = mul(v, exp[l]);")
    return o


def bluestein_mul_out(
    backend: Backend,
    config: GeneratorConfig,
    batch: int,
    p: int,
    radix: int,
    threads: int,
    stride: int,
    data: Any,
    exp: Any,
    out: Any,
) -> KernelCall:
    o = bluestein_mul_out_source(config)
    program, kernel = _compile(backend, config, o, "bluestein_mul_out")

    wg = kernel.preferred_multiple
    radix_pad = alignup(radix, wg)
    desc = (
        f"bluestein_mul_out{{r={radix}({radix_pad}), wg={wg}, batch={batch}, "
        f"p={p}, thr={threads}, stride={stride}}}"
    )
    args = [
        KernelArg.buffer(data),
        KernelArg.buffer(exp),
        KernelArg.buffer(out),
        KernelArg.real(1.0 / stride, config.precision),
        KernelArg.uint(p),
        KernelArg.uint(stride),
        KernelArg.uint(radix),
    ]
    geometry = LaunchGeometry((threads, batch, radix_pad), (1, 1, wg))
    return _call(backend, False, desc, program, kernel, o, args, geometry)


def bluestein_mul_source(config: GeneratorConfig) -> SourceBuilder:
    o = SourceBuilder(config)
    kernel_common(o)
    mul_code(o, False)

    params = [
        Param.buffer("data", const=True),
        Param.buffer("exp", const=True),
        Param.buffer("output"),
        Param.uint("stride"),
    ]
    with o.kernel("bluestein_mul", params):
        o.line(f"const size_t x = {o.global_id(0)};")
        o.line(f"const size_t y = {o.global_id(1)};")
        o.line("if(x >= stride) return;")
        o.line("const size_t off = x + stride * y;")
        o.line("output[off] = mul(data[off], exp[x]);")
    return o


def bluestein_mul(
    backend: Backend,
    config: GeneratorConfig,
    n: int,
    batch: int,
    data: Any,
    exp: Any,
    out: Any,
) -> KernelCall:
    o = bluestein_mul_source(config)
    program, kernel = _compile(backend, config, o, "bluestein_mul")

    wg = kernel.preferred_multiple
    threads = alignup(n, wg)
    desc = f"bluestein_mul{{n={n}({threads}), wg={wg}, batch={batch}}}"
    args = [KernelArg.buffer(data), KernelArg.buffer(exp), KernelArg.buffer(out), KernelArg.uint(n)]
    geometry = LaunchGeometry((threads, batch), (wg, 1))
    return _call(backend, False, desc, program, kernel, o, args, geometry)
