"""Code emitters shared by every FFT kernel."""

from __future__ import annotations

from fftgen.config import Dialect, Precision

from .source import Param, SourceBuilder


def chirp_sign(inverse: bool) -> int:
    """Sign of every exponent in the Bluestein chirp and its twiddle corrections.

    Forward transforms use e^{-i...}, inverse transforms e^{+i...}.
    """
    return 1 if inverse else -1


def kernel_common(o: SourceBuilder) -> None:
    """Preamble: DEVICE qualifier and real_t/real2_t aliases."""
    if o.dialect is Dialect.OPENCL:
        o.define("DEVICE")
    else:
        o.define("DEVICE", "__device__")

    if o.precision is Precision.DOUBLE and o.dialect is Dialect.OPENCL:
        o.line("#if defined(cl_khr_fp64)")
        o.pragma("OPENCL EXTENSION cl_khr_fp64: enable")
        o.line("#elif defined(cl_amd_fp64)")
        o.pragma("OPENCL EXTENSION cl_amd_fp64: enable")
        o.line("#endif")
    o.typedef(o.precision.real_type, "real_t")
    o.typedef(o.precision.complex_type, "real2_t")
    o.line()


def mul_code(o: SourceBuilder, invert: bool) -> None:
    """``mul(a, b)``: complex product, or a * conj(b) when ``invert``."""
    params = [Param.value("real2_t", "a"), Param.value("real2_t", "b")]
    with o.function("real2_t", "mul", params):
        if invert:
            o.line("real2_t r = {a.x * b.x + a.y * b.y, a.y * b.x - a.x * b.y};")
        else:
            o.line("real2_t r = {a.x * b.x - a.y * b.y, a.y * b.x + a.x * b.y};")
        o.line("return r;")


def twiddle_code(o: SourceBuilder) -> None:
    """``twiddle(alpha)`` = (cos(alpha), sin(alpha)).

    Double precision uses sincos for accuracy; single precision uses the
    hardware approximations for throughput.
    """
    with o.function("real2_t", "twiddle", [Param.value("real_t", "alpha")]):
        if o.precision is Precision.DOUBLE:
            if o.dialect is Dialect.OPENCL:
                o.line("real_t cs, sn = sincos(alpha, &cs);")
            else:
                o.line("real_t sn, cs;")
                o.line("sincos(alpha, &sn, &cs);")
            o.line("real2_t r = {cs, sn};")
        elif o.dialect is Dialect.OPENCL:
            o.line("real2_t r = {native_cos(alpha), native_sin(alpha)};")
        else:
            o.line("real_t sn, cs;")
            o.line("__sincosf(alpha, &sn, &cs);")
            o.line("real2_t r = {cs, sn};")
        o.line("return r;")


def conjugate_code(o: SourceBuilder) -> None:
    with o.function("real2_t", "conjugate", [Param.value("real2_t", "v")]):
        o.line("real2_t r = {v.x, -v.y};")
        o.line("return r;")
