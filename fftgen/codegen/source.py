"""Structured kernel source builder.

Scopes are opened with context managers so braces and indentation always
balance. Every piece of dialect-specific syntax (qualifiers, built-in index
expressions, shared memory, barriers) is produced here from
``GeneratorConfig.dialect``.

Usage:
    o = SourceBuilder(config)
    with o.kernel("scale", [Param.buffer("x"), Param.real("a"), Param.uint("n")]):
        o.line(f"const size_t i = {o.global_id(0)};")
        o.line("if(i >= n) return;")
        o.line("x[i].x *= a;")
    print(o.source())
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from fftgen.config import Dialect, GeneratorConfig, Precision
from fftgen.errors import FFTGenError

_AXES = ("x", "y", "z")


class ParamKind(str, Enum):
    BUFFER = "buffer"
    UINT = "uint"
    REAL = "real"
    # By-value parameter of a device helper function
    VALUE = "value"


@dataclass(frozen=True)
class Param:
    name: str
    kind: ParamKind
    ctype: str = "real2_t"
    const: bool = False

    @classmethod
    def buffer(cls, name: str, const: bool = False) -> Param:
        return cls(name, ParamKind.BUFFER, "real2_t", const)

    @classmethod
    def uint(cls, name: str) -> Param:
        return cls(name, ParamKind.UINT, "uint")

    @classmethod
    def real(cls, name: str) -> Param:
        return cls(name, ParamKind.REAL, "real_t")

    @classmethod
    def value(cls, ctype: str, name: str) -> Param:
        return cls(name, ParamKind.VALUE, ctype)

    @property
    def scalar(self) -> bool:
        return self.kind in (ParamKind.UINT, ParamKind.REAL)


class SourceBuilder:
    def __init__(self, config: GeneratorConfig):
        self.config = config
        self.kernels: dict[str, tuple[Param, ...]] = {}
        self._lines: list[str] = []
        self._depth = 0

    @property
    def dialect(self) -> Dialect:
        return self.config.dialect

    @property
    def precision(self) -> Precision:
        return self.config.precision

    # -- raw emission -----------------------------------------------------

    def line(self, text: str = "") -> SourceBuilder:
        self._lines.append(("    " * self._depth + text) if text else "")
        return self

    def define(self, name: str, value: str = "") -> SourceBuilder:
        if self._depth:
            raise FFTGenError(f"#define {name} emitted inside a scope")
        self._lines.append(f"#define {name} {value}".rstrip())
        return self

    def pragma(self, text: str) -> SourceBuilder:
        self._lines.append(f"#pragma {text}")
        return self

    def typedef(self, ctype: str, alias: str) -> SourceBuilder:
        return self.line(f"typedef {ctype} {alias};")

    @contextmanager
    def block(self, header: str | None = None) -> Iterator[SourceBuilder]:
        self.line(f"{header} {{" if header else "{")
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            self.line("}")

    # -- declarations -----------------------------------------------------

    def param_decl(self, param: Param) -> str:
        if param.kind is ParamKind.BUFFER:
            const = "const " if param.const else ""
            if self.dialect is Dialect.OPENCL:
                return f"__global {const}{param.ctype} *{param.name}"
            return f"{const}{param.ctype} *{param.name}"
        if param.kind is ParamKind.UINT:
            ctype = "uint" if self.dialect is Dialect.OPENCL else "unsigned int"
            return f"{ctype} {param.name}"
        return f"{param.ctype} {param.name}"

    def _param_list(self, params: Sequence[Param]) -> str:
        return ", ".join(self.param_decl(p) for p in params)

    @contextmanager
    def function(
        self, return_type: str, name: str, params: Sequence[Param]
    ) -> Iterator[SourceBuilder]:
        """Device helper; the DEVICE macro comes from the preamble."""
        with self.block(f"DEVICE {return_type} {name}({self._param_list(params)})"):
            yield self
        self.line()

    @contextmanager
    def kernel(self, name: str, params: Sequence[Param]) -> Iterator[SourceBuilder]:
        """Kernel entry point: buffers first, unsigned/real scalars last."""
        seen_scalar = False
        for param in params:
            if param.kind is ParamKind.VALUE:
                raise FFTGenError(f"Kernel {name}: by-value parameter {param.name} not allowed")
            if param.scalar:
                seen_scalar = True
            elif seen_scalar:
                raise FFTGenError(f"Kernel {name}: buffer {param.name} follows a scalar parameter")
        if name in self.kernels:
            raise FFTGenError(f"Kernel {name} declared twice")
        self.kernels[name] = tuple(params)

        if self.dialect is Dialect.OPENCL:
            header = f"__kernel void {name}({self._param_list(params)})"
        else:
            header = f'extern "C" __global__ void {name}({self._param_list(params)})'
        with self.block(header):
            yield self
        self.line()

    def shared_array(self, ctype: str, name: str, size: int) -> SourceBuilder:
        qualifier = "__local" if self.dialect is Dialect.OPENCL else "__shared__"
        return self.line(f"{qualifier} {ctype} {name}[{size}];")

    def barrier(self) -> SourceBuilder:
        if self.dialect is Dialect.OPENCL:
            return self.line("barrier(CLK_LOCAL_MEM_FENCE);")
        return self.line("__syncthreads();")

    # -- built-in expressions ---------------------------------------------

    def global_id(self, axis: int) -> str:
        if self.dialect is Dialect.OPENCL:
            return f"get_global_id({axis})"
        a = _AXES[axis]
        return f"((size_t)blockIdx.{a} * blockDim.{a} + threadIdx.{a})"

    def global_size(self, axis: int) -> str:
        if self.dialect is Dialect.OPENCL:
            return f"get_global_size({axis})"
        a = _AXES[axis]
        return f"((size_t)gridDim.{a} * blockDim.{a})"

    def local_id(self, axis: int) -> str:
        if self.dialect is Dialect.OPENCL:
            return f"get_local_id({axis})"
        return f"threadIdx.{_AXES[axis]}"

    def group_id(self, axis: int) -> str:
        if self.dialect is Dialect.OPENCL:
            return f"get_group_id({axis})"
        return f"blockIdx.{_AXES[axis]}"

    @property
    def wide_uint(self) -> str:
        """64-bit unsigned type for products that overflow 32 bits."""
        return "ulong" if self.dialect is Dialect.OPENCL else "unsigned long long"

    def literal(self, value: float) -> str:
        """Real constant with full precision, typed for the active precision."""
        text = repr(float(value))
        if self.precision is Precision.SINGLE:
            return f"{text}f"
        return text

    # -- output -----------------------------------------------------------

    def source(self) -> str:
        if self._depth:
            raise FFTGenError(f"Unbalanced source: {self._depth} scope(s) still open")
        return "\n".join(self._lines) + "\n"

    def __str__(self) -> str:
        return self.source()
