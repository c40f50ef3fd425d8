"""Kernel source generation.

The stage generators live in ``fftgen.codegen.kernels``; this package root
only exposes the source builder so the planner can import the small-DFT
limits without pulling in the backends.
"""

from .source import Param, ParamKind, SourceBuilder

__all__ = [
    "Param",
    "ParamKind",
    "SourceBuilder",
]
