#!/usr/bin/env python3
"""fftgen Command Line Interface.

Inspect generated kernels and plans, and check transforms against scipy.

Usage:
    fftgen source radix --radix 4 --dialect cuda --precision double
    fftgen source bluestein --inverse
    fftgen factor 1000
    fftgen plan 64 48 --inverse --batch 4
    fftgen backends
    fftgen run 7 --inverse
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys

import numpy as np
import scipy.fft

from fftgen.backends import available_backends, backend_from_config
from fftgen.backends.base import DeviceInfo
from fftgen.codegen import kernels
from fftgen.config import AppConfig, Dialect, GeneratorConfig, Precision, load_config
from fftgen.errors import FFTGenError
from fftgen.plan import Plan
from fftgen.planner import Planner, Radix, describe_stage, prime_factors
from fftgen.utils.log_levels import configure_logging

logger = logging.getLogger(__name__)

# Device limits assumed when printing a transpose kernel without a device
_NOMINAL_DEVICE = DeviceInfo(name="nominal", local_mem_size=32768, max_work_group_size=256)

# Largest relative error `run` accepts before reporting failure
_RUN_TOLERANCE = {Precision.SINGLE: 1e-3, Precision.DOUBLE: 1e-9}


def _generator(config: AppConfig, args: argparse.Namespace) -> GeneratorConfig:
    overrides = {}
    if getattr(args, "dialect", None):
        overrides["dialect"] = Dialect(args.dialect)
    if getattr(args, "precision", None):
        overrides["precision"] = Precision(args.precision)
    return dataclasses.replace(config.generator, **overrides)


def cmd_source(args: argparse.Namespace) -> int:
    """Print generated kernel source."""
    generator = _generator(args.config, args)

    if args.kind == "radix":
        radix = args.radix or 2
        if radix > Planner(args.config.planner).max_radix:
            logger.warning(f"Radix {radix} exceeds the planner's max_radix")
        print(kernels.radix_source(generator, Radix(radix), args.inverse).source())
    elif args.kind == "transpose":
        block_size = args.block_size or kernels.transpose_block_size(
            _NOMINAL_DEVICE, generator.precision, generator.transpose_max_block
        )
        print(kernels.transpose_source(generator, block_size).source())
    else:
        sources = [
            kernels.bluestein_twiddle_source(generator, args.inverse),
            kernels.bluestein_pad_source(generator),
            kernels.bluestein_mul_in_source(generator, args.inverse),
            kernels.bluestein_mul_source(generator),
            kernels.bluestein_mul_out_source(generator),
        ]
        for o in sources:
            print(f"// {', '.join(o.kernels)}")
            print(o.source())
    return 0


def cmd_factor(args: argparse.Namespace) -> int:
    """Print the radix decomposition and stage list of a length."""
    planner = Planner(args.config.planner)
    factors = " * ".join(f"{p}^{e}" if e > 1 else str(p) for p, e in prime_factors(args.n))
    print(f"N = {args.n}" + (f" = {factors}" if factors else ""))
    print(f"Radices: {', '.join(str(r) for r in planner.factor(args.n)) or '(none)'}")
    for stage in planner.stages(args.n):
        print(f"  p={stage.p:<8} {describe_stage(stage)}")
    if planner.uses_bluestein(args.n):
        print("Uses Bluestein for unsupported prime factors")
    return 0


def _plan(args: argparse.Namespace) -> Plan:
    backend_config = args.config.backend
    if args.backend:
        backend_config = dataclasses.replace(backend_config, name=args.backend)
    backend = backend_from_config(backend_config)
    generator = dataclasses.replace(_generator(args.config, args), dialect=backend.dialect)
    return Plan(
        backend,
        args.lengths,
        inverse=args.inverse,
        batch=args.batch,
        config=generator,
        planner=Planner(args.config.planner),
    )


def cmd_plan(args: argparse.Namespace) -> int:
    """Build a plan and print its stage descriptions."""
    plan = _plan(args)
    print(repr(plan))
    print(plan.describe())
    return 0


def cmd_backends(args: argparse.Namespace) -> int:
    """List compute backends that can open a device."""
    names = available_backends()
    if not names:
        print("No compute backend available. Install pyopencl or cupy-cuda12x")
        return 1
    for name in names:
        print(name)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Transform random data and compare with scipy.fft."""
    plan = _plan(args)
    rng = np.random.default_rng(args.seed)
    shape = plan.lengths if plan.batch == 1 else (plan.batch, *plan.lengths)
    data = (rng.standard_normal(shape) + 1j * rng.standard_normal(shape)).astype(plan.dtype)

    result = plan.execute(data)

    axes = tuple(range(data.ndim - len(plan.lengths), data.ndim))
    if plan.inverse:
        expected = scipy.fft.ifftn(data.astype(np.complex128), axes=axes, norm="forward")
    else:
        expected = scipy.fft.fftn(data.astype(np.complex128), axes=axes)
    scale = max(float(np.max(np.abs(expected))), 1.0)
    error = float(np.max(np.abs(result - expected))) / scale

    print(f"{plan!r}")
    print(f"Max relative error vs scipy.fft: {error:.3e}")
    tolerance = _RUN_TOLERANCE[plan.config.precision]
    if not error <= tolerance:
        logger.error(f"Relative error {error:.3e} exceeds tolerance {tolerance:.0e}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="fftgen",
        description="FFT kernel generator for OpenCL and CUDA",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "-c",
        "--config",
        default=os.environ.get("FFTGEN_CONFIG"),
        help="YAML config file (default: $FFTGEN_CONFIG)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_generator_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--dialect", choices=[x.value for x in Dialect], help="Kernel dialect")
        p.add_argument("--precision", choices=[x.value for x in Precision], help="Real precision")

    # source
    p_source = subparsers.add_parser("source", help="Print generated kernel source")
    p_source.add_argument("kind", choices=["radix", "transpose", "bluestein"])
    p_source.add_argument("-r", "--radix", type=int, help="Radix for 'radix' (default: 2)")
    p_source.add_argument("--block-size", type=int, help="Tile edge for 'transpose'")
    p_source.add_argument("--inverse", action="store_true", help="Generate the inverse variant")
    add_generator_options(p_source)
    p_source.set_defaults(func=cmd_source)

    # factor
    p_factor = subparsers.add_parser("factor", help="Show the radix decomposition of a length")
    p_factor.add_argument("n", type=int, help="Transform length")
    p_factor.set_defaults(func=cmd_factor)

    # plan / run share their options
    for name, func, help_text in (
        ("plan", cmd_plan, "Build a plan and describe its stages"),
        ("run", cmd_run, "Transform random data and report the error"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("lengths", type=int, nargs="+", help="Length of each axis")
        p.add_argument("--inverse", action="store_true", help="Inverse (unnormalised) transform")
        p.add_argument("-b", "--batch", type=int, default=1, help="Batch size (default: 1)")
        p.add_argument("--backend", choices=["auto", "opencl", "cuda"], help="Compute backend")
        p.add_argument("--precision", choices=[x.value for x in Precision], help="Real precision")
        if name == "run":
            p.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
        p.set_defaults(func=func)

    # backends
    p_backends = subparsers.add_parser("backends", help="List available compute backends")
    p_backends.set_defaults(func=cmd_backends)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        args.config = load_config(args.config)
    except FFTGenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    # Setup logging
    configure_logging(args.config.logging, verbose=args.verbose)

    try:
        result = args.func(args)
    except (FFTGenError, ImportError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0 if result is None else int(result)


if __name__ == "__main__":
    sys.exit(main())
