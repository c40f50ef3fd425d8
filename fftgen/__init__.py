"""On-the-fly FFT kernel generation and execution planning for OpenCL and CUDA."""

from .backends import available_backends, get_backend
from .config import AppConfig, Dialect, GeneratorConfig, PlannerConfig, Precision, load_config
from .errors import (
    ArgumentBindingError,
    BackendUnavailableError,
    BuildError,
    FFTGenError,
    InvalidConfigurationError,
    LaunchError,
)
from .plan import Plan
from .planner import Planner, Radix, Stage

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "ArgumentBindingError",
    "BackendUnavailableError",
    "BuildError",
    "Dialect",
    "FFTGenError",
    "GeneratorConfig",
    "InvalidConfigurationError",
    "LaunchError",
    "Plan",
    "Planner",
    "PlannerConfig",
    "Precision",
    "Radix",
    "Stage",
    "available_backends",
    "get_backend",
    "load_config",
]
