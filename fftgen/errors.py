"""Exceptions raised by the kernel generator, planner and backends."""

from __future__ import annotations


class FFTGenError(RuntimeError):
    pass


class InvalidConfigurationError(FFTGenError, ValueError):
    """A caller violated a generator or planner contract (bad length, radix, geometry)."""


class ArgumentBindingError(FFTGenError, ValueError):
    """Kernel arguments do not match the kernel's declared parameter list."""


class BuildError(FFTGenError):
    """The backend compiler rejected generated source.

    Not retried: a build failure means a generator bug or an unsupported
    device feature.
    """

    def __init__(self, message: str, log: str = "", source: str = ""):
        super().__init__(message)
        self.log = log
        self.source = source

    def __str__(self) -> str:
        base = super().__str__()
        if self.log:
            return f"{base}\n{self.log}"
        return base


class LaunchError(FFTGenError):
    """A backend failure while launching a stage, tagged with the stage description."""

    def __init__(self, desc: str, cause: BaseException):
        super().__init__(f"Launch of {desc} failed: {cause}")
        self.desc = desc


class BackendUnavailableError(ImportError):
    """Raised when a backend's runtime library or device cannot be used."""
