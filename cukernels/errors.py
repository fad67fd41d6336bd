"""Error types raised while building and loading kernel modules.

Everything raised during a build derives from :class:`KernelBuildError` and is
fatal: the build driver never downgrades one of these to a warning.
:class:`ModuleFormatError` is the only runtime error and signals a programming
mistake at the call site rather than a broken environment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .utils.process import ProcessResult


class KernelBuildError(RuntimeError):
    """Base class for build-time failures."""


class ConfigurationError(KernelBuildError):
    """An environment setting holds a value outside its valid set."""


class ArchitectureResolutionError(KernelBuildError):
    """No target compute capability could be determined."""


class CatalogDriftError(KernelBuildError):
    """The kernel catalog and the source tree or bindings disagree."""


class ToolchainNotFoundError(KernelBuildError):
    """A required CUDA tool or library is not installed."""


class ToolchainError(KernelBuildError):
    """A toolchain invocation ran but reported failure."""

    def __init__(self, message: str, result: ProcessResult | None = None):
        super().__init__(message)
        self.result = result


class BindingWriteError(KernelBuildError):
    """The generated binding module could not be written."""


class ModuleFormatError(TypeError):
    """A module accessor was used against a payload of the other format."""
