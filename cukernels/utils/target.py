from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Literal

from cukernels.env import env
from cukernels.errors import ArchitectureResolutionError, ToolchainNotFoundError
from .process import run_process

logger = logging.getLogger(__name__)

COMMON_COMPUTE_CAPS: dict[str, str] = {
    "70": "V100 (Volta)",
    "75": "T4, RTX 20xx (Turing)",
    "80": "A100, A30 (Ampere)",
    "86": "A10, A40, RTX 30xx (Ampere)",
    "89": "L4, L40, RTX 40xx (Ada Lovelace)",
    "90": "H100, H200 (Hopper)",
}

COMPUTE_CAP_TABLE_URL = "https://developer.nvidia.com/cuda-gpus"

NVIDIA_SMI_COMMAND = ("nvidia-smi", "--query-gpu=compute_cap", "--format=csv,noheader")

_SEPARATORS = re.compile(r"[._\s]")
_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ArchResolution:
    """A resolved target architecture and where it came from."""

    arch: str
    source: Literal["override", "probe"]

    def describe(self) -> str:
        if self.source == "override":
            return f"Using compute capability {self.arch} from CUDA_COMPUTE_CAP"
        return f"Using compute capability {self.arch} detected by nvidia-smi"


def normalize_compute_cap(value: str | None) -> str | None:
    """Strip separators from a compute capability ("8.6" -> "86").

    Returns None unless the result is non-empty and made of decimal digits only.
    """
    if value is None:
        return None
    candidate = _SEPARATORS.sub("", value)
    if candidate and _DIGITS.fullmatch(candidate):
        return candidate
    return None


def probe_compute_cap() -> str | None:
    """Ask nvidia-smi for the compute capability of the first visible GPU.

    Returns None when nvidia-smi is missing, fails, or prints something that
    is not a compute capability.
    """
    try:
        result = run_process(NVIDIA_SMI_COMMAND)
    except ToolchainNotFoundError:
        logger.debug("nvidia-smi not found, cannot probe compute capability")
        return None
    if not result.ok:
        logger.debug("nvidia-smi exited with %d: %s", result.returncode, result.stderr.strip())
        return None
    lines = result.stdout.strip().splitlines()
    if not lines:
        return None
    compute_cap = normalize_compute_cap(lines[0].strip())
    if compute_cap is None:
        logger.debug("Ignoring unparsable nvidia-smi output: %r", lines[0])
    return compute_cap


_FROM_ENV = object()


def determine_target_arch(
    override: str | None | object = _FROM_ENV,
    probe: Callable[[], str | None] = probe_compute_cap,
) -> ArchResolution:
    """
    Determine the compute capability to compile CUBIN modules for.

    Args:
        override: Explicit capability such as "86". Defaults to the
            CUDA_COMPUTE_CAP environment variable; pass None to skip it.
        probe: Hardware probe used when no override is given.

    Returns:
        ArchResolution: The capability as a digit string and its source.

    Raises:
        ArchitectureResolutionError: If the override is malformed, or if there
            is no override and the probe finds nothing.
    """
    if override is _FROM_ENV:
        override = env.get_compute_cap_override()

    if override is not None:
        arch = normalize_compute_cap(override)
        if arch is None:
            raise ArchitectureResolutionError(
                f"Invalid CUDA_COMPUTE_CAP '{override}': expected a compute capability such as "
                f"'86' or '8.6'. {_compute_cap_guidance()}")
        return ArchResolution(arch, "override")

    arch = probe()
    if arch is not None:
        return ArchResolution(arch, "probe")

    raise ArchitectureResolutionError(
        "Could not determine the CUDA compute capability: CUDA_COMPUTE_CAP is not set and "
        "`nvidia-smi --query-gpu=compute_cap` did not report a GPU. "
        f"Set it explicitly, e.g. `export CUDA_COMPUTE_CAP=86`. {_compute_cap_guidance()}")


def _compute_cap_guidance() -> str:
    common = ", ".join(f"{code} = {devices}" for code, devices in COMMON_COMPUTE_CAPS.items())
    return f"Common values: {common}. Look up your GPU at {COMPUTE_CAP_TABLE_URL}."
