from __future__ import annotations
import sys
import os
import logging
import shutil
import glob
from dataclasses import dataclass

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CUKERNELS_ROOT = os.path.dirname(os.path.abspath(__file__))
REPO_ROOT = os.path.dirname(CUKERNELS_ROOT)

TRUTHY = ("1", "true", "yes", "on")


def _find_cuda_home() -> str:
    """Find the CUDA install path.

    Adapted from https://github.com/pytorch/pytorch/blob/main/torch/utils/cpp_extension.py
    """
    # Guess #1
    cuda_home = os.environ.get("CUDA_HOME") or os.environ.get("CUDA_PATH")
    if cuda_home is None:
        # Guess #2
        nvcc_path = shutil.which("nvcc")
        if nvcc_path is not None:
            # NVIDIA HPC SDK pattern
            if "hpc_sdk" in nvcc_path.lower():
                cuda_home = os.path.dirname(os.path.dirname(os.path.dirname(nvcc_path)))
            else:
                cuda_home = os.path.dirname(os.path.dirname(nvcc_path))
        else:
            # Guess #3
            if sys.platform == "win32":
                cuda_homes = glob.glob("C:/Program Files/NVIDIA GPU Computing Toolkit/CUDA/v*.*")
                cuda_home = "" if len(cuda_homes) == 0 else cuda_homes[0]
            elif os.path.exists("/usr/local/cuda"):
                cuda_home = "/usr/local/cuda"
            elif os.path.exists("/opt/nvidia/hpc_sdk/Linux_x86_64"):
                cuda_home = "/opt/nvidia/hpc_sdk/Linux_x86_64"

            if cuda_home is None or not os.path.exists(cuda_home):
                cuda_home = None

    return cuda_home if cuda_home is not None else ""


@dataclass
class EnvVar:
    """
    Descriptor for managing access to a single environment variable.

    Reads are live (``os.environ`` is consulted on every access, so changes made
    after import take effect immediately). Assigning to the attribute stores a
    forced value that wins over the environment until it is reset to ``None``,
    which is mainly useful in tests and for the command line entry point.

    Example
    -------
    ```python
    class Environment:
        CUKERNELS_MODULE_FORMAT = EnvVar("CUKERNELS_MODULE_FORMAT", "ptx")

    env = Environment()
    env.CUKERNELS_MODULE_FORMAT           # os.environ value, or "ptx"
    env.CUKERNELS_MODULE_FORMAT = "cubin" # forced until set back to None
    ```
    """

    key: str  # Environment variable name (e.g. "CUKERNELS_MODULE_FORMAT")
    default: str | None  # Default value if the environment variable is not set
    _forced_value: str | None = None  # Temporary runtime override (mainly for tests/debugging)

    def get(self):
        if self._forced_value is not None:
            return self._forced_value
        return os.environ.get(self.key, self.default)

    def __get__(self, instance, owner):
        return self.get()

    def __set__(self, instance, value):
        self._forced_value = value


class Environment:
    """
    Environment configuration for cukernels.
    Handles CUDA detection, kernel source / output locations and the
    knobs that steer a kernel build.
    """

    CUDA_HOME = _find_cuda_home()

    # Module format selector: "ptx" (default) or "cubin"
    CUKERNELS_MODULE_FORMAT = EnvVar("CUKERNELS_MODULE_FORMAT", "ptx")

    # Target architecture override, e.g. "86"
    CUDA_COMPUTE_CAP = EnvVar("CUDA_COMPUTE_CAP", None)
    # Extra nvcc flags, whitespace separated
    CUDA_NVCC_FLAGS = EnvVar("CUDA_NVCC_FLAGS", "")
    # Host compiler handed to nvcc via -ccbin
    NVCC_CCBIN = EnvVar("NVCC_CCBIN", None)

    # Kernel sources and build outputs
    CUKERNELS_KERNEL_DIR = EnvVar("CUKERNELS_KERNEL_DIR", os.path.join(REPO_ROOT, "src"))
    CUKERNELS_OUT_DIR = EnvVar("CUKERNELS_OUT_DIR", os.path.join(CUKERNELS_ROOT, "_generated"))

    # Build options
    CUKERNELS_BUILD_JOBS = EnvVar("CUKERNELS_BUILD_JOBS", "-1")  # -1 lets the executor decide
    CUKERNELS_VERBOSE = EnvVar("CUKERNELS_VERBOSE", "0")

    # Variables whose change must trigger a rebuild
    TRACKED_ENV_VARS = (
        "CUKERNELS_MODULE_FORMAT",
        "CUDA_COMPUTE_CAP",
        "CUDA_NVCC_FLAGS",
        "NVCC_CCBIN",
    )

    def get_module_format(self) -> str:
        return self.CUKERNELS_MODULE_FORMAT

    def get_compute_cap_override(self) -> str | None:
        value = self.CUDA_COMPUTE_CAP
        if value is None or not value.strip():
            return None
        return value.strip()

    def get_nvcc_flags(self) -> list[str]:
        """Extra nvcc flags, split on whitespace and kept in order."""
        return (self.CUDA_NVCC_FLAGS or "").split()

    def get_build_jobs(self) -> int | None:
        value = self.CUKERNELS_BUILD_JOBS
        try:
            jobs = int(value)
        except ValueError as err:
            raise ConfigurationError(f"Invalid CUKERNELS_BUILD_JOBS: '{value}'. Expected an integer, "
                                     "-1 to let the executor decide.") from err
        return None if jobs <= 0 else jobs

    def get_default_verbose(self) -> bool:
        return self.CUKERNELS_VERBOSE.lower() in TRUTHY

    def snapshot_tracked_vars(self) -> dict[str, str | None]:
        return {key: getattr(self, key) for key in self.TRACKED_ENV_VARS}


# Instantiate as a global configuration object
env = Environment()

# Export CUDA_HOME, static after initialization.
CUDA_HOME = env.CUDA_HOME
