"""Helpers shared by the build pipeline."""

from .process import ProcessResult, run_process, check_result  # noqa: F401
from .target import (  # noqa: F401
    ArchResolution,
    COMMON_COMPUTE_CAPS,
    determine_target_arch,
    probe_compute_cap,
    normalize_compute_cap,
)
