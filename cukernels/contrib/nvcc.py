# pylint: disable=invalid-name
# modified from apache tvm python/tvm/contrib/nvcc.py
"""Utility to invoke nvcc compiler in the system"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from cukernels.env import CUDA_HOME
from cukernels.errors import ToolchainNotFoundError
from cukernels.utils.process import ProcessResult, check_result, run_process

NVCC_INSTALL_HINT = (
    "Install the CUDA toolkit and make sure `nvcc` is on PATH, or point CUDA_HOME at the "
    "toolkit root (e.g., export CUDA_HOME=/usr/local/cuda).")

# Fixed flags for every CUBIN build, in command line order.
CUBIN_FLAGS = (
    "--cubin",
    "-O3",
    "--use_fast_math",
    "-std=c++17",
    "--default-stream",
    "per-thread",
)


def get_nvcc_compiler() -> str:
    """Get the path to the nvcc compiler"""
    nvcc = shutil.which("nvcc")
    if nvcc:
        return nvcc
    if CUDA_HOME:
        candidate = os.path.join(CUDA_HOME, "bin", "nvcc")
        if os.path.exists(candidate):
            return candidate
    raise ToolchainNotFoundError(f"Cannot find nvcc. {NVCC_INSTALL_HINT}")


def default_compile_options(include_dir: str | Path,
                            compile_flags: list[str] | None = None,
                            ccbin: str | None = None) -> list[str]:
    """
    Build the nvcc options for one CUBIN compilation.

    Parameters
    ----------
    include_dir : str or Path
        Shared kernel source directory, added with ``-I``.
    compile_flags : Optional[List[str]]
        Additional flags appended verbatim, in order.
    ccbin : Optional[str]
        Host compiler for nvcc.

    Returns
    -------
    List[str]
        A list of flags suitable for NVCC's command line.
    """
    options = list(CUBIN_FLAGS)
    options.append(f"-I{include_dir}")
    if ccbin:
        options += ["-ccbin", ccbin]
    # Preserve user flags exactly, including repeated tokens required by NVCC
    if compile_flags:
        options.extend(compile_flags)
    return options


def build_command(source: str | Path,
                  output: str | Path,
                  arch: str,
                  options: list[str] | None = None,
                  nvcc: str | None = None) -> list[str]:
    cmd = [nvcc or get_nvcc_compiler()]
    if options:
        cmd += options
    cmd += [f"-arch=sm_{arch}"]
    cmd += ["-o", str(output)]
    cmd += [str(source)]
    return cmd


def compile_cuda(source: str | Path,
                 output: str | Path,
                 arch: str,
                 options: list[str] | None = None,
                 nvcc: str | None = None) -> ProcessResult:
    """Compile one CUDA source file to a CUBIN with NVCC.

    Parameters
    ----------
    source : str or Path
        The .cu file.

    output : str or Path
        Where nvcc writes the cubin.

    arch : str
        Compute capability digits, e.g. "86".

    options : list of str
        Flags placed before the architecture, see ``default_compile_options``.

    Return
    ------
    result : ProcessResult
        The successful nvcc invocation.

    Raises
    ------
    ToolchainError
        If nvcc exits with a non-zero status; the message carries the full
        command line and both output streams.
    """
    cmd = build_command(source, output, arch, options, nvcc)
    result = run_process(cmd, install_hint=NVCC_INSTALL_HINT)
    return check_result(result, f"nvcc compilation of {Path(source).name}")
