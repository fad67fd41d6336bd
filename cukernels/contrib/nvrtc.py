"""PTX builder backed by NVRTC.

Compiles every ``*.cu`` file of a kernel source tree to architecture
independent PTX in-process, writing one ``<stem>.ptx`` file per source. No
compute capability is requested: the CUDA driver JIT-compiles the PTX for
whatever device loads it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cukernels.env import CUDA_HOME
from cukernels.errors import ToolchainNotFoundError

logger = logging.getLogger(__name__)

is_nvrtc_available = False
NVRTC_UNAVAILABLE_MESSAGE = (
    "cuda-python is not available, PTX modules cannot be built. "
    "Please install cuda-python via `pip install cuda-python`, "
    "or build CUBIN modules with CUKERNELS_MODULE_FORMAT=cubin.")

try:
    import cuda.bindings.nvrtc as nvrtc

    is_nvrtc_available = True
except ImportError as e:
    logger.debug(f"cuda-python import failed: {e}")

DEFAULT_PTX_OPTIONS = ("--std=c++17", "--use_fast_math")


def check_nvrtc_available():
    """Check if NVRTC can be used.

    Raises
    ------
    ToolchainNotFoundError
        If cuda-python is not installed or cannot be imported
    """
    if not is_nvrtc_available:
        raise ToolchainNotFoundError(NVRTC_UNAVAILABLE_MESSAGE)


def _check(result, what: str):
    if result != nvrtc.nvrtcResult.NVRTC_SUCCESS:
        raise RuntimeError(f"{what} failed: {result}")


def _program_log(program) -> str:
    result, log_size = nvrtc.nvrtcGetProgramLogSize(program)
    _check(result, "nvrtcGetProgramLogSize")
    log_bytes = bytes(log_size)
    _check(nvrtc.nvrtcGetProgramLog(program, log_bytes)[0], "nvrtcGetProgramLog")
    return log_bytes.rstrip(b"\x00").decode("utf-8", errors="replace")


def compile_ptx(code: str, name: str, options: list[str] | None = None) -> str:
    """Compile cuda code to PTX with NVRTC.

    Parameters
    ----------
    code : str
        The cuda code.

    name : str
        Program name used in diagnostics, usually the source path.

    options : Optional[List[str]]
        NVRTC options.

    Return
    ------
    ptx : str
        The PTX text.
    """
    check_nvrtc_available()
    options = list(options or [])
    result, program = nvrtc.nvrtcCreateProgram(code.encode("utf-8"), name.encode("utf-8"), 0, [], [])
    _check(result, "nvrtcCreateProgram")
    try:
        options_bytes = [flag.encode("utf-8") for flag in options]
        compile_result = nvrtc.nvrtcCompileProgram(program, len(options_bytes), options_bytes)[0]
        if compile_result != nvrtc.nvrtcResult.NVRTC_SUCCESS:
            raise RuntimeError(f"NVRTC compilation of {name} failed ({compile_result}).\n"
                               f"Options: {' '.join(options)}\n"
                               f"{_program_log(program)}")

        result, ptx_size = nvrtc.nvrtcGetPTXSize(program)
        _check(result, "nvrtcGetPTXSize")
        ptx_bytes = bytes(ptx_size)
        _check(nvrtc.nvrtcGetPTX(program, ptx_bytes)[0], "nvrtcGetPTX")
    finally:
        nvrtc.nvrtcDestroyProgram(program)

    return ptx_bytes.rstrip(b"\x00").decode("utf-8")


@dataclass
class PtxModules:
    """PTX files produced by :class:`PtxBuilder`, keyed by source stem."""

    modules: list[tuple[str, Path]] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.modules]


@dataclass
class PtxBuilder:
    """Compile a kernel source tree to PTX.

    Attributes:
        kernel_dir: Directory holding the ``*.cu`` sources and shared headers.
        include_paths: Extra include directories; the kernel directory and the
            CUDA toolkit headers are always searched.
        options: NVRTC options applied to every program.
    """

    kernel_dir: Path
    include_paths: list[str] = field(default_factory=list)
    options: list[str] = field(default_factory=lambda: list(DEFAULT_PTX_OPTIONS))
    kernel_glob: str = "*.cu"

    def kernel_paths(self) -> list[Path]:
        return sorted(Path(self.kernel_dir).glob(self.kernel_glob))

    def compile_options(self) -> list[str]:
        options = list(self.options)
        include_paths = [str(self.kernel_dir), *self.include_paths]
        if CUDA_HOME:
            include_paths.append(os.path.join(CUDA_HOME, "include"))
        options += [f"--include-path={path}" for path in include_paths]
        return options

    def build_ptx(self, out_dir: str | Path) -> PtxModules:
        """Compile every kernel source to ``<out_dir>/<name>.ptx``."""
        out_dir = Path(out_dir)
        paths = self.kernel_paths()
        if not paths:
            raise RuntimeError(f"No CUDA sources matching '{self.kernel_glob}' in {self.kernel_dir}")
        options = self.compile_options()
        modules = PtxModules()
        for path in paths:
            ptx = compile_ptx(path.read_text(), str(path), options)
            ptx_path = out_dir / f"{path.stem}.ptx"
            ptx_path.write_text(ptx)
            modules.modules.append((path.stem, ptx_path))
        return modules
