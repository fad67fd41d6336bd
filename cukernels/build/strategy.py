"""Compilation strategies, one per module format.

``PtxStrategy`` delegates the whole source tree to the NVRTC based
:class:`~cukernels.contrib.nvrtc.PtxBuilder` and needs no target
architecture. ``CubinStrategy`` drives ``nvcc`` itself, once per catalog unit,
for the architecture reported by :func:`~cukernels.utils.target.determine_target_arch`.

Both write the binding module from the catalog, so ``ptx.py`` and ``cubin.py``
declare the same constants in the same order.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from tqdm.auto import tqdm

from cukernels.catalog import KERNEL_UNITS, KernelUnit, catalog_listing
from cukernels.contrib import nvcc
from cukernels.contrib.nvrtc import PtxBuilder
from cukernels.errors import CatalogDriftError, KernelBuildError, ToolchainError
from cukernels.module import ModuleFormat
from cukernels.utils.target import ArchResolution, determine_target_arch
from .bindings import write_bindings
from .events import BuildEvent, BuildLog

logger = logging.getLogger(__name__)

HEADER_GLOBS = ("*.cuh", "*.h")


@dataclass
class BuildResult:
    module_format: ModuleFormat
    out_dir: Path
    binding_path: Path
    artifacts: list[Path]
    arch: str | None = None
    events: list[BuildEvent] = field(default_factory=list)


class CompilationStrategy:
    """Turns the kernel catalog into one compiled module per unit plus a binding module."""

    module_format: ModuleFormat

    def __init__(self, kernel_dir: str | Path, out_dir: str | Path, units: Sequence[KernelUnit] = KERNEL_UNITS):
        self.kernel_dir = Path(kernel_dir)
        self.out_dir = Path(out_dir)
        self.units = tuple(units)

    def __repr__(self):
        return f"{type(self).__name__}(kernel_dir={str(self.kernel_dir)!r}, out_dir={str(self.out_dir)!r})"

    def tracked_inputs(self) -> list[Path]:
        """Files whose content decides whether a rebuild is needed."""
        inputs = [unit.source(self.kernel_dir) for unit in self.units]
        for pattern in HEADER_GLOBS:
            inputs.extend(sorted(self.kernel_dir.glob(pattern)))
        return inputs

    def tracked_settings(self) -> dict[str, str | None]:
        """Derived settings that decide whether a rebuild is needed, beyond the raw environment."""
        return {}

    def artifact_paths(self) -> list[Path]:
        return [unit.output(self.out_dir, self.module_format.value) for unit in self.units]

    def build(self) -> BuildResult:
        raise NotImplementedError

    def _result(self, path: Path, log: BuildLog, arch: str | None = None) -> BuildResult:
        return BuildResult(self.module_format, self.out_dir, path, self.artifact_paths(), arch, list(log))


class PtxStrategy(CompilationStrategy):
    module_format = ModuleFormat.PTX

    def __init__(self,
                 kernel_dir: str | Path,
                 out_dir: str | Path,
                 units: Sequence[KernelUnit] = KERNEL_UNITS,
                 builder: PtxBuilder | None = None):
        super().__init__(kernel_dir, out_dir, units)
        self.builder = builder if builder is not None else PtxBuilder(self.kernel_dir)

    def build(self) -> BuildResult:
        log = BuildLog()
        self.out_dir.mkdir(parents=True, exist_ok=True)
        log.add("ptx", f"Delegating to {self.builder!r}")
        try:
            modules = self.builder.build_ptx(self.out_dir)
        except KernelBuildError:
            raise
        except Exception as err:
            raise ToolchainError(f"PTX build of {self.kernel_dir} failed: {err}") from err

        missing = [unit for unit in self.units if unit.name not in modules.names]
        if missing:
            raise CatalogDriftError(
                f"PTX builder produced no module for {', '.join(u.source_name for u in missing)} "
                f"in {self.kernel_dir}. Expected kernel sources: {catalog_listing(self.units)}")
        extra = sorted(set(modules.names) - {unit.name for unit in self.units})
        if extra:
            log.add("ptx", f"Ignoring sources outside the kernel catalog: {', '.join(extra)}")

        path = write_bindings(self.out_dir, self.module_format, self.units)
        log.add("bindings", f"Wrote {path.name}")
        return self._result(path, log)


class CubinStrategy(CompilationStrategy):
    module_format = ModuleFormat.CUBIN

    def __init__(self,
                 kernel_dir: str | Path,
                 out_dir: str | Path,
                 units: Sequence[KernelUnit] = KERNEL_UNITS,
                 arch: str | None = None,
                 compile_flags: list[str] | None = None,
                 ccbin: str | None = None,
                 num_workers: int | None = None,
                 resolve_arch: Callable[..., ArchResolution] = determine_target_arch):
        super().__init__(kernel_dir, out_dir, units)
        self.arch = arch
        self.compile_flags = list(compile_flags or [])
        self.ccbin = ccbin
        self.num_workers = num_workers
        self.resolve_arch = resolve_arch
        self._resolution: ArchResolution | None = None

    def check_sources(self):
        for unit in self.units:
            source = unit.source(self.kernel_dir)
            if not source.is_file():
                raise CatalogDriftError(f"Kernel source {source} does not exist. "
                                        f"The kernel catalog expects: {catalog_listing(self.units)}")

    def resolve(self) -> ArchResolution:
        """Target architecture, resolved once per strategy."""
        if self._resolution is None:
            if self.arch is None:
                self._resolution = self.resolve_arch()
            else:
                self._resolution = self.resolve_arch(override=self.arch)
        return self._resolution

    def tracked_settings(self) -> dict[str, str | None]:
        return {"TARGET_ARCH": self.resolve().arch}

    def build(self) -> BuildResult:
        log = BuildLog()
        self.check_sources()
        resolution = self.resolve()
        log.add("arch", resolution.describe())
        compiler = nvcc.get_nvcc_compiler()
        self.out_dir.mkdir(parents=True, exist_ok=True)
        options = nvcc.default_compile_options(self.kernel_dir, self.compile_flags, self.ccbin)

        self._compile_all(compiler, resolution.arch, options)
        log.add("cubin", f"Compiled {len(self.units)} CUBIN modules for sm_{resolution.arch}")

        path = write_bindings(self.out_dir, self.module_format, self.units)
        log.add("bindings", f"Wrote {path.name}")
        return self._result(path, log, resolution.arch)

    def _compile_all(self, compiler: str, arch: str, options: list[str]):
        errors: dict[int, Exception] = {}
        with concurrent.futures.ThreadPoolExecutor(self.num_workers, "cukernels-nvcc") as executor:
            future_map = {}
            for i, unit in enumerate(self.units):
                future = executor.submit(
                    nvcc.compile_cuda,
                    unit.source(self.kernel_dir),
                    unit.output(self.out_dir, self.module_format.value),
                    arch,
                    options,
                    compiler,
                )
                future_map[future] = i
            for future in tqdm(
                    concurrent.futures.as_completed(future_map),
                    total=len(future_map),
                    desc="Compiling CUBIN modules",
            ):
                idx = future_map[future]
                try:
                    future.result()
                except Exception as e:
                    errors[idx] = e
        if errors:
            raise errors[min(errors)]


STRATEGIES: dict[ModuleFormat, type[CompilationStrategy]] = {
    ModuleFormat.PTX: PtxStrategy,
    ModuleFormat.CUBIN: CubinStrategy,
}
