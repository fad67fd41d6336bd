from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from cukernels.catalog import KERNEL_UNITS, KernelUnit
from cukernels.env import env
from cukernels.module import ModuleFormat
from .bindings import remove_bindings, write_package_marker
from .events import BuildLog
from .manifest import BuildManifest, discard_manifest, is_up_to_date
from .strategy import STRATEGIES, BuildResult, CompilationStrategy, CubinStrategy

logger = logging.getLogger(__name__)


def make_strategy(module_format: ModuleFormat,
                  kernel_dir: str | Path,
                  out_dir: str | Path,
                  units: Sequence[KernelUnit] = KERNEL_UNITS) -> CompilationStrategy:
    """Instantiate the strategy for ``module_format``, configured from the environment."""
    strategy_cls = STRATEGIES[module_format]
    if strategy_cls is CubinStrategy:
        return CubinStrategy(
            kernel_dir,
            out_dir,
            units,
            compile_flags=env.get_nvcc_flags(),
            ccbin=env.NVCC_CCBIN,
            num_workers=env.get_build_jobs(),
        )
    return strategy_cls(kernel_dir, out_dir, units)


def build_modules(module_format: str | ModuleFormat | None = None,
                  out_dir: str | Path | None = None,
                  kernel_dir: str | Path | None = None,
                  units: Sequence[KernelUnit] = KERNEL_UNITS,
                  force: bool = True) -> BuildResult | None:
    """
    Compile the kernel catalog and write its bindings.

    Parameters
    ----------
    module_format : str or ModuleFormat, optional
        ``"ptx"`` or ``"cubin"``. Defaults to CUKERNELS_MODULE_FORMAT.
    out_dir : str or Path, optional
        Where modules, bindings and the manifest go. Defaults to CUKERNELS_OUT_DIR.
    kernel_dir : str or Path, optional
        Kernel source tree. Defaults to CUKERNELS_KERNEL_DIR.
    units : sequence of KernelUnit
        Catalog to build.
    force : bool
        Rebuild even if the manifest says nothing changed.

    Returns
    -------
    BuildResult or None
        None when the existing build is up to date and ``force`` is False.

    Raises
    ------
    KernelBuildError
        Any build failure. Nothing is retried and no partial result is returned.
    """
    # Parsed before any directory or subprocess work.
    module_format = ModuleFormat.parse(module_format if module_format is not None else env.get_module_format())
    out_dir = Path(out_dir if out_dir is not None else env.CUKERNELS_OUT_DIR)
    kernel_dir = Path(kernel_dir if kernel_dir is not None else env.CUKERNELS_KERNEL_DIR)

    strategy = make_strategy(module_format, kernel_dir, out_dir, units)
    tracked_env = env.snapshot_tracked_vars()
    tracked_env["CUKERNELS_MODULE_FORMAT"] = module_format.value

    if not force:
        current = BuildManifest.collect(module_format.value, {**tracked_env, **strategy.tracked_settings()},
                                        strategy.tracked_inputs())
        if is_up_to_date(out_dir, current):
            logger.info(f"Kernel modules in {out_dir} are up to date")
            return None

    out_dir.mkdir(parents=True, exist_ok=True)
    # A failed build must leave nothing that loads as a complete one.
    discard_manifest(out_dir)
    remove_bindings(out_dir)

    log = BuildLog()
    log.add("config", f"Building {len(units)} kernels as {module_format.value} with {strategy!r}")

    result = strategy.build()
    log.extend(result.events)

    tracked_env.update(strategy.tracked_settings())
    manifest = BuildManifest.collect(module_format.value, tracked_env, strategy.tracked_inputs(),
                                     [*result.artifacts, result.binding_path])
    manifest.save(out_dir)
    write_package_marker(out_dir, module_format, result.arch)
    log.add("manifest", f"Recorded {len(manifest.inputs)} tracked inputs")

    log.emit(logger)
    logger.info(f"Built {len(result.artifacts)} {module_format.value} modules into {out_dir}")
    result.events = list(log)
    return result
