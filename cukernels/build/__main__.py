"""Command line entry point: ``python -m cukernels.build`` or ``cukernels-build``."""

import argparse
import logging
import sys
from pathlib import Path

import tabulate

import cukernels
from cukernels.env import env
from cukernels.errors import KernelBuildError
from cukernels.module import ModuleFormat
from .builder import build_modules

logger = logging.getLogger(__name__)


def summarize(result) -> str:
    rows = []
    for path in result.artifacts:
        size = path.stat().st_size if path.is_file() else 0
        rows.append([path.stem, path.name, f"{size / 1024:.1f} KiB"])
    table = tabulate.tabulate(rows, headers=["Kernel", "Module", "Size"], tablefmt="github")
    arch = f", sm_{result.arch}" if result.arch else ""
    return f"{table}\n\n{result.module_format.value}{arch} -> {result.binding_path}"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="cukernels-build", description="Compile the cukernels CUDA kernel catalog")
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in ModuleFormat],
        default=None,
        help="Module format (default: CUKERNELS_MODULE_FORMAT or ptx)")
    parser.add_argument("--out-dir", type=Path, default=None, help="Output directory (default: CUKERNELS_OUT_DIR)")
    parser.add_argument(
        "--kernel-dir", type=Path, default=None, help="Kernel source directory (default: CUKERNELS_KERNEL_DIR)")
    parser.add_argument("--force", action="store_true", help="Rebuild even if nothing changed")
    parser.add_argument("--verbose", action="store_true", default=env.get_default_verbose(), help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.verbose:
        cukernels.set_log_level("DEBUG")
    try:
        result = build_modules(args.format, args.out_dir, args.kernel_dir, force=args.force)
    except KernelBuildError as err:
        logger.error(str(err))
        return 1
    if result is not None:
        print(summarize(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
