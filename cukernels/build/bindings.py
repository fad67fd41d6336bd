"""Generated binding modules.

A binding module is plain Python that reads its payload files relative to its
own location, so ``<out_dir>`` can be moved or packaged as a whole::

    # Generated by cukernels. Do not edit.
    import pathlib

    _HERE = pathlib.Path(__file__).resolve().parent

    AFFINE: bytes = (_HERE / "affine.cubin").read_bytes()
    ...
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from cukernels.catalog import KERNEL_UNITS, KernelUnit
from cukernels.errors import BindingWriteError
from cukernels.module import ModuleFormat

logger = logging.getLogger(__name__)

BINDING_HEADER = "# Generated by cukernels. Do not edit."

_READERS = {
    ModuleFormat.PTX: ("str", "read_text"),
    ModuleFormat.CUBIN: ("bytes", "read_bytes"),
}


def binding_path(out_dir: str | Path, module_format: ModuleFormat) -> Path:
    return Path(out_dir) / f"{module_format.binding_name}.py"


def render_bindings(units: Sequence[KernelUnit],
                    out_dir: str | Path,
                    module_format: ModuleFormat,
                    binding_dir: str | Path | None = None) -> str:
    """Source text of the binding module, one constant per unit in order."""
    out_dir = Path(out_dir)
    binding_dir = Path(binding_dir) if binding_dir is not None else out_dir
    type_name, reader = _READERS[module_format]
    lines = [BINDING_HEADER, "import pathlib", "", "_HERE = pathlib.Path(__file__).resolve().parent", ""]
    for unit in units:
        payload = unit.output(out_dir, module_format.value)
        rel = Path(os.path.relpath(payload, binding_dir)).as_posix()
        lines.append(f'{unit.constant_name}: {type_name} = (_HERE / "{rel}").{reader}()')
    return "\n".join(lines) + "\n"


def write_bindings(out_dir: str | Path,
                   module_format: ModuleFormat,
                   units: Sequence[KernelUnit] = KERNEL_UNITS) -> Path:
    """Write ``<out_dir>/<format>.py`` for ``units``.

    Raises:
        BindingWriteError: If the file cannot be created or written.
    """
    path = binding_path(out_dir, module_format)
    source = render_bindings(units, out_dir, module_format)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)
    except OSError as err:
        raise BindingWriteError(f"Failed to write kernel bindings to {path}: {err}") from err
    logger.debug("Wrote %d %s bindings to %s", len(units), module_format.value, path)
    return path


def write_package_marker(out_dir: str | Path, module_format: ModuleFormat, arch: str | None = None) -> Path:
    """Write ``<out_dir>/__init__.py`` recording what the directory holds."""
    path = Path(out_dir) / "__init__.py"
    source = (f"{BINDING_HEADER}\n"
              f"MODULE_FORMAT = {module_format.value!r}\n"
              f"TARGET_ARCH = {arch!r}\n")
    try:
        path.write_text(source)
    except OSError as err:
        raise BindingWriteError(f"Failed to write bindings marker {path}: {err}") from err
    return path


def remove_bindings(out_dir: str | Path) -> list[Path]:
    """Delete the marker and every binding module in ``out_dir`` so it no longer loads as a build."""
    out_dir = Path(out_dir)
    removed = []
    for path in [out_dir / "__init__.py", *(binding_path(out_dir, fmt) for fmt in ModuleFormat)]:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as err:
            raise BindingWriteError(f"Failed to remove stale bindings {path}: {err}") from err
        removed.append(path)
    return removed
