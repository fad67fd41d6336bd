"""Runtime view of the compiled kernel modules.

A build produces either PTX text or CUBIN bytes for every kernel, never both.
:class:`Module` hides the difference: ``as_bytes()`` works for both formats
and is what a CUDA driver loader (``cuModuleLoadData``) expects.
"""

from __future__ import annotations

import importlib.util
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType

from .catalog import ALL_IDS, KernelId, module_index
from .errors import CatalogDriftError, ConfigurationError, ModuleFormatError


class ModuleFormat(str, Enum):
    """Payload shape of a build."""

    PTX = "ptx"
    CUBIN = "cubin"

    @property
    def binding_name(self) -> str:
        """File stem of the binding module generated for this format."""
        return self.value

    @property
    def payload_type(self) -> type:
        return str if self is ModuleFormat.PTX else bytes

    @classmethod
    def parse(cls, value: str | ModuleFormat) -> ModuleFormat:
        if isinstance(value, ModuleFormat):
            return value
        normalized = str(value).strip().lower()
        for fmt in cls:
            if fmt.value == normalized:
                return fmt
        valid = ", ".join(f"'{fmt.value}'" for fmt in cls)
        raise ConfigurationError(f"Invalid CUKERNELS_MODULE_FORMAT: '{value}'. Valid values: {valid}")


@dataclass(frozen=True)
class ModuleData:
    """Compiled module payload tagged with its format."""

    format: ModuleFormat
    payload: str | bytes

    @classmethod
    def from_ptx(cls, text: str) -> ModuleData:
        return cls(ModuleFormat.PTX, text)

    @classmethod
    def from_cubin(cls, data: bytes) -> ModuleData:
        return cls(ModuleFormat.CUBIN, bytes(data))

    @property
    def is_ptx(self) -> bool:
        return self.format is ModuleFormat.PTX

    @property
    def is_cubin(self) -> bool:
        return self.format is ModuleFormat.CUBIN


@dataclass(frozen=True)
class Module:
    """A CUDA kernel module that can be loaded at runtime."""

    index: int
    data: ModuleData

    @property
    def id(self) -> KernelId:
        return ALL_IDS[self.index]

    @property
    def name(self) -> str:
        return self.id.value

    @property
    def format(self) -> ModuleFormat:
        return self.data.format

    def as_bytes(self) -> bytes:
        """Module data as bytes, for either format.

        This is the recommended accessor for loading modules.
        """
        if self.data.is_ptx:
            return self.data.payload.encode("utf-8")
        return self.data.payload

    def ptx(self) -> str:
        """PTX text of a PTX module.

        Raises:
            ModuleFormatError: If the module holds CUBIN data.
        """
        if not self.data.is_ptx:
            raise ModuleFormatError(f"Module {self.name!r} contains CUBIN data, not PTX. "
                                    "Use Module.as_bytes() instead for compatibility with both formats.")
        return self.data.payload


def _make_module(id: KernelId, payload, module_format: ModuleFormat) -> Module:
    if not isinstance(payload, module_format.payload_type):
        raise ModuleFormatError(f"Binding {id.name} holds {type(payload).__name__}, but the bindings declare "
                                f"{module_format.value} modules ({module_format.payload_type.__name__}).")
    if module_format is ModuleFormat.PTX:
        data = ModuleData.from_ptx(payload)
    else:
        data = ModuleData.from_cubin(payload)
    return Module(index=module_index(id), data=data)


def load_registry(bindings: ModuleType, module_format: str | ModuleFormat) -> dict[KernelId, Module]:
    """Wrap every binding constant of ``bindings`` into a :class:`Module`.

    Args:
        bindings: The generated ``ptx`` or ``cubin`` binding module.
        module_format: Format the bindings were built with.

    Returns:
        Mapping from catalog id to module, in catalog order.

    Raises:
        CatalogDriftError: If a catalog entry has no binding constant.
    """
    module_format = ModuleFormat.parse(module_format)
    missing = [id.name for id in ALL_IDS if not hasattr(bindings, id.name)]
    if missing:
        raise CatalogDriftError(f"Bindings {getattr(bindings, '__file__', bindings.__name__)} are missing "
                                f"{', '.join(missing)}. Expected one constant per catalog entry: "
                                f"{', '.join(id.name for id in ALL_IDS)}. Rebuild the kernels.")
    return {id: _make_module(id, getattr(bindings, id.name), module_format) for id in ALL_IDS}


def load_module_from_path(module_name: str, path: str | Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Failed to import module from file: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


@dataclass(frozen=True)
class LoadedBindings:
    module_format: ModuleFormat
    target_arch: str | None
    bindings: ModuleType


def load_bindings(bindings_dir: str | Path) -> LoadedBindings:
    """Import the binding package written by a kernel build.

    Raises:
        ImportError: If no build output exists in ``bindings_dir``.
    """
    bindings_dir = Path(bindings_dir)
    marker_path = bindings_dir / "__init__.py"
    if not marker_path.is_file():
        raise ImportError(f"No compiled kernel bindings found in {bindings_dir}. Build them with "
                          "`cukernels-build` (or `CUKERNELS_WITH_KERNELS=true pip install .`), "
                          "or point CUKERNELS_OUT_DIR at an existing build.")
    marker = load_module_from_path("cukernels._bindings", marker_path)
    module_format = ModuleFormat.parse(marker.MODULE_FORMAT)
    binding_path = bindings_dir / f"{module_format.binding_name}.py"
    if not binding_path.is_file():
        raise ImportError(f"Kernel bindings in {bindings_dir} declare {module_format.value} modules "
                          f"but {binding_path.name} is missing. Rebuild the kernels.")
    bindings = load_module_from_path(f"cukernels._bindings.{module_format.binding_name}", binding_path)
    return LoadedBindings(module_format, getattr(marker, "TARGET_ARCH", None), bindings)
