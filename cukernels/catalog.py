"""The fixed kernel catalog.

``KERNEL_NAMES`` is the only place the catalog is spelled out. The kernel units
compiled at build time, the ``Id`` enum handed to host code, and the order of
the generated bindings are all derived from it, so their indices cannot drift
apart. Reordering the tuple changes every index; append new kernels at the end
when callers cache indices.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

KERNEL_NAMES: tuple[str, ...] = (
    "affine",
    "binary",
    "cast",
    "conv",
    "fill",
    "indexing",
    "quantized",
    "reduce",
    "sort",
    "ternary",
    "unary",
)

SOURCE_SUFFIX = ".cu"


@dataclass(frozen=True)
class KernelUnit:
    """One self-contained device source file, compiled into one module."""

    name: str

    @property
    def constant_name(self) -> str:
        """Name of the generated binding constant."""
        return self.name.upper()

    @property
    def source_name(self) -> str:
        return f"{self.name}{SOURCE_SUFFIX}"

    def source(self, kernel_dir: str | Path) -> Path:
        return Path(kernel_dir) / self.source_name

    def output(self, out_dir: str | Path, suffix: str) -> Path:
        return Path(out_dir) / f"{self.name}.{suffix}"


KERNEL_UNITS: tuple[KernelUnit, ...] = tuple(KernelUnit(name) for name in KERNEL_NAMES)


@functools.total_ordering
class KernelId(Enum):
    """Base for the catalog enum; members are ordered by catalog position."""

    @property
    def index(self) -> int:
        return module_index(self)

    @property
    def unit(self) -> KernelUnit:
        return KERNEL_UNITS[self.index]

    def __lt__(self, other):
        if not isinstance(other, KernelId):
            return NotImplemented
        return self.index < other.index


Id = KernelId("Id", [(name.upper(), name) for name in KERNEL_NAMES], module=__name__, qualname="Id")

ALL_IDS: tuple[KernelId, ...] = tuple(Id)


def module_index(id: KernelId) -> int:
    """Position of ``id`` in the catalog.

    A linear scan over a catalog of a dozen entries; callers that need the
    index in a hot loop should cache ``Id.X.index``.
    """
    for i, candidate in enumerate(ALL_IDS):
        if candidate is id:
            return i
    raise ValueError(f"id not found in kernel catalog: {id!r}")


def catalog_listing(units=KERNEL_UNITS) -> str:
    """Comma separated source names, used in drift diagnostics."""
    return ", ".join(unit.source_name for unit in units)
