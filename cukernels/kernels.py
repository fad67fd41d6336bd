"""Compiled kernel modules of the current build.

Importing this module loads the bindings from ``CUKERNELS_OUT_DIR`` once and
publishes one :class:`~cukernels.module.Module` per catalog entry::

    from cukernels import kernels
    image = kernels.AFFINE.as_bytes()  # works for PTX and CUBIN builds

Importing fails with ``ImportError`` when no build exists yet.
"""

from __future__ import annotations

from .catalog import Id, KernelId
from .env import env
from .module import Module, load_bindings, load_registry

_loaded = load_bindings(env.CUKERNELS_OUT_DIR)
_registry = load_registry(_loaded.bindings, _loaded.module_format)

MODULE_FORMAT = _loaded.module_format
TARGET_ARCH = _loaded.target_arch
MODULES: tuple[Module, ...] = tuple(_registry.values())

AFFINE = _registry[Id.AFFINE]
BINARY = _registry[Id.BINARY]
CAST = _registry[Id.CAST]
CONV = _registry[Id.CONV]
FILL = _registry[Id.FILL]
INDEXING = _registry[Id.INDEXING]
QUANTIZED = _registry[Id.QUANTIZED]
REDUCE = _registry[Id.REDUCE]
SORT = _registry[Id.SORT]
TERNARY = _registry[Id.TERNARY]
UNARY = _registry[Id.UNARY]


def get_module(id: KernelId) -> Module:
    return _registry[id]


__all__ = [
    "MODULE_FORMAT",
    "TARGET_ARCH",
    "MODULES",
    "get_module",
    *(id.name for id in _registry),
]
