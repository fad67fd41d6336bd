"""Rerun-if-changed bookkeeping for kernel builds.

The manifest only decides whether a build is needed at all. A build that does
run always recompiles every unit.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_NAME = "build_manifest.json"


def file_digest(path: str | Path) -> str:
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


@dataclass
class BuildManifest:
    module_format: str
    env: dict[str, str | None] = field(default_factory=dict)
    inputs: dict[str, str] = field(default_factory=dict)
    outputs: list[str] = field(default_factory=list)

    @classmethod
    def collect(cls,
                module_format: str,
                env: Mapping[str, str | None],
                inputs: Iterable[Path],
                outputs: Iterable[Path] = ()) -> BuildManifest:
        """Snapshot ``inputs`` by content. Inputs that do not exist are recorded as missing."""
        digests = {}
        for path in sorted({Path(p) for p in inputs}):
            digests[str(path)] = file_digest(path) if path.is_file() else "missing"
        return cls(module_format, dict(env), digests, sorted(str(p) for p in outputs))

    @classmethod
    def load(cls, out_dir: str | Path) -> BuildManifest | None:
        path = Path(out_dir) / MANIFEST_NAME
        if not path.is_file():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        except (OSError, ValueError, TypeError) as e:
            logger.debug(f"Ignoring unreadable build manifest {path}: {e}")
            return None

    def save(self, out_dir: str | Path) -> Path:
        path = Path(out_dir) / MANIFEST_NAME
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2, sort_keys=True)
        return path

    def same_inputs(self, other: BuildManifest) -> bool:
        return (self.module_format == other.module_format and self.env == other.env and
                self.inputs == other.inputs)


def is_up_to_date(out_dir: str | Path, current: BuildManifest) -> bool:
    """True when ``out_dir`` holds a build of exactly ``current``'s inputs and its outputs still exist."""
    previous = BuildManifest.load(out_dir)
    if previous is None:
        return False
    if not previous.same_inputs(current):
        return False
    return all(Path(p).is_file() for p in previous.outputs)


def discard_manifest(out_dir: str | Path) -> bool:
    path = Path(out_dir) / MANIFEST_NAME
    if not path.is_file():
        return False
    path.unlink()
    return True
