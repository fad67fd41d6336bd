from __future__ import annotations

import os
import subprocess
from pathlib import Path
from functools import lru_cache

ROOT = Path(__file__).parent

base_version = (ROOT / "VERSION").read_text().strip()
# An installed sdist must report the sdist's own version, so sdists carry no
# version label and pin the git hash in a file instead.
git_pin = ROOT / ".git_commit.txt"


def _read_bool(i: str | None, default=False):
    if i is None:
        return default
    return i.lower() not in ("0", "false", "off", "no", "n", "")


@lru_cache(maxsize=1)
def get_git_commit_id() -> str | None:
    """Get the current git commit hash by running git in the current file's directory."""
    try:
        r = subprocess.run(["git", "rev-parse", "HEAD"], cwd=ROOT, capture_output=True, encoding="utf-8")
    except FileNotFoundError:
        r = None
    if r is not None and r.returncode == 0:
        _git = r.stdout.strip()
        git_pin.write_text(_git)
        return _git
    elif git_pin.exists():
        return git_pin.read_text().strip()
    else:
        return None


def dynamic_metadata(field: str, settings: dict[str, object] | None = None) -> str:
    assert field == "version"

    version = base_version

    # generate git version for sdist
    get_git_commit_id()

    if not _read_bool(os.environ.get("NO_VERSION_LABEL")):
        exts = []
        # Kernel modules are only part of the wheel when built in.
        if _read_bool(os.environ.get("CUKERNELS_WITH_KERNELS")):
            exts.append(os.environ.get("CUKERNELS_MODULE_FORMAT", "ptx").strip().lower())

        if _read_bool(os.environ.get("NO_GIT_VERSION")):
            pass
        elif git_hash := get_git_commit_id():
            exts.append(f"git{git_hash[:8]}")
        else:
            exts.append("gitunknown")

        if exts:
            version += "+" + ".".join(exts)

    return version


__all__ = ["dynamic_metadata"]
