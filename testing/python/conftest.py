import os
import random
import subprocess
from pathlib import Path

import pytest

from cukernels.catalog import KERNEL_UNITS
from cukernels.contrib import nvcc
from cukernels.env import EnvVar, Environment

os.environ["PYTHONHASHSEED"] = "0"

random.seed(0)

TRACKED_ENV = ("CUKERNELS_MODULE_FORMAT", "CUDA_COMPUTE_CAP", "CUDA_NVCC_FLAGS", "NVCC_CCBIN", "CUKERNELS_BUILD_JOBS")


class FakeToolchain:
    """Stands in for ``subprocess.run`` and answers nvidia-smi and nvcc invocations."""

    def __init__(self):
        self.calls = []
        self.smi_output = "8.0\n"
        self.smi_returncode = 0
        self.smi_missing = False
        self.fail_on = set()

    def __call__(self, command, **kwargs):
        command = list(command)
        self.calls.append(command)
        if Path(command[0]).name == "nvidia-smi":
            if self.smi_missing:
                raise FileNotFoundError(2, "No such file or directory", command[0])
            return subprocess.CompletedProcess(command, self.smi_returncode, self.smi_output, "")
        source = Path(command[-1])
        output = Path(command[command.index("-o") + 1])
        if source.stem in self.fail_on:
            return subprocess.CompletedProcess(command, 2, f"compiling {source.name}",
                                               f"{source.name}(3): error: identifier \"bogus\" is undefined")
        output.write_bytes(b"\x7fELF cubin " + source.stem.encode())
        return subprocess.CompletedProcess(command, 0, "", "")

    def nvcc_calls(self):
        return [call for call in self.calls if Path(call[0]).name != "nvidia-smi"]

    def smi_calls(self):
        return [call for call in self.calls if Path(call[0]).name == "nvidia-smi"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in TRACKED_ENV:
        monkeypatch.delenv(key, raising=False)
    yield
    for value in vars(Environment).values():
        if isinstance(value, EnvVar):
            value._forced_value = None


@pytest.fixture
def toolchain(monkeypatch):
    fake = FakeToolchain()
    monkeypatch.setattr("cukernels.utils.process.subprocess.run", fake)
    monkeypatch.setattr(nvcc, "get_nvcc_compiler", lambda: "/usr/local/cuda/bin/nvcc")
    return fake


@pytest.fixture
def kernel_dir(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    for unit in KERNEL_UNITS:
        unit.source(src).write_text(f'#include "cuda_utils.cuh"\n// {unit.name}\n')
    (src / "cuda_utils.cuh").write_text("#pragma once\n")
    return src


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "out"


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Ensure that at least one test is collected. Error out if all tests are skipped."""
    known_types = {
        "failed",
        "passed",
        "skipped",
        "deselected",
        "xfailed",
        "xpassed",
        "warnings",
        "error",
    }
    if sum(len(terminalreporter.stats.get(k, [])) for k in known_types.difference({"skipped", "deselected"})) == 0:
        terminalreporter.write_sep(
            "!",
            (f"Error: No tests were collected. {dict(sorted((k, len(v)) for k, v in terminalreporter.stats.items()))}"),
        )
        pytest.exit("No tests were collected.", returncode=5)
