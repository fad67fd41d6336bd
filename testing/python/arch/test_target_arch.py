import pytest

import cukernels.testing
from cukernels.errors import ArchitectureResolutionError
from cukernels.utils.target import (
    COMMON_COMPUTE_CAPS,
    COMPUTE_CAP_TABLE_URL,
    determine_target_arch,
    normalize_compute_cap,
    probe_compute_cap,
)


@pytest.mark.parametrize("raw, expected", [
    ("86", "86"),
    ("8.6", "86"),
    ("9.0", "90"),
    ("12.0", "120"),
    (" 7.5\n", "75"),
    ("", None),
    ("...", None),
    ("N/A", None),
    ("sm_86", None),
    ("8.6a", None),
    (None, None),
])
def test_normalize_compute_cap(raw, expected):
    assert normalize_compute_cap(raw) == expected


def test_override_wins_over_probe(monkeypatch, toolchain):
    monkeypatch.setenv("CUDA_COMPUTE_CAP", "86")
    toolchain.smi_output = "8.0\n"
    resolution = determine_target_arch()
    assert resolution.arch == "86"
    assert resolution.source == "override"
    assert toolchain.calls == []


def test_explicit_override_argument(toolchain):
    assert determine_target_arch(override="8.9").arch == "89"
    assert toolchain.calls == []


def test_probe_used_without_override(toolchain):
    toolchain.smi_output = "8.6\n"
    resolution = determine_target_arch()
    assert resolution.arch == "86"
    assert resolution.source == "probe"
    assert "nvidia-smi" in resolution.describe()
    assert len(toolchain.smi_calls()) == 1


def test_probe_reads_first_gpu_only(toolchain):
    toolchain.smi_output = "9.0\n8.0\n"
    assert probe_compute_cap() == "90"


@pytest.mark.parametrize("setup", ["missing", "failed", "empty", "garbage"])
def test_probe_failures_return_none(toolchain, setup):
    if setup == "missing":
        toolchain.smi_missing = True
    elif setup == "failed":
        toolchain.smi_returncode = 9
    elif setup == "empty":
        toolchain.smi_output = ""
    else:
        toolchain.smi_output = "[N/A]\n"
    assert probe_compute_cap() is None


def test_no_override_and_no_gpu(toolchain):
    toolchain.smi_missing = True
    with pytest.raises(ArchitectureResolutionError) as excinfo:
        determine_target_arch()
    message = str(excinfo.value)
    assert "CUDA_COMPUTE_CAP" in message
    assert COMPUTE_CAP_TABLE_URL in message
    for code in COMMON_COMPUTE_CAPS:
        assert code in message


def test_invalid_override_is_rejected(monkeypatch, toolchain):
    monkeypatch.setenv("CUDA_COMPUTE_CAP", "ampere")
    with pytest.raises(ArchitectureResolutionError, match="'ampere'"):
        determine_target_arch()
    assert toolchain.calls == []


def test_custom_probe():
    assert determine_target_arch(override=None, probe=lambda: "75").arch == "75"
    with pytest.raises(ArchitectureResolutionError):
        determine_target_arch(override=None, probe=lambda: None)


if __name__ == "__main__":
    cukernels.testing.main()
