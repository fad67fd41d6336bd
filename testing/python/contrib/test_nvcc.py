import pytest

import cukernels.testing
from cukernels.contrib import nvcc
from cukernels.errors import ToolchainError, ToolchainNotFoundError
from cukernels.utils.process import run_process


def test_default_compile_options_order(tmp_path):
    options = nvcc.default_compile_options(tmp_path, ["-DFOO", "-DBAR"], ccbin="g++-12")
    assert options[:len(nvcc.CUBIN_FLAGS)] == list(nvcc.CUBIN_FLAGS)
    assert options[len(nvcc.CUBIN_FLAGS)] == f"-I{tmp_path}"
    assert options[-4:] == ["-ccbin", "g++-12", "-DFOO", "-DBAR"]


def test_build_command_layout(tmp_path):
    cmd = nvcc.build_command(tmp_path / "affine.cu", tmp_path / "affine.cubin", "86", ["-O3"], nvcc="nvcc")
    assert cmd == ["nvcc", "-O3", "-arch=sm_86", "-o", str(tmp_path / "affine.cubin"), str(tmp_path / "affine.cu")]


def test_compile_cuda_passes_extra_flags_in_order(tmp_path, toolchain):
    source = tmp_path / "affine.cu"
    source.write_text("")
    options = nvcc.default_compile_options(tmp_path, ["-DFOO", "-DBAR"])
    nvcc.compile_cuda(source, tmp_path / "affine.cubin", "80", options, nvcc="nvcc")
    (call,) = toolchain.nvcc_calls()
    assert call.index("-DFOO") + 1 == call.index("-DBAR")
    assert call.index("-DBAR") < call.index("-arch=sm_80")
    assert (tmp_path / "affine.cubin").is_file()


def test_compile_failure_reports_command_and_streams(tmp_path, toolchain):
    source = tmp_path / "cast.cu"
    source.write_text("")
    toolchain.fail_on.add("cast")
    with pytest.raises(ToolchainError) as excinfo:
        nvcc.compile_cuda(source, tmp_path / "cast.cubin", "86", ["--cubin"], nvcc="nvcc")
    message = str(excinfo.value)
    assert "nvcc --cubin -arch=sm_86" in message
    assert "compiling cast.cu" in message
    assert 'identifier "bogus" is undefined' in message
    assert excinfo.value.result.returncode == 2


def test_missing_executable(monkeypatch):

    def raise_not_found(command, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", command[0])

    monkeypatch.setattr("cukernels.utils.process.subprocess.run", raise_not_found)
    with pytest.raises(ToolchainNotFoundError, match="CUDA toolkit"):
        run_process(["nvcc", "--version"], install_hint=nvcc.NVCC_INSTALL_HINT)


def test_nvcc_compiler_not_found(monkeypatch):
    monkeypatch.setattr(nvcc.shutil, "which", lambda name: None)
    monkeypatch.setattr(nvcc, "CUDA_HOME", "")
    with pytest.raises(ToolchainNotFoundError, match="Cannot find nvcc"):
        nvcc.get_nvcc_compiler()


@cukernels.testing.requires_nvcc
def test_real_nvcc_is_found():
    assert nvcc.get_nvcc_compiler().endswith("nvcc")


if __name__ == "__main__":
    cukernels.testing.main()
