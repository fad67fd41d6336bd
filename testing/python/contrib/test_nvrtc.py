import pytest

import cukernels.testing
from cukernels.contrib import nvrtc
from cukernels.contrib.nvrtc import PtxBuilder


def fake_compile_ptx(code, name, options=None):
    return f"// PTX for {name}\n.version 8.0\n"


def test_compile_options_include_kernel_dir(tmp_path):
    builder = PtxBuilder(tmp_path, include_paths=["/opt/include"])
    options = builder.compile_options()
    assert options[:2] == list(nvrtc.DEFAULT_PTX_OPTIONS)
    assert f"--include-path={tmp_path}" in options
    assert "--include-path=/opt/include" in options
    assert not any(option.startswith("-arch") or "sm_" in option for option in options)


def test_build_ptx_writes_one_file_per_source(tmp_path, monkeypatch):
    src = tmp_path / "src"
    src.mkdir()
    (src / "unary.cu").write_text("")
    (src / "affine.cu").write_text("")
    (src / "helpers.cuh").write_text("")
    monkeypatch.setattr(nvrtc, "compile_ptx", fake_compile_ptx)

    modules = PtxBuilder(src).build_ptx(tmp_path)
    assert modules.names == ["affine", "unary"]
    assert modules.modules[0] == ("affine", tmp_path / "affine.ptx")
    assert (tmp_path / "affine.ptx").read_text().startswith("// PTX for")


def test_build_ptx_without_sources(tmp_path):
    with pytest.raises(RuntimeError, match="No CUDA sources"):
        PtxBuilder(tmp_path).build_ptx(tmp_path)


def test_compile_ptx_requires_cuda_python(monkeypatch):
    monkeypatch.setattr(nvrtc, "is_nvrtc_available", False)
    with pytest.raises(cukernels.ToolchainNotFoundError, match="cuda-python"):
        nvrtc.compile_ptx("", "empty.cu")


@cukernels.testing.requires_nvrtc
def test_compile_ptx_with_nvrtc():
    code = 'extern "C" __global__ void fill(float* out, float v) { out[threadIdx.x] = v; }\n'
    ptx = nvrtc.compile_ptx(code, "fill.cu", list(nvrtc.DEFAULT_PTX_OPTIONS))
    assert ".entry fill" in ptx


if __name__ == "__main__":
    cukernels.testing.main()
