import shutil

import pytest

import cukernels.testing
from cukernels.build.bindings import render_bindings, write_bindings, write_package_marker
from cukernels.catalog import KERNEL_UNITS
from cukernels.errors import BindingWriteError
from cukernels.module import ModuleFormat, load_bindings


def _write_payloads(out_dir, module_format):
    out_dir.mkdir(parents=True, exist_ok=True)
    for unit in KERNEL_UNITS:
        path = unit.output(out_dir, module_format.value)
        if module_format is ModuleFormat.CUBIN:
            path.write_bytes(b"\x00cubin " + unit.name.encode())
        else:
            path.write_text(f"// ptx {unit.name}\n")


def test_render_cubin_bindings(tmp_path):
    source = render_bindings(KERNEL_UNITS, tmp_path, ModuleFormat.CUBIN)
    lines = [line for line in source.splitlines() if ": bytes = " in line]
    assert [line.split(":")[0] for line in lines] == [unit.name.upper() for unit in KERNEL_UNITS]
    assert lines[0] == 'AFFINE: bytes = (_HERE / "affine.cubin").read_bytes()'
    assert str(tmp_path) not in source


def test_render_ptx_bindings(tmp_path):
    source = render_bindings(KERNEL_UNITS, tmp_path, ModuleFormat.PTX)
    assert 'UNARY: str = (_HERE / "unary.ptx").read_text()' in source


def test_constants_hold_file_contents(tmp_path):
    out_dir = tmp_path / "out"
    _write_payloads(out_dir, ModuleFormat.CUBIN)
    write_bindings(out_dir, ModuleFormat.CUBIN)
    write_package_marker(out_dir, ModuleFormat.CUBIN, "86")

    loaded = load_bindings(out_dir)
    assert loaded.module_format is ModuleFormat.CUBIN
    assert loaded.target_arch == "86"
    for unit in KERNEL_UNITS:
        assert getattr(loaded.bindings, unit.constant_name) == unit.output(out_dir, "cubin").read_bytes()


def test_bindings_relocate_with_output_dir(tmp_path):
    out_dir = tmp_path / "out"
    _write_payloads(out_dir, ModuleFormat.PTX)
    write_bindings(out_dir, ModuleFormat.PTX)
    write_package_marker(out_dir, ModuleFormat.PTX)

    moved = tmp_path / "elsewhere" / "kernels"
    moved.parent.mkdir()
    shutil.move(str(out_dir), str(moved))

    loaded = load_bindings(moved)
    assert loaded.bindings.CAST == "// ptx cast\n"
    assert loaded.target_arch is None


def test_write_failure_is_binding_write_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    with pytest.raises(BindingWriteError, match="cubin.py"):
        write_bindings(blocker, ModuleFormat.CUBIN)


if __name__ == "__main__":
    cukernels.testing.main()
