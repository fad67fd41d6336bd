import cukernels.testing
from cukernels.build.manifest import MANIFEST_NAME, BuildManifest, file_digest, is_up_to_date


def _manifest(kernel_dir, outputs=(), **env):
    tracked = {"CUKERNELS_MODULE_FORMAT": "cubin", "CUDA_COMPUTE_CAP": "86"}
    tracked.update(env)
    return BuildManifest.collect("cubin", tracked, sorted(kernel_dir.glob("*.cu*")), outputs)


def test_manifest_roundtrip(kernel_dir, tmp_path):
    manifest = _manifest(kernel_dir)
    manifest.save(tmp_path)
    assert (tmp_path / MANIFEST_NAME).is_file()
    assert BuildManifest.load(tmp_path) == manifest
    assert manifest.inputs[str(kernel_dir / "affine.cu")] == file_digest(kernel_dir / "affine.cu")


def test_up_to_date_until_source_changes(kernel_dir, tmp_path):
    artifact = tmp_path / "affine.cubin"
    artifact.write_bytes(b"x")
    _manifest(kernel_dir, [artifact]).save(tmp_path)
    assert is_up_to_date(tmp_path, _manifest(kernel_dir))

    (kernel_dir / "cuda_utils.cuh").write_text("#pragma once\n#define CHANGED\n")
    assert not is_up_to_date(tmp_path, _manifest(kernel_dir))


def test_env_change_triggers_rebuild(kernel_dir, tmp_path):
    _manifest(kernel_dir).save(tmp_path)
    assert not is_up_to_date(tmp_path, _manifest(kernel_dir, CUDA_COMPUTE_CAP="90"))


def test_missing_output_triggers_rebuild(kernel_dir, tmp_path):
    _manifest(kernel_dir, [tmp_path / "gone.cubin"]).save(tmp_path)
    assert not is_up_to_date(tmp_path, _manifest(kernel_dir))


def test_missing_or_corrupt_manifest(kernel_dir, tmp_path):
    assert not is_up_to_date(tmp_path, _manifest(kernel_dir))
    (tmp_path / MANIFEST_NAME).write_text("{not json")
    assert BuildManifest.load(tmp_path) is None


if __name__ == "__main__":
    cukernels.testing.main()
