import os

import pytest

from descriptor_builder import DescriptorBuilder
from errors import DescriptorBuildFailed, InvalidInput


@pytest.fixture
def source(tmp_path):
    f = tmp_path / "photo.jpg"
    f.write_bytes(b"\xff\xd8" * 1024)
    return f

def descriptors_in(path):
    return [p for p in os.listdir(path) if p.endswith(".torrent")]

def test_build_writes_descriptor_next_to_source(engine, source):
    descriptor = DescriptorBuilder(engine).build(str(source))
    try:
        assert os.path.dirname(descriptor.path) == str(source.parent)
        assert os.path.basename(descriptor.path).startswith("seed_")
        with open(descriptor.path, "rb") as f:
            assert f.read() == descriptor.data
        assert b"HFM Drop" in descriptor.data
    finally:
        os.remove(descriptor.path)

def test_build_uses_configured_temp_dir(engine, source, tmp_path):
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    builder = DescriptorBuilder(engine, creator="Tester", temp_dir=str(temp_dir))

    with builder.open(str(source)) as descriptor:
        assert descriptors_in(temp_dir) == [os.path.basename(descriptor.path)]
        assert b"Tester" in descriptor.data

    assert descriptors_in(temp_dir) == []

def test_open_deletes_descriptor_when_body_raises(engine, source):
    with pytest.raises(RuntimeError):
        with DescriptorBuilder(engine).open(str(source)):
            raise RuntimeError("session init blew up")
    assert descriptors_in(source.parent) == []

@pytest.mark.parametrize("path", ["", "/does/not/exist.bin"])
def test_missing_source_is_invalid_input(engine, path):
    with pytest.raises(InvalidInput):
        DescriptorBuilder(engine).build(path)

def test_directory_is_invalid_input(engine, tmp_path):
    with pytest.raises(InvalidInput):
        DescriptorBuilder(engine).build(str(tmp_path))

def test_engine_failure_is_wrapped_and_leaves_no_file(engine, source):
    engine.fail_descriptor = True
    with pytest.raises(DescriptorBuildFailed) as exc:
        DescriptorBuilder(engine).build(str(source))
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert descriptors_in(source.parent) == []

def test_unwritable_temp_dir_fails_cleanly(engine, source, tmp_path):
    builder = DescriptorBuilder(engine, temp_dir=str(tmp_path / "missing"))
    with pytest.raises(DescriptorBuildFailed):
        builder.build(str(source))
