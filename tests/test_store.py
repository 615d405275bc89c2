from __future__ import annotations
import os
import pytest # type: ignore
import numpy as np # type: ignore
from cardinal.lib.backends import KeyValueBackend, MemoryBackend, DirectoryBackend
from cardinal.lib.config import CardinalConfig
from cardinal.lib.errors import BackingStoreError, CorruptSketchFormat
from cardinal.lib.store import SketchStore, normalize_key

class FailingBackend(KeyValueBackend):
    """Backend whose every call fails like a broken transport."""

    def get_bytes(self, key):
        raise ConnectionError("connection reset")

    def set_bytes(self, key, value):
        raise TimeoutError("write timed out")

    def delete_key(self, key):
        raise ConnectionError("connection reset")

    def keys(self, prefix=""):
        raise ConnectionError("connection reset")

@pytest.fixture(params=["memory", "directory"])
def any_backend(request, tmp_path):
    if request.param == "memory":
        return MemoryBackend()
    return DirectoryBackend(str(tmp_path / "sketches"))

@pytest.mark.quick
class TestBackendsQuick:
    """Quick tests for the key-value backends."""

    def test_missing_key(self, any_backend):
        assert any_backend.get_bytes("nope") is None
        assert any_backend.delete_key("nope") is False

    def test_set_get_overwrite(self, any_backend):
        any_backend.set_bytes("k", b"one")
        any_backend.set_bytes("k", b"two")
        assert any_backend.get_bytes("k") == b"two"

    def test_delete(self, any_backend):
        any_backend.set_bytes("k", b"v")
        assert any_backend.delete_key("k") is True
        assert any_backend.get_bytes("k") is None

    def test_keys_with_prefix(self, any_backend):
        for key in ["a:1", "a:2", "b:1", "ünï/cødé"]:
            any_backend.set_bytes(key, b"x")
        assert any_backend.keys("a:") == ["a:1", "a:2"]
        assert len(any_backend.keys()) == 4
        assert "ünï/cødé" in any_backend.keys()

    def test_memory_backend_copies_mutable_values(self):
        backend = MemoryBackend()
        value = bytearray(b"abc")
        backend.set_bytes("k", value)
        value[0] = 0
        assert backend.get_bytes("k") == b"abc"
        assert len(backend) == 1

    def test_directory_backend_leaves_no_temp_files(self, tmp_path):
        backend = DirectoryBackend(str(tmp_path))
        backend.set_bytes("k", b"v" * 100)
        assert [n for n in os.listdir(tmp_path) if n.endswith(".tmp")] == []

    def test_directory_backend_ignores_foreign_files(self, tmp_path):
        backend = DirectoryBackend(str(tmp_path))
        (tmp_path / "README").write_text("hi")
        (tmp_path / "zz.hll").write_text("not hex")
        backend.set_bytes("k", b"v")
        assert backend.keys() == ["k"]

    def test_directory_backend_read_failure(self, tmp_path):
        backend = DirectoryBackend(str(tmp_path))
        os.mkdir(backend._path("k"))
        with pytest.raises(BackingStoreError):
            backend.get_bytes("k")

    def test_long_key_round_trip(self, any_backend):
        key = "visitors:" + "ü" * 300
        any_backend.set_bytes(key, b"one")
        any_backend.set_bytes(key, b"two")
        any_backend.set_bytes("short", b"x")
        assert any_backend.get_bytes(key) == b"two"
        assert any_backend.keys("visitors:") == [key]
        assert any_backend.delete_key(key) is True
        assert any_backend.get_bytes(key) is None
        assert any_backend.keys() == ["short"]

    def test_directory_backend_long_key_file_name(self, tmp_path):
        backend = DirectoryBackend(str(tmp_path))
        key = "k" * 300
        backend.set_bytes(key, b"\x0e" + b"\x00" * 16)
        names = os.listdir(tmp_path)
        assert len(names) == 1
        assert len(names[0]) <= DirectoryBackend.NAME_MAX
        assert names[0].endswith(DirectoryBackend.DIGEST_SUFFIX)
        assert backend.get_bytes(key) == b"\x0e" + b"\x00" * 16

    def test_directory_backend_skips_truncated_digest_file(self, tmp_path):
        backend = DirectoryBackend(str(tmp_path))
        (tmp_path / ("ab" * 16 + DirectoryBackend.DIGEST_SUFFIX)).write_bytes(b"\x00\x00")
        backend.set_bytes("k", b"v")
        assert backend.keys() == ["k"]


@pytest.mark.quick
class TestSketchStoreQuick:
    """Quick tests for SketchStore."""

    def test_normalize_key(self):
        assert normalize_key("k") == "k"
        assert normalize_key(b"k") == "k"
        with pytest.raises(TypeError):
            normalize_key(12)
        with pytest.raises(TypeError):
            normalize_key(b"\xff\xfe")

    def test_backend_type_checked(self):
        with pytest.raises(TypeError):
            SketchStore({})

    def test_load_missing_key_is_empty(self, any_backend):
        store = SketchStore(any_backend, CardinalConfig(precision=12, seed=3))
        sketch = store.load("fresh")
        assert sketch.is_empty()
        assert sketch.precision == 12
        assert sketch.seed == 3
        assert sketch.estimate_cardinality() == 0
        assert not store.exists("fresh")

    @pytest.mark.parametrize("packing", ["dense", "packed"])
    def test_save_load_round_trip(self, any_backend, packing):
        store = SketchStore(any_backend, CardinalConfig(packing=packing))
        sketch = store.new_sketch()
        sketch.add_batch(f"v{i}" for i in range(1000))
        store.save("k", sketch)
        loaded = store.load("k")
        np.testing.assert_array_equal(loaded.registers, sketch.registers)
        assert loaded.estimate_cardinality() == sketch.estimate_cardinality()

    def test_stored_precision_wins(self, backend):
        small = SketchStore(backend, CardinalConfig(precision=8))
        small.save("k", small.new_sketch())
        loaded = SketchStore(backend, CardinalConfig(precision=14)).load("k")
        assert loaded.precision == 8

    def test_saved_layout(self, backend):
        store = SketchStore(backend, CardinalConfig(precision=10))
        store.save("k", store.new_sketch())
        data = backend.get_bytes("k")
        assert data[0] == 10
        assert len(data) == 1 + 1024

    def test_key_prefix(self, backend):
        store = SketchStore(backend, CardinalConfig(key_prefix="hll:"))
        store.save("visitors", store.new_sketch())
        assert backend.keys() == ["hll:visitors"]
        assert store.keys() == ["visitors"]
        assert store.exists(b"visitors")

    def test_delete(self, backend):
        store = SketchStore(backend)
        store.save("k", store.new_sketch())
        assert store.delete("k") is True
        assert store.delete("k") is False

    def test_corrupt_data(self, backend):
        backend.set_bytes("k", b"\x0e\x01\x02")
        with pytest.raises(CorruptSketchFormat, match="'k'"):
            SketchStore(backend).load("k")

    def test_backend_failures_wrapped(self):
        store = SketchStore(FailingBackend())
        with pytest.raises(BackingStoreError) as excinfo:
            store.load("k")
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        with pytest.raises(BackingStoreError):
            store.save("k", store.new_sketch())
        with pytest.raises(BackingStoreError):
            store.delete("k")
        with pytest.raises(BackingStoreError):
            store.keys()

    def test_save_requires_sketch(self, backend):
        with pytest.raises(TypeError):
            SketchStore(backend).save("k", b"\x04" + bytes(16))
