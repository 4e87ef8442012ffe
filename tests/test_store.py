import gc
import zipfile

import pytest

from sealbox.containers import store as store_module
from sealbox.containers.errors import IOFailure, NameConflict, NotFound, ValidationError
from sealbox.containers.store import ArchiveStore, container_lock


def _entries(path):
    with zipfile.ZipFile(path) as z:
        return sorted(z.namelist())


def test_create_writes_source_tree_with_relative_paths(store, source_dir):
    (source_dir / "nested" / "deeper").mkdir(parents=True)
    (source_dir / "nested" / "deeper" / "c.bin").write_bytes(b"\x00\x01")
    (source_dir / "b.txt").write_text("bee")
    path = store.create("box")
    assert path.name == "box.zip"
    with zipfile.ZipFile(path) as z:
        assert z.namelist() == ["a.txt", "b.txt", "nested/deeper/c.bin"]
        assert z.read("nested/deeper/c.bin") == b"\x00\x01"
        assert not any(n.startswith("META-INF") for n in z.namelist())


def test_create_then_list_contains_name_once(store):
    store.create("box")
    store.create("crate")
    names = store.list()
    assert names.count("box") == 1
    assert sorted(names) == ["box", "crate"]
    assert store.exists("box")


def test_duplicate_name_conflicts_and_leaves_storage_unchanged(store):
    path = store.create("box")
    before = path.read_bytes()
    with pytest.raises(NameConflict):
        store.create("box")
    assert path.read_bytes() == before
    assert store.list() == ["box"]


@pytest.mark.parametrize("bad", ["", "../escape", "a/b", ".hidden", "a\\b"])
def test_invalid_names_rejected(store, bad):
    with pytest.raises(ValidationError):
        store.create(bad)


def test_list_skips_noise_and_foreign_files(store):
    store.create("box")
    (store.containers_dir / ".DS_Store").write_bytes(b"junk")
    (store.containers_dir / ".tmp.abc.zip").write_bytes(b"half written")
    (store.containers_dir / "notes.txt").write_text("not a container")
    assert store.list() == ["box"]


def test_missing_source_dir_is_io_failure(tmp_path):
    s = ArchiveStore(tmp_path / "containers", tmp_path / "nope")
    with pytest.raises(IOFailure):
        s.create("box")
    assert s.list() == []
    assert list(s.containers_dir.iterdir()) == []


def test_open_missing_container_not_found(store):
    with pytest.raises(NotFound):
        with store.open_for_mutation("ghost"):
            pass


def test_changes_commit_on_release(store):
    path = store.create("box")
    with store.open_for_mutation("box") as archive:
        archive.write("META-INF/x.txt", "staged")
        assert archive.read("META-INF/x.txt") == b"staged"
        # Not on disk until the handle is released
        assert "META-INF/x.txt" not in _entries(path)
        archive.delete("a.txt")
        assert archive.payload_names() == []
    assert _entries(path) == ["META-INF/x.txt"]


def test_exception_in_block_discards_changes(store):
    path = store.create("box")
    before = path.read_bytes()
    with pytest.raises(RuntimeError):
        with store.open_for_mutation("box") as archive:
            archive.write("META-INF/x.txt", b"staged")
            raise RuntimeError("boom")
    assert path.read_bytes() == before


def test_untouched_handle_does_not_rewrite(store):
    path = store.create("box")
    mtime = path.stat().st_mtime_ns
    with store.open_for_mutation("box") as archive:
        assert archive.payload_names() == ["a.txt"]
    assert path.stat().st_mtime_ns == mtime


def test_payload_names_exclude_meta_inf_and_noise(store, source_dir):
    (source_dir / ".DS_Store").write_bytes(b"mac")
    store.create("box")
    with store.open_for_mutation("box") as archive:
        archive.write("META-INF/manifest1.tlv", "m")
        assert archive.payload_names() == ["a.txt"]
        assert ".DS_Store" in archive.names()


def test_delete_missing_entry_not_found(store):
    store.create("box")
    with pytest.raises(NotFound):
        with store.open_for_mutation("box") as archive:
            archive.delete("META-INF/manifest9.tlv")


def test_container_lock_is_shared_while_held_and_dropped_after(store):
    path = store.containers_dir / "ghost.zip"
    key = str(path.resolve())
    lock = container_lock(path)
    assert container_lock(path) is lock
    assert key in store_module._locks
    del lock
    gc.collect()
    assert key not in store_module._locks


def test_missing_container_leaves_no_lock_behind(store):
    with pytest.raises(NotFound):
        with store.open_for_mutation("never-created"):
            pass
    gc.collect()
    assert str((store.containers_dir / "never-created.zip").resolve()) not in store_module._locks
