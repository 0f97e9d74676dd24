from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from core import hasher
from core.errors import TreeHashError
from core.hasher import hash_file, hash_tree


def _write_tree(root: Path, files: dict[str, str | bytes]) -> None:
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)


def test_fingerprints_are_keyed_by_forward_slash_relative_path(tmp_path: Path) -> None:
    _write_tree(
        tmp_path,
        {
            "a.txt": "v1",
            "shared_prefs/settings.xml": "<map />",
            "databases/app.db": b"\x00\x01\x02",
        },
    )

    fingerprints = hash_tree(tmp_path)

    assert list(fingerprints) == ["a.txt", "databases/app.db", "shared_prefs/settings.xml"]
    assert fingerprints["a.txt"] == hashlib.sha256(b"v1").hexdigest()
    assert fingerprints["databases/app.db"] == hashlib.sha256(b"\x00\x01\x02").hexdigest()


def test_identical_bytes_hash_equal_regardless_of_metadata(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"one.bin": b"same bytes", "two.bin": b"same bytes"})
    os.utime(tmp_path / "one.bin", (0, 0))
    os.chmod(tmp_path / "two.bin", 0o600)

    first = hash_tree(tmp_path)
    second = hash_tree(tmp_path)

    assert first["one.bin"] == first["two.bin"]
    assert first == second


def test_symlinks_are_skipped_and_not_followed(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"a.txt": "v1"})
    (tmp_path / "link.txt").symlink_to(tmp_path / "a.txt")
    (tmp_path / "loop").symlink_to(tmp_path, target_is_directory=True)

    fingerprints = hash_tree(tmp_path)

    assert list(fingerprints) == ["a.txt"]


def test_directories_are_not_fingerprinted(tmp_path: Path) -> None:
    (tmp_path / "empty" / "nested").mkdir(parents=True)

    assert hash_tree(tmp_path) == {}


def test_missing_root_raises_tree_hash_error(tmp_path: Path) -> None:
    with pytest.raises(TreeHashError) as error:
        hash_tree(tmp_path / "missing")

    assert isinstance(error.value, OSError)


def test_file_root_raises_tree_hash_error(tmp_path: Path) -> None:
    _write_tree(tmp_path, {"a.txt": "v1"})

    with pytest.raises(TreeHashError):
        hash_tree(tmp_path / "a.txt")


def test_unreadable_file_fails_the_whole_call(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_tree(tmp_path, {"a.txt": "v1", "b.txt": "vanishes"})
    real_hash_file = hasher.hash_file

    def flaky_hash_file(path, chunk_size=hasher.DEFAULT_CHUNK_SIZE):
        if Path(path).name == "b.txt":
            raise FileNotFoundError(2, "No such file or directory", str(path))
        return real_hash_file(path, chunk_size)

    monkeypatch.setattr(hasher, "hash_file", flaky_hash_file)

    with pytest.raises(TreeHashError):
        hash_tree(tmp_path)


def test_output_order_is_sorted_after_parallel_hashing(tmp_path: Path) -> None:
    files = {f"dir{i % 3}/file{i:02d}.txt": f"content {i}" for i in range(30)}
    _write_tree(tmp_path, files)

    fingerprints = hash_tree(tmp_path, workers=8, chunk_size=4)

    assert list(fingerprints) == sorted(files)
    assert fingerprints["dir0/file00.txt"] == hash_file(tmp_path / "dir0" / "file00.txt")
