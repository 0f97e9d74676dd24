"""
Tree fingerprinting for the Tidemark baseline engine.

Walks a directory tree and computes a SHA-256 content digest for every
regular file, keyed by its forward-slash path relative to the tree root.
Filesystem metadata (mtime, permissions, ownership) is never consulted,
so two byte-identical files always fingerprint the same.
"""
import hashlib
import logging
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

from core.errors import TreeHashError

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_WORKERS = 4

FingerprintSet = dict[str, str]


def hash_file(path: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Return the hex digest of a file's raw bytes."""
    digest = hashlib.new(HASH_ALGORITHM)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_bytes(data: bytes) -> str:
    """Digest of an in-memory payload, same algorithm as hash_file."""
    return hashlib.new(HASH_ALGORITHM, data).hexdigest()


def _raise_walk_error(error: OSError):
    raise error


def ignore_special_files(directory: str, names: list[str]) -> set[str]:
    """shutil.copytree ignore hook that drops sockets, FIFOs and device nodes."""
    ignored = set()
    for name in names:
        mode = os.lstat(os.path.join(directory, name)).st_mode
        if not (stat.S_ISREG(mode) or stat.S_ISDIR(mode) or stat.S_ISLNK(mode)):
            ignored.add(name)
    return ignored


def collect_regular_files(root: Path) -> list[tuple[str, Path]]:
    """
    List (relative_path, absolute_path) for every regular file under root.

    Symlinks (to files or directories) and special files are skipped and
    never followed. Any listing error aborts the walk.
    """
    files = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error, followlinks=False):
        dirnames.sort()
        base = Path(dirpath)
        for name in sorted(filenames):
            full_path = base / name
            mode = os.lstat(full_path).st_mode
            if not stat.S_ISREG(mode):
                logger.debug(f"Skipping non-regular file: {full_path}")
                continue
            files.append((full_path.relative_to(root).as_posix(), full_path))
    return files


def hash_tree(
    root: Union[str, Path],
    workers: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> FingerprintSet:
    """
    Fingerprint every regular file under root.

    Files are hashed in parallel; the returned mapping is ordered by
    relative path regardless of completion order.

    Args:
        root: Tree root directory
        workers: Thread pool size (defaults to DEFAULT_WORKERS)
        chunk_size: Read size used while streaming file content

    Returns:
        Mapping of relative path -> hex digest

    Raises:
        TreeHashError: root is not a readable directory, or any file
            vanished or could not be read. No partial result is returned.
    """
    root = Path(root)
    if not root.is_dir():
        raise TreeHashError(f"Tree root is not a readable directory: {root}")

    try:
        files = collect_regular_files(root)
    except OSError as e:
        raise TreeHashError(f"Failed to walk {root}: {e}") from e

    def _digest(entry: tuple[str, Path]) -> tuple[str, str]:
        relative_path, full_path = entry
        return relative_path, hash_file(full_path, chunk_size)

    try:
        with ThreadPoolExecutor(max_workers=workers or DEFAULT_WORKERS) as executor:
            results = list(executor.map(_digest, files))
    except OSError as e:
        raise TreeHashError(f"Failed to hash file under {root}: {e}") from e

    fingerprints = dict(sorted(results))
    logger.info(f"Generated {len(fingerprints)} file hashes for {root}")
    return fingerprints
