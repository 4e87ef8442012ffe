from __future__ import annotations

import io
import logging
import os
import tempfile
import threading
import weakref
import zipfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from .errors import IOFailure, NameConflict, NotFound, ValidationError
from .manifest import META_INF

CONTAINER_SUFFIX = ".zip"
# Filesystem metadata that never counts as container content
NOISE_NAMES = {".DS_Store", "Thumbs.db", "desktop.ini"}

# Raised while reading or inflating an entry of a damaged archive
READ_ERRORS = (OSError, EOFError, zipfile.BadZipFile, zlib.error)

_locks_guard = threading.Lock()
# Entries disappear once no caller holds a reference to the lock
_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()


def container_lock(path: Path) -> threading.Lock:
    """Return the process-wide lock for one container file (created on demand)."""
    key = str(path.resolve())
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def is_noise(name: str) -> bool:
    return name.rsplit("/", 1)[-1] in NOISE_NAMES


class ContainerArchive:
    """Mutable view over one opened container.

    Reads fall through to the archive on disk; writes and deletes are staged
    here and only reach the disk when the owning store commits the handle.
    """

    def __init__(self, name: str, source: zipfile.ZipFile):
        self.name = name
        self._source = source
        self._existing = [i.filename for i in source.infolist() if not i.is_dir()]
        self._added: dict[str, bytes] = {}
        self._deleted: set[str] = set()

    @property
    def dirty(self) -> bool:
        return bool(self._added or self._deleted)

    def names(self) -> list[str]:
        live = {n for n in self._existing if n not in self._deleted}
        live.update(self._added)
        return sorted(live)

    def payload_names(self) -> list[str]:
        """Payload entries in canonical (lexicographic) order."""
        return [n for n in self.names() if not n.startswith(META_INF + "/") and not is_noise(n)]

    def exists(self, name: str) -> bool:
        return name in self._added or (name in self._existing and name not in self._deleted)

    def read(self, name: str) -> bytes:
        if name in self._added:
            return self._added[name]
        if not self.exists(name):
            raise NotFound(f"Entry '{name}' does not exist in container '{self.name}'.")
        try:
            return self._source.read(name)
        except READ_ERRORS as e:
            raise IOFailure(f"Failed to read '{name}' from container '{self.name}'.") from e

    def open(self, name: str) -> BinaryIO:
        if name in self._added:
            return io.BytesIO(self._added[name])
        if not self.exists(name):
            raise NotFound(f"Entry '{name}' does not exist in container '{self.name}'.")
        try:
            return self._source.open(name)
        except READ_ERRORS as e:
            raise IOFailure(f"Failed to read '{name}' from container '{self.name}'.") from e

    def write(self, name: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._added[name] = data
        self._deleted.discard(name)

    def delete(self, name: str) -> None:
        if not self.exists(name):
            raise NotFound(f"Entry '{name}' does not exist in container '{self.name}'.")
        self._added.pop(name, None)
        if name in self._existing:
            self._deleted.add(name)

    def write_to(self, out: zipfile.ZipFile) -> None:
        for info in self._source.infolist():
            if info.is_dir() or info.filename in self._deleted or info.filename in self._added:
                continue
            try:
                data = self._source.read(info.filename)
            except READ_ERRORS as e:
                raise IOFailure(f"Failed to read '{info.filename}' from container '{self.name}'.") from e
            out.writestr(info, data)
        for name in sorted(self._added):
            out.writestr(name, self._added[name])


class ArchiveStore:
    """On-disk collection of zip containers named ``<name>.zip``."""

    def __init__(self, containers_dir: Path, source_dir: Path):
        self.containers_dir = Path(containers_dir)
        self.source_dir = Path(source_dir)
        self.containers_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, name: str) -> Path:
        if not name:
            raise ValidationError("Provide a name for the container.")
        if "/" in name or "\\" in name or name.startswith(".") or "\x00" in name:
            raise ValidationError(f"Invalid container name: {name!r}")
        return self.containers_dir / f"{name}{CONTAINER_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self._path_for(name).is_file()

    def list(self) -> list[str]:
        names = []
        for p in self.containers_dir.iterdir():
            # Skips dot-files (OS metadata, in-flight temp archives)
            if p.name.startswith(".") or p.name in NOISE_NAMES:
                continue
            if p.is_file() and p.suffix == CONTAINER_SUFFIX:
                names.append(p.stem)
        return sorted(names)

    def _source_files(self) -> list[tuple[str, Path]]:
        if not self.source_dir.is_dir():
            raise IOFailure(f"Source directory {self.source_dir} does not exist.")
        files = [(p.relative_to(self.source_dir).as_posix(), p) for p in self.source_dir.rglob("*") if p.is_file()]
        return sorted(files)

    def create(self, name: str) -> Path:
        path = self._path_for(name)
        with container_lock(path):
            if path.exists():
                raise NameConflict("Container with that name already exists!")
            files = self._source_files()

            def _fill(out: zipfile.ZipFile) -> None:
                for arcname, src in files:
                    out.write(src, arcname=arcname)

            self._atomic_write(path, _fill)
        logging.info("Created container %s with %d file(s)", name, len(files))
        return path

    @contextmanager
    def open_for_mutation(self, name: str) -> Iterator[ContainerArchive]:
        """Yield a handle on an existing container; staged changes are committed on exit.

        The container's lock is held for the whole block. If the block raises,
        the archive on disk is left untouched.
        """
        path = self._path_for(name)
        with container_lock(path):
            if not path.is_file():
                raise NotFound(f"Container '{name}' does not exist.")
            try:
                source = zipfile.ZipFile(path, "r")
            except (OSError, zipfile.BadZipFile) as e:
                raise IOFailure(f"Container '{name}' could not be opened.") from e
            with source:
                archive = ContainerArchive(name, source)
                yield archive
                if archive.dirty:
                    self._atomic_write(path, archive.write_to)
                    logging.debug("Committed changes to container %s", name)

    def _atomic_write(self, path: Path, fill) -> None:
        fd, tmp = tempfile.mkstemp(prefix=".tmp.", suffix=CONTAINER_SUFFIX, dir=self.containers_dir)
        try:
            with os.fdopen(fd, "wb") as fh, zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_DEFLATED) as out:
                fill(out)
            os.replace(tmp, path)
        except (OSError, zipfile.BadZipFile) as e:
            raise IOFailure(f"Failed to write container {path.stem}.") from e
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)


__all__ = ["ArchiveStore", "ContainerArchive", "READ_ERRORS", "container_lock", "is_noise"]
