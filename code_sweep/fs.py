"""File system provider: the only primitives the analyzer and executor use."""

from __future__ import annotations

import abc
import fnmatch
import logging
import os
import shutil
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStat:
    size: int
    mtime: float
    mode: int


class FileSystem(abc.ABC):
    """Primitive file operations used by code-sweep."""

    @abc.abstractmethod
    def iter_files(self, root: Path, skip_dirs: tuple[str, ...] = ()) -> Iterator[Path]:
        """Yield every regular file under ``root``, pruning skipped directory names."""

    @abc.abstractmethod
    def read_bytes(self, path: Path) -> bytes: ...

    @abc.abstractmethod
    def write_bytes(self, path: Path, data: bytes, durable: bool = False) -> None: ...

    @abc.abstractmethod
    def delete(self, path: Path) -> None: ...

    @abc.abstractmethod
    def stat(self, path: Path) -> FileStat: ...

    @abc.abstractmethod
    def exists(self, path: Path) -> bool: ...

    @abc.abstractmethod
    def list_dir(self, path: Path) -> list[Path]:
        """Sorted entries of a directory, empty when it does not exist."""

    @abc.abstractmethod
    def remove_tree(self, path: Path) -> None: ...

    def read_text(self, path: Path) -> str:
        return self.read_bytes(path).decode("utf-8", errors="replace")

    def set_metadata(self, path: Path, mode: int, mtime: float) -> None:
        """Best-effort restore of permissions and modification time."""

    def remove_empty_dirs(self, start: Path, stop: Path) -> list[Path]:
        """Remove ``start`` and its parents while empty, never touching ``stop``."""
        return []


class LocalFileSystem(FileSystem):
    def iter_files(self, root: Path, skip_dirs: tuple[str, ...] = ()) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not any(fnmatch.fnmatch(d, pattern) for pattern in skip_dirs)
                and not os.path.islink(os.path.join(dirpath, d))
            )
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path.is_file():
                    yield path

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def write_bytes(self, path: Path, data: bytes, durable: bool = False) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not durable:
            path.write_bytes(data)
            return
        # Write to a sibling temp file, fsync, then atomically swap in
        tmp = path.with_name(f".{path.name}.tmp")
        with open(tmp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
        self._fsync_dir(path.parent)

    def delete(self, path: Path) -> None:
        path.unlink()

    def stat(self, path: Path) -> FileStat:
        st = path.stat()
        return FileStat(size=st.st_size, mtime=st.st_mtime, mode=st.st_mode & 0o7777)

    def exists(self, path: Path) -> bool:
        return path.exists()

    def list_dir(self, path: Path) -> list[Path]:
        if not path.is_dir():
            return []
        return sorted(path.iterdir())

    def remove_tree(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)

    def set_metadata(self, path: Path, mode: int, mtime: float) -> None:
        try:
            os.chmod(path, mode)
            if mtime:
                os.utime(path, (mtime, mtime))
        except OSError as e:
            logger.debug("Could not restore metadata of %s: %s", path, e)

    def remove_empty_dirs(self, start: Path, stop: Path) -> list[Path]:
        removed: list[Path] = []
        stop = stop.resolve()
        current = start.resolve()
        while current != stop and stop in current.parents:
            try:
                current.rmdir()
            except OSError:
                break
            removed.append(current)
            current = current.parent
        return removed

    @staticmethod
    def _fsync_dir(directory: Path) -> None:
        if os.name != "posix":
            return
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
