"""
=============================================================================
FILESYSTEM ABSTRACTION
=============================================================================

CrudHandler and MarkdownHandler never touch os or pathlib directly. They
go through a FileSystem, so tests can hand them an InMemoryFileSystem and
check behavior without a temp directory:

    ┌──────────────────┐        ┌──────────────────────┐
    │   CrudHandler    │ ─────► │      FileSystem      │
    │ MarkdownHandler  │        ├──────────┬───────────┤
    └──────────────────┘        │   Real   │ InMemory  │
                                │ (disk)   │ (dicts)   │
                                └──────────┴───────────┘

Paths are plain strings. Failures are reported through return values
(None, False, []) rather than exceptions; the handlers turn them into
404 / 500 responses.

One FileSystem instance is shared by every handler the registry builds,
so implementations must be safe to call from several worker threads.

=============================================================================
"""

import logging
import os
import posixpath
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Set


logger = logging.getLogger(__name__)


class FileSystem(ABC):
    """Operations the filesystem-backed handlers need."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """True for an existing file or directory."""

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """True for an existing directory."""

    @abstractmethod
    def read(self, path: str) -> Optional[bytes]:
        """File contents, or None if missing or unreadable."""

    @abstractmethod
    def write(self, path: str, data: bytes) -> bool:
        """Create or replace a file. False on failure."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove a file. False if it was missing or could not be removed."""

    @abstractmethod
    def mkdir(self, path: str) -> bool:
        """Create a directory and its parents. True if it exists afterwards."""

    @abstractmethod
    def list(self, path: str) -> List[str]:
        """Names of the regular files directly inside a directory."""

    @abstractmethod
    def list_dirs(self, path: str) -> List[str]:
        """Names of the subdirectories directly inside a directory."""

    @abstractmethod
    def mtime(self, path: str) -> Optional[float]:
        """Modification time as a POSIX timestamp, or None if missing."""

    @abstractmethod
    def size(self, path: str) -> Optional[int]:
        """File size in bytes, or None if missing."""

    @abstractmethod
    def resolve(self, path: str) -> str:
        """
        Canonical form of a path, used for containment checks.

        ".." components are collapsed; the real filesystem also follows
        symlinks.
        """

    def is_within(self, path: str, root: str) -> bool:
        """
        Whether path, once resolved, is root or lies beneath it.

        Compared component-wise: "/srv/docs-private" is not within
        "/srv/docs".
        """
        resolved = self.resolve(path)
        resolved_root = self.resolve(root)
        if resolved == resolved_root:
            return True
        return resolved.startswith(resolved_root.rstrip("/") + "/")


class RealFileSystem(FileSystem):
    """FileSystem backed by the local disk."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def read(self, path: str) -> Optional[bytes]:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            logger.debug(f"Read failed for {path}: {e}")
            return None

    def write(self, path: str, data: bytes) -> bool:
        try:
            Path(path).write_bytes(data)
            return True
        except OSError as e:
            logger.error(f"Write failed for {path}: {e}")
            return False

    def delete(self, path: str) -> bool:
        try:
            os.remove(path)
            return True
        except OSError as e:
            logger.error(f"Delete failed for {path}: {e}")
            return False

    def mkdir(self, path: str) -> bool:
        try:
            os.makedirs(path, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Could not create directory {path}: {e}")
            return False

    def list(self, path: str) -> List[str]:
        try:
            with os.scandir(path) as entries:
                return [e.name for e in entries if e.is_file()]
        except OSError:
            return []

    def list_dirs(self, path: str) -> List[str]:
        try:
            with os.scandir(path) as entries:
                return [e.name for e in entries if e.is_dir()]
        except OSError:
            return []

    def mtime(self, path: str) -> Optional[float]:
        try:
            return os.stat(path).st_mtime
        except OSError:
            return None

    def size(self, path: str) -> Optional[int]:
        try:
            return os.stat(path).st_size
        except OSError:
            return None

    def resolve(self, path: str) -> str:
        return os.path.realpath(path)


class InMemoryFileSystem(FileSystem):
    """
    FileSystem held in two dicts, for tests.

        files:       path → contents
        directories: path → names of the files written into it

    Paths are normalized POSIX strings; "data/books/1" and
    "data/books/./1" are the same file. write() registers the file with
    its parent directory (creating the directory entry if needed), and
    delete() unregisters it. Subdirectories are derived from the
    directory keys.
    """

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.directories: Dict[str, Set[str]] = {}
        self.mtimes: Dict[str, float] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _norm(path: str) -> str:
        return posixpath.normpath(path) if path else path

    def exists(self, path: str) -> bool:
        path = self._norm(path)
        with self._lock:
            return path in self.files or path in self.directories

    def is_dir(self, path: str) -> bool:
        with self._lock:
            return self._norm(path) in self.directories

    def read(self, path: str) -> Optional[bytes]:
        with self._lock:
            return self.files.get(self._norm(path))

    def write(self, path: str, data: bytes) -> bool:
        path = self._norm(path)
        with self._lock:
            self.files[path] = bytes(data)
            self.mtimes[path] = time.time()
            parent, name = posixpath.split(path)
            if parent:
                self.directories.setdefault(parent, set()).add(name)
        return True

    def delete(self, path: str) -> bool:
        path = self._norm(path)
        with self._lock:
            if path not in self.files:
                return False
            del self.files[path]
            self.mtimes.pop(path, None)
            parent, name = posixpath.split(path)
            self.directories.get(parent, set()).discard(name)
        return True

    def mkdir(self, path: str) -> bool:
        path = self._norm(path)
        with self._lock:
            while path and path not in self.directories:
                self.directories[path] = set()
                self.mtimes[path] = time.time()
                parent = posixpath.dirname(path)
                if parent == path:
                    break
                path = parent
        return True

    def list(self, path: str) -> List[str]:
        with self._lock:
            return list(self.directories.get(self._norm(path), ()))

    def list_dirs(self, path: str) -> List[str]:
        path = self._norm(path)
        with self._lock:
            return [
                posixpath.basename(d)
                for d in self.directories
                if d != path and posixpath.dirname(d) == path
            ]

    def mtime(self, path: str) -> Optional[float]:
        with self._lock:
            return self.mtimes.get(self._norm(path))

    def size(self, path: str) -> Optional[int]:
        with self._lock:
            data = self.files.get(self._norm(path))
        return None if data is None else len(data)

    def resolve(self, path: str) -> str:
        return self._norm(path)
