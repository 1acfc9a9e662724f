"""Key-value stores backing lockout state and attempt history.

The engine only needs get/set/delete and a prefix listing for recovery.
Backends raise PersistenceError; the PersistenceAdapter decides what to
do about it.
"""

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import quote, unquote

from pin_lockout.common.exceptions import PersistenceError


class KeyValueStore(ABC):
    """Abstract base class for durable key-value backends.
    
    Implementations must be thread-safe.
    """
    
    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored value, or None if the key is absent.
        
        Raises:
            PersistenceError: If the backend cannot be read
        """
        pass
    
    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store a value, replacing any previous one.
        
        Raises:
            PersistenceError: If the write fails
        """
        pass
    
    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Deleting a missing key is not an error."""
        pass
    
    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with prefix."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and single-process development."""
    
    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()
    
    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)
    
    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)
    
    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
    
    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class FileKeyValueStore(KeyValueStore):
    """One file per key under a directory.
    
    Writes go to a temp file in the same directory and are moved into
    place with os.replace, so a crash never leaves a half-written value.
    """
    
    SUFFIX = ".json"
    
    def __init__(self, directory: Union[str, Path], fsync_on_write: bool = False):
        self.directory = Path(directory)
        self.fsync_on_write = fsync_on_write
        self._lock = threading.Lock()
        
        self.directory.mkdir(parents=True, exist_ok=True)
        try:
            os.chmod(self.directory, 0o700)
        except OSError:
            pass  # Not supported everywhere
    
    def _path_for(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + self.SUFFIX)
    
    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}", key=key)
    
    def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp_")
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(value)
                        if self.fsync_on_write:
                            f.flush()
                            os.fsync(f.fileno())
                    os.replace(tmp_name, path)
                except BaseException:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except OSError as e:
                raise PersistenceError(f"Failed to write {path}: {e}", key=key)
    
    def delete(self, key: str) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise PersistenceError(f"Failed to delete {path}: {e}", key=key)
    
    def keys(self, prefix: str = "") -> List[str]:
        found = []
        for path in self.directory.glob("*" + self.SUFFIX):
            if path.name.startswith(".tmp_"):
                continue
            key = unquote(path.name[: -len(self.SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)
