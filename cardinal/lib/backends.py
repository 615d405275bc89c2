"""Key-value backends that sketches are persisted into.

A backend only moves opaque bytes: get bytes for a key, set bytes for a
key, delete a key and list keys. Sketch encoding lives in the store.
"""
from __future__ import annotations
import logging
import os
import struct
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from cardinal.lib.errors import BackingStoreError
from cardinal.lib.hashing import digest128

log = logging.getLogger(__name__)


class KeyValueBackend(ABC):
    """Interface every backing store implements."""

    @abstractmethod
    def get_bytes(self, key: str) -> Optional[bytes]:
        """Return the bytes stored under key, or None if absent."""
        pass

    @abstractmethod
    def set_bytes(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete_key(self, key: str) -> bool:
        """Remove key. Returns True if it existed."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """All keys starting with prefix, sorted."""
        pass


class MemoryBackend(KeyValueBackend):
    """Process-local backend, one dict behind a lock."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get_bytes(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set_bytes(self, key: str, value: bytes) -> None:
        value = bytes(value)
        with self._lock:
            self._data[key] = value

    def delete_key(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class DirectoryBackend(KeyValueBackend):
    """One file per key under a root directory.

    File names are the hex encoding of the UTF-8 key so any key is a valid
    name. Keys too long for that are stored under a 128-bit digest of the
    key instead, and the key itself is kept in a length-prefixed header at
    the start of the file. Writes land in a temporary file that is then
    renamed over the target, so a reader sees either the old or the new
    value.
    """

    SUFFIX = ".hll"
    DIGEST_SUFFIX = ".hlk"
    # Longest file name most filesystems accept
    NAME_MAX = 255

    def __init__(self, root: str) -> None:
        self.root = os.fspath(root)
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise BackingStoreError(f"Cannot create store directory {self.root}: {e}") from e

    def _path(self, key: str) -> str:
        raw = key.encode("utf-8")
        name = raw.hex() + self.SUFFIX
        if len(name) > self.NAME_MAX:
            name = digest128(raw) + self.DIGEST_SUFFIX
        return os.path.join(self.root, name)

    def _is_digest_path(self, path: str) -> bool:
        return path.endswith(self.DIGEST_SUFFIX)

    @staticmethod
    def _key_header(key: str) -> bytes:
        raw = key.encode("utf-8")
        return struct.pack(">I", len(raw)) + raw

    @staticmethod
    def _split_key_header(data: bytes, path: str) -> Tuple[str, bytes]:
        """Split a digest-named file into its stored key and value."""
        if len(data) < 4:
            raise BackingStoreError(f"Truncated key header in {path}")
        (length,) = struct.unpack(">I", data[:4])
        if len(data) < 4 + length:
            raise BackingStoreError(f"Truncated key header in {path}")
        try:
            key = data[4:4 + length].decode("utf-8")
        except UnicodeDecodeError as e:
            raise BackingStoreError(f"Unreadable key header in {path}") from e
        return key, data[4 + length:]

    def get_bytes(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackingStoreError(f"Cannot read key {key!r}: {e}") from e
        if not self._is_digest_path(path):
            return data
        stored_key, value = self._split_key_header(data, path)
        if stored_key != key:
            raise BackingStoreError(f"File {path} holds key {stored_key!r}, not {key!r}")
        return value

    def set_bytes(self, key: str, value: bytes) -> None:
        path = self._path(key)
        if self._is_digest_path(path):
            value = self._key_header(key) + bytes(value)
        fd, tmp_path = None, None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                fd = None
                f.write(value)
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as e:
            raise BackingStoreError(f"Cannot write key {key!r}: {e}") from e
        finally:
            if fd is not None:
                os.close(fd)
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    def delete_key(self, key: str) -> bool:
        try:
            os.unlink(self._path(key))
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise BackingStoreError(f"Cannot delete key {key!r}: {e}") from e

    def _read_stored_key(self, name: str) -> Optional[str]:
        path = os.path.join(self.root, name)
        try:
            with open(path, "rb") as f:
                head = f.read(4)
                if len(head) < 4:
                    raise BackingStoreError(f"Truncated key header in {path}")
                (length,) = struct.unpack(">I", head)
                data = head + f.read(length)
        except FileNotFoundError:
            # deleted since the directory was listed
            return None
        except OSError as e:
            raise BackingStoreError(f"Cannot read {path}: {e}") from e
        key, _ = self._split_key_header(data, path)
        return key

    def keys(self, prefix: str = "") -> List[str]:
        try:
            names = os.listdir(self.root)
        except OSError as e:
            raise BackingStoreError(f"Cannot list store directory {self.root}: {e}") from e
        found = []
        for name in names:
            if name.endswith(self.SUFFIX):
                try:
                    key = bytes.fromhex(name[:-len(self.SUFFIX)]).decode("utf-8")
                except ValueError:
                    log.warning("Skipping unrecognised file %s in %s", name, self.root)
                    continue
            elif name.endswith(self.DIGEST_SUFFIX):
                try:
                    key = self._read_stored_key(name)
                except BackingStoreError as e:
                    log.warning("Skipping unreadable file %s in %s: %s", name, self.root, e)
                    continue
                if key is None:
                    continue
            else:
                continue
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)
