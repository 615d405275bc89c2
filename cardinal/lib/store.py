"""Sketch store: external keys to persisted HyperLogLog sketches."""
from __future__ import annotations
import logging
from typing import List, Optional, Sequence, Union
from cardinal.lib.backends import KeyValueBackend
from cardinal.lib.config import CardinalConfig
from cardinal.lib.errors import BackingStoreError, CardinalError, CorruptSketchFormat
from cardinal.lib.hyperloglog import HyperLogLog

log = logging.getLogger(__name__)

Key = Union[str, bytes]


def normalize_key(key: Key) -> str:
    """Turn a str or UTF-8 bytes key into a str."""
    if isinstance(key, str):
        return key
    if isinstance(key, (bytes, bytearray)):
        try:
            return bytes(key).decode("utf-8")
        except UnicodeDecodeError as e:
            raise TypeError(f"Key bytes are not valid UTF-8: {key!r}") from e
    raise TypeError(f"Keys must be str or bytes, not {type(key).__name__}")


class SketchStore:
    """Loads and saves sketches through a key-value backend.

    Args:
        backend: Backend holding the serialized sketches
        config: Precision, seed, packing and key prefix to use
    """

    def __init__(self, backend: KeyValueBackend, config: Optional[CardinalConfig] = None) -> None:
        if not isinstance(backend, KeyValueBackend):
            raise TypeError("backend must be a KeyValueBackend")
        self.backend = backend
        self.config = config if config is not None else CardinalConfig()

    def _backend_key(self, key: Key) -> str:
        return self.config.key_prefix + normalize_key(key)

    def _call(self, what: str, func, *args):
        try:
            return func(*args)
        except CardinalError:
            raise
        except Exception as e:
            log.warning("Backend failed to %s: %s", what, e)
            raise BackingStoreError(f"Backend failed to {what}: {e}") from e

    def new_sketch(self, precision: Optional[int] = None) -> HyperLogLog:
        """Empty sketch with the configured settings."""
        return HyperLogLog(precision=precision or self.config.precision,
                           seed=self.config.seed,
                           value_encoder=self.config.value_encoder,
                           method=self.config.estimator)

    def load(self, key: Key) -> HyperLogLog:
        """Load the sketch for key; an empty sketch if the key is absent.

        Raises:
            BackingStoreError: If the backend read fails
            CorruptSketchFormat: If the stored bytes are not a sketch
        """
        backend_key = self._backend_key(key)
        data = self._call(f"read {backend_key!r}", self.backend.get_bytes, backend_key)
        if data is None:
            return self.new_sketch()
        try:
            return HyperLogLog.from_bytes(data, seed=self.config.seed,
                                          value_encoder=self.config.value_encoder,
                                          method=self.config.estimator)
        except CorruptSketchFormat as e:
            log.warning("Corrupt sketch stored under %r: %s", backend_key, e)
            raise CorruptSketchFormat(f"Corrupt sketch under key {backend_key!r}: {e}") from e

    def load_many(self, keys: Sequence[Key]) -> List[HyperLogLog]:
        return [self.load(k) for k in keys]

    def save(self, key: Key, sketch: HyperLogLog) -> None:
        """Overwrite the sketch stored under key in a single backend write."""
        if not isinstance(sketch, HyperLogLog):
            raise TypeError("Can only save HyperLogLog sketches")
        backend_key = self._backend_key(key)
        data = sketch.to_bytes(self.config.packing)
        self._call(f"write {backend_key!r}", self.backend.set_bytes, backend_key, data)
        log.debug("Saved %d-byte sketch under %r", len(data), backend_key)

    def delete(self, key: Key) -> bool:
        backend_key = self._backend_key(key)
        return bool(self._call(f"delete {backend_key!r}", self.backend.delete_key, backend_key))

    def exists(self, key: Key) -> bool:
        backend_key = self._backend_key(key)
        return self._call(f"read {backend_key!r}", self.backend.get_bytes, backend_key) is not None

    def keys(self) -> List[str]:
        """Sketch keys under the configured prefix, prefix removed."""
        prefix = self.config.key_prefix
        found = self._call("list keys", self.backend.keys, prefix)
        return [k[len(prefix):] for k in found]
