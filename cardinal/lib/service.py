"""Cardinality service: add, size, union and delete over stored sketches.

Every write runs as load, modify, save under the key's lock, and the save
is a single backend write. If anything fails before the save, nothing is
written.

Example::

    service = CardinalityService(MemoryBackend())
    service.add("visitors", "alice", "bob", "carol")   # 1
    service.add("visitors", "bob")                     # 0
    service.size("visitors")                           # 3
"""
from __future__ import annotations
import logging
from typing import Any, List, Optional
from cardinal.lib.backends import KeyValueBackend
from cardinal.lib.config import CardinalConfig
from cardinal.lib.locks import StripedKeyLock
from cardinal.lib.store import Key, SketchStore, normalize_key

log = logging.getLogger(__name__)


class CardinalityService:
    """HyperLogLog operations against a key-value backend.

    Args:
        backend: Backend the sketches are persisted in
        config: Service settings; defaults to CardinalConfig()
    """

    def __init__(self, backend: KeyValueBackend, config: Optional[CardinalConfig] = None) -> None:
        self.config = config if config is not None else CardinalConfig()
        self.store = SketchStore(backend, self.config)
        self.locks = StripedKeyLock(self.config.lock_stripes, self.config.lock_timeout)

    def add(self, key: Key, *values: Any) -> int:
        """Add values to the sketch stored under key.

        Returns:
            With add_reply "boolean": 1 if any register changed, else 0.
            With add_reply "registers": number of values that raised a register.
            Adding no values to a missing key creates an empty sketch, which
            counts as a change for the boolean reply.
        """
        key = normalize_key(key)
        with self.locks.hold(key):
            if not values:
                if self.store.exists(key):
                    return 0
                self.store.save(key, self.store.new_sketch())
                log.debug("Created empty sketch %r", key)
                return 1 if self.config.add_reply == "boolean" else 0

            sketch = self.store.load(key)
            changed = sketch.add_batch(values)
            if changed:
                self.store.save(key, sketch)
        log.debug("Added %d values to %r, %d raised a register", len(values), key, changed)
        if self.config.add_reply == "boolean":
            return 1 if changed else 0
        return changed

    def size(self, *keys: Key) -> int:
        """Estimated number of distinct values across the given keys.

        Several keys are merged into a transient sketch that is not saved.

        Raises:
            ValueError: If no keys are given
            PrecisionMismatch: If stored sketches differ in precision
        """
        if not keys:
            raise ValueError("size requires at least one key")
        sketches = self.store.load_many(keys)
        merged = sketches[0]
        for other in sketches[1:]:
            merged = merged.union(other)
        count = merged.estimate_cardinality()
        log.debug("Estimated %d distinct values for %s", count, keys)
        return count

    def union(self, destination: Key, *sources: Key) -> None:
        """Store the union of the source sketches under destination.

        The destination is overwritten; it may also be one of the sources.

        Raises:
            ValueError: If no source keys are given
            PrecisionMismatch: If stored sketches differ in precision
        """
        if not sources:
            raise ValueError("union requires at least one source key")
        destination = normalize_key(destination)
        source_keys = [normalize_key(k) for k in sources]
        with self.locks.hold(destination, *source_keys):
            sketches = self.store.load_many(source_keys)
            merged = sketches[0].copy()
            for other in sketches[1:]:
                merged.merge(other)
            self.store.save(destination, merged)
        log.debug("Stored union of %s under %r", source_keys, destination)

    def delete(self, key: Key) -> bool:
        """Remove the sketch under key. Returns True if it existed."""
        key = normalize_key(key)
        with self.locks.hold(key):
            removed = self.store.delete(key)
        log.debug("Deleted %r: %s", key, removed)
        return removed

    def keys(self) -> List[str]:
        return self.store.keys()
