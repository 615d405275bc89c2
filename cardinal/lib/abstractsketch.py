from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Iterable
from cardinal.lib.hashing import hash64, encode_value, ValueEncoder

class AbstractSketch(ABC):
    """Base class for all sketch types."""

    seed: int = 42
    value_encoder: ValueEncoder = staticmethod(encode_value)

    @abstractmethod
    def add_bytes(self, data: bytes) -> bool:
        """Add an encoded value to the sketch.
        
        Returns:
            True if the sketch state changed
        """
        pass

    @abstractmethod
    def add_batch(self, values: Iterable[Any]) -> int:
        """Add multiple values to the sketch.
        
        Args:
            values: Values to add to the sketch
            
        Returns:
            Number of values that changed the sketch state
        """
        pass

    @abstractmethod
    def estimate_cardinality(self) -> int:
        """Estimate the number of distinct values added."""
        pass

    @abstractmethod
    def merge(self, other: 'AbstractSketch') -> None:
        """Merge another sketch into this one."""
        pass

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Serialize the sketch."""
        pass

    def add(self, value: Any) -> bool:
        """Encode a value with the sketch's value encoder and add it."""
        return self.add_bytes(self.value_encoder(value))

    # Instance methods that use the sketch's seed
    def hash_bytes(self, data: bytes) -> int:
        """Hash encoded bytes using the instance's seed.
        
        Args:
            data: Bytes to hash
            
        Returns:
            64-bit hash value as integer
        """
        return hash64(data, seed=self.seed)

    def hash_value(self, value: Any) -> int:
        """Encode then hash a value using the instance's seed."""
        return self.hash_bytes(self.value_encoder(value))
