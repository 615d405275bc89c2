"""Hash mixing and value encoding.

Every value counted by a sketch is first turned into bytes by a value
encoder and then hashed to 64 bits with xxh64. The register bank only
ever sees the hash.
"""
from __future__ import annotations
import struct
from typing import Any, Callable
import xxhash # type: ignore

ValueEncoder = Callable[[Any], bytes]

HASH_BITS = 64


def hash64(data: bytes, seed: int = 0) -> int:
    """64-bit hash of a byte string.
    
    Args:
        data: Bytes to hash
        seed: Seed for hashing
        
    Returns:
        64-bit hash value as integer
    """
    hasher = xxhash.xxh64(seed=seed)
    hasher.update(data)
    return hasher.intdigest()


def hash32(data: bytes, seed: int = 0) -> int:
    """32-bit hash of a byte string.
    
    Args:
        data: Bytes to hash
        seed: Seed for hashing
        
    Returns:
        32-bit hash value as integer
    """
    hasher = xxhash.xxh32(seed=seed)
    hasher.update(data)
    return hasher.intdigest()


def digest128(data: bytes) -> str:
    """128-bit hex digest of a byte string, used to name stored keys."""
    return xxhash.xxh3_128(data).hexdigest()


def _encode_int(x: int) -> bytes:
    if -(1 << 63) <= x < (1 << 63):
        return x.to_bytes(8, byteorder='little', signed=True)
    length = (x.bit_length() + 8) // 8
    return x.to_bytes(length, byteorder='little', signed=True)


def encode_value(value: Any) -> bytes:
    """Default byte encoding for counted values.
    
    Args:
        value: str, bytes-like, int, float, or any object defining __bytes__
        
    Returns:
        Deterministic byte encoding of the value
        
    Raises:
        TypeError: If the value has no byte encoding
    """
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode('utf-8')
    if isinstance(value, int):
        return _encode_int(int(value))
    if isinstance(value, float):
        return struct.pack('<d', value)
    if hasattr(value, '__bytes__'):
        return bytes(value)
    raise TypeError(f"Cannot encode value of type {type(value).__name__} to bytes")
