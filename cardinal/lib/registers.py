"""Register bank for HyperLogLog sketches.

A bank is ``2**precision`` small counters held in a numpy uint8 array.
Each counter stores the largest rank seen among hashes whose low
``precision`` bits select it. Ranks are computed over the remaining
``64 - precision`` bits of a 64-bit hash, so the largest possible rank is
``64 - precision + 1``.

Serialized layout::

    [1 byte: precision][payload]

The payload is either one byte per register (``dense``) or six bits per
register (``packed``, four registers in three bytes). The payload lengths
``m`` and ``3m/4`` never coincide, so readers detect the packing from the
length alone.
"""
from __future__ import annotations
from typing import Optional
import numpy as np # type: ignore
from cardinal.lib.errors import PrecisionMismatch, CorruptSketchFormat
from cardinal.lib.hashing import HASH_BITS

MIN_PRECISION = 4
MAX_PRECISION = 18
PACKINGS = ("dense", "packed")


def check_precision(precision: int) -> None:
    """Raise ValueError unless precision is in the supported range."""
    if not isinstance(precision, (int, np.integer)) or isinstance(precision, bool):
        raise TypeError("Precision must be an integer")
    if precision < MIN_PRECISION or precision > MAX_PRECISION:
        raise ValueError(f"Precision must be between {MIN_PRECISION} and {MAX_PRECISION}, got {precision}")


def max_rank(precision: int) -> int:
    """Largest value a register can hold for the given precision."""
    return HASH_BITS - precision + 1


class RegisterBank:
    def __init__(self, precision: int = 14, registers: Optional[np.ndarray] = None):
        """Initialize a register bank.

        Args:
            precision: Number of index bits (4-18); the bank has 2**precision registers
            registers: Optional initial register values, copied into the bank
        """
        check_precision(precision)
        self.precision = int(precision)
        self.num_registers = 1 << self.precision
        self.max_rank = max_rank(self.precision)
        if registers is None:
            self.registers = np.zeros(self.num_registers, dtype=np.uint8)
        else:
            registers = np.asarray(registers)
            if registers.shape != (self.num_registers,):
                raise ValueError(f"Expected {self.num_registers} registers, got shape {registers.shape}")
            if registers.size and (registers.min() < 0 or registers.max() > self.max_rank):
                raise ValueError(f"Register values must be between 0 and {self.max_rank}")
            self.registers = registers.astype(np.uint8, copy=True)

    @classmethod
    def _wrap(cls, precision: int, registers: np.ndarray) -> 'RegisterBank':
        """Adopt an already validated uint8 array without copying."""
        bank = cls.__new__(cls)
        bank.precision = precision
        bank.num_registers = 1 << precision
        bank.max_rank = max_rank(precision)
        bank.registers = registers
        return bank

    def _split(self, hash_val: int):
        """Split a 64-bit hash into (register index, rank)."""
        idx = hash_val & (self.num_registers - 1)
        remainder = hash_val >> self.precision
        width = HASH_BITS - self.precision
        # leading zeros within the remainder's width, plus one
        rank = width - remainder.bit_length() + 1
        return idx, rank

    def update(self, hash_val: int) -> bool:
        """Record a hash in the bank.

        Args:
            hash_val: 64-bit hash of a value

        Returns:
            True if a register was raised, False otherwise
        """
        idx, rank = self._split(hash_val)
        if rank > int(self.registers[idx]):
            self.registers[idx] = rank
            return True
        return False

    def _check_compatible(self, other: 'RegisterBank') -> None:
        if not isinstance(other, RegisterBank):
            raise TypeError("Can only merge with another RegisterBank")
        if self.precision != other.precision:
            raise PrecisionMismatch(self.precision, other.precision)

    def merge(self, other: 'RegisterBank') -> 'RegisterBank':
        """Return a new bank holding the element-wise maximum of both banks.

        Neither operand is modified.

        Raises:
            PrecisionMismatch: If the banks have different precisions
        """
        self._check_compatible(other)
        return self._wrap(self.precision, np.maximum(self.registers, other.registers))

    def merge_into(self, other: 'RegisterBank') -> None:
        """Raise this bank's registers to the element-wise maximum with other.

        Raises:
            PrecisionMismatch: If the banks have different precisions
        """
        self._check_compatible(other)
        np.maximum(self.registers, other.registers, out=self.registers)

    def copy(self) -> 'RegisterBank':
        return RegisterBank(self.precision, self.registers)

    def is_empty(self) -> bool:
        """Check if no register has been set."""
        return not self.registers.any()

    def zero_count(self) -> int:
        """Number of registers still at zero."""
        return int(self.num_registers - np.count_nonzero(self.registers))

    def register_histogram(self) -> np.ndarray:
        """Counts of registers holding each value 0..max_rank."""
        return np.bincount(self.registers, minlength=self.max_rank + 1)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegisterBank):
            return NotImplemented
        return self.precision == other.precision and np.array_equal(self.registers, other.registers)

    def __repr__(self) -> str:
        return f"RegisterBank(precision={self.precision}, nonzero={self.num_registers - self.zero_count()})"

    def to_bytes(self, packing: str = "dense") -> bytes:
        """Serialize the bank as ``[precision][payload]``.

        Args:
            packing: "dense" (one byte per register) or "packed" (six bits per register)
        """
        if packing == "dense":
            payload = self.registers.tobytes()
        elif packing == "packed":
            payload = _pack6(self.registers)
        else:
            raise ValueError(f"Unknown packing: {packing}")
        return bytes([self.precision]) + payload

    @classmethod
    def from_bytes(cls, data: bytes) -> 'RegisterBank':
        """Decode a bank written by to_bytes.

        Raises:
            CorruptSketchFormat: If the bytes fail length or range checks
        """
        if not data:
            raise CorruptSketchFormat("Empty sketch data")
        precision = data[0]
        if precision < MIN_PRECISION or precision > MAX_PRECISION:
            raise CorruptSketchFormat(f"Invalid precision byte {precision}")
        num_registers = 1 << precision
        payload = memoryview(data)[1:]
        if len(payload) == num_registers:
            registers = np.frombuffer(payload, dtype=np.uint8).copy()
        elif len(payload) == num_registers * 3 // 4:
            registers = _unpack6(np.frombuffer(payload, dtype=np.uint8))
        else:
            raise CorruptSketchFormat(
                f"Payload of {len(payload)} bytes does not match precision {precision}")
        if registers.max() > max_rank(precision):
            raise CorruptSketchFormat(
                f"Register value {int(registers.max())} exceeds maximum rank {max_rank(precision)}")
        return cls._wrap(precision, registers)


def _pack6(registers: np.ndarray) -> bytes:
    """Pack registers at six bits each, four registers per three bytes."""
    r = registers.reshape(-1, 4).astype(np.uint32)
    words = r[:, 0] | (r[:, 1] << 6) | (r[:, 2] << 12) | (r[:, 3] << 18)
    out = np.empty((words.shape[0], 3), dtype=np.uint8)
    out[:, 0] = words & 0xFF
    out[:, 1] = (words >> 8) & 0xFF
    out[:, 2] = (words >> 16) & 0xFF
    return out.tobytes()


def _unpack6(payload: np.ndarray) -> np.ndarray:
    """Inverse of _pack6."""
    b = payload.reshape(-1, 3).astype(np.uint32)
    words = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
    out = np.empty((words.shape[0], 4), dtype=np.uint8)
    for i in range(4):
        out[:, i] = (words >> (6 * i)) & 0x3F
    return out.reshape(-1)
