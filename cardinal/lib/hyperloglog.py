from __future__ import annotations
from typing import Any, Iterable, Optional
from cardinal.lib.abstractsketch import AbstractSketch
from cardinal.lib.registers import RegisterBank
from cardinal.lib.hashing import ValueEncoder
from cardinal.lib import estimator

class HyperLogLog(AbstractSketch):
    def __init__(self,
                 precision: int = 14,
                 seed: Optional[int] = None,
                 bank: Optional[RegisterBank] = None,
                 value_encoder: Optional[ValueEncoder] = None,
                 method: str = "original"):
        """Initialize HyperLogLog sketch.
        
        Args:
            precision: Number of bits for register indexing (4-18).
                      Standard error is about 1.04 / sqrt(2**precision).
            seed: Seed for hashing
            bank: Existing register bank to adopt; its precision wins
            value_encoder: Callable turning values into bytes
            method: Estimator used by estimate_cardinality
        """
        super().__init__()
        if method not in estimator.METHODS:
            raise ValueError(f"Invalid method: {method}")
        if bank is None:
            bank = RegisterBank(precision)
        elif not isinstance(bank, RegisterBank):
            raise TypeError("bank must be a RegisterBank")
        self.bank = bank
        self.precision = bank.precision
        self.num_registers = bank.num_registers
        self.seed = seed if seed is not None else 42
        self.method = method
        if value_encoder is not None:
            self.value_encoder = value_encoder

    @property
    def registers(self):
        return self.bank.registers

    def add_bytes(self, data: bytes) -> bool:
        """Add an encoded value; True if a register was raised."""
        return self.bank.update(self.hash_bytes(data))

    def add_batch(self, values: Iterable[Any]) -> int:
        """Add multiple values to the sketch.
        
        Args:
            values: Values to add to the sketch
            
        Returns:
            Number of values that raised a register
        """
        changed = 0
        for value in values:
            if self.add(value):
                changed += 1
        return changed

    def estimate_cardinality(self, method: Optional[str] = None) -> int:
        """Estimate the cardinality of the multiset."""
        return estimator.estimate(self.bank, method or self.method)

    def _check_mergeable(self, other: 'HyperLogLog') -> None:
        if not isinstance(other, HyperLogLog):
            raise TypeError("Can only merge with another HyperLogLog sketch")
        if self.seed != other.seed:
            raise ValueError("HyperLogLogs must have same seed to be merged")

    def merge(self, other: 'HyperLogLog') -> None:
        """Merge another HLL sketch into this one.
        
        This modifies the current sketch by taking the element-wise maximum of
        its registers with the other sketch's registers.
        
        Args:
            other: Another HyperLogLog sketch to merge into this one
            
        Raises:
            PrecisionMismatch: If the sketches have different precision values
        """
        self._check_mergeable(other)
        self.bank.merge_into(other.bank)

    def union(self, other: 'HyperLogLog') -> 'HyperLogLog':
        """Return a new sketch of both sketches' union; neither is modified."""
        self._check_mergeable(other)
        return self._with_bank(self.bank.merge(other.bank))

    def _with_bank(self, bank: RegisterBank) -> 'HyperLogLog':
        return HyperLogLog(seed=self.seed, bank=bank, value_encoder=self.value_encoder,
                           method=self.method)

    def copy(self) -> 'HyperLogLog':
        return self._with_bank(self.bank.copy())

    def is_empty(self) -> bool:
        """Check if sketch is empty."""
        return self.bank.is_empty()

    def to_bytes(self, packing: str = "dense") -> bytes:
        """Serialize the register bank; the seed is not recorded."""
        return self.bank.to_bytes(packing)

    @classmethod
    def from_bytes(cls, data: bytes, seed: Optional[int] = None, **kwargs) -> 'HyperLogLog':
        """Load a sketch from bytes written by to_bytes.
        
        Raises:
            CorruptSketchFormat: If the data is not a valid sketch
        """
        return cls(seed=seed, bank=RegisterBank.from_bytes(data), **kwargs)

    def __repr__(self) -> str:
        return f"HyperLogLog(precision={self.precision}, seed={self.seed})"
