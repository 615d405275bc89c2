from __future__ import annotations
import warnings
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional
from cardinal.lib.hashing import ValueEncoder, encode_value
from cardinal.lib.registers import check_precision, PACKINGS
from cardinal.lib.estimator import METHODS

ADD_REPLIES = ("boolean", "registers")

# Above this precision a dense sketch is larger than 64 KiB
RECOMMENDED_MAX_PRECISION = 16


@dataclass
class CardinalConfig:
    """Settings shared by a cardinality service and its sketch store.

    Attributes:
        precision: Precision for newly created sketches (4-18)
        seed: Hash seed; every writer of one store must use the same seed
        add_reply: "boolean" makes add return 1 if any register changed, else 0;
                   "registers" makes it return how many values raised a register
        packing: "dense" (one byte per register) or "packed" (six bits per register)
        estimator: "original" or "ertl_improved"
        key_prefix: Prefix applied to every backend key
        lock_stripes: Number of per-key lock stripes (power of 2)
        lock_timeout: Seconds to wait for a key lock, None to wait forever
        value_encoder: Callable turning values into bytes
    """
    precision: int = 14
    seed: int = 42
    add_reply: str = "boolean"
    packing: str = "dense"
    estimator: str = "original"
    key_prefix: str = ""
    lock_stripes: int = 16
    lock_timeout: Optional[float] = None
    value_encoder: ValueEncoder = field(default=encode_value, repr=False, compare=False)

    def __post_init__(self) -> None:
        check_precision(self.precision)
        if self.precision > RECOMMENDED_MAX_PRECISION:
            warnings.warn(f"Precision {self.precision} is above the recommended maximum "
                          f"({RECOMMENDED_MAX_PRECISION}); each sketch uses {1 << self.precision} registers",
                          UserWarning)
        if not isinstance(self.seed, int) or self.seed < 0:
            raise ValueError("seed must be a non-negative integer")
        if self.add_reply not in ADD_REPLIES:
            raise ValueError(f"add_reply must be one of {ADD_REPLIES}, got {self.add_reply!r}")
        if self.packing not in PACKINGS:
            raise ValueError(f"packing must be one of {PACKINGS}, got {self.packing!r}")
        if self.estimator not in METHODS:
            raise ValueError(f"estimator must be one of {METHODS}, got {self.estimator!r}")
        if not isinstance(self.key_prefix, str):
            raise ValueError("key_prefix must be a string")
        if self.lock_stripes <= 0 or (self.lock_stripes & (self.lock_stripes - 1)) != 0:
            raise ValueError("lock_stripes must be a positive power of 2")
        if self.lock_timeout is not None and self.lock_timeout < 0:
            raise ValueError("lock_timeout must be non-negative")
        if not callable(self.value_encoder):
            raise ValueError("value_encoder must be callable")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CardinalConfig':
        """Build a config from a mapping, ignoring unknown keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "value_encoder"}
