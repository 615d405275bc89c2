"""Exception types raised by cardinal."""


class CardinalError(Exception):
    """Base class for all cardinal errors."""


class PrecisionMismatch(CardinalError, ValueError):
    """Raised when combining register banks of different precision."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Cannot merge sketches with different precisions ({left} vs {right})")
        self.left = left
        self.right = right


class BackingStoreError(CardinalError):
    """Raised when the key-value backend fails to read or write."""


class StoreTimeout(BackingStoreError):
    """Raised when exclusive access to a key could not be obtained in time."""


class CorruptSketchFormat(CardinalError, ValueError):
    """Raised when stored bytes do not decode to a valid sketch."""
