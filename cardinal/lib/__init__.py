from .hyperloglog import HyperLogLog
from .registers import RegisterBank
from .backends import KeyValueBackend, MemoryBackend, DirectoryBackend
from .store import SketchStore
from .service import CardinalityService
from .config import CardinalConfig

__all__ = [
    'HyperLogLog',
    'RegisterBank',
    'KeyValueBackend',
    'MemoryBackend',
    'DirectoryBackend',
    'SketchStore',
    'CardinalityService',
    'CardinalConfig',
]
