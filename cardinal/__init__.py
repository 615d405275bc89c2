"""
cardinal - HyperLogLog Cardinality Estimation over Key-Value Stores
"""

from cardinal.lib.hyperloglog import HyperLogLog
from cardinal.lib.registers import RegisterBank
from cardinal.lib.backends import KeyValueBackend, MemoryBackend, DirectoryBackend
from cardinal.lib.store import SketchStore
from cardinal.lib.service import CardinalityService
from cardinal.lib.config import CardinalConfig
from cardinal.lib.errors import (
    CardinalError,
    PrecisionMismatch,
    BackingStoreError,
    StoreTimeout,
    CorruptSketchFormat,
)

__version__ = '0.1.0'

__all__ = [
    'HyperLogLog',
    'RegisterBank',
    'KeyValueBackend',
    'MemoryBackend',
    'DirectoryBackend',
    'SketchStore',
    'CardinalityService',
    'CardinalConfig',
    'CardinalError',
    'PrecisionMismatch',
    'BackingStoreError',
    'StoreTimeout',
    'CorruptSketchFormat',
]
