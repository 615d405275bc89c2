import pytest # type: ignore
from cardinal.lib.backends import MemoryBackend
from cardinal.lib.config import CardinalConfig
from cardinal.lib.service import CardinalityService

def pytest_configure(config):
    """Add markers to the pytest configuration."""
    config.addinivalue_line("markers", "quick: mark test as quick to run")
    config.addinivalue_line("markers", "full: mark test as part of the full test suite")
    config.addinivalue_line("markers", "slow: mark test as very slow to run")

@pytest.fixture
def backend():
    """Fresh in-memory key-value backend."""
    return MemoryBackend()

@pytest.fixture
def service(backend):
    """Cardinality service with default settings over an in-memory backend."""
    return CardinalityService(backend, CardinalConfig())
