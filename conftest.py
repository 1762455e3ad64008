# conftest.py
import numba
import pytest


@pytest.fixture(autouse=True)
def restore_numba_threads():
    """Undo thread-pool limits set by individual tests."""
    n_threads = numba.get_num_threads()
    yield
    numba.set_num_threads(n_threads)
