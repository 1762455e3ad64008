"""pymassfem.config
Environment driven runtime switches.

``PYMASSFEM_NUM_THREADS``  limit the numba thread pool used by the per-element kernels.
``PYMASSFEM_DEBUG``        attach a stderr handler at DEBUG level to the ``pymassfem`` logger.
"""
import logging
import os

import numba

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


def env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in _TRUTHY


def configure_threads(n_threads: int = None) -> int:
    """Set the numba thread count from ``n_threads`` or ``PYMASSFEM_NUM_THREADS``.

    Returns the thread count in effect afterwards.
    """
    if n_threads is None:
        raw = os.getenv("PYMASSFEM_NUM_THREADS", "").strip()
        if not raw:
            return numba.get_num_threads()
        try:
            n_threads = int(raw)
        except ValueError:
            raise ValueError(f"PYMASSFEM_NUM_THREADS must be an integer, got {raw!r}") from None
    n_threads = int(n_threads)
    max_threads = numba.config.NUMBA_NUM_THREADS
    if not 1 <= n_threads <= max_threads:
        raise ValueError(f"Thread count must lie in [1, {max_threads}], got {n_threads}")
    numba.set_num_threads(n_threads)
    logger.debug(f"numba thread pool limited to {n_threads} threads.")
    return n_threads


def configure_logging() -> None:
    if not env_flag("PYMASSFEM_DEBUG"):
        return
    root = logging.getLogger("pymassfem")
    if not any(getattr(h, "_pymassfem", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s"))
        handler._pymassfem = True
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)


def configure_from_env() -> None:
    configure_logging()
    if os.getenv("PYMASSFEM_NUM_THREADS"):
        configure_threads()
