"""
Graceful-stop signal handling for long-running crawls.

SIGINT and SIGTERM are routed to a stop callback on the running event
loop instead of killing the process, so the in-flight import can finish
and crawl state gets saved.
"""

import asyncio
import logging
import signal
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def stop_on_signals(
    on_stop: Callable[[], None],
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Iterator[list[signal.Signals]]:
    """Call ``on_stop`` on SIGINT/SIGTERM while the block runs.

    Yields the signals that were actually hooked. Handlers are removed on
    exit, restoring the default behaviour.
    """
    loop = loop or asyncio.get_running_loop()
    installed = []
    for sig in STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, on_stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not on the main thread, or no signal support (Windows)
            logger.debug(f"Cannot hook {sig.name}; it will not stop gracefully")
    try:
        yield installed
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
