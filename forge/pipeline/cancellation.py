"""
Cancellation plumbing between OS signals and worker supervision.

The supervisor only ever sees a CancellationToken. forward_signals() is the thin
platform layer that turns SIGINT/SIGTERM into token.cancel(signum) for the
duration of a with-block and restores the previous handlers afterwards.
"""
import signal
import threading
from contextlib import contextmanager
from typing import Callable, List, Optional, Sequence

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    def __init__(self):
        self._lock = threading.RLock()
        self._signum: Optional[int] = None
        self._callbacks: List[Callable[[int], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._signum is not None

    @property
    def signum(self) -> Optional[int]:
        return self._signum

    def cancel(self, signum: int = signal.SIGTERM) -> None:
        with self._lock:
            self._signum = signum
            callbacks = list(self._callbacks)
        # Every cancel reaches every observer, so a second Ctrl-C is forwarded too.
        for callback in callbacks:
            callback(signum)

    def register(self, callback: Callable[[int], None]) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def unregister():
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister


@contextmanager
def forward_signals(token: CancellationToken, signals: Sequence[int] = DEFAULT_SIGNALS):
    """Route the given signals to token.cancel() inside the block."""
    # signal.signal() is only legal on the main thread; elsewhere the token is still
    # usable through explicit cancel() calls.
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum, frame):
        token.cancel(signum)

    previous = {}
    try:
        for sig in signals:
            previous[sig] = signal.getsignal(sig)
            signal.signal(sig, _handler)
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
