# -*- coding: utf-8 -*-
"""
Cooperative cancellation for the progressive search
"""

import threading

from adaptive_compress.exceptions import CompressionCancelledError


class CancellationToken:
    """Flag checked by the engine before every encode"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CompressionCancelledError("Compression was cancelled")
