"""
Lending book dependency for API routes
"""

from typing import Optional
import threading

from ..system import LendingBook


# Global lending book instance, built from configuration on first use
lending_book: Optional[LendingBook] = None
_lock = threading.Lock()


def get_lending_book() -> LendingBook:
    global lending_book
    with _lock:
        if lending_book is None:
            lending_book = LendingBook.from_config()
    return lending_book
