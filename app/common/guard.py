"""In-flight markers for actions that must not run twice at once."""

import threading
from contextlib import contextmanager
from typing import Generator, Hashable, Set

from fastapi import HTTPException, status

_in_flight: Set[Hashable] = set()
_lock = threading.Lock()  # only guards the set itself


@contextmanager
def single_flight(key: Hashable, detail: str = "This operation is already in progress.") -> Generator[None, None, None]:
    """
    Mark `key` as running for the duration of the block.

    A second caller with the same key gets a 409 instead of waiting.
    """
    with _lock:
        if key in _in_flight:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
        _in_flight.add(key)
    try:
        yield
    finally:
        with _lock:
            _in_flight.discard(key)


def clear_in_flight() -> None:
    with _lock:
        _in_flight.clear()
