"""Unique key generators: time-based number sequences and UUIDs."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Protocol, TypeVar, runtime_checkable

__all__ = [
    "NUMBER_SEQUENCE_BIT_SHIFT",
    "NUMBER_SEQUENCE_SEQUENCE_NUMBER_MASK",
    "NUMBER_SEQUENCE_TIMESTAMP_MASK",
    "NumberSequence",
    "SequenceOverflowError",
    "UUIDGenerator",
    "UniqueKeyGenerator",
]

NUMBER_SEQUENCE_TIMESTAMP_MASK = 0xFFFFFFFFFF000000
NUMBER_SEQUENCE_BIT_SHIFT = 24
NUMBER_SEQUENCE_SEQUENCE_NUMBER_MASK = 0x0000000000FFFFFF

_UINT64_MASK = (1 << 64) - 1

T_co = TypeVar("T_co", covariant=True)


class SequenceOverflowError(RuntimeError):
    """Raised when more ids are requested within one second than fit in the sequence part."""


@runtime_checkable
class UniqueKeyGenerator(Protocol[T_co]):
    """Anything that hands out a fresh unique key on every call to ``next``."""

    def next(self) -> T_co:
        """Return the next unique key."""
        ...


class NumberSequence:
    """Thread-safe 64-bit ids: Unix seconds in the top 40 bits, a counter in the low 24."""

    def __init__(self, clock: Callable[[], float] = time.time, last_id: int = 0) -> None:
        self._clock = clock
        self._last_id = last_id & _UINT64_MASK
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next id, raising SequenceOverflowError when the second is exhausted."""
        with self._lock:
            next_id = (int(self._clock()) << NUMBER_SEQUENCE_BIT_SHIFT) & _UINT64_MASK
            same_second = (
                self._last_id & NUMBER_SEQUENCE_TIMESTAMP_MASK
                == next_id & NUMBER_SEQUENCE_TIMESTAMP_MASK
            )
            if same_second:
                sequence = self._last_id & NUMBER_SEQUENCE_SEQUENCE_NUMBER_MASK
                if sequence == NUMBER_SEQUENCE_SEQUENCE_NUMBER_MASK:
                    raise SequenceOverflowError("sequence number overflow")
                next_id = self._last_id + 1
            self._last_id = next_id
            return next_id

    def timestamp(self, ns: int) -> int:
        """Return the Unix seconds encoded in an id."""
        return ns >> NUMBER_SEQUENCE_BIT_SHIFT

    def sequence_number(self, ns: int) -> int:
        """Return the per-second counter encoded in an id."""
        return ns & NUMBER_SEQUENCE_SEQUENCE_NUMBER_MASK


class UUIDGenerator:
    """Hands out random (version 4) UUIDs."""

    def next(self) -> uuid.UUID:
        """Return a new random UUID."""
        return uuid.uuid4()