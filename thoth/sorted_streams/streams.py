# thoth-sorted-streams
# Copyright(C) 2022 Red Hat, Inc.
#
# This program is free software: you can redistribute it and / or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <http://www.gnu.org/licenses/>.

"""Pull-based sorted streams and their adapters.

A stream hands out values one by one in a direction declared by its caller
(ascending or descending). The direction is never verified: feeding unsorted
data into any operation of this package silently gives unspecified results.
"""

from __future__ import annotations

import abc
import logging
import threading
from typing import Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from _typeshed import SupportsDunderLT  # noqa: F401

T = TypeVar("T", bound="SupportsDunderLT")

_LOGGER = logging.getLogger(__name__)

_EXHAUSTED = object()


class StreamError(Exception):
    """Base class for errors raised by handoff streams."""


class StreamClosed(StreamError):
    """Raised when pushing into a stream which was already closed by its producer."""


class StreamCancelled(StreamError):
    """Raised in the producer when the consumer cancelled the stream."""


class SortedStream(Generic[T], metaclass=abc.ABCMeta):
    """A pull-based source of values in a caller-declared sort direction.

    Once a stream reports exhaustion it keeps reporting exhaustion on every
    subsequent call. A stream is meant to be read by a single consumer.
    """

    @abc.abstractmethod
    def next(self) -> Tuple[Optional[T], bool]:
        """Return the next value and whether it is valid; ``(None, False)`` once exhausted."""

    def cancel(self) -> None:
        """Tell a producer behind the stream that no more values will be read.

        Passive streams have no producer and keep their unread values.
        """

    def __iter__(self) -> SortedStream[T]:
        return self

    def __next__(self) -> T:
        item, has_more = self.next()
        if not has_more:
            raise StopIteration
        return item  # type: ignore[return-value]


class SequenceStream(SortedStream[T]):
    """Stream over a fixed in-memory sequence, rewindable with reset()."""

    def __init__(self, values: Sequence[T]) -> None:
        self._values = values
        self._position = 0

    def next(self) -> Tuple[Optional[T], bool]:
        if self._position < len(self._values):
            item = self._values[self._position]
            self._position += 1
            return item, True
        return None, False

    def reset(self) -> None:
        self._position = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._values!r}, position={self._position})"


class IterableStream(SortedStream[T]):
    """Adapt any iterable (a generator, a posting list reader, a listing) to a stream."""

    def __init__(self, iterable: Iterable[T]) -> None:
        self._iterator = iter(iterable)
        self._exhausted = False

    def next(self) -> Tuple[Optional[T], bool]:
        if self._exhausted:
            return None, False

        item = next(self._iterator, _EXHAUSTED)
        if item is _EXHAUSTED:
            self._exhausted = True
            # Drop the reference so a finished generator can be collected.
            self._iterator = iter(())
            return None, False

        return item, True  # type: ignore[return-value]


class HandoffStream(SortedStream[T]):
    """Single-slot synchronous handoff between one producer thread and one consumer.

    The producer calls push() for each value and close() at the end, push()
    blocks until the consumer took the value with next(). This gives a
    backpressure of exactly one in-flight value.

    The consumer may call cancel() to tell the producer it is no longer
    interested: a producer blocked in push() gets StreamCancelled raised, as
    does any later push(). Only one producer and one consumer are supported,
    nothing guards against more.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._item: Optional[T] = None
        self._pending = False
        self._closed = False
        self._cancelled = False
        self._error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, item: T) -> None:
        """Hand the item over to the consumer, block until it is taken."""
        with self._condition:
            if self._cancelled:
                raise StreamCancelled("Stream was cancelled by its consumer")
            if self._closed:
                raise StreamClosed("Cannot push into a closed stream")

            self._item = item
            self._pending = True
            self._condition.notify_all()

            while self._pending and not self._cancelled:
                self._condition.wait()

            if self._pending:
                self._pending = False
                self._item = None
                raise StreamCancelled("Stream was cancelled before the item was taken")

    def close(self, error: Optional[BaseException] = None) -> None:
        """Mark the stream as finished, optionally passing an error to the consumer."""
        with self._condition:
            self._closed = True
            self._error = error
            self._condition.notify_all()

    def cancel(self) -> None:
        """Stop consuming; unblocks the producer if it waits in push()."""
        with self._condition:
            if not self._cancelled:
                _LOGGER.debug("Cancelling handoff stream %r", self)
            self._cancelled = True
            self._condition.notify_all()

    def next(self) -> Tuple[Optional[T], bool]:
        with self._condition:
            while not (self._pending or self._closed or self._cancelled):
                self._condition.wait()

            if self._pending and not self._cancelled:
                item = self._item
                self._item = None
                self._pending = False
                self._condition.notify_all()
                return item, True

            if self._error is not None:
                error, self._error = self._error, None
                raise error

            return None, False


def to_list(stream: Iterable[T]) -> List[T]:
    """Drain the stream, return values in the order they were emitted."""
    return list(stream)
