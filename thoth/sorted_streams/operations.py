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

"""Lazy set operations on sorted streams."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Tuple, TypeVar, TYPE_CHECKING

from .merge_join import Both, Direction, LeftOnly, merge_join, Presence, StopPolicy
from .metrics import METRIC_EARLY_STOP, METRIC_EMITTED
from .streams import IterableStream, SortedStream

if TYPE_CHECKING:
    from _typeshed import SupportsDunderLT  # noqa: F401

T = TypeVar("T", bound="SupportsDunderLT")

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetOperation:
    """Combine and stop policies of a set operation."""

    name: str
    emit: Callable[[Presence], Tuple]
    stop: StopPolicy


def _emit_any(signal: Presence) -> Tuple:
    return (signal.value,)


def _emit_both(signal: Presence) -> Tuple:
    return (signal.value,) if isinstance(signal, Both) else ()


def _emit_left_only(signal: Presence) -> Tuple:
    return (signal.value,) if isinstance(signal, LeftOnly) else ()


def _never_stop(left_exhausted: bool, right_exhausted: bool) -> bool:
    return False


def _stop_on_any(left_exhausted: bool, right_exhausted: bool) -> bool:
    # No more matches are possible once either side runs out.
    return left_exhausted or right_exhausted


def _stop_on_left(left_exhausted: bool, right_exhausted: bool) -> bool:
    return left_exhausted


UNION = SetOperation("union", _emit_any, _never_stop)
INTERSECT = SetOperation("intersect", _emit_both, _stop_on_any)
DIFF = SetOperation("diff", _emit_left_only, _stop_on_left)

OPERATIONS: Dict[str, SetOperation] = {op.name: op for op in (UNION, INTERSECT, DIFF)}


class OperationStream(IterableStream[T]):
    """Output of a set operation, evaluated step by step as it is read."""

    def __init__(
        self,
        operation: SetOperation,
        left: SortedStream[T],
        right: SortedStream[T],
        direction: Direction,
        *,
        cancel_upstream: bool = True,
    ) -> None:
        super().__init__(_evaluate(operation, left, right, direction, cancel_upstream))
        self.operation = operation
        self.direction = direction
        self._left = left
        self._right = right

    def cancel(self) -> None:
        """Pass the cancellation to the inputs, stopping stages which feed them."""
        self._left.cancel()
        self._right.cancel()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.operation.name!r}, {self.direction.value!r})"


def as_stream(source: Iterable[T]) -> SortedStream[T]:
    """Use the source as a stream, wrapping plain iterables."""
    if isinstance(source, SortedStream):
        return source
    return IterableStream(source)


def _evaluate(
    operation: SetOperation,
    left: SortedStream[T],
    right: SortedStream[T],
    direction: Direction,
    cancel_upstream: bool,
) -> Iterator[T]:
    emitted = 0
    signals = merge_join(left, right, direction, operation.stop)
    try:
        while True:
            try:
                signal = next(signals)
            except StopIteration as exc:
                if exc.value:
                    _LOGGER.debug("Operation %r stopped early", operation.name)
                    METRIC_EARLY_STOP.labels(operation=operation.name).inc()
                return

            for item in operation.emit(signal):
                emitted += 1
                yield item
    finally:
        METRIC_EMITTED.labels(operation=operation.name).inc(emitted)
        if cancel_upstream:
            # Passive inputs ignore this, stages feeding the inputs terminate.
            left.cancel()
            right.cancel()


def apply(
    operation: SetOperation,
    left: Iterable[T],
    right: Iterable[T],
    direction: Direction = Direction.ASCENDING,
    *,
    cancel_upstream: bool = True,
) -> SortedStream[T]:
    """Combine two sorted streams with the given operation, lazily.

    Once the merge returns, inputs are cancelled unless cancel_upstream is
    False, which terminates pipeline stages feeding them. Inputs without a
    producer behind them are left as they are.
    """
    return OperationStream(operation, as_stream(left), as_stream(right), direction, cancel_upstream=cancel_upstream)


def union(
    left: Iterable[T],
    right: Iterable[T],
    direction: Direction = Direction.ASCENDING,
    *,
    cancel_upstream: bool = True,
) -> SortedStream[T]:
    """Stream of values present in left or right, each emitted once per match."""
    return apply(UNION, left, right, direction, cancel_upstream=cancel_upstream)


def intersect(
    left: Iterable[T],
    right: Iterable[T],
    direction: Direction = Direction.ASCENDING,
    *,
    cancel_upstream: bool = True,
) -> SortedStream[T]:
    """Stream of values present in both left and right."""
    return apply(INTERSECT, left, right, direction, cancel_upstream=cancel_upstream)


def diff(
    left: Iterable[T],
    right: Iterable[T],
    direction: Direction = Direction.ASCENDING,
    *,
    cancel_upstream: bool = True,
) -> SortedStream[T]:
    """Stream of values present in left but not in right."""
    return apply(DIFF, left, right, direction, cancel_upstream=cancel_upstream)
