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

"""Two-pointer merge of sorted streams, reporting what was found on each side."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generator, Generic, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from _typeshed import SupportsDunderLT  # noqa: F401

    from .streams import SortedStream

T = TypeVar("T", bound="SupportsDunderLT")

_LOGGER = logging.getLogger(__name__)


class Direction(Enum):
    """Sort direction of the streams taking part in one merge."""

    ASCENDING = "asc"
    DESCENDING = "desc"

    def behind(self, a: T, b: T) -> bool:
        """Check whether a comes before b in this direction."""
        if self is Direction.ASCENDING:
            return a < b
        return b < a


@dataclass(frozen=True)
class Presence(Generic[T]):
    """Outcome of one merge step, carrying the value found."""

    value: T


class LeftOnly(Presence[T]):
    """The value is present in the left stream only."""


class RightOnly(Presence[T]):
    """The value is present in the right stream only."""


class Both(Presence[T]):
    """The value is present in both streams."""


# Called with (left_exhausted, right_exhausted), True ends the merge right away.
StopPolicy = Callable[[bool, bool], bool]
CombinePolicy = Callable[[Presence[T]], None]


def merge_join(
    left: SortedStream[T], right: SortedStream[T], direction: Direction, stop: StopPolicy
) -> Generator[Presence[T], None, bool]:
    """Walk both streams in lockstep and yield a presence signal per step.

    At most one head value is buffered per side. When one side runs out, the
    stop policy decides whether the merge ends immediately or whether the rest
    of the other side is reported. Input streams are never drained or closed
    on an early stop: a head already pulled from the other side is dropped.

    Duplicated values inside a single stream are not treated specially, each
    equality match consumes exactly one head per side.

    The generator returns True if the stop policy ended the merge early.
    """
    left_head = right_head = None
    has_left = has_right = False

    while True:
        if not has_left:
            left_head, has_left = left.next()
            if not has_left:
                if stop(True, False):
                    _LOGGER.debug("Left stream exhausted, stopping merge early")
                    return True

                if has_right:
                    yield RightOnly(right_head)
                for item in right:
                    yield RightOnly(item)
                return False

        if not has_right:
            right_head, has_right = right.next()
            if not has_right:
                if stop(False, True):
                    _LOGGER.debug("Right stream exhausted, stopping merge early")
                    return True

                yield LeftOnly(left_head)
                for item in left:
                    yield LeftOnly(item)
                return False

        if left_head == right_head:
            yield Both(left_head)
            has_left = has_right = False
        elif direction.behind(left_head, right_head):
            yield LeftOnly(left_head)
            has_left = False
        else:
            yield RightOnly(right_head)
            has_right = False


def iterate(
    left: SortedStream[T],
    right: SortedStream[T],
    direction: Direction,
    combine: CombinePolicy[T],
    stop: StopPolicy,
) -> bool:
    """Run the merge to completion, calling combine for every step.

    Return True if the stop policy ended the merge early.
    """
    signals = merge_join(left, right, direction, stop)
    while True:
        try:
            signal = next(signals)
        except StopIteration as exc:
            return bool(exc.value)
        combine(signal)
