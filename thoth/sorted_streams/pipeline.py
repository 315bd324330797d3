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

"""Set operations running as concurrent pipeline stages.

Each stage runs its merge in a background thread and hands results over
through a single-slot handoff stream, so a stage never runs more than one
value ahead of its consumer. When a stage finishes, including an early stop,
it cancels its inputs, so upstream stages, also those behind lazy operations,
terminate instead of waiting forever for a reader. Passive inputs ignore
cancellation and keep their unread values.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Tuple, TypeVar, TYPE_CHECKING

from .merge_join import Direction, iterate, Presence
from .metrics import METRIC_EARLY_STOP, METRIC_EMITTED
from .operations import as_stream, OPERATIONS, SetOperation
from .streams import HandoffStream, SortedStream, StreamCancelled

if TYPE_CHECKING:
    from _typeshed import SupportsDunderLT  # noqa: F401

T = TypeVar("T", bound="SupportsDunderLT")

_LOGGER = logging.getLogger(__name__)


class PipelineStage(SortedStream[T]):
    """A set operation evaluated by its own thread, readable as a stream.

    The thread starts immediately on construction. Inputs are read by this
    stage only, reading them from elsewhere at the same time is not supported.
    """

    def __init__(
        self,
        operation: SetOperation,
        left: Iterable[T],
        right: Iterable[T],
        direction: Direction = Direction.ASCENDING,
        *,
        cancel_upstream: bool = True,
    ) -> None:
        self.operation = operation
        self.direction = direction
        self._left = as_stream(left)
        self._right = as_stream(right)
        self._cancel_upstream = cancel_upstream
        self._output: HandoffStream[T] = HandoffStream()
        self._emitted = 0
        self._thread = threading.Thread(target=self._run, name=f"sorted-streams-{operation.name}", daemon=True)
        self._thread.start()

    def _push(self, signal: Presence) -> None:
        for item in self.operation.emit(signal):
            self._output.push(item)
            self._emitted += 1

    def _run(self) -> None:
        error: Optional[BaseException] = None
        try:
            if iterate(self._left, self._right, self.direction, self._push, self.operation.stop):
                _LOGGER.debug("Stage %r stopped early", self)
                METRIC_EARLY_STOP.labels(operation=self.operation.name).inc()
        except StreamCancelled:
            _LOGGER.debug("Stage %r was cancelled by its consumer", self)
        except Exception as exc:
            _LOGGER.debug("Stage %r failed, passing the error to its consumer", self, exc_info=True)
            error = exc
        finally:
            METRIC_EMITTED.labels(operation=self.operation.name).inc(self._emitted)
            self._output.close(error)
            if self._cancel_upstream:
                self._left.cancel()
                self._right.cancel()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def next(self) -> Tuple[Optional[T], bool]:
        return self._output.next()

    def cancel(self) -> None:
        """Stop reading from this stage, its thread ends at the next value it produces."""
        self._output.cancel()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the stage thread to finish, return False on timeout."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.operation.name!r}, {self.direction.value!r})"


def stage(
    name: str,
    left: Iterable[T],
    right: Iterable[T],
    direction: Direction = Direction.ASCENDING,
    *,
    cancel_upstream: bool = True,
) -> PipelineStage[T]:
    """Start a pipeline stage of the set operation with the given name."""
    try:
        operation = OPERATIONS[name]
    except KeyError:
        raise ValueError(f"Unknown set operation {name!r}, expected one of {sorted(OPERATIONS)}") from None

    return PipelineStage(operation, left, right, direction, cancel_upstream=cancel_upstream)
