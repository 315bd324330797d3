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

"""Tests of stream adapters."""

import threading

import pytest

from thoth.sorted_streams.streams import HandoffStream
from thoth.sorted_streams.streams import IterableStream
from thoth.sorted_streams.streams import SequenceStream
from thoth.sorted_streams.streams import StreamCancelled
from thoth.sorted_streams.streams import StreamClosed
from thoth.sorted_streams.streams import to_list


def _produce(stream, items, errors=None):
    def _run():
        try:
            for item in items:
                stream.push(item)
            stream.close()
        except StreamCancelled as exc:
            if errors is not None:
                errors.append(exc)

    thread = threading.Thread(target=_run, daemon=True)
    thread.start()
    return thread


class TestSequenceStream:
    def test_to_list(self):
        assert to_list(SequenceStream([1, 2, 3])) == [1, 2, 3]

    def test_exhaustion_is_permanent(self):
        stream = SequenceStream([1])
        assert stream.next() == (1, True)
        for _ in range(5):
            assert stream.next() == (None, False)

    def test_reset(self):
        stream = SequenceStream(["a", "b"])
        assert to_list(stream) == ["a", "b"]
        assert to_list(stream) == []
        stream.reset()
        assert to_list(stream) == ["a", "b"]

    def test_partially_read(self):
        stream = SequenceStream([1, 2, 3])
        assert next(stream) == 1
        assert to_list(stream) == [2, 3]


class TestIterableStream:
    def test_generator(self):
        stream = IterableStream(x * 2 for x in range(3))
        assert to_list(stream) == [0, 2, 4]

    def test_no_resurrection(self):
        class Flaky:
            """Iterator which starts producing values again after signalling its end."""

            def __init__(self):
                self.calls = 0

            def __iter__(self):
                return self

            def __next__(self):
                self.calls += 1
                if self.calls == 2:
                    raise StopIteration
                return self.calls

        stream = IterableStream(Flaky())
        assert stream.next() == (1, True)
        assert stream.next() == (None, False)
        assert stream.next() == (None, False)


class TestHandoffStream:
    def test_push_and_read(self):
        stream = HandoffStream()
        thread = _produce(stream, [1, 2, 3])
        assert to_list(stream) == [1, 2, 3]
        thread.join(timeout=5)
        assert not thread.is_alive()

    def test_exhausted_after_close(self):
        stream = HandoffStream()
        stream.close()
        assert stream.closed
        assert stream.next() == (None, False)
        assert stream.next() == (None, False)

    def test_push_after_close(self):
        stream = HandoffStream()
        stream.close()
        with pytest.raises(StreamClosed):
            stream.push(1)

    def test_push_blocks_until_taken(self):
        stream = HandoffStream()
        pushed = threading.Event()

        def _run():
            stream.push(1)
            pushed.set()
            stream.close()

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()

        assert not pushed.wait(timeout=0.1)
        assert stream.next() == (1, True)
        assert pushed.wait(timeout=5)
        assert stream.next() == (None, False)
        thread.join(timeout=5)

    def test_close_with_error(self):
        stream = HandoffStream()
        stream.close(RuntimeError("listing failed"))
        with pytest.raises(RuntimeError, match="listing failed"):
            stream.next()
        assert stream.next() == (None, False)

    def test_cancel_unblocks_producer(self):
        stream = HandoffStream()
        errors = []
        thread = _produce(stream, range(100), errors)

        assert stream.next() == (0, True)
        stream.cancel()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert stream.cancelled
        assert len(errors) == 1
        assert stream.next() == (None, False)

    def test_push_after_cancel(self):
        stream = HandoffStream()
        stream.cancel()
        with pytest.raises(StreamCancelled):
            stream.push(1)
