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

"""Sorted sources living outside of the process: S3 listings and plain files."""

from __future__ import annotations

import logging
import re
from typing import Callable, cast, Iterator, Tuple, TypeVar, TYPE_CHECKING

from .streams import IterableStream

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client

T = TypeVar("T")

_LOGGER = logging.getLogger(__name__)

_S3_URI_RE = re.compile(r"s3://([^/]*)/(.*)")


class SourceFormatError(ValueError):
    """A line of a file source cannot be converted to the requested value type."""


def parse_s3_uri(value: str) -> Tuple[str, str]:
    """Split s3://bucket/prefix into bucket and prefix."""
    _match = _S3_URI_RE.match(value)
    if not (_match and len(_match.groups()) == 2):
        raise ValueError(f"S3 uri is badly formatted: {value!r}")

    return cast(Tuple[str, str], _match.groups())


def s3_keys(client: S3Client, bucket: str, prefix: str) -> Iterator[str]:
    """List object keys under the prefix, relative to it.

    S3 lists keys in ascending UTF-8 binary order, which matches ordering of
    Python strings, so the result is an ascending stream. Pages are fetched
    only when needed.
    """
    paginator = client.get_paginator("list_objects_v2")
    location = f"{client.meta.endpoint_url}, bucket: '{bucket}', prefix: '{prefix}'"
    _LOGGER.debug("Listing objects at %s", location)
    for page_no, page in enumerate(paginator.paginate(Bucket=bucket, Prefix=prefix)):
        contents = page.get("Contents")
        if contents is not None:
            yield from (x["Key"][len(prefix) :] for x in contents if not x["Key"].endswith(".request"))
        elif page_no == 0:
            _LOGGER.info("No objects at %s", location)


class S3KeyStream(IterableStream[str]):
    """Ascending stream of object keys stored under an S3 prefix."""

    def __init__(self, client: S3Client, bucket: str, prefix: str) -> None:
        super().__init__(s3_keys(client, bucket, prefix))
        self.bucket = bucket
        self.prefix = prefix

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(bucket={self.bucket!r}, prefix={self.prefix!r})"


def lines(path: str, convert: Callable[[str], T]) -> Iterator[T]:
    """Read one value per line of a text file, skipping blank lines."""
    with open(path) as input_file:
        for line_no, line in enumerate(input_file, start=1):
            line = line.strip()
            if not line:
                continue

            try:
                value = convert(line)
            except ValueError as exc:
                raise SourceFormatError(f"{path}:{line_no}: cannot read {line!r}: {exc}") from exc

            yield value
