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

"""Tests of external sorted sources."""

import boto3
import pytest
from botocore.stub import Stubber

from thoth.sorted_streams.operations import diff
from thoth.sorted_streams.sources import lines
from thoth.sorted_streams.sources import parse_s3_uri
from thoth.sorted_streams.sources import S3KeyStream
from thoth.sorted_streams.sources import SourceFormatError
from thoth.sorted_streams.sources import s3_keys
from thoth.sorted_streams.streams import to_list


@pytest.fixture
def s3():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def _page(keys, token=None):
    page = {"IsTruncated": token is not None, "KeyCount": len(keys)}
    if keys:
        page["Contents"] = [{"Key": key} for key in keys]
    if token is not None:
        page["NextContinuationToken"] = token
    return page


def test_parse_s3_uri():
    assert parse_s3_uri("s3://thoth/data/deployment/") == ("thoth", "data/deployment/")
    assert parse_s3_uri("s3://thoth/") == ("thoth", "")


@pytest.mark.parametrize("value", ["thoth/data", "s3://thoth", "http://thoth/data"])
def test_parse_s3_uri_invalid(value):
    with pytest.raises(ValueError):
        parse_s3_uri(value)


def test_s3_keys_pages(s3):
    client, stubber = s3
    stubber.add_response(
        "list_objects_v2",
        _page(["data/analysis/a", "data/analysis/a.request", "data/analysis/b"], token="next"),
        {"Bucket": "thoth", "Prefix": "data/"},
    )
    stubber.add_response(
        "list_objects_v2",
        _page(["data/solver/c"]),
        {"Bucket": "thoth", "Prefix": "data/", "ContinuationToken": "next"},
    )

    assert list(s3_keys(client, "thoth", "data/")) == ["analysis/a", "analysis/b", "solver/c"]


def test_s3_keys_empty(s3):
    client, stubber = s3
    stubber.add_response("list_objects_v2", _page([]), {"Bucket": "thoth", "Prefix": "data/"})

    assert list(s3_keys(client, "thoth", "data/")) == []


def test_s3_keys_lazy(s3):
    client, stubber = s3
    keys = s3_keys(client, "thoth", "data/")

    # Nothing is requested before the first key is pulled.
    stubber.add_response("list_objects_v2", _page(["data/a"]), {"Bucket": "thoth", "Prefix": "data/"})
    assert next(keys) == "a"


def test_diff_of_listings(s3):
    client, stubber = s3
    stubber.add_response(
        "list_objects_v2",
        _page(["src/a", "src/b", "src/c", "src/d"]),
        {"Bucket": "source", "Prefix": "src/"},
    )
    stubber.add_response(
        "list_objects_v2",
        _page(["dst/b", "dst/d"]),
        {"Bucket": "backup", "Prefix": "dst/"},
    )

    source = S3KeyStream(client, "source", "src/")
    dest = S3KeyStream(client, "backup", "dst/")

    assert to_list(diff(source, dest)) == ["a", "c"]


def test_lines(tmp_path):
    path = tmp_path / "postings.txt"
    path.write_text("1\n 5\n\n12\n")

    assert list(lines(str(path), int)) == [1, 5, 12]


def test_lines_bad_value(tmp_path):
    path = tmp_path / "postings.txt"
    path.write_text("1\n\nabc\n")
    values = lines(str(path), int)

    assert next(values) == 1
    with pytest.raises(SourceFormatError, match=r"postings.txt:3: cannot read 'abc'"):
        next(values)
