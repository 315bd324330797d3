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

"""Evaluate set operations over sorted S3 listings or files from the command line."""

from __future__ import annotations

import logging
import os
import sys
from importlib_metadata import version
from typing import Iterable, Optional, Tuple

import click
from boto3 import client
from botocore.exceptions import ClientError
from thoth.common import init_logging

from .merge_join import Direction
from .metrics import METRIC_INFO, push_metrics
from .operations import apply, OPERATIONS
from .pipeline import PipelineStage
from .sources import lines, parse_s3_uri, S3KeyStream, SourceFormatError
from .streams import IterableStream, SortedStream

__component_version__ = version("thoth-sorted-streams")

init_logging()
_LOGGER = logging.getLogger("thoth.sorted_streams")

_THOTH_DEPLOYMENT_NAME = os.getenv("THOTH_DEPLOYMENT_NAME", "local")
_THOTH_METRICS_PUSHGATEWAY_URL = os.getenv("PROMETHEUS_PUSHGATEWAY_URL")

_VALUE_TYPES = {"int": int, "str": str}

METRIC_INFO.labels(_THOTH_DEPLOYMENT_NAME, __component_version__).inc()


def _parse_source(ctx, param, value: str) -> Tuple[str, str, str]:
    """Turn an argument into (kind, location, prefix) of a sorted source."""
    if value.startswith("s3://"):
        try:
            bucket, prefix = parse_s3_uri(value)
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
        return "s3", bucket, prefix

    if not os.path.isfile(value):
        raise click.BadParameter(f"Expected s3://bucket/prefix or a path to an existing file, got {value!r}")

    return "file", value, ""


@click.command()
@click.option("--debug", is_flag=True, help="Run in a debug mode", envvar="THOTH_SORTED_STREAMS_DEBUG", default=False)
@click.option(
    "--descending",
    is_flag=True,
    help="Sources are sorted in descending order.",
    envvar="THOTH_SORTED_STREAMS_DESCENDING",
    default=False,
)
@click.option(
    "--concurrent",
    is_flag=True,
    help="Evaluate the operation in a background pipeline stage.",
    envvar="THOTH_SORTED_STREAMS_CONCURRENT",
    default=False,
)
@click.option(
    "--value-type",
    type=click.Choice(sorted(_VALUE_TYPES)),
    help="Type of values stored in file sources.",
    envvar="THOTH_SORTED_STREAMS_VALUE_TYPE",
    default="str",
    show_default=True,
)
@click.option(
    "--s3-url",
    type=str,
    help="S3 service url for listed sources",
    envvar="AWS_S3_ENDPOINT_URL",
    default=None,
)
@click.argument("operation", type=click.Choice(sorted(OPERATIONS)))
@click.argument("left", type=str, metavar="s3://bucket/prefix|PATH", callback=_parse_source)
@click.argument("right", type=str, metavar="s3://bucket/prefix|PATH", callback=_parse_source)
def cli(
    operation: str,
    left: Tuple[str, str, str],
    right: Tuple[str, str, str],
    debug: bool,
    descending: bool,
    concurrent: bool,
    value_type: str,
    s3_url: Optional[str],
) -> None:
    """Print the union, intersection or difference of two sorted sources, one value per line."""
    if debug:
        _LOGGER.setLevel(logging.DEBUG)
        _LOGGER.debug("Debug mode is on.")

    _LOGGER.debug("Running sorted streams in version %r", __component_version__)

    if value_type != "str" and "s3" in (left[0], right[0]):
        raise click.BadParameter("S3 listings are streams of strings, use --value-type str", param_hint="--value-type")

    s3 = client("s3", endpoint_url=s3_url) if "s3" in (left[0], right[0]) else None
    convert = _VALUE_TYPES[value_type]

    def _open(source: Tuple[str, str, str]) -> SortedStream:
        kind, location, prefix = source
        if kind == "s3":
            return S3KeyStream(s3, location, prefix)
        return IterableStream(lines(location, convert))

    direction = Direction.DESCENDING if descending else Direction.ASCENDING
    set_operation = OPERATIONS[operation]
    _LOGGER.debug("Computing %s of %r and %r (%s)", operation, left, right, direction.value)

    result: Iterable
    if concurrent:
        result = PipelineStage(set_operation, _open(left), _open(right), direction)
    else:
        result = apply(set_operation, _open(left), _open(right), direction)

    exit_code = 0
    try:
        for item in result:
            click.echo(item)
    except ClientError as e:
        _LOGGER.exception("An error occured while listing objects: ", exc_info=True)
        _LOGGER.error("API response: %s", e.response)
        exit_code = 1
    except SourceFormatError as e:
        raise click.ClickException(str(e)) from e
    finally:
        if _THOTH_METRICS_PUSHGATEWAY_URL:
            try:
                _LOGGER.debug(f"Submitting metrics to Prometheus pushgateway {_THOTH_METRICS_PUSHGATEWAY_URL}")
                push_metrics(_THOTH_METRICS_PUSHGATEWAY_URL)
            except Exception as e:
                _LOGGER.exception(f"An error occurred pushing the metrics: {str(e)}")

    if exit_code:
        sys.exit(exit_code)
