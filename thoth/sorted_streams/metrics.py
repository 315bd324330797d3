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

"""Prometheus metrics of set operations."""

from prometheus_client import CollectorRegistry, Gauge, Counter, push_to_gateway

prometheus_registry = CollectorRegistry()

METRIC_INFO = Gauge(
    "thoth_sorted_streams_info",
    "Thoth sorted streams information",
    ["env", "version"],
    registry=prometheus_registry,
)

METRIC_EMITTED = Counter(
    "thoth_sorted_streams_emitted",
    "Number of values emitted by set operations",
    ["operation"],
    registry=prometheus_registry,
)

METRIC_EARLY_STOP = Counter(
    "thoth_sorted_streams_early_stop",
    "Number of merges ended early by a stop policy",
    ["operation"],
    registry=prometheus_registry,
)


def push_metrics(pushgateway_url: str, job: str = "sorted-streams") -> None:
    """Submit collected metrics to a Prometheus pushgateway."""
    push_to_gateway(pushgateway_url, job=job, registry=prometheus_registry)
