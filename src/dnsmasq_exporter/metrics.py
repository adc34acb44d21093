"""The ``dnsmasq_exporter.metrics`` module contains definition of all the metrics for dnsmasq_exporter.

The dnsmasq metrics are prefixed with ``dnsmasq_`` and live in a ``DnsmasqMetrics`` instance,
the metrics about the exporter itself are prefixed with ``dnsmasq_exporter_``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from prometheus_client import REGISTRY, Counter, Gauge, Info

from dnsmasq_exporter.version import __version__

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from prometheus_client import CollectorRegistry

logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

########################################################
# dnsmasq metrics (served under the metrics path)

STATS: Mapping[str, tuple[str, str]] = MappingProxyType(
    {
        "cachesize.bind.": ("dnsmasq_cachesize", "configured size of the DNS cache"),
        "insertions.bind.": ("dnsmasq_insertions", "DNS cache insertions"),
        "evictions.bind.": (
            "dnsmasq_evictions",
            "DNS cache evictions: numbers of entries which replaced an unexpired cache entry",
        ),
        "misses.bind.": ("dnsmasq_misses", "DNS cache misses: queries which had to be forwarded"),
        "hits.bind.": ("dnsmasq_hits", "DNS queries answered locally (cache hits)"),
        "auth.bind.": ("dnsmasq_auth", "DNS queries for authoritative zones"),
    }
)
"""STATS maps the name of each stats TXT record to the name and help text of the gauge it is exported as.

From the dnsmasq manpage: The cache statistics are also available in the DNS as answers to queries of
class CHAOS and type TXT in domain bind. The domain names are cachesize.bind, insertions.bind,
evictions.bind, misses.bind, hits.bind, auth.bind and servers.bind.

``servers.bind.`` is not in this mapping, see ``SERVERS_RECORD``.
"""

SERVERS_RECORD = "servers.bind."
"""``servers.bind.`` is queried along with the STATS records but the per-upstream-server answer is not exported."""

LEASE_LABELS = [
    "mac_address",
    "ip_address",
    "computer_name",
    "client_id",
]
"""The labels used in the ``dnsmasq_lease_expiry`` metric."""


@dataclass
class DnsmasqMetrics:
    """Holds the dnsmasq gauges and the registry they are registered in.

    The StatsCollector writes the ``stats`` gauges and the LeaseCollector writes
    ``leases`` and ``lease_expiry``. The two sets are disjoint so no locking is done
    beyond what the prometheus_client primitives do themselves.
    """

    registry: CollectorRegistry
    stats: Mapping[str, Gauge]
    leases: Gauge
    lease_expiry: Gauge

    @classmethod
    def create(cls: type[DnsmasqMetrics], registry: CollectorRegistry = REGISTRY) -> DnsmasqMetrics:
        """Create all the dnsmasq metrics and register them in the registry."""
        logger.debug(f"Registering {len(STATS)} stats gauges and 2 lease gauges in {registry}")
        stats = MappingProxyType(
            {
                record: Gauge(name=name, documentation=documentation, registry=registry)
                for record, (name, documentation) in STATS.items()
            }
        )
        return cls(
            registry=registry,
            stats=stats,
            leases=Gauge(
                name="dnsmasq_leases",
                documentation="Number of DHCP leases handed out",
                registry=registry,
            ),
            lease_expiry=Gauge(
                name="dnsmasq_lease_expiry",
                documentation="Time of lease expiry, in epoch time (seconds since 1970)",
                labelnames=LEASE_LABELS,
                registry=registry,
            ),
        )

    def set_stat(self, record: str, value: float) -> None:
        """Set the gauge for the stats record, the record must be in STATS."""
        self.stats[record].set(value)


########################################################
# exporter internal/persistent metrics (always in the default registry)

dnsmasq_exporter_build_version = Info(
    name="dnsmasq_exporter_build_version",
    documentation="Info: The version of dnsmasq_exporter",
)
"""``dnsmasq_exporter_build_version`` is a persistent Info metric which contains the version of ``dnsmasq_exporter``."""
dnsmasq_exporter_build_version.info({"version": __version__})

dnsmasq_exporter_http_requests_total = Counter(
    name="dnsmasq_exporter_http_requests_total",
    documentation="Counter: The total number of HTTP requests received by this exporter since start.",
    labelnames=["path"],
)
"""``dnsmasq_exporter_http_requests_total`` is a persistent Counter keeping track of the total number of HTTP requests
received by the exporter since start.

This metric has a single label, ``path`` which is set to the request path.
"""

dnsmasq_exporter_http_responses_total = Counter(
    name="dnsmasq_exporter_http_responses_total",
    documentation="Counter: The total number of HTTP responses sent by this exporter since start.",
    labelnames=["path", "response_code"],
)
"""``dnsmasq_exporter_http_responses_total`` is a Counter keeping track of the total number of HTTP responses sent by
the exporter since start.

This metric has two labels:
    - ``path`` is set to the request path.
    - ``response_code`` is set to the HTTP response code, 200 for good scrapes and 500 for failed ones.
"""

dnsmasq_exporter_scrape_failures_total = Counter(
    name="dnsmasq_exporter_scrape_failures_total",
    documentation="Counter: The total number of failed scrapes by failure reason.",
    labelnames=["reason"],
)
"""``dnsmasq_exporter_scrape_failures_total`` is the Counter keeping track of how many scrapes failed.

The ``reason`` label is one of:
    - ``transport_error``
    - ``protocol_error``
    - ``lease_file_error``
    - ``other_failure``
"""
