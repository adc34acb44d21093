"""``dnsmasq_exporter.scrape`` contains the Scraper class which runs the collectors for each scrape request."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from dnsmasq_exporter.client import DNSClient
from dnsmasq_exporter.collector import LeaseCollector, StatsCollector

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable

    from dnsmasq_exporter.config import Config
    from dnsmasq_exporter.metrics import DnsmasqMetrics

logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")


def join_all(*tasks: Callable[[], None]) -> None:
    """Run each task in its own thread and wait for all of them to finish.

    Tasks are never cancelled, a failing task does not stop the others.

    Raises:
    -------
        Exception: The first exception raised by any of the tasks, by completion time.

    """
    first_error: BaseException | None = None
    with ThreadPoolExecutor(max_workers=len(tasks) or 1, thread_name_prefix="collector") as executor:
        futures = [executor.submit(task) for task in tasks]
        for future in as_completed(futures):
            error = future.exception()
            if error is None:
                continue
            if first_error is None:
                first_error = error
            else:
                logger.debug(f"Ignoring additional error from concurrent task: {error}")
    if first_error is not None:
        raise first_error


class Scraper:
    """Runs the StatsCollector and the LeaseCollector concurrently for each scrape."""

    def __init__(self, stats_collector: StatsCollector, lease_collector: LeaseCollector) -> None:
        """Save the two collectors."""
        self.stats_collector = stats_collector
        self.lease_collector = lease_collector

    @classmethod
    def from_config(cls: type[Scraper], config: Config, metrics: DnsmasqMetrics) -> Scraper:
        """Create a Scraper and its collectors from a Config object."""
        if TYPE_CHECKING:  # pragma: no cover
            assert config.dnsmasq.hostname is not None
            assert config.dnsmasq.port is not None
        client = DNSClient(
            protocol=config.protocol,
            timeout=config.timeout,
            single_inflight=config.single_inflight,
        )
        return cls(
            stats_collector=StatsCollector(
                metrics=metrics,
                client=client,
                host=config.dnsmasq.hostname,
                port=config.dnsmasq.port,
            ),
            lease_collector=LeaseCollector(metrics=metrics, path=config.leases_path),
        )

    def scrape(self) -> None:
        """Run both collectors and wait for them, raise the first error if any of them failed."""
        logger.debug("Starting stats and leases collection")
        join_all(self.stats_collector.collect, self.lease_collector.collect)
        logger.debug("Stats and leases collection done")
