"""``dnsmasq_exporter.collector`` contains the StatsCollector and LeaseCollector classes used during scrapes.

Both collectors update gauges in a shared ``dnsmasq_exporter.metrics.DnsmasqMetrics`` instance,
the actual rendering of the metrics is done by the prometheus_client registry afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import dns.flags
import dns.message
import dns.name
import dns.rdataclass
import dns.rdatatype

from dnsmasq_exporter.exceptions import LeaseFileError, ProtocolError
from dnsmasq_exporter.metrics import SERVERS_RECORD, STATS

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterator
    from pathlib import Path

    from dns.message import Message

    from dnsmasq_exporter.client import DNSClient
    from dnsmasq_exporter.metrics import DnsmasqMetrics

logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

# the questions in the stats query, in order
STATS_QUESTIONS = [*STATS.keys(), SERVERS_RECORD]

# minimum number of fields in a DHCPv4 lease line
LEASE_FIELDS = 5


class StatsCollector:
    """Collector which asks dnsmasq for cache statistics and updates the stats gauges."""

    def __init__(self, metrics: DnsmasqMetrics, client: DNSClient, host: str, port: int) -> None:
        """Save metrics, client and the dnsmasq address for use later."""
        self.metrics = metrics
        self.client = client
        self.host = host
        self.port = port

    @staticmethod
    def build_query() -> Message:
        """Build the stats query, one CHAOS TXT question per stats record and the RD flag set."""
        q = dns.message.QueryMessage()
        q.flags |= dns.flags.RD
        for record in STATS_QUESTIONS:
            q.find_rrset(
                q.question,
                dns.name.from_text(record),
                dns.rdataclass.CH,
                dns.rdatatype.TXT,
                create=True,
                force_unique=True,
            )
        return q

    def collect(self) -> None:
        """Query dnsmasq and update the stats gauges from the response."""
        response = self.client.exchange(query=self.build_query(), host=self.host, port=self.port)
        self.decode(response=response)

    def decode(self, response: Message) -> None:
        """Parse the TXT answers in the response and set the gauges.

        Raises:
        -------
            ProtocolError: If a stats record does not have exactly one string or the string is not a number.

        """
        for rrset in response.answer:
            if rrset.rdtype != dns.rdatatype.TXT:
                continue
            record = rrset.name.to_text()
            if record == SERVERS_RECORD:
                # the per-upstream-server "<server> <successes> <errors>" answer is not exported
                logger.debug(f"Ignoring {record} answer")
                continue
            if record not in STATS:
                logger.debug(f"Ignoring unexpected answer {record} from dnsmasq")
                continue
            for rr in rrset:
                if len(rr.strings) != 1:
                    raise ProtocolError(
                        record, f"unexpected number of replies: got {len(rr.strings)}, want 1"
                    )
                raw = rr.strings[0].decode("ascii", errors="replace")
                try:
                    value = float(raw)
                except ValueError as e:
                    raise ProtocolError(record, f"unable to parse value {raw!r} as a number") from e
                self.metrics.set_stat(record, value)
                logger.debug(f"Stats record {record} has value {value}")


@dataclass
class Lease:
    """Class to hold one DHCPv4 lease from the leases file."""

    expiry: float
    mac_address: str
    ip_address: str
    computer_name: str
    client_id: str

    def labels(self) -> dict[str, str]:
        """Return the labels used for this lease in the lease_expiry metric."""
        return {
            "mac_address": self.mac_address,
            "ip_address": self.ip_address,
            "computer_name": self.computer_name,
            "client_id": self.client_id,
        }


def parse_line(parts: list[str]) -> Lease | None:
    """Return a Lease from the fields of a lease line, or None if there are too few fields."""
    if len(parts) < LEASE_FIELDS:
        return None
    try:
        expiry = float(parts[0])
    except ValueError:
        expiry = -1
    return Lease(
        expiry=expiry,
        mac_address=parts[1],
        ip_address=parts[2],
        computer_name=parts[3],
        client_id=parts[4],
    )


class LeaseCollector:
    """Collector which reads the dnsmasq leases file and updates the lease gauges.

    The leases file has one lease per line with the fields:

        EXPIRY MAC IP HOSTNAME CLIENT-ID

    Once a ``duid`` line is found all following records are DHCPv6 in a slightly
    different format, they are not parsed:

        duid SERVER-DUID
        EXPIRY IAID IPv6 HOSTNAME CLIENT-DUID
    """

    def __init__(self, metrics: DnsmasqMetrics, path: Path) -> None:
        """Save metrics and the path of the leases file."""
        self.metrics = metrics
        self.path = path

    def collect(self) -> None:
        """Read the leases file, replace the lease_expiry series, and set the leases gauge.

        Raises:
        -------
            LeaseFileError: If the leases file can not be opened or read.

        """
        try:
            f = self.path.open(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"could not open leases file: {e}")
            raise LeaseFileError(f"could not open leases file: {e}") from e
        with f:
            # leases no longer in the file must not linger
            self.metrics.lease_expiry.clear()
            try:
                lines = self.scan(f)
            except OSError as e:
                logger.warning(f"could not read leases file: {e}")
                raise LeaseFileError(f"could not read leases file {self.path}: {e}") from e
        self.metrics.leases.set(lines)
        logger.debug(f"Found {lines} lines in leases file {self.path}")

    def scan(self, lines: Iterator[str]) -> int:
        """Set a lease_expiry series for each lease line and return the number of lines before any duid line."""
        count = 0
        for line in lines:
            parts = line.split()
            if parts and parts[0] == "duid":
                # TODO: DHCPv6 support, everything from here on is DHCPv6 leases
                break
            count += 1
            lease = parse_line(parts)
            if lease is None:
                continue
            self.metrics.lease_expiry.labels(**lease.labels()).set(lease.expiry)
        return count
