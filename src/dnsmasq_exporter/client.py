"""``dnsmasq_exporter.client`` contains the DNSClient class used by the StatsCollector to talk to dnsmasq.

The client can coalesce identical queries which are in flight at the same time from
concurrent scrapes into a single DNS exchange.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import traceback
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import dns.exception
import dns.query

from dnsmasq_exporter.exceptions import TransportError

if TYPE_CHECKING:  # pragma: no cover
    from dns.message import Message

logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")


@dataclass
class InflightCall:
    """Class to hold the result of an exchange shared between concurrent callers."""

    done: threading.Event = field(default_factory=threading.Event)
    response: Message | None = None
    error: Exception | None = None
    waiters: int = 0


class DNSClient:
    """Synchronous DNS client doing request/response exchanges using dnspython."""

    def __init__(self, protocol: str = "udp", timeout: float = 2.0, *, single_inflight: bool = True) -> None:
        """Save protocol, timeout, and single_inflight setting."""
        self.protocol = protocol
        self.timeout = timeout
        self.single_inflight = single_inflight
        # in-flight exchanges by key, protected by the lock
        self.lock = threading.Lock()
        self.inflight: dict[tuple[str, str, int, str], InflightCall] = {}

    @staticmethod
    def resolve(host: str, port: int) -> str:
        """Return host if it is an IP, otherwise resolve it with getaddrinfo and return the first IP."""
        try:
            return str(ipaddress.ip_address(host))
        except ValueError:
            pass
        logger.debug(f"doing getaddrinfo for hostname {host}")
        try:
            result = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise TransportError(f"unable to resolve {host}: {e}") from e
        return str(result[0][4][0])

    def exchange(self, query: Message, host: str, port: int) -> Message:
        """Send the query to host:port and return the response.

        Raises:
        -------
            TransportError: If the exchange fails for any reason.

        """
        ip = self.resolve(host=host, port=port)
        if not self.single_inflight:
            return self.do_exchange(query=query, ip=ip, port=port)

        key = (self.protocol, ip, port, " ".join(rrset.to_text() for rrset in query.question))
        with self.lock:
            call = self.inflight.get(key)
            if call is None:
                call = InflightCall()
                self.inflight[key] = call
                leader = True
            else:
                call.waiters += 1
                leader = False

        if not leader:
            logger.debug(f"Identical query to {ip} port {port} already in flight, waiting for its response")
            call.done.wait()
            if call.error is not None:
                # a fresh exception per waiter, the shared one belongs to the leader thread
                raise TransportError(str(call.error)) from call.error
            if TYPE_CHECKING:  # pragma: no cover
                assert call.response is not None
            return call.response

        try:
            call.response = self.do_exchange(query=query, ip=ip, port=port)
            return call.response
        except Exception as e:
            call.error = e
            raise
        finally:
            with self.lock:
                del self.inflight[key]
            if call.waiters:
                logger.debug(f"Sharing response with {call.waiters} waiting caller(s)")
            call.done.set()

    def do_exchange(self, query: Message, ip: str, port: int) -> Message:
        """Perform the DNS exchange with the configured protocol."""
        logger.debug(f"Doing DNS query {query.question} with {ip} port {port} over {self.protocol}")
        try:
            if self.protocol == "tcp":
                return dns.query.tcp(
                    q=query,
                    where=ip,
                    port=port,
                    timeout=self.timeout,
                    one_rr_per_rrset=True,
                )
            if self.protocol == "udptcp":
                r, tcp = dns.query.udp_with_fallback(
                    q=query,
                    where=ip,
                    port=port,
                    timeout=self.timeout,
                    one_rr_per_rrset=True,
                )
                if tcp:
                    logger.debug("Response was truncated, used TCP fallback")
                return r
            return dns.query.udp(
                q=query,
                where=ip,
                port=port,
                timeout=self.timeout,
                one_rr_per_rrset=True,
            )
        except dns.exception.Timeout as e:
            raise TransportError(f"timeout waiting for response from {ip} port {port}") from e
        except (dns.exception.DNSException, EOFError, OSError, ValueError) as e:
            # ValueError is raised for unexpected sources or truncated wire data
            ex = "".join(traceback.format_exception_only(type(e), e)).strip()
            raise TransportError(f"exchange with {ip} port {port} failed: {ex}") from e
