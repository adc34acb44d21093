"""pytest fixtures file for the dnsmasq_exporter project."""

import socket
import struct
import threading
from http.server import ThreadingHTTPServer

import dns.message
import dns.rdataclass
import dns.rdatatype
import dns.rdtypes.ANY.TXT
import pytest
from prometheus_client import CollectorRegistry

from dnsmasq_exporter.config import Config
from dnsmasq_exporter.exporter import DnsmasqExporter
from dnsmasq_exporter.metrics import DnsmasqMetrics
from dnsmasq_exporter.scrape import Scraper

LEASES = """1700000000 aa:bb:cc:dd:ee:ff 192.168.1.5 myhost 01:02:03
1700000100 11:22:33:44:55:66 192.168.1.6 otherhost *
"""

STATS_ANSWERS = {
    "cachesize.bind.": [["150"]],
    "insertions.bind.": [["10"]],
    "evictions.bind.": [["0"]],
    "misses.bind.": [["42"]],
    "hits.bind.": [["1337"]],
    "auth.bind.": [["0"]],
    "servers.bind.": [["192.0.2.53#53 12 0", "192.0.2.54#53 3 1"]],
}


class FakeDnsmasq:
    """A tiny UDP DNS server answering CHAOS TXT questions from the answers dict."""

    def __init__(self) -> None:
        """Bind a socket on a random port and start the server thread."""
        self.answers: dict[str, list[list[str]]] = dict(STATS_ANSWERS)
        self.queries = 0
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.1)
        self.port = self.sock.getsockname()[1]
        self.stop = threading.Event()
        self.thread = threading.Thread(target=self.serve, daemon=True)
        self.thread.start()

    @property
    def address(self) -> str:
        """Return the host:port of the server."""
        return f"127.0.0.1:{self.port}"

    def serve(self) -> None:
        """Answer queries until stopped."""
        while not self.stop.is_set():
            try:
                wire, addr = self.sock.recvfrom(65535)
            except TimeoutError:
                continue
            except OSError:
                return
            self.queries += 1
            q = dns.message.from_wire(wire)
            r = dns.message.make_response(q)
            # rdatas with no strings are rejected by dnspython, so they are appended to the wire by hand
            empty = []
            for question in q.question:
                for strings in self.answers.get(question.name.to_text(), []):
                    if not strings:
                        empty.append(question.name)
                        continue
                    rrset = r.find_rrset(
                        r.answer,
                        question.name,
                        dns.rdataclass.CH,
                        dns.rdatatype.TXT,
                        create=True,
                        force_unique=True,
                    )
                    rrset.add(dns.rdtypes.ANY.TXT.TXT(dns.rdataclass.CH, dns.rdatatype.TXT, strings), 0)
            wire = bytearray(r.to_wire())
            for name in empty:
                wire += name.to_wire() + struct.pack("!HHIH", dns.rdatatype.TXT, dns.rdataclass.CH, 0, 0)
            # bump ANCOUNT, the answer section is the last section in the response
            struct.pack_into("!H", wire, 6, len(r.answer) + len(empty))
            self.sock.sendto(bytes(wire), addr)

    def close(self) -> None:
        """Stop the server thread and close the socket."""
        self.stop.set()
        self.thread.join()
        self.sock.close()


@pytest.fixture
def registry():
    """Fixture to return a fresh CollectorRegistry so tests do not share metrics."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Fixture to return DnsmasqMetrics registered in a fresh registry."""
    return DnsmasqMetrics.create(registry=registry)


@pytest.fixture
def fake_dnsmasq():
    """Run a fake dnsmasq answering stats queries on a random port on 127.0.0.1."""
    server = FakeDnsmasq()
    yield server
    server.close()


@pytest.fixture
def leases_file(tmp_path):
    """Write a leases file with two leases."""
    path = tmp_path / "dnsmasq.leases"
    path.write_text(LEASES)
    return path


@pytest.fixture
def config(fake_dnsmasq, leases_file):
    """Fixture to return a Config pointing at the fake dnsmasq and the test leases file."""
    return Config.create(
        listen="127.0.0.1:0",
        dnsmasq=fake_dnsmasq.address,
        leases_path=leases_file,
        timeout=1.0,
    )


@pytest.fixture
def exporter(config, metrics):
    """Fixture to return a configured subclass of the DnsmasqExporter class."""

    class CleanTestExporter(DnsmasqExporter):
        """This is just here so tests can configure the class without changing the global DnsmasqExporter class."""

    CleanTestExporter.configure(config=config, metrics=metrics)
    return CleanTestExporter


@pytest.fixture
def exporter_url(exporter):
    """Run an HTTP server with the test exporter on a random port and return the base url."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), exporter)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def scraper(config, metrics):
    """Fixture to return a Scraper for the test config."""
    return Scraper.from_config(config=config, metrics=metrics)
