"""Unit tests for DNSClient."""

import socket
import threading
import time

import dns.exception
import dns.message
import pytest

from dnsmasq_exporter.client import DNSClient
from dnsmasq_exporter.collector import StatsCollector
from dnsmasq_exporter.exceptions import TransportError


def test_resolve_ip():
    """An IP is returned as-is."""
    assert DNSClient.resolve(host="127.0.0.1", port=53) == "127.0.0.1"
    assert DNSClient.resolve(host="::1", port=53) == "::1"


def test_resolve_localhost():
    """localhost resolves to a loopback address."""
    assert DNSClient.resolve(host="localhost", port=53) in ["127.0.0.1", "::1"]


def test_resolve_failure(mocker):
    """An unresolvable hostname is a TransportError."""
    mocker.patch("socket.getaddrinfo", side_effect=socket.gaierror("mocked"))
    with pytest.raises(TransportError, match="unable to resolve dnsmasq.invalid"):
        DNSClient.resolve(host="dnsmasq.invalid", port=53)


def test_exchange_udp(fake_dnsmasq):
    """A plain UDP exchange with the fake dnsmasq."""
    r = DNSClient(timeout=1.0).exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=fake_dnsmasq.port)
    assert len(r.answer) == 7


def test_exchange_udptcp(fake_dnsmasq):
    """A udptcp exchange which is not truncated stays on UDP."""
    client = DNSClient(protocol="udptcp", timeout=1.0)
    r = client.exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=fake_dnsmasq.port)
    assert len(r.answer) == 7


def test_exchange_timeout(mocker):
    """A timeout is wrapped in a TransportError."""
    mocker.patch("dns.query.udp", side_effect=dns.exception.Timeout)
    with pytest.raises(TransportError, match="timeout waiting for response from 127.0.0.1 port 53"):
        DNSClient().exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=53)


def test_exchange_oserror(mocker):
    """An OSError is wrapped in a TransportError."""
    mocker.patch("dns.query.udp", side_effect=ConnectionRefusedError("mocked"))
    with pytest.raises(TransportError, match="ConnectionRefusedError: mocked"):
        DNSClient(single_inflight=False).exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=53)


def test_single_inflight(mocker):
    """Concurrent identical exchanges share one wire exchange and one response."""
    entered = threading.Event()
    release = threading.Event()
    query = StatsCollector.build_query()
    response = dns.message.make_response(query)

    def slow_udp(**kwargs):
        entered.set()
        release.wait(5)
        return response

    udp = mocker.patch("dns.query.udp", side_effect=slow_udp)
    client = DNSClient()
    results = []

    def worker():
        results.append(client.exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=53))

    leader = threading.Thread(target=worker)
    leader.start()
    assert entered.wait(5)
    follower = threading.Thread(target=worker)
    follower.start()
    time.sleep(0.2)
    release.set()
    leader.join(5)
    follower.join(5)
    assert udp.call_count == 1
    assert results == [response, response]
    assert client.inflight == {}


def test_single_inflight_shares_error(mocker):
    """A waiting caller gets the error of the shared exchange."""
    entered = threading.Event()
    release = threading.Event()

    def slow_failing_udp(**kwargs):
        entered.set()
        release.wait(5)
        raise dns.exception.Timeout

    mocker.patch("dns.query.udp", side_effect=slow_failing_udp)
    client = DNSClient()
    errors = []

    def worker():
        try:
            client.exchange(query=StatsCollector.build_query(), host="127.0.0.1", port=53)
        except TransportError as e:
            errors.append(e)

    leader = threading.Thread(target=worker)
    leader.start()
    assert entered.wait(5)
    follower = threading.Thread(target=worker)
    follower.start()
    time.sleep(0.2)
    release.set()
    leader.join(5)
    follower.join(5)
    assert len(errors) == 2
    # each caller gets its own exception, the waiter chains the shared one
    assert errors[0] is not errors[1]
    assert str(errors[0]) == str(errors[1])
    assert any(e.__cause__ in errors for e in errors)


def test_single_inflight_disabled(mocker):
    """Without single_inflight every exchange goes on the wire."""
    query = StatsCollector.build_query()
    udp = mocker.patch("dns.query.udp", return_value=dns.message.make_response(query))
    client = DNSClient(single_inflight=False)
    client.exchange(query=query, host="127.0.0.1", port=53)
    client.exchange(query=query, host="127.0.0.1", port=53)
    assert udp.call_count == 2
