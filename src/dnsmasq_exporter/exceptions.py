"""This module contains the custom exceptions used in dnsmasq_exporter."""


class ConfigError(Exception):
    """Exception class used when invalid config values are encountered."""


class CleanupAndExit(Exception):  # noqa: N818
    """Exception raised by the signal handler to trigger cleanup and exit."""


class ScrapeError(Exception):
    """Base class for errors which abort a scrape.

    The ``reason`` class attribute is used as the label value in the
    ``dnsmasq_exporter_scrape_failures_total`` metric.
    """

    reason = "other_failure"


class TransportError(ScrapeError):
    """Exception class used when the DNS exchange with dnsmasq fails."""

    reason = "transport_error"


class ProtocolError(ScrapeError):
    """Exception class used when a stats answer from dnsmasq has an unexpected shape or value."""

    reason = "protocol_error"

    def __init__(self, record: str, problem: str) -> None:
        """Take the record name and a description of the problem."""
        super().__init__(f"stats DNS record {record!r}: {problem}")
        self.record = record


class LeaseFileError(ScrapeError, OSError):
    """Exception class used when the leases file can not be opened or read."""

    reason = "lease_file_error"
