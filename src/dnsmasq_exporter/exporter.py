"""``dnsmasq_exporter.exporter`` contains the DnsmasqExporter class.

The config.py module contains configuration related stuff, metrics.py
contains the metric definitions, collector.py has the collectors, scrape.py
runs them concurrently, and this exporter.py module handles the HTTP requests.
"""

from __future__ import annotations

import html
import logging
import urllib.parse
from typing import TYPE_CHECKING

from prometheus_client import MetricsHandler, exposition

from dnsmasq_exporter.exceptions import ScrapeError
from dnsmasq_exporter.metrics import (
    dnsmasq_exporter_http_requests_total,
    dnsmasq_exporter_http_responses_total,
    dnsmasq_exporter_scrape_failures_total,
)
from dnsmasq_exporter.scrape import Scraper
from dnsmasq_exporter.version import __version__

if TYPE_CHECKING:  # pragma: no cover
    from prometheus_client import CollectorRegistry
    from prometheus_client.registry import RestrictedRegistry

    from dnsmasq_exporter.config import Config
    from dnsmasq_exporter.metrics import DnsmasqMetrics

logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

INDEX = """<!DOCTYPE html>
<html lang="en">
<head><title>Dnsmasq Exporter</title></head>
<body>
<h1>Dnsmasq Exporter</h1>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>"""


class DnsmasqExporter(MetricsHandler):
    """Primary dnsmasq_exporter class.

    MetricsHandler subclass for incoming scrape requests. Initiated on each
    request as a handler by http.server.ThreadingHTTPServer().

    The configure() classmethod must be called before use.

    Attributes:
    -----------
        config: The dnsmasq_exporter.config.Config instance in use.
        scraper: The dnsmasq_exporter.scrape.Scraper which runs the collectors.
        registry: The registry rendered after a successful scrape.

    """

    __version__ = __version__

    # these are populated by configure() before the class is initialised
    config: Config
    scraper: Scraper

    @classmethod
    def configure(cls, config: Config, metrics: DnsmasqMetrics, scraper: Scraper | None = None) -> None:
        """Set config, registry and scraper on the class."""
        cls.config = config
        cls.registry = metrics.registry
        cls.scraper = scraper or Scraper.from_config(config=config, metrics=metrics)
        logger.debug(f"Exporter configured: {config.json()}")

    def do_GET(self) -> None:  # noqa: N802
        """Handle incoming HTTP GET requests."""
        # parse the scrape request url and querystring
        self.url = urllib.parse.urlsplit(self.path)
        # keep the value lists, prometheus_client filters on params["name[]"]
        self.qs = urllib.parse.parse_qs(self.url.query)
        logger.debug(f"Got HTTP request for {self.url.geturl()} from client {self.client_address}")
        # increase the persistent http request metric
        dnsmasq_exporter_http_requests_total.labels(path=self.url.path).inc()

        if self.url.path == self.config.metrics_path:
            self.handle_scrape_request()

        # the root just returns a bit of informational html
        elif self.url.path == "/":
            logger.debug("Returning index page for request to /")
            index = INDEX.format(metrics_path=html.escape(self.config.metrics_path, quote=True))
            self.send_text_response(200, index, content_type="text/html; charset=utf-8")

        # unknown endpoint
        else:
            logger.debug(f"Unknown endpoint '{self.url.path}' returning 404")
            self.send_text_response(404, "404 not found")

    def handle_scrape_request(self) -> None:
        """Run the collectors and return either the metrics or an error."""
        try:
            self.scraper.scrape()
        except ScrapeError as e:
            logger.warning(f"Scrape failed with reason {e.reason}: {e}")
            self.handle_failure(reason=e.reason, message=str(e))
            return
        except Exception as e:  # noqa: BLE001
            logger.warning("Caught an unknown exception during scrape - exception details follow", exc_info=True)
            self.handle_failure(reason="other_failure", message=str(e) or type(e).__name__)
            return
        logger.debug("Returning dnsmasq metrics")
        self.send_metric_response(registry=self.registry, query=self.qs)

    def handle_failure(self, reason: str, message: str) -> None:
        """Count the failure and send an internal server error with the error message."""
        dnsmasq_exporter_scrape_failures_total.labels(reason=reason).inc()
        self.send_text_response(500, f"{message}\n")

    def send_text_response(self, code: int, body: str, content_type: str = "text/plain; charset=utf-8") -> None:
        """Send a response with the status code and body."""
        output = body.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(output)))
        self.end_headers()
        self.wfile.write(output)
        dnsmasq_exporter_http_responses_total.labels(path=self.url.path, response_code=code).inc()

    def send_metric_response(
        self,
        registry: CollectorRegistry | RestrictedRegistry,
        query: dict[str, list[str]],
    ) -> None:
        """Bake and send output from the provided registry and querystring."""
        # Bake output
        status, headers, output = exposition._bake_output(  # type: ignore[no-untyped-call]  # noqa: SLF001
            registry=registry,
            accept_header=self.headers.get("Accept"),
            accept_encoding_header=self.headers.get("Accept-Encoding"),
            params=query,
            disable_compression=False,
        )
        headers.append(("Content-Length", str(len(output))))
        # Return output
        code = int(status.split(" ")[0])
        self.send_response(code)
        for header in headers:
            self.send_header(*header)
        self.end_headers()
        self.wfile.write(output)
        dnsmasq_exporter_http_responses_total.labels(path=self.url.path, response_code=code).inc()
