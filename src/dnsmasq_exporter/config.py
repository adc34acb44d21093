"""``dnsmasq_exporter.config`` contains all the configuration related code for dnsmasq_exporter.

The primary class is the Config object. Configuration is built from the defaults in
``dnsmasq_exporter.config.Config.create()``, optionally overridden by a YAML config file
and finally by command-line arguments.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import typing as t
import urllib.parse
from dataclasses import asdict, dataclass
from pathlib import Path

import yaml

from dnsmasq_exporter.exceptions import ConfigError

# get logger
logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

# the currently supported protocols for talking to dnsmasq
valid_protocols = [
    "udp",
    "tcp",
    "udptcp",
]


def parse_address(address: str, default_port: int) -> urllib.parse.SplitResult:
    """Parse a host:port string into a SplitResult with an explicit port.

    The address at this point can be:
      - a v4 IP
      - a v6 IP
      - a v4 ip:port
      - a v6 [ip]:port
      - a hostname
      - a hostname:port
      - a :port (no host, only valid for listening)

    Parse it with urllib.parse.urlsplit, add explicit port if needed, and return the result.
    """
    if not isinstance(address, str) or not address:
        logger.error(f"Invalid address {address!r}")
        raise ConfigError("invalid_address")
    try:
        # a bare IP, wrap v6 in brackets so the netloc parses
        ip = ipaddress.ip_address(address)
        address = f"[{ip}]" if ip.version == 6 else str(ip)  # noqa: PLR2004
    except ValueError:
        # a hostname or something with a port
        pass
    splitresult = urllib.parse.urlsplit(f"//{address}")
    try:
        port = splitresult.port
    except ValueError as e:
        logger.exception(f"Unable to parse port in address {address}")
        raise ConfigError("invalid_address") from e
    if splitresult.path or splitresult.query or splitresult.fragment:
        logger.error(f"Unexpected path or query in address {address}")
        raise ConfigError("invalid_address")
    if port is None:
        logger.debug(f"No explicit port in address {address}, using default {default_port}")
        splitresult = splitresult._replace(netloc=f"{splitresult.netloc}:{default_port}")
    return splitresult


@dataclass
class Config:
    """``dnsmasq_exporter.config.Config`` defines the config structure used in dnsmasq_exporter.

    The defaults for each config key are defined in the ``dnsmasq_exporter.config.Config.create()`` method.
    """

    listen: urllib.parse.SplitResult
    """urllib.parse.SplitResult: The host and port the exporter listens for HTTP requests on. Default is
    ``localhost:9153``"""

    leases_path: Path
    """Path: The path to the dnsmasq leases file. Default is ``/var/lib/misc/dnsmasq.leases``"""

    dnsmasq: urllib.parse.SplitResult
    """urllib.parse.SplitResult: The host and port of the dnsmasq DNS server. Default is ``localhost:53``"""

    metrics_path: str
    """str: The URL path under which metrics are served. Default is ``/metrics``"""

    protocol: str
    """str: This key must be set to one of ``udp``, ``tcp`` or ``udptcp``. It determines the protocol used for the
    stats DNS query. Default is ``udp``"""

    timeout: float
    """float: How long to wait for a response from dnsmasq before declaring the stats query failed. Unit is seconds.
    Default is 2.0."""

    single_inflight: bool
    """bool: Set this bool to ``True`` to make concurrent scrapes share one stats DNS query instead of sending one
    each. Default is ``True``"""

    def validate_metrics_path(self) -> None:
        """Validate metrics_path, it must be an absolute path and not the index page."""
        if not isinstance(self.metrics_path, str) or not self.metrics_path.startswith("/"):
            logger.error(f"metrics_path must start with a / - got {self.metrics_path!r}")
            raise ConfigError("invalid_metrics_path")
        if self.metrics_path == "/":
            logger.error("metrics_path can not be / since that is the index page")
            raise ConfigError("invalid_metrics_path")

    def __post_init__(self) -> None:
        """Validate as much as possible."""
        if not self.dnsmasq.hostname:
            logger.error("No dnsmasq host found in config")
            raise ConfigError("invalid_dnsmasq")

        self.validate_metrics_path()

        # validate protocol
        if self.protocol not in valid_protocols:
            raise ConfigError("invalid_protocol")

        # validate timeout
        if not self.timeout > 0:
            logger.error(f"timeout must be positive - got {self.timeout}")
            raise ConfigError("invalid_timeout")

        if not isinstance(self.single_inflight, bool):
            logger.error("Not a bool: single_inflight")
            raise ConfigError("invalid_config")

    @classmethod
    def create(  # noqa: PLR0913
        cls: type[Config],
        *,
        listen: str = "localhost:9153",
        leases_path: str | Path = "/var/lib/misc/dnsmasq.leases",
        dnsmasq: str = "localhost:53",
        metrics_path: str = "/metrics",
        protocol: str = "udp",
        timeout: float | str = 2.0,
        single_inflight: bool = True,
    ) -> Config:
        """Return an instance of the Config class with values from the provided parameters overriding the defaults."""
        logger.debug("creating config...")
        try:
            timeout = float(timeout)
        except (TypeError, ValueError) as e:
            logger.exception(f"Unable to parse timeout {timeout}")
            raise ConfigError("invalid_timeout") from e
        return cls(
            listen=parse_address(listen, default_port=9153),
            leases_path=Path(leases_path),
            dnsmasq=parse_address(dnsmasq, default_port=53),
            metrics_path=metrics_path,
            protocol=str(protocol).lower(),
            timeout=timeout,
            single_inflight=single_inflight,
        )

    def json(self) -> str:
        """Return a json version of the config. Mostly used in unit tests and debug logging."""
        conf: dict[str, t.Any] = asdict(self)
        conf["listen"] = conf["listen"].netloc
        conf["dnsmasq"] = conf["dnsmasq"].netloc
        conf["leases_path"] = str(conf["leases_path"])
        return json.dumps(conf)


class ConfigDict(t.TypedDict, total=False):
    """A TypedDict to help hold config dicts before they become Config objects.

    ``dnsmasq_exporter.config.ConfigDict`` has the same keys as the arguments of
    ``dnsmasq_exporter.config.Config.create()``.
    """

    listen: str
    leases_path: str
    dnsmasq: str
    metrics_path: str
    protocol: str
    timeout: float
    single_inflight: bool


def build_config(*sources: ConfigDict) -> Config:
    """Merge the config sources and create the final Config object.

    Later sources have higher precedence than earlier ones. The defaults are
    always applied first by ``Config.create()``.
    """
    config = ConfigDict()
    for source in sources:
        config.update(source)
    try:
        return Config.create(**config)
    except TypeError as e:
        logger.exception("Exception while creating config - invalid field specified?")
        raise ConfigError("invalid_config") from e


def load_config_file(path: str | Path) -> ConfigDict:
    """Read a YAML config file and return the settings in it as a ConfigDict."""
    try:
        with Path(path).open() as f:
            configfile = yaml.load(f, Loader=yaml.SafeLoader)
    except OSError as e:
        logger.exception(f"Unable to read config file {path}")
        raise ConfigError("invalid_config_file") from e
    except yaml.YAMLError as e:
        logger.exception(f"Unable to parse YAML config file {path}")
        raise ConfigError("invalid_config_file") from e
    if configfile is None:
        # empty file, use defaults
        logger.debug(f"Config file {path} is empty")
        return ConfigDict()
    if not isinstance(configfile, dict):
        logger.error(f"Invalid config file {path} - yaml was valid but the root is not a mapping")
        raise ConfigError("invalid_config_file")
    logger.debug(f"Read {len(configfile)} settings from config file {path}: {list(configfile.keys())}")
    return ConfigDict(**configfile)  # type: ignore[typeddict-item]
