"""``dnsmasq_exporter.entrypoint`` contains argparse stuff and ``dnsmasq_exporter`` script entrypoint.

This module is mostly boilerplate code for command-line argument handling and logging.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from http.server import ThreadingHTTPServer
from typing import TYPE_CHECKING

from dnsmasq_exporter.config import ConfigDict, build_config, load_config_file, valid_protocols
from dnsmasq_exporter.exceptions import CleanupAndExit, ConfigError
from dnsmasq_exporter.exporter import DnsmasqExporter
from dnsmasq_exporter.metrics import DnsmasqMetrics

if TYPE_CHECKING:
    from types import FrameType

    from dnsmasq_exporter.config import Config

# get logger
logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

# the command-line arguments which override settings from the config file
CONFIG_ARGS = ["listen", "leases_path", "dnsmasq", "metrics_path", "protocol", "timeout"]


def get_parser() -> argparse.ArgumentParser:
    """Create and return the argparse object."""
    parser = argparse.ArgumentParser(
        description=f"dnsmasq_exporter version {DnsmasqExporter.__version__}.",
    )

    # optional arguments
    parser.add_argument(
        "-c",
        "--config-file",
        dest="config-file",
        help="The path to the yaml config file to use. Command-line arguments override settings from the file.",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_const",
        dest="log-level",
        const="DEBUG",
        help="Debug mode. Equal to setting --log-level=DEBUG.",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-l",
        "--log-level",
        dest="log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level. One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Defaults to INFO.",
        default="INFO",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_const",
        dest="log-level",
        const="WARNING",
        help="Quiet mode. No output at all if no errors are encountered. Equal to setting --log-level=WARNING.",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--listen",
        help="The host:port the exporter should listen for requests on. Default: localhost:9153",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--leases_path",
        help="Path to the dnsmasq leases file. Default: /var/lib/misc/dnsmasq.leases",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--dnsmasq",
        help="The dnsmasq host:port address. Default: localhost:53",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--metrics_path",
        help="Path under which metrics are served. Default: /metrics",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--protocol",
        choices=valid_protocols,
        help="The protocol used for the stats query to dnsmasq. Default: udp",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for a response from dnsmasq. Default: 2.0",
        default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-v",
        "--version",
        dest="version",
        action="store_true",
        help="Show version and exit.",
        default=argparse.SUPPRESS,
    )
    return parser


def parse_args(
    mockargs: list[str] | None = None,
) -> tuple[argparse.ArgumentParser, argparse.Namespace]:
    """Create an argparse monster and parse mockargs or sys.argv[1:]."""
    parser = get_parser()
    args = parser.parse_args(mockargs or sys.argv[1:])
    return parser, args


def configure_logging(args: argparse.Namespace) -> None:
    """Configure the log format and level."""
    console_logformat = "%(asctime)s %(levelname)s %(name)s.%(funcName)s():%(lineno)i:  %(message)s"
    level = getattr(args, "log-level")
    logging.basicConfig(
        level=level,
        format=console_logformat,
        datefmt="%Y-%m-%d %H:%M:%S %z",
    )
    logger.setLevel(level)
    # also configure the root logger
    rootlogger = logging.getLogger("")
    rootlogger.setLevel(level)
    logger.info(
        f"dnsmasq_exporter v{DnsmasqExporter.__version__} starting up - logging at level {level}",
    )


def get_config(args: argparse.Namespace) -> Config:
    """Build the final config from defaults, the config file (if any), and the command-line arguments."""
    if hasattr(args, "config-file"):
        configfile = load_config_file(getattr(args, "config-file"))
    else:
        configfile = ConfigDict()
        logger.debug("No -c / --config-file found so a config file will not be used.")
    cli = ConfigDict(**{key: getattr(args, key) for key in CONFIG_ARGS if hasattr(args, key)})  # type: ignore[typeddict-item]
    return build_config(configfile, cli)


def main(mockargs: list[str] | None = None) -> None:
    """Read config and start exporter."""
    # get arpparser and parse args
    _, args = parse_args(mockargs)

    # handle version check
    if hasattr(args, "version"):
        print(f"dnsmasq_exporter version {DnsmasqExporter.__version__}")  # noqa: T201
        sys.exit(0)

    # configure logging
    configure_logging(args=args)
    logger.debug(f"dnsmasq_exporter parsed command-line arguments: {mockargs or sys.argv[1:]}")

    try:
        config = get_config(args=args)
    except ConfigError:
        logger.exception("An error occurred while configuring dnsmasq_exporter. Bailing out.")
        sys.exit(1)

    # register the dnsmasq metrics in the default registry and configure the handler
    handler = DnsmasqExporter
    handler.configure(config=config, metrics=DnsmasqMetrics.create())

    # Usually main() runs in the main Python thread. Skip configuring signal handler if it does not.
    if threading.current_thread() is threading.main_thread():
        logger.debug("Running in main thread, connecting signal handlers...")
        # this is the main thread, it is safe to do signal handling
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
    else:
        logger.warning("Not running in main thread, skipping signal handlers...")

    host = config.listen.hostname or ""
    port = config.listen.port
    logger.info(f"Listening on {config.listen.netloc}")
    logger.info(f"Serving metrics under {config.metrics_path}")
    try:
        ThreadingHTTPServer((host, port), handler).serve_forever()  # type: ignore[arg-type]
    except OSError:
        logger.exception(
            f"Unable to start listener, maybe port {port} is in use? bailing out",
        )
        sys.exit(1)
    except CleanupAndExit:
        logger.info("Signal received, cleaning up before exit...")
    finally:
        logger.info("Clean exit - goodbye for now :)")


def signal_handler(sig: int, frame: FrameType | None) -> None:
    """This signal handler raises CleanupAndExit to allow cleanup before exit."""
    logger.debug(f"Signal {sig} received in frame {frame}, raising CleanupAndExit to trigger cleanup and exit...")
    raise CleanupAndExit


if __name__ == "__main__":  # pragma: no cover
    main()
