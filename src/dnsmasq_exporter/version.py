"""``dnsmasq_exporter.version`` takes care of getting the package version from package metadata.

The module contains no functions or methods and only a single module-level variable which is the version.
"""

import logging
from importlib.metadata import PackageNotFoundError, version

# get logger
logger = logging.getLogger(f"dnsmasq_exporter.{__name__}")

# get version number from package metadata if possible
try:
    __version__ = version("dnsmasq_exporter")
except PackageNotFoundError:  # pragma: no cover
    # package is not installed, version unknown
    __version__: str = "0.0.0"  # type: ignore[no-redef]
logger.debug(f"Detected version running: {__version__}")
