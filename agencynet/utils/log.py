"""
Logging setup for the agency network.

The library only creates module loggers; applications (and the CLI) call
configure_logging() once at startup.
"""

import logging
from typing import Optional

from ..config import AgencyNetworkConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(config: Optional[AgencyNetworkConfig] = None, level: Optional[str] = None) -> None:
    """
    Configure root logging for an application using agencynet.

    Args:
        config: Configuration providing ``log_level`` and ``debug``
        level: Explicit level, overrides the configuration
    """
    if level is None:
        if config is not None:
            level = "DEBUG" if config.debug else config.log_level
        else:
            level = "INFO"

    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
    # httpx logs every PostgREST request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_token(token: Optional[str]) -> str:
    """Shorten a bearer token for log output."""
    if not token:
        return "<none>"
    return f"{token[:6]}..."
