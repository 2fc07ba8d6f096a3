"""Log setup for the command line and wire tracing for the transport."""

from __future__ import annotations

import json
import logging
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logger = logging.getLogger("cloudprovider")
_wire_logger = logging.getLogger("cloudprovider.wire")


def configure(verbose: bool = False) -> None:
    """Send warnings to stderr, and everything including wire traces if verbose.

    An application that already configured the root logger keeps its handlers.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)
    _logger.setLevel(logging.DEBUG if verbose else logging.NOTSET)


def _compact(fields: dict) -> str:
    try:
        return json.dumps(fields, separators=(",", ":"), sort_keys=True)
    except TypeError:
        return str(fields)


def trace(channel: str, direction: str, **fields: Any) -> None:
    """Record one HTTP or DNS exchange on ``cloudprovider.wire``.

    ``direction`` is ``">"`` for what we send and ``"<"`` for what comes back.
    """

    if not _wire_logger.isEnabledFor(logging.DEBUG):
        return
    _wire_logger.debug("%s %s %s", channel, direction, _compact(fields))
