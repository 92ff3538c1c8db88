# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Logging configuration for brokerhooks.

Hooks log through loguru with structured keyword fields; this module only
decides how those records are rendered.
"""

import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


LEVEL_COLORS = {
    "TRACE": "<dim>",
    "DEBUG": "<cyan>",
    "INFO": "<blue>",
    "SUCCESS": "<green>",
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<red><bold>",
}


def _log_format(record: "Record") -> str:
    """Build the loguru format string for one record.

    Format: ``time | level | module:message | key=value ...``. Extra fields
    bound with ``logger.bind`` or passed as keywords are appended.

    Args:
        record: Loguru record containing log metadata, message, and level.

    Returns:
        Format string with loguru color tags.
    """
    color = LEVEL_COLORS.get(record["level"].name, "<normal>")

    fmt = (
        "<dim>{time:YYYY-MM-DD HH:mm:ss.SSS}</> │ "
        f"{color}{{level: <8}}</>│ "
        "<dim>{name}</>:{message}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}")
        extra_str = extra_str.replace("<", r"\<")
        fmt += f" <dim>│ {extra_str}</>"

    fmt += "\n"

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with the brokerhooks format.

    Args:
        level: Minimum log level to emit (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_log_format,
        colorize=True,
    )
