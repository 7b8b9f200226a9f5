"""Logging and display helpers for scripts."""

import logging
import os
from pathlib import Path

import coloredlogs

from bridge_routes.messages import TransferDisplayData


def setup_console_logging(
    default_log_level="warning",
    simplified_logging=False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Set up coloured log output.

    - Helper function to have nicer logging output in scripts.
    - Tune down some noisy dependency library logging

    The level comes from the ``LOG_LEVEL`` environment variable when set.

    :param log_file:
        Output both console and this log file.

    :return:
        Root logger
    """
    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert numeric_level, f"No level: {level}"

    if simplified_logging:
        fmt = "%(message)s"
        date_fmt = "%H:%M:%S"
    else:
        fmt = "%(asctime)s %(name)-44s %(message)s"
        date_fmt = "%Y-%m-%d %H:%M:%S"

    coloredlogs.install(level=numeric_level, fmt=fmt, date_fmt=date_fmt)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # File always gets INFO, the env var controls only terminal output
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(min(logging.INFO, numeric_level))
        file_handler.setFormatter(logging.Formatter(fmt, date_fmt))
        root = logging.getLogger()
        root.setLevel(min(logging.INFO, numeric_level))
        root.addHandler(file_handler)

    # Mute noise
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    logging.getLogger("requests_ratelimiter").setLevel(logging.WARNING)
    return logging.getLogger()


def flatten_display_rows(data: TransferDisplayData, indent: int = 0) -> list[tuple[str, str]]:
    """Turn nested display rows into ``(title, value)`` pairs for a table.

    Sub-rows are indented under their parent. Estimated values get a
    trailing ``*``.
    """
    flat = []
    for row in data:
        value = f"{row.value} *" if row.is_estimate else row.value
        flat.append(("  " * indent + row.title, value))
        flat.extend(flatten_display_rows(row.rows, indent + 1))
    return flat
