# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_logging.py — Logging setup for applications embedding Dyelot.

Library modules only create ``logging.getLogger(__name__)`` loggers and never
install handlers. An application calls ``configure_logging`` once (or again
to reconfigure); handlers installed by a previous call are detached first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from dyelot_about import metadata_summary

__all__ = ["configure_logging"]

_MANAGED_HANDLER_FLAG = "_dyelot_managed_handler"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _remove_managed_handlers(logger: logging.Logger) -> None:
    """Detach any handlers previously installed by :func:`configure_logging`."""

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()


def _managed(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    setattr(handler, _MANAGED_HANDLER_FLAG, True)
    return handler


def configure_logging(
    level: int = logging.INFO,
    *,
    log_file: Optional[Union[str, Path]] = None,
    include_console: bool = True,
) -> logging.Logger:
    """Configure root logging for console and/or a log file; returns the root logger."""

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _remove_managed_handlers(root_logger)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_file is not None:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(
            _managed(logging.FileHandler(log_path, encoding="utf-8"), level, formatter)
        )

    if include_console:
        root_logger.addHandler(_managed(logging.StreamHandler(), level, formatter))

    logging.captureWarnings(True)

    about = metadata_summary()
    logging.getLogger(__name__).debug("%s %s logging configured", about["title"], about["version"])
    return root_logger
