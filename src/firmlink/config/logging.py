"""Shared logging helpers for firmlink."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format.

    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    Chatty HTTP libraries are capped at WARNING so per-request lines do not drown
    the phase summaries.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in ("httpx", "httpcore", "hishel"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
