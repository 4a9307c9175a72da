"""Shared logging helpers for debianize."""

from __future__ import annotations

import logging

# python-debian reports every tolerated changelog quirk at INFO
_QUIET_LOGGERS = ("debian",)


def configure_logging(*, verbose: bool = False, force: bool = False) -> None:
    """Initialise the root logger with a terse CLI format.

    ``verbose`` switches to DEBUG. Pass ``force=True`` to reconfigure after
    startup, e.g. once ``--verbose`` has been parsed.
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
