from __future__ import annotations

import logging


def level_for(debug: bool) -> int:
    return logging.DEBUG if debug else logging.WARNING


def create_logger(
    instance_id: str, *, debug: bool = False, logger: logging.Logger | None = None
) -> logging.Logger:
    """
    Logger for one client instance.

    Without `logger`, this is `miaw.<instance_id>` and its level follows
    `debug`. An injected logger keeps its own level unless `debug` is set.
    Either way the same logger is handed to the transport through
    `TransportContext.logger`. Handlers are left to the application
    (`logging.basicConfig` or similar).
    """

    if logger is None:
        log = logging.getLogger(f"miaw.{instance_id}")
        log.setLevel(level_for(debug))
        return log
    if debug:
        logger.setLevel(logging.DEBUG)
    return logger
