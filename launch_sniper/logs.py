from __future__ import annotations

import sys

from loguru import logger


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    logger.remove()
    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {message}",
        )


def report_failure(stage: str, entity: str, reason: object) -> None:
    """Non-fatal error with the stage and entity it happened on; processing continues."""
    logger.bind(stage=stage, entity=entity).warning("[{}] {}: {}", stage, entity, reason)
