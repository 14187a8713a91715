"""
Logging Setup for the Validation Engine
=======================================

WHAT THIS MODULE DOES:
Configures the loguru logger shared by every module of the engine.
Modules never configure sinks themselves; they only `from loguru import
logger` and log.

WHY WE NEED THIS:
1. **One switch**: LOG_LEVEL and LOG_JSON from EngineConfiguration decide
   the output for the whole process.

2. **Aggregation**: JSON lines (`serialize=True`) can be shipped to log
   tooling without a custom formatter.

3. **Per-order context**: `order_context` binds the order id to every log
   line emitted while one validation runs.

Dictation text and override justifications are never logged, only their
lengths and the order identifiers.
"""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

from loguru import logger

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Replace loguru's default sink.

    Args:
        level: Minimum level for the stderr sink
        json_logs: Emit one JSON object per line instead of the human format
        log_file: Optional extra sink; always JSON, always DEBUG
    """
    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=HUMAN_FORMAT)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level="DEBUG", serialize=True, enqueue=True)

    logger.debug(f"Logging configured | Level: {level.upper()} | JSON: {json_logs}")


@contextmanager
def order_context(order_id: str, **fields):
    """
    Bind order_id (and any extra fields) to log records inside the block.

    Usage:
        with order_context("ORD-1", specialty="Orthopedics"):
            logger.info("Validating")
    """
    with logger.contextualize(order_id=order_id, **fields):
        yield
