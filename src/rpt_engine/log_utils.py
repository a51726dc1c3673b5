from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, MutableMapping

from rich.logging import RichHandler

from rpt_engine.config import get_log_level


def configure_logging(log_level: str | None = None) -> None:
    """Route engine logs to a rich console handler."""
    level = getattr(logging, (log_level or get_log_level()).upper(), logging.WARNING)
    handler = RichHandler(show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(name)s | %(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _format_event(event: str, extra: MutableMapping[str, Any] | None = None) -> str:
    payload: dict[str, Any] = {"event": event}
    if extra:
        payload.update(extra)
    return json.dumps(payload, default=str)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **extra: Any) -> None:
    if logger.isEnabledFor(level):
        logger.log(level, _format_event(event, extra))


@contextmanager
def log_timing(logger: logging.Logger, event: str, **extra: Any):
    """Log start and completion of a block with elapsed milliseconds."""
    start = time.perf_counter()
    logger.debug(_format_event(event + ".start", extra))
    try:
        yield
    except Exception:
        elapsed = (time.perf_counter() - start) * 1000.0
        logger.exception(_format_event(event + ".error", {**extra, "elapsed_ms": elapsed}))
        raise
    else:
        elapsed = (time.perf_counter() - start) * 1000.0
        logger.info(_format_event(event + ".complete", {**extra, "elapsed_ms": elapsed}))
