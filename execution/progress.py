"""Progress callback plumbing shared by the workflow engine and batch processor."""

import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict[str, Any]], Any]


async def emit_progress(progress_callback: ProgressCallback | None, payload: dict[str, Any]) -> None:
    """Deliver a progress event; a failing listener never breaks the run."""
    if progress_callback is None:
        return
    try:
        maybe_result = progress_callback(payload)
        if inspect.isawaitable(maybe_result):
            await maybe_result
    except Exception as exc:
        logger.warning("Failed to emit progress callback: %s", exc)
