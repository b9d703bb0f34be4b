"""
Persistence collaborator interface.

The engine owns no storage. A finished result is handed to a sink; a sink
failure is logged and never reaches the caller.
"""
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class ResultSink(Protocol):
    """Accepts a finished extraction result for storage."""

    def save(self, result: Any) -> None:
        ...


def submit_result(sink: Optional[ResultSink], result: Any) -> bool:
    """
    Hand a result to the sink, log-and-continue on failure.

    Returns:
        True when the sink accepted the result.
    """
    if sink is None:
        return False
    try:
        sink.save(result)
        return True
    except Exception as e:
        logger.error("Failed to persist extraction result", error=str(e), error_type=type(e).__name__)
        return False
