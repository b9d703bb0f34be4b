"""
Logging configuration for LotLedger.

Every log line emitted while a document is processed carries the same
extraction id, bound through a context variable.
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Any

import structlog

# Context variable for the current extraction run (thread/task-safe)
extraction_id: ContextVar[str] = ContextVar("extraction_id", default="")


def get_extraction_id() -> str:
    """Get the current run's extraction ID."""
    return extraction_id.get()


def new_extraction_id() -> str:
    """Start a new extraction run and return its ID."""
    run_id = str(uuid.uuid4())
    extraction_id.set(run_id)
    return run_id


def add_extraction_id_processor(
    logger: Any, method_name: str, event_dict: dict
) -> dict:
    """structlog processor that adds the extraction ID to every event."""
    run_id = get_extraction_id()
    if run_id:
        event_dict["extraction_id"] = run_id
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog with JSON output."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_extraction_id_processor,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
