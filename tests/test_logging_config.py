"""
Tests for logging configuration and the extraction id context.
"""
import contextvars

import structlog

from lotledger.logging_config import (
    add_extraction_id_processor,
    configure_logging,
    extraction_id,
    get_extraction_id,
    new_extraction_id,
)


class TestExtractionId:
    """Tests for the per-run extraction id."""

    def test_new_id_is_current(self):
        def run():
            run_id = new_extraction_id()
            return run_id, get_extraction_id()

        run_id, current = contextvars.copy_context().run(run)
        assert run_id == current
        assert len(run_id) == 36

    def test_processor_adds_id(self):
        def run():
            token = extraction_id.set("run-1")
            try:
                return add_extraction_id_processor(None, "info", {"event": "x"})
            finally:
                extraction_id.reset(token)

        event = contextvars.copy_context().run(run)
        assert event == {"event": "x", "extraction_id": "run-1"}

    def test_processor_without_run(self):
        event = contextvars.Context().run(add_extraction_id_processor, None, "info", {"event": "x"})
        assert "extraction_id" not in event


class TestConfigureLogging:
    def test_installs_processor_chain(self):
        try:
            configure_logging("debug")
            processors = structlog.get_config()["processors"]

            assert add_extraction_id_processor in processors
            assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        finally:
            structlog.reset_defaults()
