"""
Orchestrator for rent-roll extraction.

Pass 1: Load text
Pass 2: Extract records (structured collaborator per chunk, concurrently;
        deterministic text parser when the collaborator is absent or fails)
Pass 3: Normalize lots, discard "Total" column matches
Pass 4: Validate and summarize
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

import structlog

from lotledger.config import get_settings
from lotledger.exceptions import CollaboratorUnavailableError, ExtractionEmptyError
from lotledger.logging_config import new_extraction_id
from lotledger.persistence import ResultSink, submit_result
from lotledger.policy import DEFAULT_RENT_ROLL_POLICY, RentRollPolicy
from lotledger.rent_roll.models import RentRollResult, RentRollRow
from lotledger.rent_roll.normalizer import RentRollNormalizer
from lotledger.rent_roll.validator import RentRollValidator
from lotledger.services.ocr_service import DocumentTextLoader, load_input_text
from lotledger.services.structured_extractor import StructuredExtractor, get_structured_extractor
from lotledger.services.text_normalizer import normalize_text

logger = structlog.get_logger(__name__)


def split_chunks(text: str, max_chars: int) -> List[str]:
    """Split text on line boundaries into chunks of at most ``max_chars`` (longer lines stand alone)."""
    chunks: List[str] = []
    current: List[str] = []
    size = 0

    for line in text.split("\n"):
        if current and size + len(line) + 1 > max_chars:
            chunks.append("\n".join(current))
            current, size = [], 0
        current.append(line)
        size += len(line) + 1

    if current and any(line.strip() for line in current):
        chunks.append("\n".join(current))
    return chunks


async def _extract_records(
    extractor: StructuredExtractor,
    chunks: List[str],
    max_concurrency: int,
) -> List[Dict[str, Any]]:
    """Run the collaborator on every chunk concurrently and concatenate the records."""
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    loop = asyncio.get_running_loop()

    async def extract_chunk(index: int, chunk: str) -> List[Dict[str, Any]]:
        async with semaphore:
            logger.debug("Extracting rent roll chunk", chunk=index, chars=len(chunk))
            return await loop.run_in_executor(None, extractor.extract_rent_roll, chunk)

    results = await asyncio.gather(*(extract_chunk(i, c) for i, c in enumerate(chunks)))
    return [record for chunk_records in results for record in chunk_records]


async def extract_rent_roll_async(
    document: Optional[bytes] = None,
    filename: Optional[str] = None,
    text: Optional[str] = None,
    *,
    structured_extractor: Optional[StructuredExtractor] = None,
    use_structured_extraction: bool = True,
    loader: Optional[DocumentTextLoader] = None,
    result_sink: Optional[ResultSink] = None,
    policy: Optional[RentRollPolicy] = None,
) -> RentRollResult:
    """
    Extract, normalize and validate a rent roll.

    Args:
        document: Raw document bytes (PDF or delimited text).
        filename: Original filename, used for extension sniffing only.
        text: Already-extracted text; bypasses binary parsing.
        structured_extractor: External structured-extraction collaborator.
        use_structured_extraction: Build the collaborator from settings when not injected.
        loader: Document text loader.
        result_sink: Persistence collaborator.
        policy: Rent-roll thresholds.

    Returns:
        RentRollResult with rows, summary and warnings.

    Raises:
        InputError: No document or text supplied.
        UnreadableDocumentError: No text could be extracted.
        ExtractionEmptyError: No lot rows were found.
    """
    run_id = new_extraction_id()
    started = time.perf_counter()
    policy = policy or DEFAULT_RENT_ROLL_POLICY
    settings = get_settings()

    logger.info("Starting rent roll extraction", run_id=run_id, filename=filename)

    raw_text = load_input_text(document, filename, text, loader)
    normalized = normalize_text(raw_text)
    normalizer = RentRollNormalizer(policy)

    if structured_extractor is None and use_structured_extraction:
        structured_extractor = get_structured_extractor()

    rows: List[RentRollRow] = []
    source = "text-parser"
    chunks = split_chunks(normalized, policy.chunk_chars)

    if structured_extractor is not None:
        try:
            records = await _extract_records(structured_extractor, chunks, settings.max_concurrency)
            rows = normalizer.rows_from_records(records)
            source = "structured"
        except CollaboratorUnavailableError as e:
            logger.warning(
                "Structured rent roll extraction unavailable, degrading",
                service=e.service_name,
                error=e.message,
            )
        except Exception as e:
            logger.warning(
                "Structured rent roll extraction failed, degrading",
                error=str(e),
                error_type=type(e).__name__,
            )
            rows = []

    if not rows:
        rows = normalizer.parse_text(raw_text)
        source = "text-parser"

    if not rows:
        raise ExtractionEmptyError("Could not read any lot rows from document", details={"filename": filename})

    normalizer.discard_total_matches(rows, raw_text)

    validator = RentRollValidator(policy)
    warnings = validator.validate(rows)
    summary = validator.summarize(rows)
    parse_time_ms = round((time.perf_counter() - started) * 1000, 2)

    result = RentRollResult(
        rows=rows,
        summary=summary,
        warnings=warnings,
        metadata={
            "extraction_id": run_id,
            "source": source,
            "chunks": len(chunks),
            "parse_time_ms": parse_time_ms,
            "source_filename": filename,
        },
    )

    logger.info(
        "Rent roll extraction complete",
        source=source,
        rows=len(rows),
        occupied=summary.occupied_lots,
        warnings=result.warning_codes(),
        parse_time_ms=parse_time_ms,
    )

    submit_result(result_sink, result)
    return result


def extract_rent_roll(
    document: Optional[bytes] = None,
    filename: Optional[str] = None,
    text: Optional[str] = None,
    **kwargs,
) -> RentRollResult:
    """Synchronous wrapper around ``extract_rent_roll_async``."""
    return asyncio.run(extract_rent_roll_async(document, filename, text, **kwargs))
