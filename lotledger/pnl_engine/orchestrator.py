"""
Orchestrator for the P&L engine.

Main entry point that coordinates the pipeline for one document:
Pass 1: Load text (PDF text layer, OCR, or delimited export)
Pass 2: Extract (rule parser, structured collaborator in parallel)
Pass 3: Fallback scan (only when the primary passes found too few rows)
Pass 4: Reconcile (merge, strategy, confidence, diagnostics)
Pass 5: Categorize (synonym table, optional embedding store)
Pass 6: Hand off to the persistence collaborator
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from lotledger.config import get_settings
from lotledger.exceptions import CollaboratorUnavailableError, ExtractionEmptyError
from lotledger.logging_config import new_extraction_id
from lotledger.persistence import ResultSink, submit_result
from lotledger.pnl_engine.extraction import (
    get_rule_extractor,
    is_net_income_label,
    is_summary_label,
)
from lotledger.pnl_engine.fallback import RegexFallbackScanner
from lotledger.pnl_engine.models import (
    ExtractionResult,
    ExtractionSource,
    SectionName,
    Statement,
)
from lotledger.pnl_engine.reconciler import Reconciler
from lotledger.policy import DEFAULT_POLICY, ExtractionPolicy
from lotledger.schemas.structured import StructuredPnlPayload
from lotledger.services.category_config import load_category_config
from lotledger.services.classifiers import CategoryMapper, SentenceTransformerLabelStore
from lotledger.services.ocr_service import DocumentTextLoader, load_input_text
from lotledger.services.structured_extractor import StructuredExtractor, get_structured_extractor
from lotledger.services.text_normalizer import normalize_text

logger = structlog.get_logger(__name__)


@dataclass
class EngineOptions:
    """Configuration options for one extraction run."""
    # Collaborators built from settings when not injected
    use_structured_extraction: bool = True
    use_embeddings: bool = False
    # Category mapping
    suggest_categories: bool = True
    max_concurrency: Optional[int] = None


def statement_from_payload(payload: StructuredPnlPayload) -> Statement:
    """
    Convert a validated collaborator payload into a Statement.

    Summary rows are dropped the same way the rule parser drops them; a net
    income row becomes the reported net income.
    """
    statement = Statement(reported_net_income=payload.net_income)
    for section, items in (
        (SectionName.INCOME, payload.income),
        (SectionName.EXPENSE, payload.expense),
        (SectionName.OTHER_EXPENSE, payload.other_expense),
    ):
        for item in items:
            if is_summary_label(item.label):
                if is_net_income_label(item.label) and statement.reported_net_income is None:
                    statement.reported_net_income = item.amount
                continue
            statement.add(section, item.label, item.amount)
    return statement


def build_category_mapper(options: EngineOptions, policy: ExtractionPolicy = DEFAULT_POLICY) -> CategoryMapper:
    """Default mapper: packaged category table, embedding store when enabled."""
    settings = get_settings()
    store = None
    if options.use_embeddings:
        store = SentenceTransformerLabelStore(
            embeddings_path=settings.embeddings_path,
            model_name=settings.embedding_model,
            threshold=policy.embedding_similarity_threshold,
        )
    return CategoryMapper(
        load_category_config(settings.category_config_path),
        embedding_store=store,
        policy=policy,
        max_concurrency=options.max_concurrency or settings.max_concurrency,
    )


async def extract_pnl_async(
    document: Optional[bytes] = None,
    filename: Optional[str] = None,
    text: Optional[str] = None,
    *,
    structured_extractor: Optional[StructuredExtractor] = None,
    category_mapper: Optional[CategoryMapper] = None,
    loader: Optional[DocumentTextLoader] = None,
    result_sink: Optional[ResultSink] = None,
    policy: Optional[ExtractionPolicy] = None,
    options: Optional[EngineOptions] = None,
) -> ExtractionResult:
    """
    Extract a P&L statement from a document.

    Args:
        document: Raw document bytes (PDF or delimited text).
        filename: Original filename, used for extension sniffing only.
        text: Already-extracted text; bypasses binary parsing.
        structured_extractor: External structured-extraction collaborator.
        category_mapper: Category mapper; built from settings when omitted.
        loader: Document text loader.
        result_sink: Persistence collaborator.
        policy: Heuristic thresholds.
        options: Engine options.

    Returns:
        ExtractionResult with strategy, confidence and suggestions.

    Raises:
        InputError: No document or text supplied.
        UnreadableDocumentError: No text could be extracted.
        ExtractionEmptyError: Every strategy yielded zero line items.
    """
    run_id = new_extraction_id()
    started = time.perf_counter()
    policy = policy or DEFAULT_POLICY
    options = options or EngineOptions()

    logger.info("Starting P&L extraction", run_id=run_id, filename=filename)

    # =================================================================
    # Pass 1: LOAD
    # =================================================================
    raw_text = load_input_text(document, filename, text, loader)
    normalized = normalize_text(raw_text)
    warnings = []

    # =================================================================
    # Pass 2: EXTRACTION
    # =================================================================
    if structured_extractor is None and options.use_structured_extraction:
        structured_extractor = get_structured_extractor()

    loop = asyncio.get_running_loop()
    structured_future = None
    if structured_extractor is not None:
        structured_future = loop.run_in_executor(None, structured_extractor.extract_pnl, normalized)

    rule = get_rule_extractor().extract(raw_text)
    warnings.extend(rule.warnings)

    structured_statement = None
    structured_rows = 0
    if structured_future is not None:
        try:
            payload = await structured_future
            structured_statement = statement_from_payload(payload)
            structured_rows = structured_statement.row_count
        except CollaboratorUnavailableError as e:
            logger.warning(
                "Structured extraction unavailable, degrading",
                service=e.service_name,
                error=e.message,
            )
            warnings.append("Structured extraction unavailable; deterministic parsers only")
        except Exception as e:
            logger.warning(
                "Structured extraction failed, degrading",
                error=str(e),
                error_type=type(e).__name__,
            )
            structured_statement = None
            structured_rows = 0
            warnings.append("Structured extraction unavailable; deterministic parsers only")

    # =================================================================
    # Pass 3: FALLBACK
    # =================================================================
    fallback_statement = None
    fallback_rows = 0
    if rule.rows + structured_rows <= policy.fallback_trigger_max_primary_rows:
        logger.info("Primary extraction returned few rows, running fallback scan",
                    rule_rows=rule.rows, structured_rows=structured_rows)
        scan = RegexFallbackScanner().scan(raw_text)
        fallback_statement = scan.statement
        fallback_rows = scan.rows

    # =================================================================
    # Pass 4: RECONCILIATION
    # =================================================================
    reconciliation = Reconciler(policy).reconcile(
        rule=rule.statement,
        structured=structured_statement,
        fallback=fallback_statement,
        rows={
            ExtractionSource.STRUCTURED: structured_rows,
            ExtractionSource.RULE: rule.rows,
            ExtractionSource.FALLBACK: fallback_rows,
        },
    )
    statement = reconciliation.statement

    if statement.is_empty:
        logger.warning("No line items extracted", filename=filename)
        raise ExtractionEmptyError(details={"filename": filename})

    if reconciliation.confidence < policy.rule_parser_confidence:
        warnings.append("Low extraction confidence; review line items before use")

    # =================================================================
    # Pass 5: CATEGORIES
    # =================================================================
    suggestions = {}
    unmapped = []
    if options.suggest_categories:
        mapper = category_mapper or build_category_mapper(options, policy)
        outcome = await mapper.suggest_async([
            (item.label, section.name.value)
            for section in statement.sections()
            for item in section
        ])
        suggestions = outcome.suggestions
        unmapped = outcome.unmapped

    parse_time_ms = round((time.perf_counter() - started) * 1000, 2)

    result = ExtractionResult(
        statement=statement,
        strategy=reconciliation.strategy,
        confidence=reconciliation.confidence,
        metadata={
            "extraction_id": run_id,
            "extraction_strategy": reconciliation.strategy.value,
            "confidence_score": reconciliation.confidence,
            "structured_rows": structured_rows,
            "rule_rows": rule.rows,
            "fallback_rows": fallback_rows,
            "monthly_tables": rule.monthly_tables,
            "parse_time_ms": parse_time_ms,
            "source_filename": filename,
        },
        category_suggestions=suggestions,
        unmapped=unmapped,
        warnings=warnings,
        diagnostics=reconciliation.diagnostics,
    )

    logger.info(
        "P&L extraction complete",
        strategy=result.strategy.value,
        confidence=result.confidence,
        items=statement.row_count,
        unmapped=len(unmapped),
        parse_time_ms=parse_time_ms,
    )

    # =================================================================
    # Pass 6: PERSISTENCE
    # =================================================================
    submit_result(result_sink, result)
    return result


def extract_pnl(
    document: Optional[bytes] = None,
    filename: Optional[str] = None,
    text: Optional[str] = None,
    **kwargs,
) -> ExtractionResult:
    """Synchronous wrapper around ``extract_pnl_async``."""
    return asyncio.run(extract_pnl_async(document, filename, text, **kwargs))
