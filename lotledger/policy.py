"""
Heuristic thresholds for the P&L engine and the rent-roll validator.

All tunable numbers live here as named defaults. Override per call with
``dataclasses.replace(DEFAULT_POLICY, ...)``.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class LabelConflictPolicy(str, Enum):
    """How identical labels from different sources are combined."""
    PRECEDENCE = "precedence"  # keep the highest-trust source's amount
    SUM = "sum"                # add amounts across sources


# Category mapping
EMBEDDING_SIMILARITY_THRESHOLD = 0.85

# Reconciliation
RECONCILIATION_MISMATCH_THRESHOLD = Decimal("500")
FALLBACK_TRIGGER_MAX_PRIMARY_ROWS = 3
FALLBACK_DOWNGRADE_MIN_ROWS = 10

# Confidence bands
RULE_PARSER_CONFIDENCE = 0.65
STRUCTURED_HYBRID_CONFIDENCE = 0.85
STRUCTURED_ONLY_CONFIDENCE = 0.80
FALLBACK_REGEX_CONFIDENCE = 0.60
FALLBACK_CORROBORATION_BONUS = 0.10
FALLBACK_CORROBORATION_RATIO = 0.5
MISMATCH_PENALTY = 0.10

# Rent roll
SEQUENCE_CHECK_MIN_LOTS = 200
SEQUENCE_GAP_RATIO = 0.20
SEQUENCE_MAX_GAP = 10
LOT_DISPLAY_WIDTH = 3
RENT_ROLL_CHUNK_CHARS = 8000


@dataclass(frozen=True)
class ExtractionPolicy:
    """Thresholds used by the extractor, reconciler and category mapper."""

    embedding_similarity_threshold: float = EMBEDDING_SIMILARITY_THRESHOLD
    mismatch_threshold: Decimal = RECONCILIATION_MISMATCH_THRESHOLD
    fallback_trigger_max_primary_rows: int = FALLBACK_TRIGGER_MAX_PRIMARY_ROWS
    fallback_downgrade_min_rows: int = FALLBACK_DOWNGRADE_MIN_ROWS
    rule_parser_confidence: float = RULE_PARSER_CONFIDENCE
    structured_hybrid_confidence: float = STRUCTURED_HYBRID_CONFIDENCE
    structured_only_confidence: float = STRUCTURED_ONLY_CONFIDENCE
    fallback_regex_confidence: float = FALLBACK_REGEX_CONFIDENCE
    fallback_corroboration_bonus: float = FALLBACK_CORROBORATION_BONUS
    fallback_corroboration_ratio: float = FALLBACK_CORROBORATION_RATIO
    mismatch_penalty: float = MISMATCH_PENALTY
    label_conflict_policy: LabelConflictPolicy = LabelConflictPolicy.PRECEDENCE


@dataclass(frozen=True)
class RentRollPolicy:
    """Thresholds used by the rent-roll normalizer and validator."""

    sequence_check_min_lots: int = SEQUENCE_CHECK_MIN_LOTS
    sequence_gap_ratio: float = SEQUENCE_GAP_RATIO
    sequence_max_gap: int = SEQUENCE_MAX_GAP
    lot_display_width: int = LOT_DISPLAY_WIDTH
    chunk_chars: int = RENT_ROLL_CHUNK_CHARS


DEFAULT_POLICY = ExtractionPolicy()
DEFAULT_RENT_ROLL_POLICY = RentRollPolicy()
