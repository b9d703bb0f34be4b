"""
Multi-source merger and reconciler.

Combines the statements produced by the structured-extraction collaborator,
the rule-based parser and the regex fallback scanner into one statement,
labels the winning strategy and scores confidence.

Never raises on disagreement between sources: differences are recorded as
diagnostics and lower the confidence score.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import structlog

from lotledger.pnl_engine.models import (
    Diagnostic,
    ExtractionSource,
    ExtractionStrategy,
    LineItem,
    SectionName,
    Statement,
)
from lotledger.policy import DEFAULT_POLICY, ExtractionPolicy, LabelConflictPolicy

logger = structlog.get_logger(__name__)


@dataclass
class Reconciliation:
    """Merged statement with strategy, confidence and diagnostics."""

    statement: Statement
    strategy: ExtractionStrategy
    confidence: float
    rows: Dict[ExtractionSource, int] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    net_income_source: Optional[ExtractionSource] = None


class Reconciler:
    """
    Tiered-trust merge of independently extracted statements.

    Sources are incorporated in precedence order (structured, rule,
    fallback). Labels are unioned per section. When the same label arrives
    from more than one source the policy decides: keep the higher-trust
    amount (default) or sum. A source's own repeated labels were already
    summed when it was extracted. An explicit net income is taken from the
    highest-precedence source that supplies one.

    Summing across sources double-counts whenever two extractors read the
    same line, and it makes merging a statement with itself change its
    totals. ``LabelConflictPolicy.SUM`` restores that behaviour for callers
    whose sources never overlap.
    """

    def __init__(self, policy: ExtractionPolicy = DEFAULT_POLICY):
        self._policy = policy

    # -------------------------------------------------------------------------
    # Merge
    # -------------------------------------------------------------------------

    def merge(
        self,
        sources: Mapping[ExtractionSource, Statement],
        diagnostics: Optional[List[Diagnostic]] = None,
    ) -> Statement:
        """
        Merge statements keyed by source.

        Args:
            sources: One statement per source; missing sources are skipped.
            diagnostics: Optional list that receives label conflicts.

        Returns:
            A new merged Statement; inputs are not modified.
        """
        merged = Statement()
        ordered = sorted(
            ((src, stmt) for src, stmt in sources.items() if stmt is not None),
            key=lambda pair: pair[0].precedence,
        )

        for source, statement in ordered:
            for section in statement.sections():
                target = merged.section(section.name)
                for item in section:
                    existing = target.get(item.label)
                    if existing is None:
                        target.put(LineItem(label=item.label, amount=item.amount))
                        continue
                    if self._policy.label_conflict_policy == LabelConflictPolicy.SUM:
                        target.add(item.label, item.amount)
                    elif diagnostics is not None and abs(existing.amount - item.amount) > self._policy.mismatch_threshold:
                        diagnostics.append(Diagnostic(
                            code="label_amount_conflict",
                            message=f"'{item.label}' differs between sources; kept the higher-trust amount",
                            details={
                                "section": section.name.value,
                                "label": item.label,
                                "kept": float(existing.amount),
                                "discarded": float(item.amount),
                                "discarded_source": source.value,
                            },
                        ))

            if merged.reported_net_income is None and statement.reported_net_income is not None:
                merged.reported_net_income = statement.reported_net_income

        return merged

    # -------------------------------------------------------------------------
    # Reconcile
    # -------------------------------------------------------------------------

    def reconcile(
        self,
        rule: Optional[Statement] = None,
        structured: Optional[Statement] = None,
        fallback: Optional[Statement] = None,
        rows: Optional[Mapping[ExtractionSource, int]] = None,
    ) -> Reconciliation:
        """
        Merge all available sources and score the result.

        Args:
            rule: Rule-based parser output.
            structured: Structured-extraction collaborator output.
            fallback: Regex fallback scanner output.
            rows: Row counts per source before label merging; defaults to
                each statement's item count.

        Returns:
            Reconciliation with strategy, confidence and diagnostics.
        """
        sources = {
            ExtractionSource.STRUCTURED: structured,
            ExtractionSource.RULE: rule,
            ExtractionSource.FALLBACK: fallback,
        }
        counts = {
            src: (rows or {}).get(src, stmt.row_count if stmt is not None else 0)
            for src, stmt in sources.items()
        }

        diagnostics: List[Diagnostic] = []
        merged = self.merge(sources, diagnostics)

        strategy = self._select_strategy(counts)
        confidence = self._base_confidence(strategy)

        if strategy == ExtractionStrategy.RULE_PARSER and self._fallback_corroborates(rule, fallback):
            confidence += self._policy.fallback_corroboration_bonus

        if structured is not None and rule is not None and not structured.is_empty and not rule.is_empty:
            diagnostics.extend(self._compare_totals(rule, structured))

        if merged.reported_net_income is not None:
            gap = merged.reported_net_income - merged.derived_net_income
            if abs(gap) > self._policy.mismatch_threshold:
                diagnostics.append(Diagnostic(
                    code="net_income_mismatch",
                    message="Reported net income differs from income minus expenses",
                    details={
                        "reported": float(merged.reported_net_income),
                        "derived": float(merged.derived_net_income),
                        "difference": float(gap),
                    },
                ))

        penalized = {d.code for d in diagnostics if d.code != "label_amount_conflict"}
        confidence -= self._policy.mismatch_penalty * len(penalized)
        confidence = round(min(1.0, max(0.0, confidence)), 2)

        net_source = next(
            (src for src in sorted(sources, key=lambda s: s.precedence)
             if sources[src] is not None and sources[src].reported_net_income is not None),
            None,
        )

        logger.info(
            "Reconciliation complete",
            strategy=strategy.value,
            confidence=confidence,
            structured_rows=counts[ExtractionSource.STRUCTURED],
            rule_rows=counts[ExtractionSource.RULE],
            fallback_rows=counts[ExtractionSource.FALLBACK],
            diagnostics=len(diagnostics),
        )

        return Reconciliation(
            statement=merged,
            strategy=strategy,
            confidence=confidence,
            rows=counts,
            diagnostics=diagnostics,
            net_income_source=net_source,
        )

    def _select_strategy(self, counts: Mapping[ExtractionSource, int]) -> ExtractionStrategy:
        structured_rows = counts.get(ExtractionSource.STRUCTURED, 0)
        rule_rows = counts.get(ExtractionSource.RULE, 0)
        fallback_rows = counts.get(ExtractionSource.FALLBACK, 0)

        if structured_rows >= 1:
            if rule_rows + fallback_rows >= 1:
                return ExtractionStrategy.STRUCTURED_HYBRID
            return ExtractionStrategy.STRUCTURED_ONLY

        if fallback_rows > rule_rows and (
            fallback_rows > self._policy.fallback_downgrade_min_rows or rule_rows == 0
        ):
            return ExtractionStrategy.FALLBACK_REGEX

        return ExtractionStrategy.RULE_PARSER

    def _base_confidence(self, strategy: ExtractionStrategy) -> float:
        return {
            ExtractionStrategy.RULE_PARSER: self._policy.rule_parser_confidence,
            ExtractionStrategy.STRUCTURED_HYBRID: self._policy.structured_hybrid_confidence,
            ExtractionStrategy.STRUCTURED_ONLY: self._policy.structured_only_confidence,
            ExtractionStrategy.FALLBACK_REGEX: self._policy.fallback_regex_confidence,
        }[strategy]

    def _fallback_corroborates(self, rule: Optional[Statement], fallback: Optional[Statement]) -> bool:
        """Check whether most fallback items repeat rule items with the same amount."""
        if rule is None or fallback is None or rule.is_empty or fallback.is_empty:
            return False

        agreeing = 0
        for section in fallback.sections():
            for item in section:
                match = rule.section(section.name).get(item.label)
                if match is not None and match.amount == item.amount:
                    agreeing += 1

        return agreeing / fallback.row_count >= self._policy.fallback_corroboration_ratio

    def _compare_totals(self, rule: Statement, structured: Statement) -> List[Diagnostic]:
        """Section totals from the rule parser versus the structured model."""
        diagnostics = []
        for name in SectionName:
            rule_total = rule.section(name).total
            structured_total = structured.section(name).total
            gap = rule_total - structured_total
            if abs(gap) > self._policy.mismatch_threshold:
                diagnostics.append(Diagnostic(
                    code="section_total_mismatch",
                    message=f"{name.value} total differs between rule parser and structured extraction",
                    details={
                        "section": name.value,
                        "rule_total": float(rule_total),
                        "structured_total": float(structured_total),
                        "difference": float(gap),
                    },
                ))
        return diagnostics


def merge_statements(*statements: Statement, policy: ExtractionPolicy = DEFAULT_POLICY) -> Statement:
    """
    Merge statements given in precedence order (highest trust first).

    ``merge_statements(s, Statement()) == s`` and, under the default
    precedence policy, ``merge_statements(s, s) == s``.
    """
    reconciler = Reconciler(policy)
    merged = Statement()
    for statement in statements:
        merged = reconciler.merge({
            ExtractionSource.STRUCTURED: merged,
            ExtractionSource.RULE: statement,
        })
    return merged


def get_reconciler(policy: ExtractionPolicy = DEFAULT_POLICY) -> Reconciler:
    """Get Reconciler instance."""
    return Reconciler(policy)
