"""
Unit tests for category configuration and the category mapper.
"""
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from lotledger.exceptions import CollaboratorUnavailableError
from lotledger.services.category_config import (
    CategoryConfig,
    CategorySuggestion,
    SuggestionSource,
    load_category_config,
)
from lotledger.services.classifiers import (
    CategoryMapper,
    EmbeddingMatch,
    SentenceTransformerLabelStore,
    SynonymClassifier,
)


@pytest.fixture(scope="module")
def config() -> CategoryConfig:
    """Packaged category table."""
    return load_category_config()


class FakeEncoder:
    """Deterministic stand-in for a SentenceTransformer."""

    VECTORS = {
        "pad fees": [1.0, 0.0, 0.0],
        "space fees": [0.96, 0.28, 0.0],
        "zebra grooming": [0.0, 0.0, 1.0],
    }

    def encode(self, texts, **kwargs):
        return np.array([self.VECTORS.get(t.lower(), [0.0, 1.0, 0.0]) for t in texts])


class TestCategoryConfig:
    """Tests for loading the category table."""

    def test_default_categories(self, config: CategoryConfig):
        """Test the packaged table covers both sections."""
        assert "Lot Rent" in config.names("income")
        assert "Payroll" in config.names("expense")
        assert config.get("water/sewer").section == "expense"

    def test_from_dict_preserves_order(self):
        config = CategoryConfig.from_dict({
            "income": [{"category": "B", "synonyms": ["bee"]}, {"category": "A"}],
            "expense": [{"synonyms": ["skipped: no name"]}],
        })
        assert config.names() == ["B", "A"]
        assert config.for_section("income")[0].synonyms == ("bee",)

    def test_load_custom_file(self, temp_dir: Path):
        path = temp_dir / "categories.yaml"
        path.write_text("income:\n  - category: Pad Fees\n    synonyms: [pad fee]\n")
        config = load_category_config(path)
        assert config.names() == ["Pad Fees"]

    def test_suggestion_to_dict(self):
        suggestion = CategorySuggestion("Payroll", SuggestionSource.EMBEDDING, score=0.912345)
        assert suggestion.to_dict() == {"category": "Payroll", "source": "embedding", "score": 0.9123}


class TestSynonymClassifier:
    """Tests for the synonym tier."""

    @pytest.fixture
    def classifier(self, config: CategoryConfig) -> SynonymClassifier:
        return SynonymClassifier(config)

    def test_category_name_contained(self, classifier: SynonymClassifier):
        """Test tier (a): the category name inside the label."""
        result = classifier.classify("Lot Rent Income", "income")
        assert result.category == "Lot Rent"
        assert result.source == SuggestionSource.SYNONYM

    def test_synonym_contained(self, classifier: SynonymClassifier):
        """Test tier (b): a configured synonym inside the label."""
        assert classifier.classify("Site Rent - Residents").category == "Lot Rent"
        assert classifier.classify("Office Wages").category == "Payroll"

    def test_account_code_ignored(self, classifier: SynonymClassifier):
        assert classifier.classify("6010 Payroll").category == "Payroll"

    def test_section_searched_first(self, classifier: SynonymClassifier):
        """Test the label's own section wins when both sections match."""
        assert classifier.classify("Water Income", "income").category == "Utility Reimbursement"
        assert classifier.classify("Water", "expense").category == "Water/Sewer"

    def test_unmapped(self, classifier: SynonymClassifier):
        assert classifier.classify("Zebra Grooming") is None
        assert classifier.classify("") is None

    def test_normalize(self):
        assert SynonymClassifier.normalize("6010  Repairs & Maintenance") == " repairs&maintenance "


class TestSentenceTransformerLabelStore:
    """Tests for the label-embedding store with a fake encoder."""

    @pytest.fixture
    def store(self, temp_dir: Path) -> SentenceTransformerLabelStore:
        store = SentenceTransformerLabelStore(
            embeddings_path=temp_dir / "labels.pkl",
            model=FakeEncoder(),
        )
        store.add_examples([{"label": "Pad Fees", "category": "Lot Rent", "section": "income"}])
        return store

    def test_add_examples(self, store: SentenceTransformerLabelStore):
        assert store.size == 1

    def test_invalid_examples_skipped(self, store: SentenceTransformerLabelStore):
        assert store.add_examples([{"label": "", "category": "X"}, {"category": "Y"}, "junk"]) == 0
        assert store.size == 1

    def test_match_above_threshold(self, store: SentenceTransformerLabelStore):
        match = store.match("Space Fees")
        assert isinstance(match, EmbeddingMatch)
        assert match.category == "Lot Rent"
        assert match.matched_label == "Pad Fees"
        assert match.score == pytest.approx(0.96)

    def test_no_match_below_threshold(self, store: SentenceTransformerLabelStore):
        assert store.match("Zebra Grooming") is None

    def test_corpus_persisted(self, store: SentenceTransformerLabelStore, temp_dir: Path):
        """Test a new store reloads the pickled corpus."""
        reloaded = SentenceTransformerLabelStore(embeddings_path=temp_dir / "labels.pkl", model=FakeEncoder())
        assert reloaded.size == 1
        assert reloaded.match("Pad Fees").category == "Lot Rent"

    def test_encoder_failure(self, temp_dir: Path):
        """Test encoder errors surface as collaborator failures."""
        model = MagicMock()
        model.encode.side_effect = RuntimeError("model missing")
        store = SentenceTransformerLabelStore(model=model)
        with pytest.raises(CollaboratorUnavailableError):
            store.add_examples([{"label": "Pad Fees", "category": "Lot Rent"}])


class TestCategoryMapper:
    """Tests for the hybrid mapper."""

    def test_synonym_only(self, config: CategoryConfig):
        mapper = CategoryMapper(config)
        outcome = mapper.suggest([("Lot Rent Income", "income"), ("Zebra Grooming", "expense")])

        assert outcome.suggestions["lot rent income"].category == "Lot Rent"
        assert outcome.unmapped == ["Zebra Grooming"]
        assert outcome.stats.total == 2
        assert outcome.stats.coverage_pct == 50

    def test_duplicate_labels_counted_once(self, config: CategoryConfig):
        outcome = CategoryMapper(config).suggest([("Payroll", "expense"), ("payroll", "expense")])
        assert outcome.stats.total == 1

    def test_embedding_tier(self, config: CategoryConfig):
        """Test an embedding hit becomes a lower-priority suggestion."""
        store = MagicMock()
        store.match.return_value = EmbeddingMatch(
            label="Pad Fees", category="Lot Rent", score=0.93, matched_label="Pad Fee"
        )
        outcome = CategoryMapper(config, embedding_store=store).suggest([("Pad Fees", "income")])

        suggestion = outcome.suggestions["pad fees"]
        assert suggestion.source == SuggestionSource.EMBEDDING
        assert suggestion.score == pytest.approx(0.93)
        assert outcome.unmapped == []

    def test_synonym_overrides_embedding(self, config: CategoryConfig):
        """Test labels the synonym tier maps never reach the store."""
        store = MagicMock()
        store.match.return_value = EmbeddingMatch(label="Payroll", category="Insurance", score=0.99, matched_label="x")
        outcome = CategoryMapper(config, embedding_store=store).suggest([("Payroll", "expense")])

        assert outcome.suggestions["payroll"].category == "Payroll"
        assert outcome.suggestions["payroll"].source == SuggestionSource.SYNONYM
        store.match.assert_not_called()

    def test_embedding_below_threshold(self, config: CategoryConfig):
        store = MagicMock()
        store.match.return_value = EmbeddingMatch(label="Zebra", category="Payroll", score=0.5, matched_label="x")
        outcome = CategoryMapper(config, embedding_store=store).suggest([("Zebra Grooming", None)])
        assert outcome.unmapped == ["Zebra Grooming"]

    def test_store_failure_degrades(self, config: CategoryConfig):
        """Test a failing store only costs the embedding tier."""
        store = MagicMock()
        store.match.side_effect = CollaboratorUnavailableError("label-embedding-store")
        outcome = CategoryMapper(config, embedding_store=store).suggest([
            ("Zebra Grooming", None),
            ("Payroll", "expense"),
        ])
        assert outcome.unmapped == ["Zebra Grooming"]
        assert "payroll" in outcome.suggestions

    def test_concurrent_lookups_keyed_by_label(self, config: CategoryConfig):
        """Test results do not depend on completion order."""
        categories = {"Alpha Widgets": "Payroll", "Beta Widgets": "Insurance", "Gamma Widgets": "Laundry"}
        store = MagicMock()
        store.match.side_effect = lambda label: EmbeddingMatch(
            label=label, category=categories[label], score=0.9, matched_label=label
        )
        outcome = CategoryMapper(config, embedding_store=store, max_concurrency=2).suggest(
            [(label, None) for label in categories]
        )
        assert {k: v.category for k, v in outcome.suggestions.items()} == {
            "alpha widgets": "Payroll",
            "beta widgets": "Insurance",
            "gamma widgets": "Laundry",
        }
