"""Classifiers package."""
from lotledger.services.classifiers.synonym import SynonymClassifier
from lotledger.services.classifiers.embedding_based import (
    EmbeddingMatch,
    LabelEmbeddingStore,
    SentenceTransformerLabelStore,
)
from lotledger.services.classifiers.hybrid import CategoryMapper, MappingOutcome

__all__ = [
    "SynonymClassifier",
    "EmbeddingMatch",
    "LabelEmbeddingStore",
    "SentenceTransformerLabelStore",
    "CategoryMapper",
    "MappingOutcome",
]
