from codevault.ingest.base import (
    BaseExtractor,
    Embedder,
    ParseError,
    TraversalError,
    VectorStore,
)
from codevault.ingest.embedder import EmbeddingConfig, LiteLLMEmbedder, validate_api_key
from codevault.ingest.go_extractor import GoExtractor
from codevault.ingest.indexer import (
    EmptyIndexError,
    Indexer,
    IndexingError,
    MetadataSyncError,
    remove_project,
)
from codevault.ingest.registry import get_extractor, supported_languages

__all__ = [
    "BaseExtractor",
    "Embedder",
    "EmbeddingConfig",
    "EmptyIndexError",
    "GoExtractor",
    "Indexer",
    "IndexingError",
    "LiteLLMEmbedder",
    "MetadataSyncError",
    "ParseError",
    "TraversalError",
    "VectorStore",
    "get_extractor",
    "remove_project",
    "supported_languages",
    "validate_api_key",
]
