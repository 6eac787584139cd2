"""recordvault service implementations."""

from .ingestion import IngestionService, WriteState, id_for_key
from .retrieval import RetrievalService

__all__ = [
    "IngestionService",
    "WriteState",
    "id_for_key",
    "RetrievalService",
]
