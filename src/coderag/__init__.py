"""Code-grounded retrieval-augmented question answering."""

from .config import Settings
from .orchestrator import AnswerResult, RetrievalOrchestrator

__all__ = ["AnswerResult", "RetrievalOrchestrator", "Settings"]
