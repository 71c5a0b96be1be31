"""Task extraction (free text → candidates) and commit with audit trail."""

from .commit import CommitCoordinator, to_task_record
from .pipeline import StructuredExtractionPipeline

__all__ = ["CommitCoordinator", "StructuredExtractionPipeline", "to_task_record"]
