"""
Ingestion Package.

Idempotent entry point for externally produced block score events.
"""

from ingestion.service import IngestionService, IngestionStatus, delta_from_block_hash

__all__ = ["IngestionService", "IngestionStatus", "delta_from_block_hash"]
