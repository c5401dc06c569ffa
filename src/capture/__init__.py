"""
Capture Storage Module for Recall Store

This module contains the capture storage engine:
- Perceptual hashing for screenshot deduplication
- Space reclamation under disk pressure
- Ingestion pipeline resolving dedup decisions
- Capture store facade used by the capture subsystem
"""

from src.capture.dedup import Fingerprint, PerceptualHashEngine
from src.capture.ingest import CaptureState, IngestionPipeline, IngestionResult
from src.capture.reclaim import ReclamationResult, SpaceReclamationPolicy
from src.capture.store import CaptureStore, StoreState

__all__ = [
    "CaptureStore",
    "StoreState",
    "PerceptualHashEngine",
    "Fingerprint",
    "IngestionPipeline",
    "IngestionResult",
    "CaptureState",
    "SpaceReclamationPolicy",
    "ReclamationResult",
]
