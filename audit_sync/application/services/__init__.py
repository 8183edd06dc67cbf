"""
Servicios de aplicacion.

Extractor de campos y politicas de checkpoint del pipeline.
"""
from audit_sync.application.services.field_extractor import (
    DEFAULT_ALLOWED_LABELS,
    extract,
    first_values,
)
from audit_sync.application.services.checkpoint_store import (
    CheckpointStore,
    TodayCheckpointStore,
    PersistentCheckpointStore,
    build_checkpoint_store,
)

__all__ = [
    "DEFAULT_ALLOWED_LABELS",
    "extract",
    "first_values",
    "CheckpointStore",
    "TodayCheckpointStore",
    "PersistentCheckpointStore",
    "build_checkpoint_store",
]
