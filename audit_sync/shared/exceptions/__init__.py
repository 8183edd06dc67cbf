"""
Excepciones de la aplicacion.
"""
from audit_sync.shared.exceptions.base import AppException
from audit_sync.shared.exceptions.auth import UnauthorizedException
from audit_sync.shared.exceptions.domain import (
    ConfigMissingException,
    SyncRecordException,
    SourceFetchFailedException,
    UnparseableTimestampException,
    TargetUpsertFailedException,
)

__all__ = [
    "AppException",
    "UnauthorizedException",
    "ConfigMissingException",
    "SyncRecordException",
    "SourceFetchFailedException",
    "UnparseableTimestampException",
    "TargetUpsertFailedException",
]
