"""
Cliente minimo de la API REST de SafetyCulture (auditorias).
"""
from audit_sync.infrastructure.external.safetyculture.client import (
    SafetyCultureClient,
    SafetyCultureCredentials,
)

__all__ = ["SafetyCultureClient", "SafetyCultureCredentials"]
