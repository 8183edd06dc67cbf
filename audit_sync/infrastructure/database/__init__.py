"""
Configuración de base de datos (checkpoint embebido).

Importa los modelos para que se registren con Base
antes de crear las tablas.
"""
from audit_sync.infrastructure.database.models import PendingAuditModel, SyncedAuditModel
