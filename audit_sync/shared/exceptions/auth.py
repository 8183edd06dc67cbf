"""
Excepciones relacionadas con autenticación contra las APIs externas.
"""
from typing import Optional

from audit_sync.shared.exceptions.base import AppException


class UnauthorizedException(AppException):
    """
    Token rechazado por SafetyCulture o monday.com (401/403).

    Es fatal para la corrida: si un token es invalido, todos los registros
    restantes fallarian por el mismo motivo.
    """

    def __init__(self, service: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(
            message=f"{service} rechazó las credenciales (HTTP {status_code})",
            error_code="UNAUTHORIZED",
            details={"service": service, "status_code": status_code, "body": body[:500]}
        )
        self.service = service
        self.status_code = status_code
