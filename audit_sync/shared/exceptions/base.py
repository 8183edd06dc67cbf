"""
Raiz de la jerarquia de errores del job de sincronizacion.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Error controlado del job. Las demas excepciones del paquete heredan de esta.

    `fatal` distingue dos alcances:
    - True: la corrida se aborta (config, credenciales, listado de auditorias)
    - False: solo se descarta el registro en curso y se sigue con el siguiente
    """

    fatal: bool = True

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"
