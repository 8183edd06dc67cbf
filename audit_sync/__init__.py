"""
Sincronizacion incremental one-way: SafetyCulture (auditorias) -> monday.com (board).

Este paquete esta pensado para ejecutarse como job periodico (cron / task
scheduler), no como un servicio.

Objetivos de diseño:
- Incremental: se apoya en un checkpoint (inicio del dia o ultimo completed_at).
- Idempotente: un item por auditoria, localizado por clave natural (upsert).
- Mapeo explicito y tipado de columnas (sin coerciones implicitas).
- Toda decision de omitir un registro queda en el log con su motivo.
"""

__version__ = "1.0.0"
