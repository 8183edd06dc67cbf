"""
Utilidades para manejo de fechas y horas.

Todas las fechas que circulan por el pipeline son datetime aware en UTC.
La unica excepcion es parse_source_timestamp, usada para fechas calendario.
"""
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Optional


Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    SQLite devuelve datetimes naive aunque la columna sea timezone=True;
    los tratamos como UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    """Inicio (00:00:00 UTC) del dia calendario de `now`."""
    now_utc = ensure_utc(now)
    return datetime.combine(now_utc.date(), time.min, tzinfo=timezone.utc)


def parse_source_timestamp(raw: Any) -> Optional[datetime]:
    """
    Como parse_timestamp, pero conserva el offset del valor de origen.

    Sirve para tomar la fecha calendario tal como la ve SafetyCulture
    ("2024-06-01T01:00:00+10:00" -> 2024-06-01). Sin offset se asume UTC.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min, tzinfo=timezone.utc)
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """
    Convierte un string ISO 8601 (con 'Z', offset o solo fecha) a datetime UTC.

    Returns:
        Optional[datetime]: datetime aware o None si el valor no es parseable
    """
    parsed = parse_source_timestamp(raw)
    return ensure_utc(parsed) if parsed is not None else None


def isoformat_z(dt: datetime) -> str:
    """Serializa datetime a ISO8601 con 'Z' (UTC), sin microsegundos."""
    dt_utc = ensure_utc(dt)
    return dt_utc.replace(microsecond=0).isoformat().replace("+00:00", "Z")
