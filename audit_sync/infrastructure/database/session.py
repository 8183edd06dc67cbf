"""
Gestión de conexiones a la base de datos del checkpoint.

Por defecto es un SQLite local (archivo), pero acepta cualquier URL de
SQLAlchemy.
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(database_url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo necesita.
    """
    args = {"future": True}
    if "postgresql" in database_url:
        args["pool_pre_ping"] = True  # Verifica conexion antes de usar
    return args


def create_db_engine(database_url: str) -> Engine:
    """Crea el engine, asegurando que exista el directorio del archivo SQLite."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, **_create_engine_args(database_url))


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory sincrona (el job es secuencial)."""
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Crea las tablas si no existen."""
    # Registrar modelos antes de create_all
    from audit_sync.infrastructure.database import models  # noqa: F401

    Base.metadata.create_all(engine)
