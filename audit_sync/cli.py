"""
CLI: SafetyCulture -> monday.com (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer/task scheduler).

Variables de entorno requeridas (o archivo --config):
  - SAFETYCULTURE_API_TOKEN
  - SAFETYCULTURE_TEMPLATE_ID
  - MONDAY_API_TOKEN
  - MONDAY_BOARD_ID

Ejecución:
  audit-sync
  audit-sync --dry-run
  audit-sync --since-today
  audit-sync --full
  audit-sync --list-columns
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from audit_sync.application.use_cases.audit_sync_use_cases import (
    build_from_settings,
    build_monday_client,
    column_mapping_from_settings,
)
from audit_sync.core.config import Settings, load_settings
from audit_sync.core.logging import configure_logging
from audit_sync.infrastructure.external.monday.client import MondayApiError
from audit_sync.shared.exceptions import AppException, ConfigMissingException, UnauthorizedException
from audit_sync.shared.utils.datetime_utils import EPOCH


EXIT_OK = 0
EXIT_RECORD_FAILURES = 1
EXIT_CONFIG_MISSING = 2
EXIT_UNAUTHORIZED = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-sync",
        description="Sincroniza auditorias de SafetyCulture en un board de monday.com.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Archivo JSON con settings (sobrescribe variables de entorno).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Calcula y muestra los column values sin escribir en monday.com.",
    )
    window = parser.add_mutually_exclusive_group()
    window.add_argument(
        "--since-today",
        action="store_true",
        help="Ignora el checkpoint guardado y usa el inicio del dia UTC.",
    )
    window.add_argument(
        "--full",
        action="store_true",
        help="Full sync: checkpoint = 1970-01-01.",
    )
    parser.add_argument(
        "--list-columns",
        action="store_true",
        help="Solo imprime los ids/titulos de columnas del board (para configurar MONDAY_COLUMN_*).",
    )
    return parser


def _list_columns(settings: Settings) -> int:
    missing = [
        name for name, value in (
            ("MONDAY_API_TOKEN", settings.MONDAY_API_TOKEN),
            ("MONDAY_BOARD_ID", settings.MONDAY_BOARD_ID > 0),
        ) if not value
    ]
    if missing:
        raise ConfigMissingException(missing)

    # Columna configurada -> campo logico, para marcar las que ya estan mapeadas
    mapped = {
        definition.column_id: logical.value
        for logical, definition in column_mapping_from_settings(settings).items()
    }

    columns = build_monday_client(settings).list_board_columns(settings.MONDAY_BOARD_ID)
    print(f"Columnas del board {settings.MONDAY_BOARD_ID} (id -> titulo):")
    for column_id, title, column_type in columns:
        suffix = f"  <- {mapped.pop(column_id)}" if column_id in mapped else ""
        print(f"  {column_id}  ->  {title}  [{column_type}]{suffix}")

    for column_id, logical in mapped.items():
        logger.warning(f"MONDAY_COLUMN de '{logical}' apunta a '{column_id}', que no existe en el board")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    # Cargar variables desde .env si existe (no pisa variables ya definidas)
    load_dotenv(Path.cwd() / ".env", override=False)

    try:
        settings = load_settings(args.config)
        configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

        if args.list_columns:
            return _list_columns(settings)

        service = build_from_settings(settings)

        checkpoint_override = None
        if args.full:
            checkpoint_override = EPOCH
        elif args.since_today:
            checkpoint_override = service.checkpoint_store.reset_to_today()

        logger.info("Iniciando SafetyCulture -> monday.com sync...")
        result = service.run_once(dry_run=args.dry_run, checkpoint_override=checkpoint_override)
    except ConfigMissingException as e:
        logger.error(f"CONFIG: {e.message}")
        return EXIT_CONFIG_MISSING
    except UnauthorizedException as e:
        logger.error(f"Credenciales rechazadas: {e.message}")
        return EXIT_UNAUTHORIZED
    except MondayApiError as e:
        logger.error(f"monday.com: {e}")
        return EXIT_RECORD_FAILURES
    except AppException as e:
        logger.error(f"Sync abortado ({e.error_code}): {e.message}")
        return EXIT_RECORD_FAILURES

    if result.has_failures:
        logger.warning(f"Auditorias con error: {', '.join(result.failed_ids)}")
        return EXIT_RECORD_FAILURES
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
