"""
Configuracion de logging (loguru) para el job.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Reemplaza el sink por defecto de loguru por:
    - stderr con el nivel indicado
    - archivo rotativo (si se indica `log_file`)
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper())

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="500 MB",
            retention="10 days",
            level=level.upper()
        )
