# ==============================================================================
# LOGGING DE LA APLICACIÓN
# ==============================================================================
# Un único logger raíz 'app_pdv' con salida a consola y archivo rotativo.
# Los módulos usan logging.getLogger(__name__) y heredan esta configuración.
# ==============================================================================

import os
import logging
from logging.handlers import RotatingFileHandler

from app_pdv.config import AppConfig

LOGGER_NAME = 'app_pdv'

MAX_BYTES = 1048576  # 1MB
BACKUP_COUNT = 3

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(config: AppConfig = None) -> logging.Logger:
    """
    Configura el logger de la aplicación (idempotente).

    Args:
        config: Configuración; si es None se usan los valores por defecto

    Returns:
        Logger raíz de la aplicación
    """
    config = config or AppConfig()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, config.log_level, logging.INFO))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """Logger hijo de 'app_pdv'."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
