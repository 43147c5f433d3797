# speaktime/utils/logger.py
import logging
import sys
from pathlib import Path
from speaktime.utils.config import settings


def setup_logger(name: str = "speaktime") -> logging.Logger:
    """Configurar y retornar un logger"""

    # Crear logger
    logger = logging.getLogger(name)

    # Ya configurado (re-import o múltiples llamadas)
    if logger.handlers:
        return logger

    log_level = getattr(settings, 'log_level', 'INFO')
    logger.setLevel(getattr(logging, log_level.upper()))

    # Formato
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Handler para consola
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Handler para archivo, el directorio se crea si no existe
    log_file = Path(settings.log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


# Logger global
logger = setup_logger()
