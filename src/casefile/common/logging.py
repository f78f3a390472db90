import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LazyFlushingFileHandler(logging.Handler):
    """
    Handler fichier paresseux pour les workers:
    - le fichier n'est ouvert qu'au premier enregistrement emis
    - flush apres chaque enregistrement (les workers RQ peuvent etre tues brutalement)
    """

    def __init__(self, filename: str, mode: str = "a", encoding: str = "utf-8"):
        super().__init__()
        self.filename = filename
        self.mode = mode
        self.encoding = encoding
        self._handler: Optional[logging.FileHandler] = None

    def _ensure_handler(self) -> logging.FileHandler:
        if self._handler is None:
            Path(self.filename).parent.mkdir(parents=True, exist_ok=True)
            self._handler = logging.FileHandler(self.filename, mode=self.mode, encoding=self.encoding)
            self._handler.setFormatter(self.formatter)
            self._handler.setLevel(self.level)
        return self._handler

    def emit(self, record):
        handler = self._ensure_handler()
        handler.emit(record)
        handler.flush()

    def close(self):
        if self._handler:
            self._handler.close()
        super().close()


def setup_logging(
    logs_dir: Path,
    log_file_name: str,
    logger_name: str = "casefile",
    enable_console: bool = True,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Configure un logger nomme avec sortie console optionnelle et fichier lazy.

    Appele au demarrage de chaque worker (un fichier de log par file RQ).
    Les handlers existants sont remplaces pour permettre une reconfiguration.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if enable_console:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        logger.addHandler(console)

    file_handler = LazyFlushingFileHandler(str(logs_dir / log_file_name))
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


_LOGGER_CACHE: dict[str, logging.Logger] = {}


def get_logger(log_file_name: str, logs_dir: Optional[Path] = None, enable_console: bool = False) -> logging.Logger:
    """Retourne (et met en cache) un logger `casefile.<nom>` ecrivant dans `log_file_name`."""
    cache_key = f"{log_file_name}:{enable_console}"
    if cache_key in _LOGGER_CACHE:
        return _LOGGER_CACHE[cache_key]

    if logs_dir is None:
        from casefile.config.settings import get_settings

        logs_dir = get_settings().logs_dir

    logger_name = f"casefile.{log_file_name.replace('.log', '')}"
    logger = setup_logging(logs_dir, log_file_name, logger_name=logger_name, enable_console=enable_console)
    _LOGGER_CACHE[cache_key] = logger
    return logger
