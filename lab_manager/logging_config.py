import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

# chatty at INFO; the request middleware already logs every call
QUIET_LOGGERS = ("uvicorn.access", "multipart", "python_multipart")


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Console + rotating file (<log_dir>/app.log, 5 x 5MB).
    Arguments win over LOG_LEVEL / LOG_DIR. Safe to call more than once.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(level)

    # app factory may run several times (tests)
    if root.handlers:
        return root

    path = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    path.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    console = logging.StreamHandler()
    file_handler = RotatingFileHandler(
        path / "app.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    for handler in (console, file_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
