import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "vps_localizer"


class MapCodeFilter(logging.Filter):
    """Stamp records with the map code and, for archived sessions, the session id."""

    def __init__(self, map_code: str, session: Optional[str] = None):
        super().__init__()
        self.map_code = map_code
        self.session = session or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        record.map = self.map_code
        record.session = self.session
        return True


def setup_logger(map_code: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"{PACKAGE_LOGGER}.{map_code or 'default'}")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter(
            "%(asctime)s %(levelname)s [%(map)s] %(message)s"
        )
        handler.setFormatter(fmt)
        handler.addFilter(MapCodeFilter(map_code or "-"))
        logger.addHandler(handler)

    return logger


def add_session_handler(map_code: str, session_dir: str, filename: str = "session.log") -> logging.Handler:
    """
    Archive everything the package logs during one session.

    The handler sits on the package logger so client, storage and facade
    records all land in <session_dir>/logs/<filename>, tagged with the
    session id and the thread that emitted them (async requests complete on
    worker threads). The package logger is opened to DEBUG so response
    bodies are kept in the archive while the console keeps its own level.
    """
    session_dir = Path(session_dir)
    log_path = session_dir / "logs" / filename
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(map)s/%(session)s] %(threadName)s %(name)s: %(message)s"
    ))
    handler.addFilter(MapCodeFilter(map_code or "-", session_dir.name))

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(logging.DEBUG)
    package.addHandler(handler)
    return handler


def remove_session_handler(handler: logging.Handler) -> None:
    package = logging.getLogger(PACKAGE_LOGGER)
    package.removeHandler(handler)
    handler.close()
    if not package.handlers:
        package.setLevel(logging.NOTSET)
