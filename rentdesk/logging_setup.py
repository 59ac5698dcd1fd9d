from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

def setup_logging(settings) -> Path | None:
    """Configure root logging; adds a rotating file under LOG_DIR/rentdesk.log when LOG_DIR is set."""
    level = getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
    fmt = logging.Formatter(FORMAT)

    logger = logging.getLogger()  # root
    logger.setLevel(level)
    if not any(getattr(h, "_rentdesk", False) for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        stream._rentdesk = True
        logger.addHandler(stream)

    log_path = None
    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / "rentdesk.log"
        # avoid duplicate handlers on reload
        if not any(getattr(h, "baseFilename", "").endswith("rentdesk.log") for h in logger.handlers):
            handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
            handler.setFormatter(fmt)
            handler.setLevel(level)
            logger.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)

    return log_path
