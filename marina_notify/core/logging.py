import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from marina_notify.config import Settings

_HANDLER_MARKER = "_marina_notify_handler"
_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _initialize_logging(settings: Settings) -> None:
  """Configure root logging once; later calls only adjust the level."""
  root_logger = logging.getLogger()
  level = getattr(logging, settings.log_level, logging.INFO)
  root_logger.setLevel(level)

  # Handlers are tagged so uvicorn reloads do not stack duplicates.
  if any(getattr(handler, _HANDLER_MARKER, False) for handler in root_logger.handlers):
    return

  formatter = logging.Formatter(_LOG_FORMAT)
  stream_handler = logging.StreamHandler(sys.stdout)
  stream_handler.setFormatter(formatter)
  setattr(stream_handler, _HANDLER_MARKER, True)
  root_logger.addHandler(stream_handler)

  if settings.log_file:
    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(log_path, maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count, encoding="utf-8")
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_MARKER, True)
    root_logger.addHandler(file_handler)

  # Per-request client logs would repeat every FCM URL.
  for noisy_logger in ("httpx", "httpcore"):
    logging.getLogger(noisy_logger).setLevel(logging.WARNING)

  logging.getLogger("marina_notify.core.logging").debug("Logging initialized level=%s file=%s", settings.log_level, settings.log_file or "<none>")
