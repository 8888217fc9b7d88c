from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import structlog

LOG_FILE_NAME = "rust_mentor.log"

# SDK transports log every request at INFO; keep them out of the mentor's log
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai", "urllib3")


def configure_logging(level: str = "INFO", json_output: bool = False, logs_dir: Optional[Path] = None) -> None:
    """
    Initialize Python logging and structlog with consistent formatting.

    Stdlib loggers (`logging.getLogger(__name__)` across the package) and structlog loggers share
    the same level; the final renderer switches between console and JSON output. When `logs_dir`
    is given, records are also written to a rotating `rust_mentor.log` there.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    if root.handlers:
        # already configured by the host process (streamlit, uvicorn, pytest)
        root.setLevel(numeric_level)
    else:
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if logs_dir is not None:
            logs_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(logs_dir / LOG_FILE_NAME, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            )
        logging.basicConfig(
            level=numeric_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            handlers=handlers,
        )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
