# =============================================================================
# Logging Configuration
# =============================================================================
#
# Call setup_logging() once at application startup. Modules log through
# logging.getLogger(__name__); third-party loggers are quieted below.
# =============================================================================

from __future__ import annotations

import logging
import sys

_NOISY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "anthropic": logging.WARNING,
    "chromadb": logging.WARNING,
    "docling": logging.WARNING,
    "urllib3": logging.WARNING,
    "uvicorn": logging.INFO,
}


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    # Avoid duplicate handlers on repeated calls (reload, tests)
    if root.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)

    for name, lib_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(lib_level)
