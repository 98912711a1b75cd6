"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; this only configures
the root handler once at startup.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_mosque_finder", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._mosque_finder = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # Quieten noisy third-party loggers
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def mask_code(code: str | None) -> str:
    """Mask a verification code for logs and audit details, keeping the last 4 chars."""
    if not code:
        return ""
    return f"{'*' * max(len(code) - 4, 0)}{code[-4:]}"
