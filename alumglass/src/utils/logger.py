"""
AlumGlass - Logging
====================
Logger factory shared by every AlumGlass module.

Verbosity follows ``settings.ENV``:
  • ``"dev"``  → DEBUG
  • ``"prod"`` → WARNING

Log lines start with a bracketed component tag (``[SESSION]``,
``[FAILOVER]``, ``[RETRIEVAL]``, ``[CHAT]`` …) so one request can be
followed across components.

Credential *names* may be logged; key values never are.  Every handler
carries ``CredentialRedactionFilter``, which masks Gemini API keys,
Astra application tokens and MongoDB URI passwords that reach a log
line through an upstream error message.

Usage:
    from alumglass.src.utils.logger import get_logger
    logger = get_logger(__name__)
"""

import logging
import re
import sys

from alumglass.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

REDACTED = "***"

# ── Secret patterns ───────────────────────────────────────────────────
_RE_GEMINI_KEY = re.compile(r"AIza[0-9A-Za-z_\-]{20,}")
_RE_ASTRA_TOKEN = re.compile(r"AstraCS:[0-9A-Za-z:_\-]+")
_RE_MONGO_PASSWORD = re.compile(r"(mongodb(?:\+srv)?://[^:@/\s]+:)[^@/\s]+@")


def redact(text: str) -> str:
    text = _RE_GEMINI_KEY.sub(REDACTED, text)
    text = _RE_ASTRA_TOKEN.sub(REDACTED, text)
    return _RE_MONGO_PASSWORD.sub(rf"\1{REDACTED}@", text)


class CredentialRedactionFilter(logging.Filter):
    """Rewrites the rendered message with secrets masked; never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg, record.args = cleaned, None
        return True


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a named logger writing to stdout.

    Args:
        name:  Usually ``__name__`` of the calling module.
        level: Explicit level override; defaults to the ``ENV``-derived level.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if not logger.handlers:
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        handler.addFilter(CredentialRedactionFilter())
        logger.addHandler(handler)

        logger.propagate = False

    return logger
