"""
Structlog configuration for MERIDIAN.

Payee names are personal data: any event key listed in PAYEE_NAME_KEYS is
replaced by its length before rendering, so a stray `name=...` never reaches
the log stream. Output is JSON lines or console, picked by MERIDIAN_LOG_FORMAT
(auto = console on a TTY).
"""
import logging
import sys

import structlog

PAYEE_NAME_KEYS = frozenset({
    "payee", "payee_name", "name", "name_a", "name_b",
    "original", "normalized", "canonical_name",
})

LOG_FORMATS = ("auto", "json", "console")


def redact_payee_names(logger, method_name: str, event_dict: dict) -> dict:
    """Replace payee-name values with '<redacted:N chars>'."""
    for key in PAYEE_NAME_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = f"<redacted:{len(value)} chars>"
    return event_dict


def _renderer(log_format: str):
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {log_format!r}; expected one of {LOG_FORMATS}")
    if log_format == "json" or (log_format == "auto" and not sys.stderr.isatty()):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure(log_level: str = "INFO", log_format: str = "auto") -> None:
    """Configure structlog on top of stdlib logging."""
    renderer = _renderer(log_format)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_payee_names,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # The OpenAI SDK logs every HTTP round trip at INFO
    for noisy in ("httpx", "openai", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
