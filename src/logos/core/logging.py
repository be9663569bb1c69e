"""Structured logging for the Logos API.

structlog's ProcessorFormatter renders every ``logging.getLogger(__name__)``
record, so library code keeps using the stdlib API. Output is ``text``
(colored console, the dev default) or ``json`` (one object per line).

Per-request context is bound with :mod:`structlog.contextvars` and merged
into every record of the request:

- ``entity``: ``<entity_type>:<entity_id>`` of the timeline being served
- ``sync_id``: the integration sync run that emitted the record

plus ``trace_id``/``span_id`` from the current OTel span.

When ``log_root`` is set, records are also written as JSON lines to::

    {log_root}/logos/{process_name}.log     # application and library loggers
    {log_root}/uvicorn/{process_name}.log   # uvicorn server and access logs

The API passes the configured service name (``logos`` by default) as
``process_name``. CLI commands log to stderr only.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from opentelemetry import trace

ENTITY_KEY = "entity"
SYNC_KEY = "sync_id"

# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------


def bind_timeline_context(entity_type: str, entity_id: str) -> None:
    """Tag the rest of the current request's records with the timeline entity.

    Must be called from the request's own task (an ``async def`` endpoint or
    dependency); context set inside threadpool code does not propagate back.
    """
    structlog.contextvars.bind_contextvars(**{ENTITY_KEY: f"{entity_type}:{entity_id}"})


def get_entity_context() -> str | None:
    return structlog.contextvars.get_contextvars().get(ENTITY_KEY)


@contextmanager
def sync_run_context(sync_id: str) -> Iterator[None]:
    """Tag records emitted during one sync run with its log entry id."""
    with structlog.contextvars.bound_contextvars(**{SYNC_KEY: sync_id}):
        yield


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``trace_id`` and ``span_id`` from the current OTel span."""
    ctx = trace.get_current_span().get_span_context()
    if ctx and ctx.trace_id:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

# Chatty at INFO; kept at WARNING on the console.
_NOISE_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "httpcore", "asyncpg")
# uvicorn's own loggers do not propagate to the root logger.
_SERVER_LOGGERS = ("uvicorn.access", "uvicorn.error")

_APP_DIR = "logos"
_SERVER_DIR = "uvicorn"


def _pre_chain(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(renderer: structlog.types.Processor, time_fmt: str) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_pre_chain(time_fmt),
    )


def _json_file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path)
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), "iso"))
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
    process_name: str = "logos",
) -> None:
    """Configure structured logging for the process.

    Replaces any handlers already on the root logger, so calling it again
    (e.g. per test) does not duplicate output.
    """
    if fmt == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        time_fmt = "iso"
    else:
        renderer = structlog.dev.ConsoleRenderer()
        time_fmt = "%H:%M:%S"

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, time_fmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_root = Path(log_root)
        root.addHandler(_json_file_handler(log_root / _APP_DIR / f"{process_name}.log"))
        server_handler = _json_file_handler(log_root / _SERVER_DIR / f"{process_name}.log")
        for name in _SERVER_LOGGERS:
            logging.getLogger(name).addHandler(server_handler)

    structlog.configure(
        processors=[
            *_pre_chain(time_fmt),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
