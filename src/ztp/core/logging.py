from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any, cast

import structlog
from opentelemetry import trace
from structlog.contextvars import bind_contextvars, merge_contextvars
from structlog.stdlib import ProcessorFormatter

from ztp.core.config import ObservabilityConfig

PreProcessor = Callable[
    [Any, str, MutableMapping[str, Any]],
    Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...],
]


class ContextFilter(logging.Filter):
    def __init__(self, context: dict[str, Any] | None = None):
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


def _drop_private_keys(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if not str(k).startswith("_")}


def _otel_enricher(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    if ctx and ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict


class LoggerFactory:
    _instance: LoggerFactory | None = None
    _configured: bool = False

    def __new__(cls) -> LoggerFactory:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def configure(
        self,
        level: str = "INFO",
        fmt: str = "json",
        log_file: Path | str | None = None,
        max_bytes: int | None = None,
        retention: int = 30,
        enable_console: bool = True,
        context: dict[str, Any] | None = None,
    ) -> None:
        if self._configured:
            return

        log_level = getattr(logging, level.upper(), logging.INFO)
        renderer = (
            structlog.processors.JSONRenderer()
            if fmt == "json"
            else structlog.dev.ConsoleRenderer()
        )
        pre_chain_raw = [
            merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
        ]
        pre_chain: Sequence[PreProcessor] = cast(Sequence[PreProcessor], pre_chain_raw)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
                _drop_private_keys,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                _otel_enricher,
                ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.handlers.clear()

        formatter = ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)

        # stdout is reserved for the stdio transport
        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            console_handler.addFilter(ContextFilter(context))
            root_logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            if max_bytes and max_bytes > 0:
                file_handler: logging.handlers.BaseRotatingHandler = (
                    logging.handlers.RotatingFileHandler(
                        str(log_path),
                        maxBytes=max_bytes,
                        backupCount=retention,
                        encoding="utf-8",
                    )
                )
            else:
                file_handler = logging.handlers.TimedRotatingFileHandler(
                    str(log_path),
                    when="D",
                    interval=1,
                    backupCount=retention,
                    utc=True,
                    encoding="utf-8",
                )
            file_handler.setFormatter(formatter)
            file_handler.addFilter(ContextFilter(context))
            root_logger.addHandler(file_handler)

        if context:
            bind_contextvars(**context)

        logging.getLogger("mcp").setLevel(max(log_level, logging.WARNING))

        self._configured = True

    def get_logger(self, name: str) -> structlog.stdlib.BoundLogger:
        return structlog.get_logger(name)


_factory = LoggerFactory()


def configure_logging(
    level: str = "INFO",
    fmt: str = "json",
    log_file: Path | str | None = None,
    max_bytes: int | None = None,
    retention: int = 30,
    enable_console: bool = True,
    context: dict[str, Any] | None = None,
) -> None:
    _factory.configure(
        level=level,
        fmt=fmt,
        log_file=log_file,
        max_bytes=max_bytes,
        retention=retention,
        enable_console=enable_console,
        context=context,
    )


def configure_from_settings(config: ObservabilityConfig) -> None:
    configure_logging(
        level=config.log_level,
        fmt=config.log_format,
        log_file=config.log_file,
        max_bytes=config.log_rotation_size_mb * 1024 * 1024 if config.log_file else None,
        retention=config.log_retention_days,
        context={"service": config.otel_service_name},
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return _factory.get_logger(name)


__all__ = [
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    "LoggerFactory",
]
