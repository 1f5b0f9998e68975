"""Logging configuration for the provisioner.

Records emitted while a volume is being provisioned or deleted carry the
volume name and owner, taken from context variables bound by the workflow:

- text: "... - message [volume=pvc-1 owner=alice]"
- json: "volume" and "owner" keys next to the standard fields
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger import json as jsonlogger

from nfsusers.config import LoggingConfig

volume_ctx: ContextVar[str | None] = ContextVar("volume", default=None)
owner_ctx: ContextVar[str | None] = ContextVar("owner", default=None)

CONTEXT_FIELDS = ("volume", "owner")


@contextmanager
def volume_context(volume: str, owner: str | None = None) -> Iterator[None]:
    """Bind a volume (and optionally its owner) to every record in the block."""
    volume_token = volume_ctx.set(volume)
    owner_token = owner_ctx.set(owner)
    try:
        yield
    finally:
        owner_ctx.reset(owner_token)
        volume_ctx.reset(volume_token)


def bind_owner(owner: str) -> None:
    """Attach the owner once it is known; undone when volume_context exits."""
    owner_ctx.set(owner)


class VolumeContextFilter(logging.Filter):
    """Copies the bound volume/owner onto records that do not set them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field, var in zip(CONTEXT_FIELDS, (volume_ctx, owner_ctx)):
            value = var.get()
            if value is not None and not hasattr(record, field):
                setattr(record, field, value)
        return True


class ProvisionerTextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        return f"{line} [{context}]" if context else line


class ProvisionerJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter for log aggregation.

    Adds timestamp, level, logger, service and pid. Volume context arrives
    through VolumeContextFilter as regular record attributes.
    """

    def __init__(self, config: LoggingConfig, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        log_record["pid"] = record.process

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        log_record.pop("color_message", None)


def setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger.

    Args:
        config: Logging configuration settings.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.format == "json":
        formatter = ProvisionerJsonFormatter(config)
    else:
        formatter = ProvisionerTextFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(VolumeContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").disabled = True
    logging.getLogger("ldap3").setLevel(logging.WARNING)
