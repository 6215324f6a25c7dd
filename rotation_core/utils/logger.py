"""
Logging for rotation passes.

Console output carries ``| key=value`` extras in the message itself, and
records can optionally be shipped in batches to an Azure Storage Queue as
JSON. Extras whose names look like credentials are masked before either
sink sees them, and the managed resource being reconciled is stamped on
every record.
"""

import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.queue import QueueClient

from ..config import get_config
from ..constants import SENSITIVE_PLACEHOLDER
from .json_utils import dumps

_configured_logger: Optional["ContextAwareLogger"] = None

_SENSITIVE_MARKERS = ("password", "secret_value", "connection_string", "token")

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRIBUTES = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "spec_id",
}


def redact(extra: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key names a credential."""
    return {
        key: SENSITIVE_PLACEHOLDER
        if any(marker in key.lower() for marker in _SENSITIVE_MARKERS)
        else value
        for key, value in extra.items()
    }


def _level(value: Union[int, str]) -> int:
    if isinstance(value, str):
        return getattr(logging, value.upper(), logging.INFO)
    return value


class ContextAwareLogger:
    """
    Wraps a stdlib logger so ``extra`` is both attached to the record and
    appended to the message, keeping context visible under any formatter.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level: str, msg: str, **kwargs) -> None:
        extra = redact(kwargs.pop("extra", None) or {})
        if extra:
            msg = " | ".join([msg] + [f"{k}={v}" for k, v in extra.items()])
        getattr(self.logger, level)(msg, extra=extra, **kwargs)

    def debug(self, msg, **kwargs):
        self._log("debug", msg, **kwargs)

    def info(self, msg, **kwargs):
        self._log("info", msg, **kwargs)

    def warning(self, msg, **kwargs):
        self._log("warning", msg, **kwargs)

    def error(self, msg, **kwargs):
        self._log("error", msg, **kwargs)

    def exception(self, msg, **kwargs):
        self._log("exception", msg, **kwargs)


class ResourceContextFilter(logging.Filter):
    """Stamp the spec_id of the resource under reconciliation onto records."""

    def filter(self, record):
        from ..context.resource_context import ResourceContext

        spec_id = ResourceContext.get_current_spec_id()
        if spec_id:
            record.spec_id = spec_id
        return True


class AzureQueueHandler(logging.Handler):
    """
    Buffer records as JSON entries and send them to a storage queue in batches.

    The queue client is created on first flush, and the queue itself is
    created if missing. Delivery problems go to stderr; a logging handler
    never raises into the rotation pass.
    """

    def __init__(self, queue_name: str, connection_string: str, batch_size: int = 10):
        super().__init__()
        self.queue_name = queue_name
        self.connection_string = connection_string
        self.batch_size = batch_size
        self.log_buffer: List[Dict[str, Any]] = []
        self._queue_client: Optional[QueueClient] = None

    def _get_queue_client(self) -> QueueClient:
        if self._queue_client is None:
            client = QueueClient.from_connection_string(
                conn_str=self.connection_string, queue_name=self.queue_name
            )
            try:
                client.get_queue_properties()
            except ResourceNotFoundError:
                client.create_queue()
            self._queue_client = client
        return self._queue_client

    @staticmethod
    def build_entry(record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if getattr(record, "spec_id", None):
            entry["spec_id"] = record.spec_id

        context = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRIBUTES}
        if context:
            entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": [line.rstrip() for line in traceback.format_exception(exc_type, exc, tb)],
            }
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.log_buffer.append(self.build_entry(record))
        except Exception:
            self.handleError(record)
            return
        if len(self.log_buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self.log_buffer:
            return
        entries, self.log_buffer = self.log_buffer, []
        try:
            queue_client = self._get_queue_client()
            for entry in entries:
                queue_client.send_message(dumps(entry))
        except Exception as e:
            sys.stderr.write(f"Could not ship {len(entries)} log entries to '{self.queue_name}': {e}\n")

    def close(self) -> None:
        self.flush()
        super().close()


def configure_logging(
    name: str,
    log_level: Optional[Union[int, str]] = None,
    enable_queue: Optional[bool] = None,
    queue_name: Optional[str] = None,
    queue_batch_size: int = 10,
    connection_string: Optional[str] = None,
) -> ContextAwareLogger:
    """
    Configure the ``rotation.<name>`` logger and make it the one get_logger() returns.

    Unset arguments come from the application config: level from
    ``logging.level``, queue shipping from ``features.enable_logs_queue``,
    queue name and connection string from ``queue``. Queue shipping is
    skipped when no connection string is available.
    """
    global _configured_logger

    app_config = get_config()
    level = _level(log_level if log_level is not None else app_config.logging.level)
    if enable_queue is None:
        enable_queue = app_config.features.enable_logs_queue
    connection_string = connection_string or app_config.queue.connection_string
    queue_name = queue_name or app_config.queue.logs_queue_name

    logger = logging.getLogger(f"rotation.{name}")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    resource_filter = ResourceContextFilter()
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(logging.Formatter("%(message)s"))

    shipping = bool(enable_queue and connection_string)
    if enable_queue and not connection_string:
        sys.stderr.write("Queue logging requested but no storage connection string is set\n")
    if shipping:
        handlers.append(
            AzureQueueHandler(
                queue_name=queue_name,
                connection_string=connection_string,
                batch_size=queue_batch_size,
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(resource_filter)
        logger.addHandler(handler)

    _configured_logger = ContextAwareLogger(logger)
    _configured_logger.info(
        "Rotation logger configured",
        extra={"logger_name": name, "queue_name": queue_name if shipping else None},
    )
    return _configured_logger


def get_logger() -> ContextAwareLogger:
    """The configured logger, or the root logger at the configured level."""
    if _configured_logger is not None:
        return _configured_logger
    root = logging.getLogger()
    root.setLevel(_level(get_config().logging.level))
    return ContextAwareLogger(root)


def reset_logging() -> None:
    global _configured_logger
    _configured_logger = None
