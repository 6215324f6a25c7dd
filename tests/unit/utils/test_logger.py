"""Tests for logging utilities."""

import json
import logging
import sys
from unittest.mock import MagicMock, Mock, patch

from azure.core.exceptions import ResourceNotFoundError

from rotation_core.context.resource_context import resource_context
from rotation_core.utils.logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    ResourceContextFilter,
    configure_logging,
    get_logger,
    redact,
)


def _record(msg="Reconciled resource", **extra):
    record = logging.LogRecord("rotation.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedact:
    def test_credential_keys_are_masked(self):
        assert redact({"password": "S3cret!", "db_connection_string": "x", "epoch_id": 2}) == {
            "password": "(sensitive)",
            "db_connection_string": "(sensitive)",
            "epoch_id": 2,
        }


class TestContextAwareLogger:
    def test_extras_are_formatted_into_message(self):
        inner = Mock()
        logger = ContextAwareLogger(inner)

        logger.info("Stored credential secret", extra={"epoch_id": 2, "secret_id": "abc"})

        inner.info.assert_called_once_with(
            "Stored credential secret | epoch_id=2 | secret_id=abc",
            extra={"epoch_id": 2, "secret_id": "abc"},
        )

    def test_password_never_reaches_the_record(self):
        inner = Mock()
        ContextAwareLogger(inner).error("Create failed", extra={"password": "S3cret!"})

        message = inner.error.call_args[0][0]
        assert "S3cret!" not in message
        assert inner.error.call_args.kwargs["extra"] == {"password": "(sensitive)"}

    def test_no_extra(self):
        inner = Mock()
        ContextAwareLogger(inner).warning("plain")
        inner.warning.assert_called_once_with("plain", extra={})


class TestResourceContextFilter:
    def test_stamps_current_spec_id(self):
        record = _record()
        with resource_context("pg-main"):
            assert ResourceContextFilter().filter(record) is True
        assert record.spec_id == "pg-main"

    def test_no_spec_outside_context(self):
        record = _record()
        ResourceContextFilter().filter(record)
        assert not hasattr(record, "spec_id")


class TestAzureQueueHandler:
    @patch("rotation_core.utils.logger.QueueClient")
    def test_flushes_batch(self, queue_client_class):
        queue_client = MagicMock()
        queue_client_class.from_connection_string.return_value = queue_client

        handler = AzureQueueHandler(
            queue_name="logs-queue", connection_string="UseDevelopmentStorage=true", batch_size=2
        )
        handler.emit(_record("first", epoch_id=1))
        queue_client_class.from_connection_string.assert_not_called()

        handler.emit(_record("second", epoch_id=2))

        assert queue_client.send_message.call_count == 2
        payload = json.loads(queue_client.send_message.call_args_list[1][0][0])
        assert payload["message"] == "second"
        assert payload["context"] == {"epoch_id": 2}
        assert handler.log_buffer == []
        queue_client.create_queue.assert_not_called()

    @patch("rotation_core.utils.logger.QueueClient")
    def test_missing_queue_is_created_once(self, queue_client_class):
        queue_client = MagicMock()
        queue_client.get_queue_properties.side_effect = ResourceNotFoundError("no queue")
        queue_client_class.from_connection_string.return_value = queue_client

        handler = AzureQueueHandler("logs-queue", "UseDevelopmentStorage=true", batch_size=1)
        handler.emit(_record("first"))
        handler.emit(_record("second"))

        queue_client.create_queue.assert_called_once_with()
        queue_client_class.from_connection_string.assert_called_once()

    @patch("rotation_core.utils.logger.QueueClient")
    def test_send_failure_is_reported_not_raised(self, queue_client_class, capsys):
        queue_client_class.from_connection_string.return_value.send_message.side_effect = (
            RuntimeError("throttled")
        )
        handler = AzureQueueHandler("logs-queue", "UseDevelopmentStorage=true", batch_size=1)

        handler.emit(_record())

        assert "throttled" in capsys.readouterr().err
        assert handler.log_buffer == []

    def test_build_entry_includes_spec_and_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(spec_id="pg-main")
            record.exc_info = sys.exc_info()

        entry = AzureQueueHandler.build_entry(record)
        assert entry["spec_id"] == "pg-main"
        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["timestamp"].endswith("+00:00")
        assert "context" not in entry


class TestConfigureLogging:
    def test_configured_logger_is_returned_by_get_logger(self):
        logger = configure_logging("rotate-db", log_level="DEBUG", enable_queue=False)

        assert isinstance(logger, ContextAwareLogger)
        assert get_logger() is logger
        assert logger.logger.name == "rotation.rotate-db"
        assert logger.logger.level == logging.DEBUG
        assert len(logger.logger.handlers) == 1

    def test_reconfigure_replaces_handlers(self):
        configure_logging("rotate-db", enable_queue=False)
        logger = configure_logging("rotate-db", enable_queue=False)
        assert len(logger.logger.handlers) == 1

    def test_queue_handler_added_when_enabled(self):
        logger = configure_logging(
            "rotate-db", enable_queue=True, connection_string="UseDevelopmentStorage=true"
        )

        queue_handlers = [h for h in logger.logger.handlers if isinstance(h, AzureQueueHandler)]
        assert len(queue_handlers) == 1
        assert queue_handlers[0].queue_name == "logs-queue"
        queue_handlers[0].log_buffer.clear()

    def test_queue_skipped_without_connection_string(self, monkeypatch):
        monkeypatch.delenv("AzureWebJobsStorage", raising=False)
        logger = configure_logging("rotate-db", enable_queue=True)
        assert len(logger.logger.handlers) == 1

    def test_unconfigured_falls_back_to_root(self):
        assert get_logger().logger is logging.getLogger()
