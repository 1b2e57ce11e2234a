"""
Tests for the shared logging, event and error helpers.
"""

import asyncio
import json
import logging
from unittest.mock import MagicMock

import pytest

from eiprep.common.events import EventDispatcher, SessionCompletedEvent, UnkeyedQuestionEvent
from eiprep.common.exceptions import BaseError, PersistenceUnavailable
from eiprep.common.logger import JsonFormatter, LoggerAdapter, log_execution_time


def _record(message="hello", data=None):
    record = logging.LogRecord("eiprep.test", logging.INFO, __file__, 10, message, None, None)
    if data is not None:
        record.data = data
    return record


class TestJsonFormatter:
    def test_structured_fields_are_merged(self):
        output = json.loads(JsonFormatter().format(_record(data={"session_id": "s1"})))

        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["session_id"] == "s1"


class TestLoggerAdapter:
    def test_context_is_added_to_extra(self):
        adapter = LoggerAdapter(logging.getLogger("eiprep.test"), {"user_id": "u1"})

        _, kwargs = adapter.with_context(session_id="s1").process("msg", {})

        assert kwargs["extra"]["data"] == {"user_id": "u1", "session_id": "s1"}
        assert adapter.extra == {"user_id": "u1"}


class TestLogExecutionTime:
    def test_sync_function(self):
        logger = MagicMock()

        @log_execution_time(logger)
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        logger.debug.assert_called_once()

    def test_async_function_errors_are_reraised(self):
        logger = MagicMock()

        @log_execution_time(logger)
        async def fail():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            asyncio.run(fail())
        logger.error.assert_called_once()


class TestEventDispatcher:
    def test_dispatch_by_class_or_name(self):
        dispatcher = EventDispatcher()
        by_class, by_name = MagicMock(), MagicMock()
        dispatcher.subscribe(UnkeyedQuestionEvent, by_class)
        dispatcher.subscribe("UnkeyedQuestionEvent", by_name)

        dispatcher.dispatch(UnkeyedQuestionEvent("t1", "q1"))
        dispatcher.dispatch(SessionCompletedEvent("s", "u", "t1", 50, 1.0, 2.0))

        by_class.assert_called_once()
        by_name.assert_called_once()

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        handler = MagicMock()
        dispatcher.subscribe(UnkeyedQuestionEvent, handler)
        dispatcher.unsubscribe(UnkeyedQuestionEvent, handler)

        dispatcher.dispatch(UnkeyedQuestionEvent("t1", "q1"))

        handler.assert_not_called()


class TestErrors:
    def test_persistence_unavailable_keeps_cause(self):
        cause = RuntimeError("connection refused")

        error = PersistenceUnavailable("get_test", cause)

        assert isinstance(error, BaseError)
        assert error.original_exception is cause
        assert "get_test" in str(error)
