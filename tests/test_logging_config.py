import json
import logging

from logvault.logging_config import JsonFormatter, MemoryLogHandler, log_lifecycle_event, trace_id_var


def _logger(name, handler):
    log = logging.getLogger(name)
    log.handlers = [handler]
    log.setLevel(logging.DEBUG)
    log.propagate = False
    return log


def test_json_formatter_carries_extras_and_trace():
    record = logging.LogRecord("logvault.pipeline", logging.WARNING, __file__, 1, "Event %s", ("rejected",), None)
    record.tenant_id = "t1"
    record.reason = "invalid_timestamp"
    token = trace_id_var.set("trace-1")
    try:
        entry = json.loads(JsonFormatter().format(record))
    finally:
        trace_id_var.reset(token)

    assert entry["msg"] == "Event rejected"
    assert entry["level"] == "WARNING"
    assert entry["tenant_id"] == "t1"
    assert entry["reason"] == "invalid_timestamp"
    assert entry["trace_id"] == "trace-1"
    assert "args" not in entry


def test_memory_handler_filters():
    handler = MemoryLogHandler(max_size=3)
    log = _logger("test.memory", handler)

    log.info("one", extra={"tenant_id": "a"})
    log.warning("two", extra={"tenant_id": "b"})
    log.error("three", extra={"tenant_id": "a"})
    log.debug("four", extra={"tenant_id": "a"})

    assert [e["msg"] for e in handler.get_logs()] == ["two", "three", "four"]
    assert [e["msg"] for e in handler.get_logs(tenant_id="a")] == ["three", "four"]
    assert [e["msg"] for e in handler.get_logs(min_level="warning")] == ["two", "three"]
    assert [e["msg"] for e in handler.get_logs(limit=1)] == ["four"]
    assert handler.get_logs(since="2999-01-01T00:00:00Z") == []
    assert len(handler.get_logs(since="not a date")) == 3


def test_memory_handler_keeps_unserializable_extras_as_text():
    handler = MemoryLogHandler()
    log = _logger("test.memory.objects", handler)
    log.info("obj", extra={"thing": object()})
    assert isinstance(handler.get_logs()[0]["thing"], str)


def test_lifecycle_event_fields():
    handler = MemoryLogHandler()
    _logger("logvault.lifecycle", handler)
    try:
        log_lifecycle_event("retention", "Retention enforced", tenant_id="t1", deleted=3)
    finally:
        logging.getLogger("logvault.lifecycle").handlers = []
        logging.getLogger("logvault.lifecycle").propagate = True
        logging.getLogger("logvault.lifecycle").setLevel(logging.NOTSET)

    entry = handler.get_logs()[0]
    assert entry["component"] == "lifecycle"
    assert entry["event"] == "retention"
    assert entry["deleted"] == 3
