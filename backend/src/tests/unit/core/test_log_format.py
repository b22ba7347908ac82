import json
import logging

from quill.core.logging import ColoredFormatter, JSONFormatter, extra_fields


def make_record(msg: str = "Task started", **extra) -> logging.LogRecord:
    record = logging.LogRecord("quill.services.task_manager", logging.INFO, __file__, 10, msg, (), None)
    record.__dict__.update(extra)
    return record


def test_extra_fields_put_context_first():
    record = make_record(state="completed", provider="ollama", task_id="1234")

    assert list(extra_fields(record)) == ["task_id", "provider", "state"]


def test_colored_formatter_plain_line():
    record = make_record(task_id="1a2b3c4d-0000-4000-8000-000000000000", provider="ollama", model="llama3.1")

    line = ColoredFormatter(use_colors=False).format(record)

    assert line.endswith("INFO  quill.services.task_manager: Task started [task=1a2b3c4d provider=ollama model=llama3.1]")


def test_colored_formatter_skips_none_extras():
    line = ColoredFormatter(use_colors=False).format(make_record(task_id=None, status=200))

    assert "[" not in line
    assert line.endswith("Task started status=200")


def test_json_formatter():
    record = make_record(task_id="t1", status=500)

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "quill.services.task_manager"
    assert payload["msg"] == "Task started"
    assert payload["task_id"] == "t1"
    assert payload["status"] == 500
