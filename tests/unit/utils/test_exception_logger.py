"""Tests for the centralized ExceptionLogger."""

import json
import os
from pathlib import Path

from lomad.utils.exception_logger import ExceptionLogger


def read_entries(path: Path):
    chunks = [c.strip() for c in path.read_text().split("---") if c.strip()]
    return [json.loads(c) for c in chunks]


def test_initialize_defaults_to_home_log_dir(tmp_path):
    logger = ExceptionLogger.initialize()

    assert logger.log_file_path.parent == tmp_path / ".lomad" / "logs"
    assert logger.log_file_path.name.startswith("error_")
    assert logger.log_file_path.name.endswith(f"_{os.getpid()}.log")


def test_initialize_is_a_singleton(tmp_path):
    first = ExceptionLogger.initialize(tmp_path / "a")
    second = ExceptionLogger.initialize(tmp_path / "b")

    assert first is second
    assert ExceptionLogger.get_instance() is first


def test_log_exception_appends_json_entries(tmp_path):
    logger = ExceptionLogger.initialize(tmp_path)

    try:
        raise RuntimeError("ref update rejected")
    except RuntimeError as e:
        logger.log_exception(e, {"repository": "loot/skyrim", "operation": "update"})
    logger.log_exception(ValueError("second"))

    entries = read_entries(logger.log_file_path)
    assert len(entries) == 2
    assert entries[0]["exception_type"] == "RuntimeError"
    assert entries[0]["exception_message"] == "ref update rejected"
    assert entries[0]["context"]["repository"] == "loot/skyrim"
    assert "raise RuntimeError" in entries[0]["stack_trace"]
    assert entries[1]["context"] == {}
