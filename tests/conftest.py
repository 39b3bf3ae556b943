"""
Pytest configuration and fixtures for trx-reporter tests.
"""

import sys
from pathlib import Path

# Ensure 'src' directory is on sys.path so 'trx_reporter' package is importable everywhere
_repo_root = Path(__file__).resolve().parents[1]
_src_path = _repo_root / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

import io

import pytest
from loguru import logger

from trx_reporter.events import Runner
from trx_reporter.records import Suite, TestRecord
from trx_reporter.reporter import ReportBuilder

pytest_plugins = ["pytester"]


# Test stabilization: the output fallback and log level come from the environment
@pytest.fixture(autouse=True)
def _clear_reporter_env(monkeypatch, tmp_path):
    for key in ("TRX_REPORTER_FILE", "TRX_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    # Keep a stray .env in the repository root from leaking into Settings()
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted while the test runs."""
    messages = []
    handler_id = logger.add(lambda msg: messages.append(msg.record), level="DEBUG", format="{message}")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def runner():
    return Runner()


@pytest.fixture
def out_stream():
    return io.StringIO()


@pytest.fixture
def warn_stream():
    return io.StringIO()


@pytest.fixture
def make_builder(runner, tmp_path, out_stream, warn_stream):
    """Build a ReportBuilder writing relative to tmp_path into in-memory streams."""

    def _make(options=None):
        return ReportBuilder(runner, options, cwd=str(tmp_path), stream=out_stream, warning_stream=warn_stream)

    return _make


@pytest.fixture
def suite_tree():
    """Root suite with ``Suite X`` holding T1 and T2, plus a nested ``Inner`` holding T3."""
    root = Suite()
    suite_x = root.add_suite(Suite(title="Suite X"))
    t1 = suite_x.add_test(TestRecord(title="T1"))
    t2 = suite_x.add_test(TestRecord(title="T2"))
    inner = suite_x.add_suite(Suite(title="Inner"))
    t3 = inner.add_test(TestRecord(title="T3"))
    return {"root": root, "suite_x": suite_x, "inner": inner, "t1": t1, "t2": t2, "t3": t3}
