"""
trx-reporter: Visual Studio TRX reports from test run lifecycle events.
"""

__version__ = "1.0.0"
__author__ = "trx-reporter Team"
__description__ = "Visual Studio TRX test run reports from test runner lifecycle events"

from .config import ReporterOptions, resolve_output_path
from .events import Runner
from .records import State, StepFailure, Suite, TestError, TestRecord, TestResults
from .reporter import ReportBuilder
from .trx import TestRun, UnitTestResult

__all__ = [
    "ReportBuilder",
    "ReporterOptions",
    "Runner",
    "State",
    "StepFailure",
    "Suite",
    "TestError",
    "TestRecord",
    "TestResults",
    "TestRun",
    "UnitTestResult",
    "resolve_output_path",
]
