"""
TRX report builder.

Subscribes to a :class:`~trx_reporter.events.Runner`, accumulates test
records while the run progresses and turns them into one TRX document when
the run ends.
"""

import getpass
import os
import socket
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Dict, List, Optional, Union

from .attachments import relocate_attachments
from .config import OptionsLike, coerce_options, resolve_output_path
from .events import (
    EVENT_FAIL,
    EVENT_RUN_BEGIN,
    EVENT_RUN_END,
    EVENT_SUITE_END,
    EVENT_TEST_BEGIN,
    EVENT_TEST_END,
    Runner,
)
from .logger_config import get_logger
from .records import RunStats, State, StepFailure, Suite, TestError, TestRecord, TestResults
from .result_mapping import test_to_result
from .trx import TestRun, Times

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry and no USER/LOGNAME variables (e.g. some containers)
        return "unknown"


def format_run_name(user: str, host: str, when: datetime) -> str:
    """``"<user>@<host> <YYYY-MM-DD HH:MM:SS>"`` in UTC."""
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    return f"{user}@{host} {when:%Y-%m-%d %H:%M:%S}"


def excluded_pending_warning(count: int) -> str:
    """The excluded-pending warning text for ``count`` tests."""
    if count == 1:
        return "Excluded 1 test because it is marked as Pending."
    return f"Excluded {count} tests because they are marked as Pending."


class ReportBuilder:
    """Builds a TRX report from the lifecycle events of one run.

    Args:
        runner: Event source to subscribe to.
        options: ReporterOptions or a mapping of reporter options.
        cwd: Base directory for relative test files and attachments (default: os.getcwd()).
        stream: Where the report goes when no output path resolves (default: sys.stdout).
        warning_stream: Where the excluded-pending warning goes (default: sys.stderr).
    """

    def __init__(
        self,
        runner: Runner,
        options: OptionsLike = None,
        *,
        cwd: Optional[str] = None,
        stream: Optional[IO[str]] = None,
        warning_stream: Optional[IO[str]] = None,
    ) -> None:
        self.runner = runner
        self.options = coerce_options(options)
        self.cwd = cwd or os.getcwd()
        self.stream = stream
        self.warning_stream = warning_stream
        self.computer_name = socket.gethostname()
        self.user_name = _user_name()

        self.stats = RunStats()
        # Insertion-ordered identity set
        self._tests: Dict[TestRecord, None] = {}
        self.failed_step: Optional[StepFailure] = None
        self.output_path: Optional[str] = None
        self.excluded_pending = 0

        runner.on(EVENT_RUN_BEGIN, self.on_run_begin)
        runner.on(EVENT_TEST_BEGIN, self.on_test_begin)
        runner.on(EVENT_TEST_END, self.on_test_end)
        runner.on(EVENT_FAIL, self.on_fail)
        runner.on(EVENT_SUITE_END, self.on_suite_end)
        runner.on(EVENT_RUN_END, self.on_run_end)

    @property
    def tests(self) -> List[TestRecord]:
        return list(self._tests)

    def _add(self, test: TestRecord) -> None:
        if test in self._tests:
            return
        self._tests[test] = None
        self.stats.tests += 1
        if test.state is State.PASSED:
            self.stats.passes += 1
        elif test.state is State.FAILED:
            self.stats.failures += 1
        elif test.state is State.PENDING:
            self.stats.pending += 1

    def on_run_begin(self) -> None:
        self.stats.start = _now()

    def on_test_begin(self, test: TestRecord) -> None:
        test.start = _now()

    def on_test_end(self, test: TestRecord) -> None:
        test.end = _now()
        self._add(test)

    def on_fail(self, failed: Union[TestRecord, StepFailure]) -> None:
        if isinstance(failed, StepFailure):
            logger.debug(f'{failed.title} failed on "{failed.parent.full_title()}"')
            self.failed_step = failed

    def on_suite_end(self, suite: Suite) -> None:
        self.stats.suites += 1
        failed_step = self.failed_step
        if failed_step is None or failed_step.parent is not suite:
            return

        message = f'Not executed due to {failed_step.title} on "{suite.full_title()}"'

        def mark_not_executed(test: TestRecord) -> None:
            if test.resolved:
                return
            test.error = TestError(message=message, stack=failed_step.error.stack)
            if test.state is State.NOT_EXECUTED:
                test.state = State.FAILED
            self._add(test)

        suite.each_test(mark_not_executed)
        self.failed_step = None

    def on_run_end(self) -> None:
        self.stats.end = _now()
        self.write_report()

    def snapshot(self) -> TestResults:
        """Attach the run stats and accumulated tests to the runner."""
        results = TestResults(stats=self.stats, tests=self.tests)
        self.runner.test_results = results
        return results

    def _times(self, now: datetime, results: TestResults) -> Times:
        start = results.stats.start
        if start is None:
            starts = [test.start for test in results.tests if test.start is not None]
            start = min(starts) if starts else now
        return Times(creation=now, queuing=now, start=start, finish=results.stats.end or now)

    def build_report(self) -> TestRun:
        """Turn the accumulated tests into a TRX document.

        Resolves :attr:`output_path` first, since attachments are relocated
        relative to it.
        """
        results = self.snapshot()
        now = _now()
        run = TestRun(
            name=format_run_name(self.user_name, self.computer_name, now),
            run_user=self.user_name,
            settings_name="default",
            times=self._times(now, results),
        )

        self.output_path = resolve_output_path(self.options)
        self.excluded_pending = 0

        for test in results.tests:
            if test.is_pending() and self.options.exclude_pending:
                self.excluded_pending += 1
                continue

            result = test_to_result(test, self.computer_name, self.cwd, self.options)
            if self.output_path and test.attachments:
                relocate_attachments(result, test.attachments, self.output_path, self.cwd)
            run.add_result(result)

        if self.options.warn_excluded_pending and self.excluded_pending > 0:
            warning_stream = self.warning_stream or sys.stderr
            warning_stream.write(f"##[warning]{excluded_pending_warning(self.excluded_pending)}\n")

        return run

    def write_report(self) -> Optional[Path]:
        """Build, serialize and write the report.

        Returns:
            The written file, or None when the report went to the stream.
        """
        run = self.build_report()
        xml = run.to_xml()

        if not self.output_path:
            (self.stream or sys.stdout).write(xml)
            return None

        path = Path(self.cwd) / self.output_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(xml, encoding="utf-8")
        logger.debug(f"Wrote {len(run.results)} result(s) to {path}")
        return path
