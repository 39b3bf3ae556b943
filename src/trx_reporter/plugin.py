"""pytest plugin writing a TRX report for the session.

pytest hooks are translated into the lifecycle events of a
:class:`~trx_reporter.events.Runner` consumed by :class:`ReportBuilder`:

- collection builds one :class:`Suite` per module/class node and one
  :class:`TestRecord` per item,
- ``logstart``/``logfinish`` emit test begin/end,
- a failed setup or teardown phase that stops the session (``-x``,
  ``--maxfail``) is reported as a :class:`StepFailure` of the item's scope,
- a scope ends when its last item finishes, or at session end for scopes
  left open by ``-x``/``--maxfail``.

Enable with ``--trx`` (report on stdout) or ``--trx-output PATH``, the
``trx_output`` ini option or the ``TRX_REPORTER_FILE`` environment variable.
"""

import os
import sys
from typing import Any, Dict, List, Optional, Union

import pytest

from .config import ReporterOptions, get_settings
from .events import EVENT_FAIL, EVENT_RUN_BEGIN, EVENT_RUN_END, EVENT_SUITE_END, EVENT_TEST_BEGIN, EVENT_TEST_END, Runner
from .logger_config import get_logger, reset_logger, setup_logger
from .records import State, StepFailure, Suite, TestError, TestRecord, TestResults
from .reporter import ReportBuilder

logger = get_logger(__name__)

TEST_RESULTS_KEY = pytest.StashKey[TestResults]()
_PLUGIN_KEY = pytest.StashKey["TrxPlugin"]()
_RECORD_KEY = pytest.StashKey[TestRecord]()

PLUGIN_NAME = "trx-reporter"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("trx", "TRX test run report")
    group.addoption(
        "--trx",
        action="store_true",
        dest="trx",
        default=False,
        help="Write a TRX report (to stdout unless an output path is configured).",
    )
    group.addoption(
        "--trx-output",
        dest="trx_output",
        metavar="PATH",
        default=None,
        help="TRX report path. '[hash]' is replaced with a random hex string. Falls back to $TRX_REPORTER_FILE.",
    )
    group.addoption(
        "--trx-exclude-pending",
        action="store_true",
        dest="trx_exclude_pending",
        default=False,
        help="Leave skipped tests out of the TRX report.",
    )
    group.addoption(
        "--trx-warn-excluded-pending",
        action="store_true",
        dest="trx_warn_excluded_pending",
        default=False,
        help="Warn about the number of skipped tests left out of the TRX report.",
    )
    group.addoption(
        "--trx-treat-pending-as-not-executed",
        action="store_true",
        dest="trx_treat_pending_as_not_executed",
        default=False,
        help="Report skipped tests as NotExecuted instead of Pending.",
    )
    parser.addini("trx_output", "TRX report path (see --trx-output).", default="")
    parser.addini("trx_exclude_pending", "Leave skipped tests out of the TRX report.", type="bool", default=False)
    parser.addini("trx_warn_excluded_pending", "Warn about skipped tests left out of the TRX report.", type="bool", default=False)


def options_from_config(config: pytest.Config) -> ReporterOptions:
    return ReporterOptions(
        output=config.getoption("trx_output") or config.getini("trx_output") or None,
        exclude_pending=config.getoption("trx_exclude_pending") or config.getini("trx_exclude_pending"),
        warn_excluded_pending=config.getoption("trx_warn_excluded_pending") or config.getini("trx_warn_excluded_pending"),
        treat_pending_as_not_executed=config.getoption("trx_treat_pending_as_not_executed"),
    )


def _stdout_sink(message: Any) -> None:
    # Resolve sys.stdout per message so pytest's capturing is honoured
    sys.stdout.write(str(message))


def pytest_configure(config: pytest.Config) -> None:
    # xdist workers never report
    if hasattr(config, "workerinput"):
        return

    options = options_from_config(config)
    settings = get_settings()
    if not (config.getoption("trx") or options.output or settings.trx_reporter_file):
        return

    setup_logger(log_level=settings.trx_log_level, stream=_stdout_sink)
    plugin = TrxPlugin(config, options)
    config.stash[_PLUGIN_KEY] = plugin
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.stash.get(_PLUGIN_KEY, None)
    if plugin is None:
        return
    del config.stash[_PLUGIN_KEY]
    config.pluginmanager.unregister(plugin)
    reset_logger()


@pytest.fixture
def trx_attachment(request: pytest.FixtureRequest):
    """Return a callable attaching files to the current test's TRX result.

    Example::

        def test_screenshot(trx_attachment, tmp_path):
            shot = tmp_path / "page.png"
            ...
            trx_attachment(shot)
    """
    record = request.node.stash.get(_RECORD_KEY, None)

    def attach(*paths: Union[str, "os.PathLike[str]"]) -> None:
        if record is None:
            return
        record.attachments.extend(os.fspath(path) for path in paths)

    return attach


def _error_from_report(report: pytest.TestReport) -> TestError:
    text = report.longreprtext.strip()
    crash = getattr(report.longrepr, "reprcrash", None)
    if crash is not None:
        message = crash.message
    elif text:
        message = text.splitlines()[-1]
    else:
        message = f"{report.when} failed"
    return TestError(message=message, stack=text)


class TrxPlugin:
    """Per-session state registered with pytest while reporting is enabled."""

    def __init__(self, config: pytest.Config, options: ReporterOptions) -> None:
        self.config = config
        self.runner = Runner()
        self.builder = ReportBuilder(self.runner, options, cwd=str(config.invocation_params.dir))
        self.root = Suite()
        self.records: Dict[str, TestRecord] = {}
        self._suites: Dict[str, Suite] = {}
        self._remaining: Dict[Suite, int] = {}
        self._closed: List[Suite] = []
        self.session: Optional[pytest.Session] = None

    def _suite_for(self, node: Optional[pytest.Collector]) -> Suite:
        if node is None or isinstance(node, (pytest.Session, pytest.Directory)):
            return self.root
        suite = self._suites.get(node.nodeid)
        if suite is None:
            parent = self._suite_for(node.parent)
            title = node.nodeid if isinstance(node, pytest.Module) else node.name
            suite = parent.add_suite(Suite(title=title))
            self._suites[node.nodeid] = suite
        return suite

    def _ancestors(self, test: TestRecord) -> List[Suite]:
        suites = []
        suite = test.parent
        while suite is not None:
            suites.append(suite)
            suite = suite.parent
        return suites

    def pytest_collection_finish(self, session: pytest.Session) -> None:
        for item in session.items:
            suite = self._suite_for(item.parent)
            record = suite.add_test(TestRecord(title=item.name, file=str(item.path)))
            self.records[item.nodeid] = record
            item.stash[_RECORD_KEY] = record
            for ancestor in self._ancestors(record):
                self._remaining[ancestor] = self._remaining.get(ancestor, 0) + 1
        logger.debug(f"Collected {len(self.records)} test(s) in {len(self._suites)} scope(s)")

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.session = session
        self.runner.emit(EVENT_RUN_BEGIN)

    def pytest_runtest_logstart(self, nodeid: str, location: Any) -> None:
        record = self.records.get(nodeid)
        if record is not None:
            self.runner.emit(EVENT_TEST_BEGIN, record)

    # After the session has counted the failure against -x/--maxfail
    @pytest.hookimpl(trylast=True)
    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        record = self.records.get(report.nodeid)
        if record is None:
            return
        if report.capstdout:
            record.output = report.capstdout

        if report.when == "call":
            if report.passed:
                record.state = State.PASSED
            elif report.skipped:
                record.state = State.PENDING
            else:
                record.state = State.FAILED
                record.error = _error_from_report(report)
                self.runner.emit(EVENT_FAIL, record)
            return

        if report.skipped:
            record.state = State.PENDING
        elif report.failed and record.state in (State.NOT_EXECUTED, State.PASSED):
            record.state = State.FAILED
            record.error = _error_from_report(report)
            # Only a stopped session leaves the rest of the scope unrun
            if self._stopping():
                step = StepFailure(title=f'"{report.when}" of "{record.title}"', parent=record.parent, error=record.error)
                self.runner.emit(EVENT_FAIL, step)

    def _stopping(self) -> bool:
        """Whether pytest will run no further tests after the current one."""
        session = self.session
        return session is not None and bool(session.shouldstop or session.shouldfail)

    def pytest_runtest_logfinish(self, nodeid: str, location: Any) -> None:
        record = self.records.get(nodeid)
        if record is None:
            return
        self.runner.emit(EVENT_TEST_END, record)
        for suite in self._ancestors(record):
            self._remaining[suite] -= 1
            if self._remaining[suite] == 0:
                self._close(suite)

    def _close(self, suite: Suite) -> None:
        if suite in self._closed:
            return
        self._closed.append(suite)
        self.runner.emit(EVENT_SUITE_END, suite)

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        # Scopes left open by an interrupted run, innermost first
        open_suites = [suite for suite in self._remaining if suite not in self._closed]
        for suite in sorted(open_suites, key=lambda s: len(s.title_path()), reverse=True):
            self._close(suite)

        self.runner.emit(EVENT_RUN_END)
        if self.runner.test_results is not None:
            self.config.stash[TEST_RESULTS_KEY] = self.runner.test_results
