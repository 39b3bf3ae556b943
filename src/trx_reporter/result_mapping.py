"""
Mapping from observed test records to TRX result entries.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from .config import OptionsLike, coerce_options
from .records import State, TestRecord
from .trx import Outcome, UnitTest, UnitTestResult

# Namespace for stable test definition ids derived from full titles
TEST_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "trx-reporter")


def _relative_file(test: TestRecord, cwd: str) -> Optional[str]:
    if not test.file:
        return None
    if not os.path.isabs(test.file):
        return test.file.replace(os.sep, "/")
    try:
        return os.path.relpath(test.file, cwd).replace(os.sep, "/")
    except ValueError:
        # Different drive on Windows
        return test.file


def outcome_for(test: TestRecord, treat_pending_as_not_executed: bool = False) -> Outcome:
    """TRX outcome for a test's final state; pending maps to NotExecuted on request."""
    if test.state is State.PASSED:
        return Outcome.PASSED
    if test.state is State.FAILED:
        return Outcome.FAILED
    if test.state is State.PENDING and not treat_pending_as_not_executed:
        return Outcome.PENDING
    return Outcome.NOT_EXECUTED


def test_to_result(test: TestRecord, computer_name: str, cwd: str, options: OptionsLike = None) -> UnitTestResult:
    """Project a test record onto a TRX result entry.

    The definition id is derived from the full title, so the same test keeps
    its id across runs. Execution id and results directory are left unset.
    """
    opts = coerce_options(options)
    full_title = test.full_title()
    file = _relative_file(test, cwd)
    class_name = test.parent.full_title() if test.parent else ""

    start = test.start or test.end or datetime.now(timezone.utc)
    end = test.end or start
    duration = max(end - start, timedelta(0))

    unit_test = UnitTest(
        name=full_title,
        method_name=test.title,
        class_name=class_name or file or full_title,
        code_base=file or full_title,
        storage=file or full_title,
        id=str(uuid.uuid5(TEST_ID_NAMESPACE, full_title)),
        description=test.description,
    )
    return UnitTestResult(
        test=unit_test,
        computer_name=computer_name,
        outcome=outcome_for(test, opts.treat_pending_as_not_executed),
        start_time=start,
        end_time=end,
        duration=duration,
        error_message=test.error.message if test.error else None,
        error_stacktrace=test.error.stack if test.error else None,
        output=test.output or None,
    )


# Not a test function
test_to_result.__test__ = False  # type: ignore[attr-defined]
