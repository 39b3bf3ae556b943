"""Structured records for a single observed test run.

Tests and suites are plain dataclasses with an explicit state instead of
ad hoc attribute bags. Test records compare and hash by identity so the
report builder can keep them in an insertion-ordered set.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional


class State(str, enum.Enum):
    """Outcome of a single test."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    NOT_EXECUTED = "not_executed"


@dataclass
class TestError:
    """Error attached to a failed (or never executed) test."""

    __test__ = False

    message: str
    stack: str = ""


def _join_titles(titles: List[str]) -> str:
    return " ".join(title for title in titles if title)


@dataclass(eq=False)
class Suite:
    """A containing scope: a module, class or ``describe`` block.

    Attributes:
        title: Scope title, empty for a root scope.
        parent: Containing scope, None for a root scope.
        suites: Child scopes in declaration order.
        tests: Tests declared directly in this scope.
    """

    title: str = ""
    parent: Optional[Suite] = None
    suites: List[Suite] = field(default_factory=list)
    tests: List[TestRecord] = field(default_factory=list)

    def title_path(self) -> List[str]:
        path = self.parent.title_path() if self.parent else []
        path.append(self.title)
        return path

    def full_title(self) -> str:
        """Titles of this scope and its ancestors joined by spaces."""
        return _join_titles(self.title_path())

    def add_suite(self, suite: Suite) -> Suite:
        suite.parent = self
        self.suites.append(suite)
        return suite

    def add_test(self, test: TestRecord) -> TestRecord:
        test.parent = self
        self.tests.append(test)
        return test

    def each_test(self, fn: Callable[[TestRecord], None]) -> None:
        """Call ``fn`` for every test nested in this scope, at any depth."""
        for test in self.tests:
            fn(test)
        for suite in self.suites:
            suite.each_test(fn)


@dataclass(eq=False)
class TestRecord:
    """One individual test case observed during the run.

    Attributes:
        title: Test title without ancestors.
        parent: Containing scope.
        state: Current outcome, NOT_EXECUTED until resolved.
        start: Set when the runner starts the test.
        end: Set when the runner finishes the test.
        error: Failure details, if any.
        attachments: Paths of files to publish with the result.
        file: Source file declaring the test.
        output: Captured standard output.
        description: Free-form description carried into the report.
    """

    __test__ = False

    title: str
    parent: Optional[Suite] = None
    state: State = State.NOT_EXECUTED
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    error: Optional[TestError] = None
    attachments: List[str] = field(default_factory=list)
    file: Optional[str] = None
    output: str = ""
    description: Optional[str] = None

    def title_path(self) -> List[str]:
        path = self.parent.title_path() if self.parent else []
        path.append(self.title)
        return path

    def full_title(self) -> str:
        return _join_titles(self.title_path())

    def is_pending(self) -> bool:
        return self.state is State.PENDING

    @property
    def resolved(self) -> bool:
        """True once the test has an outcome of its own."""
        return self.state not in (State.PENDING, State.NOT_EXECUTED)


@dataclass(eq=False)
class StepFailure:
    """A failed setup/teardown step (hook or fixture) of a scope.

    Attributes:
        title: Step title, e.g. ``"before each" hook``.
        parent: Scope the step belongs to.
        error: The step's error.
    """

    title: str
    parent: Suite
    error: TestError


@dataclass
class RunStats:
    """Run-wide counters and timestamps."""

    suites: int = 0
    tests: int = 0
    passes: int = 0
    pending: int = 0
    failures: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start is None or self.end is None:
            return None
        return self.end - self.start


@dataclass
class TestResults:
    """Snapshot of a finished run exposed on the runner."""

    __test__ = False

    stats: RunStats
    tests: List[TestRecord] = field(default_factory=list)
