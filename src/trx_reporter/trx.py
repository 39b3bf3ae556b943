"""TRX (Visual Studio ``TestRun``) document model and XML serialization.

The document is built incrementally with :meth:`TestRun.add_result` and
serialized once with :meth:`TestRun.to_xml`.
"""

from __future__ import annotations

import enum
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

TRX_NAMESPACE = "http://microsoft.com/schemas/VisualStudio/TeamTest/2010"
UNIT_TEST_TYPE = "13cdc9d9-ddb5-4fa4-a97d-d965ccfc6d4b"
ADAPTER_TYPE_NAME = "executor://trx-reporter/v1"

RESULTS_NOT_IN_A_LIST_ID = "8c84fa94-04c1-424b-9868-57a2d4851a1d"
ALL_LOADED_RESULTS_ID = "19431567-8539-422a-85d7-44ee4e166bda"

COUNTER_NAMES = (
    "total",
    "executed",
    "passed",
    "failed",
    "error",
    "timeout",
    "aborted",
    "inconclusive",
    "passedButRunAborted",
    "notRunnable",
    "notExecuted",
    "disconnected",
    "warning",
    "completed",
    "inProgress",
    "pending",
)


class Outcome(str, enum.Enum):
    """Per-result outcomes understood by TRX viewers."""

    PASSED = "Passed"
    FAILED = "Failed"
    ERROR = "Error"
    TIMEOUT = "Timeout"
    ABORTED = "Aborted"
    INCONCLUSIVE = "Inconclusive"
    NOT_EXECUTED = "NotExecuted"
    PENDING = "Pending"

    @property
    def counter(self) -> str:
        return self.value[0].lower() + self.value[1:]

    @property
    def executed(self) -> bool:
        return self not in (Outcome.NOT_EXECUTED, Outcome.PENDING)


def format_time(value: datetime) -> str:
    """ISO-8601 with millisecond precision, ``Z`` for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def format_duration(value: timedelta) -> str:
    """Format a duration as ``HH:MM:SS.fffffff`` (100ns ticks)."""
    ticks = max(value // timedelta(microseconds=1), 0) * 10
    hours, rem = divmod(ticks, 36_000_000_000)
    minutes, rem = divmod(rem, 600_000_000)
    seconds, fraction = divmod(rem, 10_000_000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{fraction:07d}"


@dataclass
class Times:
    creation: datetime
    queuing: datetime
    start: datetime
    finish: datetime


@dataclass
class UnitTest:
    """Test definition referenced by a result."""

    name: str
    method_name: str
    class_name: str
    code_base: str
    storage: str
    id: Optional[str] = None
    description: Optional[str] = None
    adapter_type_name: str = ADAPTER_TYPE_NAME


@dataclass
class ResultFile:
    path: str


@dataclass
class UnitTestResult:
    """One result entry of the document.

    Attributes:
        test: Definition of the test this result belongs to.
        computer_name: Host that executed the test.
        outcome: TRX outcome.
        start_time: Start of the test.
        end_time: End of the test.
        duration: Elapsed time.
        execution_id: Unique per execution, generated on add when unset.
        relative_results_directory: Directory under ``<run>/In`` holding result files.
        error_message: Failure message.
        error_stacktrace: Failure stack trace.
        output: Captured standard output.
        result_files: Files published with the result, relative to its results directory.
    """

    test: UnitTest
    computer_name: str
    outcome: Outcome
    start_time: datetime
    end_time: datetime
    duration: timedelta
    execution_id: Optional[str] = None
    relative_results_directory: Optional[str] = None
    error_message: Optional[str] = None
    error_stacktrace: Optional[str] = None
    output: Optional[str] = None
    result_files: List[ResultFile] = field(default_factory=list)


@dataclass
class TestRun:
    """The whole TRX document for one run."""

    __test__ = False

    name: str
    run_user: str
    times: Times
    settings_name: str = "default"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    settings_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    results: List[UnitTestResult] = field(default_factory=list)

    def add_result(self, result: UnitTestResult) -> UnitTestResult:
        if not result.execution_id:
            result.execution_id = str(uuid.uuid4())
        if not result.test.id:
            result.test.id = str(uuid.uuid4())
        self.results.append(result)
        return result

    def counters(self) -> Dict[str, int]:
        counts = dict.fromkeys(COUNTER_NAMES, 0)
        counts["total"] = len(self.results)
        for result in self.results:
            outcome = Outcome(result.outcome)
            counts[outcome.counter] += 1
            if outcome.executed:
                counts["executed"] += 1
        return counts

    @property
    def outcome(self) -> str:
        return "Failed" if self.counters()["failed"] else "Completed"

    def to_element(self) -> ET.Element:
        root = ET.Element(
            "TestRun",
            {"id": self.id, "name": self.name, "runUser": self.run_user, "xmlns": TRX_NAMESPACE},
        )
        ET.SubElement(
            root,
            "Times",
            {
                "creation": format_time(self.times.creation),
                "queuing": format_time(self.times.queuing),
                "start": format_time(self.times.start),
                "finish": format_time(self.times.finish),
            },
        )
        ET.SubElement(root, "TestSettings", {"name": self.settings_name, "id": self.settings_id})

        results = ET.SubElement(root, "Results")
        definitions = ET.SubElement(root, "TestDefinitions")
        entries = ET.SubElement(root, "TestEntries")
        for result in self.results:
            _add_result_element(results, result)
            _add_definition_element(definitions, result)
            ET.SubElement(
                entries,
                "TestEntry",
                {"testId": result.test.id, "executionId": result.execution_id, "testListId": RESULTS_NOT_IN_A_LIST_ID},
            )

        lists = ET.SubElement(root, "TestLists")
        ET.SubElement(lists, "TestList", {"name": "Results Not in a List", "id": RESULTS_NOT_IN_A_LIST_ID})
        ET.SubElement(lists, "TestList", {"name": "All Loaded Results", "id": ALL_LOADED_RESULTS_ID})

        summary = ET.SubElement(root, "ResultSummary", {"outcome": self.outcome})
        ET.SubElement(summary, "Counters", {name: str(count) for name, count in self.counters().items()})
        return root

    def to_xml(self) -> str:
        root = self.to_element()
        ET.indent(root, space="  ")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def _add_result_element(parent: ET.Element, result: UnitTestResult) -> None:
    attrs = {
        "executionId": result.execution_id,
        "testId": result.test.id,
        "testName": result.test.name,
        "computerName": result.computer_name,
        "duration": format_duration(result.duration),
        "startTime": format_time(result.start_time),
        "endTime": format_time(result.end_time),
        "testType": UNIT_TEST_TYPE,
        "outcome": Outcome(result.outcome).value,
        "testListId": RESULTS_NOT_IN_A_LIST_ID,
    }
    if result.relative_results_directory:
        attrs["relativeResultsDirectory"] = result.relative_results_directory
    element = ET.SubElement(parent, "UnitTestResult", attrs)

    output = ET.SubElement(element, "Output")
    if result.output:
        ET.SubElement(output, "StdOut").text = result.output
    if result.error_message is not None or result.error_stacktrace:
        error_info = ET.SubElement(output, "ErrorInfo")
        ET.SubElement(error_info, "Message").text = result.error_message or ""
        if result.error_stacktrace:
            ET.SubElement(error_info, "StackTrace").text = result.error_stacktrace

    if result.result_files:
        files = ET.SubElement(element, "ResultFiles")
        for result_file in result.result_files:
            ET.SubElement(files, "ResultFile", {"path": result_file.path})


def _add_definition_element(parent: ET.Element, result: UnitTestResult) -> None:
    test = result.test
    element = ET.SubElement(parent, "UnitTest", {"name": test.name, "storage": test.storage, "id": test.id})
    if test.description:
        ET.SubElement(element, "Description").text = test.description
    ET.SubElement(element, "Execution", {"id": result.execution_id})
    ET.SubElement(
        element,
        "TestMethod",
        {
            "codeBase": test.code_base,
            "adapterTypeName": test.adapter_type_name,
            "className": test.class_name,
            "name": test.method_name,
        },
    )
