"""
Xray Data Models.

Input types describe what a caller asks the client to create. Record types
describe what the vendor returns, mapped into explicit fields. Vendor keys
that are not enumerated on a record are kept in its ``extra`` bag and
written back out by ``to_dict()``, so newer vendor fields survive a round
trip through the tool layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar


class TestType(str, Enum):
    """Xray test definition types."""
    MANUAL = "Manual"
    CUCUMBER = "Cucumber"
    GENERIC = "Generic"


class TestRunStatus(str, Enum):
    """
    Accepted test run status names.

    PASS/PASSED and FAIL/FAILED are both accepted and sent verbatim; which
    spelling is canonical is decided by the Xray instance.
    """
    TODO = "TODO"
    EXECUTING = "EXECUTING"
    PASS = "PASS"
    FAIL = "FAIL"
    ABORTED = "ABORTED"
    PASSED = "PASSED"
    FAILED = "FAILED"


def parse_test_type(value: Any) -> Optional[TestType]:
    """Convert a string or TestType to TestType, ``None`` passes through."""
    if value is None or value == "":
        return None
    try:
        return TestType(value)
    except ValueError:
        raise ValueError(
            f"Invalid test type '{value}'. "
            f"Valid: {[t.value for t in TestType]}"
        ) from None


def parse_run_status(value: Any) -> TestRunStatus:
    """Convert a string or TestRunStatus to TestRunStatus."""
    try:
        return TestRunStatus(value)
    except ValueError:
        raise ValueError(
            f"Invalid test run status '{value}'. "
            f"Valid: {[s.value for s in TestRunStatus]}"
        ) from None


# ---------------------------------------------------------------------------
# Input types
# ---------------------------------------------------------------------------


def _require(value: str, name: str) -> None:
    if not value or not str(value).strip():
        raise ValueError(f"'{name}' is required and cannot be empty")


def _from_mapping(cls: Any, data: Mapping[str, Any], aliases: Dict[str, str]) -> Any:
    """Build an input dataclass from snake_case or camelCase keys."""
    names = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for raw_key, value in data.items():
        if raw_key in getattr(cls, "IGNORED", ()):
            continue
        key = aliases.get(raw_key, raw_key)
        if key not in names:
            raise ValueError(f"Unknown field '{raw_key}' for {cls.__name__}")
        kwargs[key] = value
    return cls(**kwargs)


@dataclass
class TestCase:
    """
    A test case to create.

    Attributes:
        project_key: Jira project key (e.g., "PROJ"). Immutable once created.
        summary: Issue summary.
        description: Optional description, also sent as the unstructured
            test definition.
        test_type: Optional test type; the Xray default applies when absent.
        labels: Labels to attach. Omitted from the request when empty.
        priority: Priority name (e.g., "High"). Omitted when absent.
        components: Accepted for compatibility, not sent to Xray.

    ``from_dict`` also accepts and drops ``status``, ``id`` and ``key``, which
    describe an existing issue rather than one to create.
    """

    project_key: str
    summary: str
    description: str = ""
    test_type: Optional[TestType] = None
    labels: List[str] = field(default_factory=list)
    priority: Optional[str] = None
    components: List[str] = field(default_factory=list)

    ALIASES = {"projectKey": "project_key", "testType": "test_type"}
    IGNORED = frozenset({"status", "id", "key"})

    def __post_init__(self) -> None:
        _require(self.project_key, "project_key")
        _require(self.summary, "summary")
        self.test_type = parse_test_type(self.test_type)
        self.labels = list(self.labels or [])
        self.components = list(self.components or [])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestCase":
        return _from_mapping(cls, data, cls.ALIASES)


@dataclass
class TestExecution:
    """A test execution to create, optionally with its tests and environments."""

    project_key: str
    summary: str
    description: str = ""
    test_issue_ids: List[str] = field(default_factory=list)
    test_environments: List[str] = field(default_factory=list)

    ALIASES = {
        "projectKey": "project_key",
        "testIssueIds": "test_issue_ids",
        "testEnvironments": "test_environments",
    }

    def __post_init__(self) -> None:
        _require(self.project_key, "project_key")
        _require(self.summary, "summary")
        self.test_issue_ids = list(self.test_issue_ids or [])
        self.test_environments = list(self.test_environments or [])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestExecution":
        return _from_mapping(cls, data, cls.ALIASES)


@dataclass
class TestPlan:
    """A test plan to create."""

    project_key: str
    summary: str
    description: str = ""
    test_issue_ids: List[str] = field(default_factory=list)

    ALIASES = {"projectKey": "project_key", "testIssueIds": "test_issue_ids"}

    def __post_init__(self) -> None:
        _require(self.project_key, "project_key")
        _require(self.summary, "summary")
        self.test_issue_ids = list(self.test_issue_ids or [])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestPlan":
        return _from_mapping(cls, data, cls.ALIASES)


@dataclass
class TestSet(TestPlan):
    """A test set to create. Same shape as a test plan."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TestSet":
        return _from_mapping(cls, data, cls.ALIASES)


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------


def _extra(payload: Mapping[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    known_keys = set(known)
    return {k: v for k, v in payload.items() if k not in known_keys}


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class JiraFields:
    """
    Jira fields returned through Xray's ``jira(fields: [...])`` selector.

    ``status`` and ``priority`` are Jira objects (``{"name": ...}``) and are
    kept as returned. ``description`` may be plain text or an ADF document.
    """

    key: Optional[str] = None
    summary: Optional[str] = None
    description: Any = None
    status: Optional[Dict[str, Any]] = None
    priority: Optional[Dict[str, Any]] = None
    labels: Optional[List[str]] = None
    created: Optional[str] = None
    updated: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("key", "summary", "description", "status", "priority",
             "labels", "created", "updated")

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "JiraFields":
        payload = payload or {}
        return cls(
            **{name: payload.get(name) for name in cls.KNOWN},
            extra=_extra(payload, cls.KNOWN),
        )

    @property
    def status_name(self) -> Optional[str]:
        return (self.status or {}).get("name")

    def to_dict(self) -> Dict[str, Any]:
        data = _drop_none({name: getattr(self, name) for name in self.KNOWN})
        data.update(self.extra)
        return data


@dataclass
class TestTypeInfo:
    """The ``testType`` selection of a test."""

    name: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> Optional["TestTypeInfo"]:
        if payload is None:
            return None
        return cls(name=payload.get("name"), kind=payload.get("kind"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "kind": self.kind})


@dataclass
class TestStep:
    """One step of a manual test definition."""

    id: Optional[str] = None
    action: Optional[str] = None
    data: Optional[str] = None
    result: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("id", "action", "data", "result")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TestStep":
        return cls(
            **{name: payload.get(name) for name in cls.KNOWN},
            extra=_extra(payload, cls.KNOWN),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.KNOWN}
        data.update(self.extra)
        return data


@dataclass
class TestReference:
    """A test as embedded in a run, plan or set."""

    issue_id: Optional[str] = None
    jira: JiraFields = field(default_factory=JiraFields)
    test_type: Optional[TestTypeInfo] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("issueId", "jira", "testType")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TestReference":
        return cls(
            issue_id=payload.get("issueId"),
            jira=JiraFields.from_payload(payload.get("jira")),
            test_type=TestTypeInfo.from_payload(payload.get("testType")),
            extra=_extra(payload, cls.KNOWN),
        )

    @property
    def key(self) -> Optional[str]:
        return self.jira.key

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"issueId": self.issue_id, "jira": self.jira.to_dict()}
        if self.test_type is not None:
            data["testType"] = self.test_type.to_dict()
        data.update(self.extra)
        return data


@dataclass
class TestCaseRecord(TestReference):
    """A test case as returned by ``getTests``."""

    project_id: Optional[str] = None
    steps: List[TestStep] = field(default_factory=list)
    gherkin: Optional[str] = None
    unstructured: Optional[str] = None

    KNOWN = ("issueId", "projectId", "jira", "testType", "steps", "gherkin", "unstructured")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TestCaseRecord":
        return cls(
            issue_id=payload.get("issueId"),
            project_id=payload.get("projectId"),
            jira=JiraFields.from_payload(payload.get("jira")),
            test_type=TestTypeInfo.from_payload(payload.get("testType")),
            steps=[TestStep.from_payload(s) for s in payload.get("steps") or []],
            gherkin=payload.get("gherkin"),
            unstructured=payload.get("unstructured"),
            extra=_extra(payload, cls.KNOWN),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "issueId": self.issue_id,
            "projectId": self.project_id,
            "jira": self.jira.to_dict(),
        }
        if self.test_type is not None:
            data["testType"] = self.test_type.to_dict()
        if self.steps:
            data["steps"] = [s.to_dict() for s in self.steps]
        if self.gherkin is not None:
            data["gherkin"] = self.gherkin
        if self.unstructured is not None:
            data["unstructured"] = self.unstructured
        data.update(self.extra)
        return data


@dataclass
class RunStatus:
    """Status of a test run."""

    name: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "RunStatus":
        payload = payload or {}
        return cls(name=payload.get("name"), description=payload.get("description"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "description": self.description})


@dataclass
class TestRunRecord:
    """
    One test's run inside a test execution.

    Attributes:
        id: Test run id, used by ``update_test_run_status``.
        status: Current run status.
        test: The test this run executes.
        started_on: ISO timestamp when the run started, if any.
        finished_on: ISO timestamp when the run finished, if any.
        executed_by: Account id of the executor, if any.
    """

    id: str
    status: RunStatus = field(default_factory=RunStatus)
    test: TestReference = field(default_factory=TestReference)
    started_on: Optional[str] = None
    finished_on: Optional[str] = None
    executed_by: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("id", "status", "test", "startedOn", "finishedOn", "executedBy")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TestRunRecord":
        return cls(
            id=payload.get("id", ""),
            status=RunStatus.from_payload(payload.get("status")),
            test=TestReference.from_payload(payload.get("test") or {}),
            started_on=payload.get("startedOn"),
            finished_on=payload.get("finishedOn"),
            executed_by=payload.get("executedBy"),
            extra=_extra(payload, cls.KNOWN),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.to_dict(),
            "test": self.test.to_dict(),
        }
        data.update(_drop_none({
            "startedOn": self.started_on,
            "finishedOn": self.finished_on,
            "executedBy": self.executed_by,
        }))
        data.update(self.extra)
        return data


def _connection(payload: Optional[Mapping[str, Any]]) -> tuple:
    """Split a ``{total, results}`` connection into (items, total)."""
    payload = payload or {}
    return list(payload.get("results") or []), payload.get("total")


@dataclass
class TestExecutionRecord:
    """A test execution with its nested test runs (at most 100 per fetch)."""

    issue_id: str
    project_id: Optional[str] = None
    jira: JiraFields = field(default_factory=JiraFields)
    test_runs: List[TestRunRecord] = field(default_factory=list)
    test_runs_total: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("issueId", "projectId", "jira", "testRuns")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TestExecutionRecord":
        runs, total = _connection(payload.get("testRuns"))
        return cls(
            issue_id=payload.get("issueId", ""),
            project_id=payload.get("projectId"),
            jira=JiraFields.from_payload(payload.get("jira")),
            test_runs=[TestRunRecord.from_payload(r) for r in runs],
            test_runs_total=total,
            extra=_extra(payload, cls.KNOWN),
        )

    @property
    def key(self) -> Optional[str]:
        return self.jira.key

    def find_run(self, run_id: str) -> Optional[TestRunRecord]:
        """Return the nested run with the given id, if present."""
        return next((r for r in self.test_runs if r.id == run_id), None)

    def to_dict(self) -> Dict[str, Any]:
        runs: Dict[str, Any] = {"results": [r.to_dict() for r in self.test_runs]}
        if self.test_runs_total is not None:
            runs["total"] = self.test_runs_total
        data: Dict[str, Any] = {
            "issueId": self.issue_id,
            "projectId": self.project_id,
            "jira": self.jira.to_dict(),
            "testRuns": runs,
        }
        data.update(self.extra)
        return data


@dataclass
class TestGroupRecord:
    """Common shape of test plans and test sets: an issue grouping tests."""

    issue_id: str
    project_id: Optional[str] = None
    jira: JiraFields = field(default_factory=JiraFields)
    tests: List[TestReference] = field(default_factory=list)
    tests_total: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN = ("issueId", "projectId", "jira", "tests")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Any:
        tests, total = _connection(payload.get("tests"))
        return cls(
            issue_id=payload.get("issueId", ""),
            project_id=payload.get("projectId"),
            jira=JiraFields.from_payload(payload.get("jira")),
            tests=[TestReference.from_payload(t) for t in tests],
            tests_total=total,
            extra=_extra(payload, cls.KNOWN),
        )

    @property
    def key(self) -> Optional[str]:
        return self.jira.key

    def to_dict(self) -> Dict[str, Any]:
        tests: Dict[str, Any] = {"results": [t.to_dict() for t in self.tests]}
        if self.tests_total is not None:
            tests["total"] = self.tests_total
        data: Dict[str, Any] = {
            "issueId": self.issue_id,
            "projectId": self.project_id,
            "jira": self.jira.to_dict(),
            "tests": tests,
        }
        data.update(self.extra)
        return data


class TestPlanRecord(TestGroupRecord):
    """A test plan as returned by ``getTestPlans``."""


class TestSetRecord(TestGroupRecord):
    """A test set as returned by ``getTestSets``."""


R = TypeVar("R")


@dataclass
class SearchResult(Generic[R]):
    """
    One page of a JQL search.

    ``results`` is capped by the requested limit; ``total`` is the number of
    matches on the server, so ``len(results)`` may be smaller.
    """

    total: int
    results: List[R] = field(default_factory=list)
    start: Optional[int] = None
    limit: Optional[int] = None

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        parse: Callable[[Mapping[str, Any]], R],
    ) -> "SearchResult[R]":
        return cls(
            total=payload.get("total") or 0,
            results=[parse(item) for item in payload.get("results") or []],
            start=payload.get("start"),
            limit=payload.get("limit"),
        )

    def __len__(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "start": self.start,
            "limit": self.limit,
            "results": [r.to_dict() for r in self.results],  # type: ignore[attr-defined]
        }


# ---------------------------------------------------------------------------
# Create results
# ---------------------------------------------------------------------------


@dataclass
class TestCaseCreated:
    """
    Result of creating a test case.

    ``self_link`` is built locally from the configured Jira base URL and the
    new key; it is a convenience link, not a value returned by Xray.
    """

    id: str
    key: str
    self_link: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "key": self.key, "self": self.self_link}


@dataclass
class TestExecutionCreated:
    """Result of creating a test execution, with the runs Xray materialized."""

    issue_id: str
    key: str
    test_runs: List[TestRunRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "issueId": self.issue_id,
            "key": self.key,
            "testRuns": [r.to_dict() for r in self.test_runs],
        }
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


@dataclass
class TestGroupCreated:
    """Result of creating a test plan or test set."""

    issue_id: str
    key: str
    tests: List[TestReference] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "issueId": self.issue_id,
            "key": self.key,
            "tests": [t.to_dict() for t in self.tests],
        }
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data
