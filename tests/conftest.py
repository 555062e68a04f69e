"""
Root conftest.py: shared Pytest fixtures and configuration.

Provides fixtures for:
- A controllable clock for token expiry.
- An XrayClient built with test credentials.
- A stateful fake of the Xray Cloud authentication and GraphQL endpoints,
  served through the ``responses`` HTTP mock.

No test talks to the real Xray Cloud service.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import pytest
import responses

from xray_mcp.xray.auth import DEFAULT_AUTH_URL
from xray_mcp.xray.client import DEFAULT_BASE_URL, XrayClient

CLIENT_ID = "test_client_id"
CLIENT_SECRET = "test_client_secret"
TOKEN = "mock_bearer_token_12345"
AUTH_URL = DEFAULT_AUTH_URL
GRAPHQL_URL = f"{DEFAULT_BASE_URL}/graphql"

_OPERATION_RE = re.compile(r"^\s*(?:query|mutation)\s+(\w+)")
_KEY_JQL_RE = re.compile(r"^key = '([^']+)'$")

Handler = Callable[[Dict[str, Any]], Tuple[int, Any]]


class FakeClock:
    """Manually advanced time source, in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeXrayBackend:
    """
    In-memory stand-in for Xray Cloud.

    Keeps tests and executions created through it, materializes one TODO
    test run per test on execution creation, and applies run status updates
    so a later fetch observes them. Individual operations can be overridden
    with ``on(operation, handler)``.
    """

    def __init__(self) -> None:
        self.auth_requests: List[Dict[str, Any]] = []
        self.graphql_requests: List[Dict[str, Any]] = []
        self.auth_status = 200
        self.tests: Dict[str, Dict[str, Any]] = {}
        self.executions: Dict[str, Dict[str, Any]] = {}
        self._next_issue_id = 10001
        self._next_run_id = 1
        self._overrides: Dict[str, Handler] = {}

    # -- registration -----------------------------------------------------

    def install(self, rsps: responses.RequestsMock) -> None:
        rsps.add_callback(responses.POST, AUTH_URL, callback=self._authenticate)
        rsps.add_callback(responses.POST, GRAPHQL_URL, callback=self._graphql)

    def on(self, operation: str, handler: Handler) -> None:
        self._overrides[operation] = handler

    def reply(self, operation: str, data: Any = None, errors: Any = None, status: int = 200) -> None:
        """Answer ``operation`` with a fixed envelope."""
        envelope: Dict[str, Any] = {}
        if data is not None:
            envelope["data"] = data
        if errors is not None:
            envelope["errors"] = errors
        self.on(operation, lambda variables: (status, envelope))

    @property
    def operations(self) -> List[str]:
        return [r["operation"] for r in self.graphql_requests]

    # -- HTTP callbacks ---------------------------------------------------

    def _authenticate(self, request: Any) -> Tuple[int, Dict[str, str], str]:
        body = json.loads(request.body)
        self.auth_requests.append(body)
        if self.auth_status != 200:
            return self.auth_status, {}, json.dumps({"error": "Invalid credentials"})
        return 200, {"Content-Type": "application/json"}, json.dumps(TOKEN)

    def _graphql(self, request: Any) -> Tuple[int, Dict[str, str], str]:
        body = json.loads(request.body)
        match = _OPERATION_RE.match(body["query"])
        operation = match.group(1) if match else ""
        variables = body.get("variables") or {}
        self.graphql_requests.append({
            "operation": operation,
            "variables": variables,
            "authorization": request.headers.get("Authorization"),
        })

        handler = self._overrides.get(operation) or getattr(self, f"_op_{operation}", None)
        if handler is None:
            status, envelope = 200, {"errors": [{"message": f"Unknown operation {operation}"}]}
        elif operation in self._overrides:
            status, envelope = handler(variables)
        else:
            status, envelope = 200, {"data": handler(variables)}
        payload = envelope if isinstance(envelope, str) else json.dumps(envelope)
        return status, {"Content-Type": "application/json"}, payload

    # -- default operations -----------------------------------------------

    def _issue_id(self) -> str:
        issue_id = str(self._next_issue_id)
        self._next_issue_id += 1
        return issue_id

    @staticmethod
    def _key_from(variables: Dict[str, Any]) -> Optional[str]:
        match = _KEY_JQL_RE.match(variables.get("jql", ""))
        return match.group(1) if match else None

    def add_test(self, key: str, summary: str = "A test", issue_id: Optional[str] = None) -> Dict[str, Any]:
        test = {
            "issueId": issue_id or self._issue_id(),
            "projectId": "10000",
            "jira": {"key": key, "summary": summary},
            "testType": {"name": "Manual", "kind": "Steps"},
            "steps": [],
        }
        self.tests[key] = test
        return test

    def _op_CreateTest(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        fields = variables["jira"]["fields"]
        key = f"{fields['project']['key']}-{123 + len(self.tests)}"
        test = self.add_test(key, fields["summary"])
        return {"createTest": {"test": {"issueId": test["issueId"], "jira": {"key": key}}, "warnings": []}}

    def _op_GetTest(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        test = self.tests.get(self._key_from(variables) or "")
        return {"getTests": {"total": 1 if test else 0, "results": [test] if test else []}}

    def _op_SearchTests(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        matches = list(self.tests.values())
        return {"getTests": {
            "total": len(matches),
            "start": 0,
            "limit": variables["limit"],
            "results": matches,
        }}

    def _op_DeleteTest(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        for key, test in list(self.tests.items()):
            if test["issueId"] == variables["issueId"]:
                del self.tests[key]
        return {"deleteTest": "Test deleted successfully"}

    def _op_CreateTestExecution(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        fields = variables["jira"]["fields"]
        key = f"{fields['project']['key']}-{500 + len(self.executions)}"
        by_id = {t["issueId"]: t for t in self.tests.values()}
        runs = []
        for test_id in variables.get("testIssueIds") or []:
            test = by_id.get(test_id, {"issueId": test_id, "jira": {"key": f"T-{test_id}"}})
            runs.append({
                "id": f"run-{self._next_run_id}",
                "status": {"name": "TODO", "description": "The test has not started"},
                "test": {"issueId": test["issueId"], "jira": test["jira"]},
            })
            self._next_run_id += 1
        execution = {
            "issueId": self._issue_id(),
            "projectId": "10000",
            "jira": {"key": key, "summary": fields["summary"]},
            "testRuns": {"total": len(runs), "results": runs},
        }
        self.executions[key] = execution
        return {"createTestExecution": {"testExecution": execution, "warnings": []}}

    def _op_GetTestExecution(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        execution = self.executions.get(self._key_from(variables) or "")
        return {"getTestExecutions": {
            "total": 1 if execution else 0,
            "results": [execution] if execution else [],
        }}

    def _op_UpdateTestRunStatus(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        for execution in self.executions.values():
            for run in execution["testRuns"]["results"]:
                if run["id"] == variables["id"]:
                    run["status"] = {"name": variables["status"]}
        return {"updateTestRunStatus": "Test run status updated successfully"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mocked_http() -> Generator[responses.RequestsMock, None, None]:
    """Activate the ``responses`` mock; unmatched requests raise ConnectionError."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def backend(mocked_http: responses.RequestsMock) -> FakeXrayBackend:
    fake = FakeXrayBackend()
    fake.install(mocked_http)
    return fake


@pytest.fixture
def client(clock: FakeClock) -> Generator[XrayClient, None, None]:
    xray = XrayClient(CLIENT_ID, CLIENT_SECRET, clock=clock)
    yield xray
    xray.close()
