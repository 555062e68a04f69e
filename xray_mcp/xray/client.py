"""
Xray Cloud GraphQL Client.

Provides a dedicated client for the Xray Cloud API:
- Authentication (client credentials exchanged for a cached bearer token).
- Test cases: create, get, search, delete.
- Test executions: create, get, search, test run status updates.
- Test plans and test sets: create, get, search, add/remove tests.

Every operation is a single GraphQL request (plus authentication when the
token is missing or expired). Nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

import requests
from loguru import logger

from xray_mcp.xray import queries
from xray_mcp.xray.auth import DEFAULT_AUTH_URL, TokenManager
from xray_mcp.xray.errors import (
    GraphQLLogicError,
    GraphQLTransportError,
    NotFoundError,
    UnsupportedOperationError,
)
from xray_mcp.xray.models import (
    SearchResult,
    TestCase,
    TestCaseCreated,
    TestCaseRecord,
    TestExecution,
    TestExecutionCreated,
    TestExecutionRecord,
    TestGroupCreated,
    TestPlan,
    TestPlanRecord,
    TestReference,
    TestRunRecord,
    TestRunStatus,
    TestSet,
    TestSetRecord,
    parse_run_status,
)
from xray_mcp.xray.queries import GraphQLDocument

DEFAULT_BASE_URL = "https://xray.cloud.getxray.app/api/v2"
DEFAULT_JIRA_BASE_URL = "https://your-jira-instance.atlassian.net"
DEFAULT_SEARCH_LIMIT = 50

UPDATE_NOT_SUPPORTED_MESSAGE = (
    "Direct test case update is not supported via Xray GraphQL API. "
    "Use Jira REST API to update standard fields (summary, description, labels, priority). "
    "Use specific Xray mutations for test definition updates: "
    "updateUnstructuredTestDefinition, updateGherkinTestDefinition, updateTestType, etc."
)

T = TypeVar("T")


@dataclass
class XrayConfig:
    """Configuration for the Xray Cloud client."""

    client_id: str
    client_secret: str
    base_url: str = DEFAULT_BASE_URL
    auth_url: str = DEFAULT_AUTH_URL
    jira_base_url: str = DEFAULT_JIRA_BASE_URL
    timeout_sec: Optional[float] = None
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ValueError("client_id and client_secret are required")
        self.base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.jira_base_url = (self.jira_base_url or DEFAULT_JIRA_BASE_URL).rstrip("/")
        self.auth_url = self.auth_url or DEFAULT_AUTH_URL

    @property
    def graphql_url(self) -> str:
        return f"{self.base_url}/graphql"


class XrayClient:
    """
    Client for the Xray Cloud GraphQL API.

    One instance holds one authenticated session. Create it once at process
    start and hand it to whatever dispatches calls to it.

    Usage::

        client = XrayClient(client_id="...", client_secret="...")
        created = client.create_test_case(
            TestCase(project_key="PROJ", summary="Login works")
        )
        # created.key -> "PROJ-123"
    """

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        base_url: Optional[str] = None,
        *,
        config: Optional[XrayConfig] = None,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the Xray client.

        Args:
            client_id: Xray API key client id.
            client_secret: Xray API key client secret.
            base_url: GraphQL API base URL (defaults to Xray Cloud v2).
            config: Optional XrayConfig (overrides individual params).
            session: Optional pre-built requests.Session.
            clock: Time source for token expiry, in epoch seconds.
        """
        if config:
            self._config = config
        else:
            self._config = XrayConfig(
                client_id=client_id,
                client_secret=client_secret,
                base_url=base_url or DEFAULT_BASE_URL,
            )

        token_kwargs: Dict[str, Any] = {}
        if clock is not None:
            token_kwargs["clock"] = clock
        self._tokens = TokenManager(
            self._config.client_id,
            self._config.client_secret,
            auth_url=self._config.auth_url,
            timeout_sec=self._config.timeout_sec,
            **token_kwargs,
        )
        self._session: Optional[requests.Session] = session
        logger.debug(f"XrayClient initialized, url={self._config.base_url}")

    @property
    def config(self) -> XrayConfig:
        return self._config

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.verify = self._config.verify_ssl
            self._session.headers.update({
                "Content-Type": "application/json",
                "Accept": "application/json",
            })
        return self._session

    def ensure_token(self) -> str:
        """Return a valid bearer token, re-authenticating if absent or expired."""
        return self._tokens.ensure_token(self._get_session())

    def execute(
        self,
        document: GraphQLDocument,
        variables: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a GraphQL document and return its ``data`` object.

        Args:
            document: The query or mutation to send.
            variables: Variables for the document; only declared names allowed.

        Returns:
            The ``data`` field of the GraphQL response.

        Raises:
            AuthenticationError: If a token cannot be obtained.
            GraphQLTransportError: On network failure, non-2xx status or a
                body that is not JSON.
            GraphQLLogicError: If the response carries any GraphQL errors.
        """
        variables = dict(variables or {})
        undeclared = set(variables) - document.declared_variables
        if undeclared:
            raise ValueError(
                f"Variables {sorted(undeclared)} are not declared by {document.operation}"
            )

        token = self.ensure_token()
        session = self._get_session()
        logger.debug(f"Xray GraphQL {document.kind} {document.operation} v{document.version}")

        try:
            response = session.post(
                self._config.graphql_url,
                json={"query": document.text, "variables": variables},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._config.timeout_sec,
            )
        except requests.exceptions.RequestException as e:
            raise GraphQLTransportError(f"GraphQL request failed: {e}") from e

        if not response.ok:
            raise GraphQLTransportError(
                f"GraphQL request failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            envelope = response.json()
        except ValueError as e:
            raise GraphQLTransportError(
                f"GraphQL response is not valid JSON ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(envelope, dict):
            raise GraphQLTransportError(
                f"Unexpected GraphQL response shape: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        errors = envelope.get("errors")
        if errors:
            raise GraphQLLogicError(errors, status_code=response.status_code)

        return envelope.get("data") or {}

    # ------------------------------------------------------------------
    # Shared request shapes
    # ------------------------------------------------------------------

    @staticmethod
    def _jira_fields(
        project_key: str,
        summary: str,
        issue_type: str,
        description: str = "",
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            fields["description"] = description
        return {"fields": fields}

    @staticmethod
    def _key_jql(key: str) -> str:
        return f"key = '{key}'"

    @staticmethod
    def _project_jql(project_key: str) -> str:
        return f"project = '{project_key}'"

    def _get_one(
        self,
        document: GraphQLDocument,
        root: str,
        key: str,
        label: str,
        parse: Callable[[Mapping[str, Any]], T],
    ) -> T:
        data = self.execute(document, {"jql": self._key_jql(key), "limit": 1})
        page = data.get(root) or {}
        results = page.get("results") or []
        if not page.get("total") or not results:
            raise NotFoundError(f"{label} {key} not found", key=key)
        return parse(results[0])

    def _search(
        self,
        document: GraphQLDocument,
        root: str,
        jql: str,
        limit: int,
        parse: Callable[[Mapping[str, Any]], T],
    ) -> SearchResult[T]:
        data = self.execute(document, {"jql": jql, "limit": limit})
        result = SearchResult.from_payload(data.get(root) or {}, parse)
        if len(result.results) > limit:
            logger.debug(
                f"{document.operation} returned {len(result.results)} results, keeping {limit}"
            )
            del result.results[limit:]
        return result

    @staticmethod
    def _created(
        data: Mapping[str, Any], document: GraphQLDocument, root: str, entity: str
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return the mutation payload and the created issue, both required."""
        payload = data.get(root)
        created = payload.get(entity) if isinstance(payload, dict) else None
        if not isinstance(created, dict) or not (created.get("jira") or {}).get("key"):
            raise GraphQLTransportError(
                f"{document.operation} response has no {root}.{entity} with a Jira key"
            )
        return payload, created

    def _change_tests(
        self,
        document: GraphQLDocument,
        root: str,
        issue_id: str,
        test_issue_ids: Iterable[str],
    ) -> Dict[str, Any]:
        ids = list(test_issue_ids)
        if not issue_id:
            raise ValueError("'issue_id' is required and cannot be empty")
        if not ids:
            raise ValueError("'test_issue_ids' must contain at least one issue id")
        data = self.execute(document, {"issueId": issue_id, "testIssueIds": ids})
        return data.get(root) or {}

    # ------------------------------------------------------------------
    # Test Case Operations
    # ------------------------------------------------------------------

    def create_test_case(self, test_case: Union[TestCase, Mapping[str, Any]]) -> TestCaseCreated:
        """
        Create a new Test issue.

        Args:
            test_case: TestCase, or a mapping accepted by ``TestCase.from_dict``.

        Returns:
            TestCaseCreated with the new issue id, key and a browse link.
        """
        if not isinstance(test_case, TestCase):
            test_case = TestCase.from_dict(test_case)

        jira = self._jira_fields(
            test_case.project_key, test_case.summary, "Test", test_case.description
        )
        if test_case.labels:
            jira["fields"]["labels"] = list(test_case.labels)
        if test_case.priority:
            jira["fields"]["priority"] = {"name": test_case.priority}

        variables: Dict[str, Any] = {
            "jira": jira,
            "unstructured": test_case.description or "",
        }
        if test_case.test_type is not None:
            variables["testType"] = {"name": test_case.test_type.value}

        data = self.execute(queries.CREATE_TEST, variables)
        _, test = self._created(data, queries.CREATE_TEST, "createTest", "test")
        key = test["jira"]["key"]
        logger.info(f"Test case created: {key}")
        return TestCaseCreated(
            id=test["issueId"],
            key=key,
            self_link=f"{self._config.jira_base_url}/browse/{key}",
        )

    def get_test_case(self, test_key: str) -> TestCaseRecord:
        """
        Fetch one test case by key, including its steps.

        Raises:
            NotFoundError: If no test has this key.
        """
        return self._get_one(
            queries.GET_TEST, "getTests", test_key, "Test case",
            TestCaseRecord.from_payload,
        )

    def update_test_case(self, test_key: str, updates: Any = None) -> None:
        """
        Always fails: Xray's GraphQL API has no general field update.

        Raises:
            UnsupportedOperationError: Always, without any network call.
        """
        raise UnsupportedOperationError(UPDATE_NOT_SUPPORTED_MESSAGE)

    def delete_test_case(self, test_key: str) -> None:
        """
        Delete a test case by key.

        The delete mutation takes an issue id, so the key is resolved with
        ``get_test_case`` first; a missing key raises NotFoundError and
        nothing is deleted.
        """
        test = self.get_test_case(test_key)
        self.execute(queries.DELETE_TEST, {"issueId": test.issue_id})
        logger.info(f"Test case deleted: {test_key}")

    def search_test_cases(
        self, jql: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestCaseRecord]:
        """Search tests with a JQL query, sent to Xray unmodified."""
        return self._search(
            queries.SEARCH_TESTS, "getTests", jql, limit, TestCaseRecord.from_payload
        )

    def get_test_cases_by_project(
        self, project_key: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestCaseRecord]:
        return self.search_test_cases(self._project_jql(project_key), limit)

    # ------------------------------------------------------------------
    # Test Execution Operations
    # ------------------------------------------------------------------

    def create_test_execution(
        self, test_execution: Union[TestExecution, Mapping[str, Any]]
    ) -> TestExecutionCreated:
        """
        Create a Test Execution issue.

        Xray creates one test run per associated test; those runs come back
        in the same response.
        """
        if not isinstance(test_execution, TestExecution):
            test_execution = TestExecution.from_dict(test_execution)

        variables: Dict[str, Any] = {
            "jira": self._jira_fields(
                test_execution.project_key,
                test_execution.summary,
                "Test Execution",
                test_execution.description,
            )
        }
        if test_execution.test_issue_ids:
            variables["testIssueIds"] = list(test_execution.test_issue_ids)
        if test_execution.test_environments:
            variables["testEnvironments"] = list(test_execution.test_environments)

        data = self.execute(queries.CREATE_TEST_EXECUTION, variables)
        payload, execution = self._created(
            data, queries.CREATE_TEST_EXECUTION, "createTestExecution", "testExecution"
        )
        runs = (execution.get("testRuns") or {}).get("results") or []
        key = execution["jira"]["key"]
        logger.info(f"Test execution created: {key} with {len(runs)} test runs")
        return TestExecutionCreated(
            issue_id=execution["issueId"],
            key=key,
            test_runs=[TestRunRecord.from_payload(r) for r in runs],
            warnings=list(payload.get("warnings") or []),
        )

    def get_test_execution(self, test_execution_key: str) -> TestExecutionRecord:
        """
        Fetch one test execution by key with up to 100 of its test runs.

        Raises:
            NotFoundError: If no execution has this key.
        """
        return self._get_one(
            queries.GET_TEST_EXECUTION, "getTestExecutions", test_execution_key,
            "Test execution", TestExecutionRecord.from_payload,
        )

    def search_test_executions(
        self, jql: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestExecutionRecord]:
        return self._search(
            queries.SEARCH_TEST_EXECUTIONS, "getTestExecutions", jql, limit,
            TestExecutionRecord.from_payload,
        )

    def get_test_executions_by_project(
        self, project_key: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestExecutionRecord]:
        return self.search_test_executions(self._project_jql(project_key), limit)

    def update_test_run_status(
        self, test_run_id: str, status: Union[TestRunStatus, str]
    ) -> str:
        """
        Set the status of one test run.

        Returns:
            Xray's confirmation message. Re-fetch the execution to observe
            the new status.
        """
        run_status = parse_run_status(status)
        if not test_run_id:
            raise ValueError("'test_run_id' is required and cannot be empty")
        data = self.execute(
            queries.UPDATE_TEST_RUN_STATUS,
            {"id": test_run_id, "status": run_status.value},
        )
        logger.info(f"Test run {test_run_id} status set to {run_status.value}")
        return data.get("updateTestRunStatus")

    # ------------------------------------------------------------------
    # Test Plan Operations
    # ------------------------------------------------------------------

    def _create_group(
        self,
        group: TestPlan,
        issue_type: str,
        document: GraphQLDocument,
        root: str,
        result_name: str,
    ) -> TestGroupCreated:
        variables: Dict[str, Any] = {
            "jira": self._jira_fields(
                group.project_key, group.summary, issue_type, group.description
            )
        }
        if group.test_issue_ids:
            variables["testIssueIds"] = list(group.test_issue_ids)

        data = self.execute(document, variables)
        payload, created = self._created(data, document, root, result_name)
        tests = (created.get("tests") or {}).get("results") or []
        key = created["jira"]["key"]
        logger.info(f"{issue_type} created: {key}")
        return TestGroupCreated(
            issue_id=created["issueId"],
            key=key,
            tests=[TestReference.from_payload(t) for t in tests],
            warnings=list(payload.get("warnings") or []),
        )

    def create_test_plan(self, test_plan: Union[TestPlan, Mapping[str, Any]]) -> TestGroupCreated:
        if not isinstance(test_plan, TestPlan):
            test_plan = TestPlan.from_dict(test_plan)
        return self._create_group(
            test_plan, "Test Plan", queries.CREATE_TEST_PLAN, "createTestPlan", "testPlan"
        )

    def get_test_plan(self, test_plan_key: str) -> TestPlanRecord:
        return self._get_one(
            queries.GET_TEST_PLAN, "getTestPlans", test_plan_key, "Test plan",
            TestPlanRecord.from_payload,
        )

    def search_test_plans(
        self, jql: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestPlanRecord]:
        return self._search(
            queries.SEARCH_TEST_PLANS, "getTestPlans", jql, limit,
            TestPlanRecord.from_payload,
        )

    def get_test_plans_by_project(
        self, project_key: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestPlanRecord]:
        return self.search_test_plans(self._project_jql(project_key), limit)

    def add_tests_to_test_plan(
        self, test_plan_issue_id: str, test_issue_ids: List[str]
    ) -> Dict[str, Any]:
        """Returns Xray's ``{addedTests, warning}`` payload as is."""
        return self._change_tests(
            queries.ADD_TESTS_TO_TEST_PLAN, "addTestsToTestPlan",
            test_plan_issue_id, test_issue_ids,
        )

    def remove_tests_from_test_plan(
        self, test_plan_issue_id: str, test_issue_ids: List[str]
    ) -> Dict[str, Any]:
        """Returns Xray's ``{removedTests, warning}`` payload as is."""
        return self._change_tests(
            queries.REMOVE_TESTS_FROM_TEST_PLAN, "removeTestsFromTestPlan",
            test_plan_issue_id, test_issue_ids,
        )

    # ------------------------------------------------------------------
    # Test Set Operations
    # ------------------------------------------------------------------

    def create_test_set(self, test_set: Union[TestSet, Mapping[str, Any]]) -> TestGroupCreated:
        if not isinstance(test_set, TestSet):
            test_set = TestSet.from_dict(test_set)
        return self._create_group(
            test_set, "Test Set", queries.CREATE_TEST_SET, "createTestSet", "testSet"
        )

    def get_test_set(self, test_set_key: str) -> TestSetRecord:
        return self._get_one(
            queries.GET_TEST_SET, "getTestSets", test_set_key, "Test set",
            TestSetRecord.from_payload,
        )

    def search_test_sets(
        self, jql: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestSetRecord]:
        return self._search(
            queries.SEARCH_TEST_SETS, "getTestSets", jql, limit,
            TestSetRecord.from_payload,
        )

    def get_test_sets_by_project(
        self, project_key: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> SearchResult[TestSetRecord]:
        return self.search_test_sets(self._project_jql(project_key), limit)

    def add_tests_to_test_set(
        self, test_set_issue_id: str, test_issue_ids: List[str]
    ) -> Dict[str, Any]:
        return self._change_tests(
            queries.ADD_TESTS_TO_TEST_SET, "addTestsToTestSet",
            test_set_issue_id, test_issue_ids,
        )

    def remove_tests_from_test_set(
        self, test_set_issue_id: str, test_issue_ids: List[str]
    ) -> Dict[str, Any]:
        return self._change_tests(
            queries.REMOVE_TESTS_FROM_TEST_SET, "removeTestsFromTestSet",
            test_set_issue_id, test_issue_ids,
        )

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            logger.debug("Xray client session closed")

    def __enter__(self) -> "XrayClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
