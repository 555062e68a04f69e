"""
Xray MCP Tools.

Exposes every XrayClient operation as an MCP tool. The client is passed in
explicitly by ``create_server``; this module holds no client of its own.

Tool results are the ``to_dict()`` form of the client's result types. Client
and validation failures are logged and re-raised as ``ToolError`` so the MCP
caller receives an error result instead of a transport failure.

Client calls block on HTTP, so each tool runs its call in a worker thread and
the event loop stays free for other requests.
"""

import asyncio
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger
from pydantic import Field

from xray_mcp.xray.client import DEFAULT_SEARCH_LIMIT, XrayClient
from xray_mcp.xray.errors import XrayClientError
from xray_mcp.xray.models import TestCase, TestExecution, TestPlan, TestSet

SERVER_NAME = "xray-mcp-server"

TOOL_NAMES = (
    "create_test_case",
    "get_test_case",
    "update_test_case",
    "delete_test_case",
    "search_test_cases",
    "get_project_test_cases",
    "create_test_execution",
    "get_test_execution",
    "search_test_executions",
    "get_project_test_executions",
    "update_test_run_status",
    "create_test_plan",
    "get_test_plan",
    "search_test_plans",
    "get_project_test_plans",
    "add_tests_to_test_plan",
    "remove_tests_from_test_plan",
    "create_test_set",
    "get_test_set",
    "search_test_sets",
    "get_project_test_sets",
    "add_tests_to_test_set",
    "remove_tests_from_test_set",
)

ProjectKey = Annotated[str, Field(description='The Jira project key (e.g., "PROJ")')]
Summary = Annotated[str, Field(description="The issue summary/title")]
Description = Annotated[str, Field(description="The issue description")]
Jql = Annotated[str, Field(description='JQL query (e.g., "project = PROJ AND status = Done")')]
Limit = Annotated[int, Field(description="Maximum number of results to return", ge=1)]
IssueIds = Annotated[
    List[str], Field(description='Issue IDs of the tests (e.g., ["10001", "10002"])')
]
TestTypeName = Literal["Manual", "Cucumber", "Generic"]
RunStatusName = Literal["TODO", "EXECUTING", "PASS", "FAIL", "ABORTED", "PASSED", "FAILED"]


class XrayTools:
    """One method per MCP tool, all delegating to a single XrayClient."""

    def __init__(self, client: XrayClient) -> None:
        self._client = client

    @staticmethod
    async def _call(action: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except (XrayClientError, ValueError) as e:
            logger.error(f"Tool {action} failed: {e}")
            raise ToolError(f"Error: {e}") from e

    # ------------------------------------------------------------------
    # Test cases
    # ------------------------------------------------------------------

    async def create_test_case(
        self,
        project_key: ProjectKey,
        summary: Summary,
        description: Description = "",
        test_type: Annotated[
            Optional[TestTypeName], Field(description="The type of test case")
        ] = None,
        labels: Annotated[
            Optional[List[str]], Field(description="Labels to attach to the test case")
        ] = None,
        priority: Annotated[
            Optional[str],
            Field(description='Priority of the test case (e.g., "High", "Medium", "Low")'),
        ] = None,
    ) -> Dict[str, Any]:
        """Create a new test case in Xray Cloud"""
        return await self._call("create_test_case", lambda: self._client.create_test_case(
            TestCase(
                project_key=project_key,
                summary=summary,
                description=description,
                test_type=test_type,
                labels=labels or [],
                priority=priority,
            )
        ).to_dict())

    async def get_test_case(
        self,
        test_key: Annotated[str, Field(description='The test case key (e.g., "PROJ-123")')],
    ) -> Dict[str, Any]:
        """Get details of a specific test case by key"""
        return await self._call(
            "get_test_case", lambda: self._client.get_test_case(test_key).to_dict()
        )

    async def update_test_case(
        self,
        test_key: Annotated[str, Field(description="The test case key to update")],
        summary: Optional[str] = None,
        description: Optional[str] = None,
        labels: Optional[List[str]] = None,
        priority: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Update an existing test case (not supported by the Xray GraphQL API)"""
        updates = {
            k: v for k, v in {
                "summary": summary,
                "description": description,
                "labels": labels,
                "priority": priority,
            }.items() if v is not None
        }
        return await self._call(
            "update_test_case", lambda: self._client.update_test_case(test_key, updates)
        )

    async def delete_test_case(
        self,
        test_key: Annotated[str, Field(description="The test case key to delete")],
    ) -> Dict[str, Any]:
        """Delete a test case"""
        await self._call("delete_test_case", lambda: self._client.delete_test_case(test_key))
        return {"deleted": test_key, "message": f"Test case {test_key} deleted successfully"}

    async def search_test_cases(
        self, jql: Jql, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Search for test cases using JQL (Jira Query Language)"""
        return await self._call(
            "search_test_cases",
            lambda: self._client.search_test_cases(jql, max_results).to_dict(),
        )

    async def get_project_test_cases(
        self, project_key: ProjectKey, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Get all test cases for a specific project"""
        return await self._call(
            "get_project_test_cases",
            lambda: self._client.get_test_cases_by_project(project_key, max_results).to_dict(),
        )

    # ------------------------------------------------------------------
    # Test executions
    # ------------------------------------------------------------------

    async def create_test_execution(
        self,
        project_key: ProjectKey,
        summary: Summary,
        description: Description = "",
        test_issue_ids: Annotated[
            Optional[List[str]],
            Field(description="Issue IDs of the tests to include in the execution"),
        ] = None,
        test_environments: Annotated[
            Optional[List[str]],
            Field(description='Test environments (e.g., ["Chrome", "iOS"])'),
        ] = None,
    ) -> Dict[str, Any]:
        """Create a new test execution in Xray Cloud"""
        return await self._call("create_test_execution", lambda: self._client.create_test_execution(
            TestExecution(
                project_key=project_key,
                summary=summary,
                description=description,
                test_issue_ids=test_issue_ids or [],
                test_environments=test_environments or [],
            )
        ).to_dict())

    async def get_test_execution(
        self,
        test_execution_key: Annotated[
            str, Field(description='The test execution key (e.g., "PROJ-456")')
        ],
    ) -> Dict[str, Any]:
        """Get details of a specific test execution by key, including its test runs"""
        return await self._call(
            "get_test_execution",
            lambda: self._client.get_test_execution(test_execution_key).to_dict(),
        )

    async def search_test_executions(
        self, jql: Jql, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Search for test executions using JQL"""
        return await self._call(
            "search_test_executions",
            lambda: self._client.search_test_executions(jql, max_results).to_dict(),
        )

    async def get_project_test_executions(
        self, project_key: ProjectKey, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Get all test executions for a specific project"""
        return await self._call(
            "get_project_test_executions",
            lambda: self._client.get_test_executions_by_project(
                project_key, max_results
            ).to_dict(),
        )

    async def update_test_run_status(
        self,
        test_run_id: Annotated[str, Field(description="The test run ID")],
        status: Annotated[RunStatusName, Field(description="The new test run status")],
    ) -> Dict[str, Any]:
        """Update the status of a test run within a test execution"""
        message = await self._call(
            "update_test_run_status",
            lambda: self._client.update_test_run_status(test_run_id, status),
        )
        return {"testRunId": test_run_id, "status": status, "result": message}

    # ------------------------------------------------------------------
    # Test plans
    # ------------------------------------------------------------------

    async def create_test_plan(
        self,
        project_key: ProjectKey,
        summary: Summary,
        description: Description = "",
        test_issue_ids: Annotated[
            Optional[List[str]], Field(description="Issue IDs of the tests to include")
        ] = None,
    ) -> Dict[str, Any]:
        """Create a new test plan in Xray Cloud"""
        return await self._call("create_test_plan", lambda: self._client.create_test_plan(
            TestPlan(
                project_key=project_key,
                summary=summary,
                description=description,
                test_issue_ids=test_issue_ids or [],
            )
        ).to_dict())

    async def get_test_plan(
        self,
        test_plan_key: Annotated[str, Field(description='The test plan key (e.g., "PROJ-789")')],
    ) -> Dict[str, Any]:
        """Get details of a specific test plan by key"""
        return await self._call(
            "get_test_plan", lambda: self._client.get_test_plan(test_plan_key).to_dict()
        )

    async def search_test_plans(
        self, jql: Jql, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Search for test plans using JQL"""
        return await self._call(
            "search_test_plans",
            lambda: self._client.search_test_plans(jql, max_results).to_dict(),
        )

    async def get_project_test_plans(
        self, project_key: ProjectKey, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Get all test plans for a specific project"""
        return await self._call(
            "get_project_test_plans",
            lambda: self._client.get_test_plans_by_project(project_key, max_results).to_dict(),
        )

    async def add_tests_to_test_plan(
        self,
        test_plan_issue_id: Annotated[str, Field(description="The test plan issue ID")],
        test_issue_ids: IssueIds,
    ) -> Dict[str, Any]:
        """Add tests to an existing test plan"""
        return await self._call(
            "add_tests_to_test_plan",
            lambda: self._client.add_tests_to_test_plan(test_plan_issue_id, test_issue_ids),
        )

    async def remove_tests_from_test_plan(
        self,
        test_plan_issue_id: Annotated[str, Field(description="The test plan issue ID")],
        test_issue_ids: IssueIds,
    ) -> Dict[str, Any]:
        """Remove tests from an existing test plan"""
        return await self._call(
            "remove_tests_from_test_plan",
            lambda: self._client.remove_tests_from_test_plan(test_plan_issue_id, test_issue_ids),
        )

    # ------------------------------------------------------------------
    # Test sets
    # ------------------------------------------------------------------

    async def create_test_set(
        self,
        project_key: ProjectKey,
        summary: Summary,
        description: Description = "",
        test_issue_ids: Annotated[
            Optional[List[str]], Field(description="Issue IDs of the tests to include")
        ] = None,
    ) -> Dict[str, Any]:
        """Create a new test set in Xray Cloud"""
        return await self._call("create_test_set", lambda: self._client.create_test_set(
            TestSet(
                project_key=project_key,
                summary=summary,
                description=description,
                test_issue_ids=test_issue_ids or [],
            )
        ).to_dict())

    async def get_test_set(
        self,
        test_set_key: Annotated[str, Field(description='The test set key (e.g., "PROJ-321")')],
    ) -> Dict[str, Any]:
        """Get details of a specific test set by key"""
        return await self._call(
            "get_test_set", lambda: self._client.get_test_set(test_set_key).to_dict()
        )

    async def search_test_sets(
        self, jql: Jql, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Search for test sets using JQL"""
        return await self._call(
            "search_test_sets",
            lambda: self._client.search_test_sets(jql, max_results).to_dict(),
        )

    async def get_project_test_sets(
        self, project_key: ProjectKey, max_results: Limit = DEFAULT_SEARCH_LIMIT
    ) -> Dict[str, Any]:
        """Get all test sets for a specific project"""
        return await self._call(
            "get_project_test_sets",
            lambda: self._client.get_test_sets_by_project(project_key, max_results).to_dict(),
        )

    async def add_tests_to_test_set(
        self,
        test_set_issue_id: Annotated[str, Field(description="The test set issue ID")],
        test_issue_ids: IssueIds,
    ) -> Dict[str, Any]:
        """Add tests to an existing test set"""
        return await self._call(
            "add_tests_to_test_set",
            lambda: self._client.add_tests_to_test_set(test_set_issue_id, test_issue_ids),
        )

    async def remove_tests_from_test_set(
        self,
        test_set_issue_id: Annotated[str, Field(description="The test set issue ID")],
        test_issue_ids: IssueIds,
    ) -> Dict[str, Any]:
        """Remove tests from an existing test set"""
        return await self._call(
            "remove_tests_from_test_set",
            lambda: self._client.remove_tests_from_test_set(test_set_issue_id, test_issue_ids),
        )


def create_server(client: XrayClient, name: str = SERVER_NAME) -> FastMCP:
    """
    Build the MCP server with one tool per XrayTools method.

    Args:
        client: The XrayClient every tool delegates to.
        name: Server name advertised to MCP clients.
    """
    tools = XrayTools(client)
    mcp = FastMCP(name)
    for tool_name in TOOL_NAMES:
        mcp.tool(getattr(tools, tool_name), name=tool_name)
    logger.debug(f"Registered {len(TOOL_NAMES)} Xray tools on {name}")
    return mcp
