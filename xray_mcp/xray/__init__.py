"""
Xray Cloud Client Module.

Provides integration with the Xray Cloud GraphQL API for:
- Authenticating with client credentials (cached bearer token).
- Creating, fetching, searching and deleting Test issues.
- Creating and fetching Test Executions and updating Test Run statuses.
- Managing Test Plans and Test Sets and their associated tests.
"""

from xray_mcp.xray.client import XrayClient, XrayConfig
from xray_mcp.xray.errors import (
    AuthenticationError,
    GraphQLLogicError,
    GraphQLTransportError,
    NotFoundError,
    UnsupportedOperationError,
    XrayClientError,
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
    TestRunRecord,
    TestRunStatus,
    TestSet,
    TestSetRecord,
    TestType,
)

__all__ = [
    "XrayClient",
    "XrayConfig",
    "XrayClientError",
    "AuthenticationError",
    "GraphQLTransportError",
    "GraphQLLogicError",
    "NotFoundError",
    "UnsupportedOperationError",
    "SearchResult",
    "TestCase",
    "TestCaseCreated",
    "TestCaseRecord",
    "TestExecution",
    "TestExecutionCreated",
    "TestExecutionRecord",
    "TestGroupCreated",
    "TestPlan",
    "TestPlanRecord",
    "TestRunRecord",
    "TestRunStatus",
    "TestSet",
    "TestSetRecord",
    "TestType",
]
