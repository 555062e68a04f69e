"""
Xray GraphQL Documents.

Each operation the client performs has one GraphQLDocument constant here.
Document text never contains per-call data; values travel only through
GraphQL variables built by the client, so every document can be checked on
its own (see ``GraphQLDocument.declared_variables``).

Bump ``version`` on a document whenever its text changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet

_HEADER_RE = re.compile(r"^\s*(query|mutation)\s+(\w+)\s*(\(([^)]*)\))?", re.DOTALL)
_VARIABLE_RE = re.compile(r"\$(\w+)\s*:")


@dataclass(frozen=True)
class GraphQLDocument:
    """A named, versioned GraphQL query or mutation."""

    operation: str
    text: str
    version: int = 1

    def __post_init__(self) -> None:
        match = _HEADER_RE.match(self.text)
        if not match or match.group(2) != self.operation:
            raise ValueError(
                f"GraphQL document header does not declare operation '{self.operation}'"
            )

    @property
    def kind(self) -> str:
        """``query`` or ``mutation``."""
        return _HEADER_RE.match(self.text).group(1)  # type: ignore[union-attr]

    @property
    def declared_variables(self) -> FrozenSet[str]:
        """Variable names declared in the operation header."""
        match = _HEADER_RE.match(self.text)
        header = match.group(4) if match else None
        return frozenset(_VARIABLE_RE.findall(header or ""))


# ---------------------------------------------------------------------------
# Test cases
# ---------------------------------------------------------------------------

CREATE_TEST = GraphQLDocument(
    operation="CreateTest",
    text="""
    mutation CreateTest($jira: JSON!, $testType: UpdateTestTypeInput, $unstructured: String) {
      createTest(jira: $jira, testType: $testType, unstructured: $unstructured) {
        test {
          issueId
          jira(fields: ["key"])
        }
        warnings
      }
    }
    """,
)

GET_TEST = GraphQLDocument(
    operation="GetTest",
    text="""
    query GetTest($jql: String!, $limit: Int!) {
      getTests(jql: $jql, limit: $limit) {
        total
        results {
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "priority", "status", "labels"])
          testType {
            name
            kind
          }
          steps {
            id
            action
            data
            result
          }
          gherkin
          unstructured
        }
      }
    }
    """,
)

SEARCH_TESTS = GraphQLDocument(
    operation="SearchTests",
    text="""
    query SearchTests($jql: String!, $limit: Int!) {
      getTests(jql: $jql, limit: $limit) {
        total
        start
        limit
        results {
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "priority", "status", "labels"])
          testType {
            name
            kind
          }
        }
      }
    }
    """,
)

DELETE_TEST = GraphQLDocument(
    operation="DeleteTest",
    text="""
    mutation DeleteTest($issueId: String!) {
      deleteTest(issueId: $issueId)
    }
    """,
)

# ---------------------------------------------------------------------------
# Test executions
# ---------------------------------------------------------------------------

CREATE_TEST_EXECUTION = GraphQLDocument(
    operation="CreateTestExecution",
    text="""
    mutation CreateTestExecution($jira: JSON!, $testIssueIds: [String], $testEnvironments: [String]) {
      createTestExecution(jira: $jira, testIssueIds: $testIssueIds, testEnvironments: $testEnvironments) {
        testExecution {
          issueId
          jira(fields: ["key", "summary"])
          testRuns(limit: 100) {
            results {
              id
              status {
                name
                description
              }
              test {
                issueId
                jira(fields: ["key", "summary"])
              }
            }
          }
        }
        warnings
      }
    }
    """,
)

GET_TEST_EXECUTION = GraphQLDocument(
    operation="GetTestExecution",
    text="""
    query GetTestExecution($jql: String!, $limit: Int!) {
      getTestExecutions(jql: $jql, limit: $limit) {
        total
        results {
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "status"])
          testRuns(limit: 100) {
            total
            results {
              id
              status {
                name
                description
              }
              test {
                issueId
                jira(fields: ["key", "summary"])
              }
              startedOn
              finishedOn
              executedBy
            }
          }
        }
      }
    }
    """,
)

SEARCH_TEST_EXECUTIONS = GraphQLDocument(
    operation="SearchTestExecutions",
    text="""
    query SearchTestExecutions($jql: String!, $limit: Int!) {
      getTestExecutions(jql: $jql, limit: $limit) {
        total
        start
        limit
        results {
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "status", "created", "updated"])
          testRuns(limit: 100) {
            total
            results {
              id
              status {
                name
                description
              }
              test {
                issueId
                jira(fields: ["key", "summary"])
              }
            }
          }
        }
      }
    }
    """,
)

UPDATE_TEST_RUN_STATUS = GraphQLDocument(
    operation="UpdateTestRunStatus",
    text="""
    mutation UpdateTestRunStatus($id: String!, $status: String!) {
      updateTestRunStatus(id: $id, status: $status)
    }
    """,
)

# ---------------------------------------------------------------------------
# Test plans and test sets
# ---------------------------------------------------------------------------


def _create_group(operation: str, field_name: str, result_name: str) -> GraphQLDocument:
    return GraphQLDocument(
        operation=operation,
        text=f"""
    mutation {operation}($jira: JSON!, $testIssueIds: [String]) {{
      {field_name}(jira: $jira, testIssueIds: $testIssueIds) {{
        {result_name} {{
          issueId
          jira(fields: ["key", "summary"])
          tests(limit: 100) {{
            results {{
              issueId
              jira(fields: ["key", "summary"])
            }}
          }}
        }}
        warnings
      }}
    }}
    """,
    )


def _get_group(operation: str, field_name: str) -> GraphQLDocument:
    return GraphQLDocument(
        operation=operation,
        text=f"""
    query {operation}($jql: String!, $limit: Int!) {{
      {field_name}(jql: $jql, limit: $limit) {{
        total
        results {{
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "status"])
          tests(limit: 100) {{
            total
            results {{
              issueId
              jira(fields: ["key", "summary", "status"])
              testType {{
                name
                kind
              }}
            }}
          }}
        }}
      }}
    }}
    """,
    )


def _search_group(operation: str, field_name: str) -> GraphQLDocument:
    return GraphQLDocument(
        operation=operation,
        text=f"""
    query {operation}($jql: String!, $limit: Int!) {{
      {field_name}(jql: $jql, limit: $limit) {{
        total
        start
        limit
        results {{
          issueId
          projectId
          jira(fields: ["key", "summary", "description", "status", "created", "updated"])
          tests(limit: 10) {{
            total
            results {{
              issueId
              jira(fields: ["key", "summary"])
            }}
          }}
        }}
      }}
    }}
    """,
    )


def _change_tests(operation: str, field_name: str, changed: str) -> GraphQLDocument:
    return GraphQLDocument(
        operation=operation,
        text=f"""
    mutation {operation}($issueId: String!, $testIssueIds: [String]!) {{
      {field_name}(issueId: $issueId, testIssueIds: $testIssueIds) {{
        {changed}
        warning
      }}
    }}
    """,
    )


CREATE_TEST_PLAN = _create_group("CreateTestPlan", "createTestPlan", "testPlan")
GET_TEST_PLAN = _get_group("GetTestPlan", "getTestPlans")
SEARCH_TEST_PLANS = _search_group("SearchTestPlans", "getTestPlans")
ADD_TESTS_TO_TEST_PLAN = _change_tests(
    "AddTestsToTestPlan", "addTestsToTestPlan", "addedTests"
)
REMOVE_TESTS_FROM_TEST_PLAN = _change_tests(
    "RemoveTestsFromTestPlan", "removeTestsFromTestPlan", "removedTests"
)

CREATE_TEST_SET = _create_group("CreateTestSet", "createTestSet", "testSet")
GET_TEST_SET = _get_group("GetTestSet", "getTestSets")
SEARCH_TEST_SETS = _search_group("SearchTestSets", "getTestSets")
ADD_TESTS_TO_TEST_SET = _change_tests(
    "AddTestsToTestSet", "addTestsToTestSet", "addedTests"
)
REMOVE_TESTS_FROM_TEST_SET = _change_tests(
    "RemoveTestsFromTestSet", "removeTestsFromTestSet", "removedTests"
)
