"""
Tests for the Xray data models.

Covers:
- Input validation and camelCase/snake_case construction.
- Record parsing with pass-through of unknown vendor fields.
- Vendor-shaped ``to_dict()`` output.
"""

from __future__ import annotations

import pytest

from xray_mcp.xray import models


class TestInputs:
    """Tests for the input dataclasses."""

    def test_test_case_from_camel_case(self) -> None:
        case = models.TestCase.from_dict({
            "projectKey": "TEST",
            "summary": "Login",
            "testType": "Manual",
            "labels": ["smoke"],
        })
        assert case.project_key == "TEST"
        assert case.test_type is models.TestType.MANUAL
        assert case.labels == ["smoke"]

    def test_test_case_from_snake_case(self) -> None:
        case = models.TestCase.from_dict({"project_key": "TEST", "summary": "Login"})
        assert case.test_type is None
        assert case.labels == []

    def test_existing_issue_fields_ignored(self) -> None:
        case = models.TestCase.from_dict({
            "projectKey": "TEST",
            "summary": "Login",
            "status": "Open",
            "id": "10001",
            "key": "TEST-1",
            "components": ["Auth"],
        })
        assert case.summary == "Login"
        assert case.components == ["Auth"]
        assert not hasattr(case, "status")

    def test_existing_issue_fields_only_ignored_for_test_cases(self) -> None:
        with pytest.raises(ValueError, match="Unknown field 'status'"):
            models.TestPlan.from_dict({"projectKey": "TEST", "summary": "x", "status": "Open"})

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown field 'assignee'"):
            models.TestCase.from_dict({"projectKey": "TEST", "summary": "x", "assignee": "me"})

    @pytest.mark.parametrize("cls", [
        models.TestCase, models.TestExecution, models.TestPlan, models.TestSet,
    ])
    def test_required_fields(self, cls) -> None:
        with pytest.raises(ValueError, match="project_key"):
            cls(project_key="", summary="x")
        with pytest.raises(ValueError, match="summary"):
            cls(project_key="TEST", summary="   ")

    def test_invalid_test_type(self) -> None:
        with pytest.raises(ValueError, match="Invalid test type 'Robot'"):
            models.TestCase(project_key="TEST", summary="x", test_type="Robot")

    def test_test_set_accepts_plan_aliases(self) -> None:
        test_set = models.TestSet.from_dict({
            "projectKey": "TEST", "summary": "Smoke", "testIssueIds": ["1", "2"],
        })
        assert isinstance(test_set, models.TestSet)
        assert test_set.test_issue_ids == ["1", "2"]

    def test_run_status_synonyms_are_distinct(self) -> None:
        assert models.parse_run_status("PASS") is models.TestRunStatus.PASS
        assert models.parse_run_status("PASSED") is models.TestRunStatus.PASSED
        assert models.TestRunStatus.PASS != models.TestRunStatus.PASSED
        with pytest.raises(ValueError):
            models.parse_run_status("pass")


class TestRecords:
    """Tests for record parsing and serialization."""

    def test_jira_fields_keep_unknown_fields(self) -> None:
        jira = models.JiraFields.from_payload({
            "key": "TEST-1",
            "summary": "Login",
            "status": {"name": "Open"},
            "customfield_10020": [{"name": "Sprint 3"}],
        })

        assert jira.key == "TEST-1"
        assert jira.status_name == "Open"
        assert jira.extra == {"customfield_10020": [{"name": "Sprint 3"}]}
        assert jira.to_dict() == {
            "key": "TEST-1",
            "summary": "Login",
            "status": {"name": "Open"},
            "customfield_10020": [{"name": "Sprint 3"}],
        }

    def test_jira_fields_from_none(self) -> None:
        jira = models.JiraFields.from_payload(None)
        assert jira.key is None
        assert jira.to_dict() == {}

    def test_test_case_record_round_trip_keeps_vendor_keys(self) -> None:
        payload = {
            "issueId": "10001",
            "projectId": "10000",
            "jira": {"key": "TEST-1"},
            "testType": {"name": "Cucumber", "kind": "Gherkin"},
            "gherkin": "Scenario: login",
            "folder": {"path": "/Auth"},
        }

        record = models.TestCaseRecord.from_payload(payload)

        assert record.gherkin == "Scenario: login"
        assert record.steps == []
        assert record.extra == {"folder": {"path": "/Auth"}}
        assert record.to_dict() == payload

    def test_execution_record(self) -> None:
        record = models.TestExecutionRecord.from_payload({
            "issueId": "30001",
            "jira": {"key": "TEST-9"},
            "testRuns": {"total": 2, "results": [
                {"id": "r1", "status": {"name": "TODO"}, "test": {"issueId": "1", "jira": {"key": "TEST-1"}}},
                {"id": "r2", "status": {"name": "FAIL"}, "test": {"issueId": "2", "jira": {"key": "TEST-2"}},
                 "comment": "flaky"},
            ]},
        })

        assert record.key == "TEST-9"
        assert [r.id for r in record.test_runs] == ["r1", "r2"]
        assert record.find_run("r2").status.name == "FAIL"
        assert record.find_run("r3") is None
        assert record.test_runs[1].extra == {"comment": "flaky"}
        assert record.to_dict()["testRuns"]["total"] == 2

    def test_group_record_subclasses(self) -> None:
        payload = {"issueId": "40001", "jira": {"key": "TEST-40"}, "tests": {"results": []}}
        plan = models.TestPlanRecord.from_payload(payload)
        test_set = models.TestSetRecord.from_payload(payload)

        assert isinstance(plan, models.TestPlanRecord)
        assert isinstance(test_set, models.TestSetRecord)
        assert plan.tests_total is None
        assert "total" not in plan.to_dict()["tests"]

    def test_search_result(self) -> None:
        result = models.SearchResult.from_payload(
            {"total": 120, "start": 0, "limit": 2, "results": [
                {"issueId": "1", "jira": {"key": "TEST-1"}},
                {"issueId": "2", "jira": {"key": "TEST-2"}},
            ]},
            models.TestCaseRecord.from_payload,
        )

        assert result.total == 120
        assert len(result) == 2
        data = result.to_dict()
        assert data["total"] == 120
        assert [r["jira"]["key"] for r in data["results"]] == ["TEST-1", "TEST-2"]

    def test_search_result_empty_payload(self) -> None:
        result = models.SearchResult.from_payload({}, models.TestCaseRecord.from_payload)
        assert result.total == 0
        assert result.results == []


class TestCreateResults:
    """Tests for create result serialization."""

    def test_test_case_created(self) -> None:
        created = models.TestCaseCreated(id="1", key="TEST-1", self_link="https://j/browse/TEST-1")
        assert created.to_dict() == {"id": "1", "key": "TEST-1", "self": "https://j/browse/TEST-1"}

    def test_execution_created_warnings_only_when_present(self) -> None:
        created = models.TestExecutionCreated(issue_id="3", key="TEST-3")
        assert created.to_dict() == {"issueId": "3", "key": "TEST-3", "testRuns": []}

        created.warnings.append("Environment unknown")
        assert created.to_dict()["warnings"] == ["Environment unknown"]

    def test_group_created(self) -> None:
        created = models.TestGroupCreated(
            issue_id="4",
            key="TEST-4",
            tests=[models.TestReference.from_payload({"issueId": "1", "jira": {"key": "TEST-1"}})],
        )
        assert created.to_dict() == {
            "issueId": "4",
            "key": "TEST-4",
            "tests": [{"issueId": "1", "jira": {"key": "TEST-1"}}],
        }
