"""Tests for the project hierarchy engine and progress derivation."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from focusboard.domain.models import Issue, IssueStatus, Milestone, Project, ProjectStatus
from focusboard.projects import progress
from focusboard.projects.engine import (
    IssueNotFoundError,
    MilestoneNotFoundError,
    ProjectEngine,
    ProjectNotFoundError,
)


@pytest.fixture
def engine(store_factory) -> ProjectEngine:
    return ProjectEngine(store_factory("projects"), store_factory("milestones"), store_factory("issues"))


def _tree(engine: ProjectEngine, issues_per_milestone: int = 2):
    async def build():
        project = await engine.add_project("P", ProjectStatus.ACTIVE, "1.0", "")
        milestones = [await engine.add_milestone(project.id, f"M{n}", budget=100) for n in range(2)]
        for m in milestones:
            for n in range(issues_per_milestone):
                await engine.add_issue(m.id, f"I{n}", "Feature")
        return project, milestones

    return asyncio.run(build())


class TestProgress:
    def _issues(self, *statuses: IssueStatus) -> list[Issue]:
        return [Issue(id=n, milestone_id=1, status=s) for n, s in enumerate(statuses)]

    def test_empty_milestone_is_zero(self) -> None:
        assert progress.issue_progress([]) == 0

    def test_two_of_three_closed_rounds_to_67(self) -> None:
        issues = self._issues(IssueStatus.CLOSE, IssueStatus.CLOSE, IssueStatus.OPEN)
        assert progress.issue_progress(issues) == 67

    def test_rounds_half_up(self) -> None:
        assert progress.round_half_up(50.5) == 51
        assert progress.round_half_up(2.5) == 3
        assert progress.round_half_up(49.4) == 49

    def test_project_averages_milestones(self) -> None:
        project = Project(id=1, title="P")
        milestones = [Milestone(id=1, project_id=1, budget=10), Milestone(id=2, project_id=1, budget=5.5)]
        issues = [Issue(id=1, milestone_id=1, status=IssueStatus.CLOSE), Issue(id=2, milestone_id=2)]
        stats = progress.project_with_stats(project, milestones, issues)
        assert [m.progress for m in stats.milestones] == [100, 0]
        assert stats.progress == 50
        assert stats.total_budget == 15.5

    def test_project_without_milestones(self) -> None:
        stats = progress.project_with_stats(Project(id=1), [], [])
        assert (stats.progress, stats.total_budget, stats.milestones) == (0, 0, [])

    def test_milestone_counts(self) -> None:
        m = progress.milestone_with_progress(
            Milestone(id=1, project_id=1),
            [Issue(milestone_id=1, status=IssueStatus.CLOSE), Issue(milestone_id=1), Issue(milestone_id=2)],
        )
        assert (m.completed_issues, m.total_issues, m.progress) == (1, 2, 50)


class TestAdd:
    def test_add_stamps_timestamps(self, engine: ProjectEngine) -> None:
        p = asyncio.run(engine.add_project("P"))
        assert p.created_at == p.updated_at
        assert p.status == ProjectStatus.SCHEDULED
        assert engine.projects == [p]

    def test_issue_starts_open(self, engine: ProjectEngine) -> None:
        project, milestones = _tree(engine, issues_per_milestone=1)
        assert all(i.status == IssueStatus.OPEN for i in engine.issues)
        row = asyncio.run(engine.issue_store.get(engine.issues[0].id))
        assert row["status"] == "Open"

    def test_milestone_requires_project(self, engine: ProjectEngine) -> None:
        with pytest.raises(ProjectNotFoundError):
            asyncio.run(engine.add_milestone(5, "M"))

    def test_issue_requires_milestone(self, engine: ProjectEngine) -> None:
        with pytest.raises(MilestoneNotFoundError):
            asyncio.run(engine.add_issue(5, "I"))

    def test_issue_label_validated(self, engine: ProjectEngine) -> None:
        _, milestones = _tree(engine, 0)
        with pytest.raises(ValueError, match="Unknown issue label"):
            asyncio.run(engine.add_issue(milestones[0].id, "I", "Chore"))

    def test_negative_budget_rejected(self, engine: ProjectEngine) -> None:
        p = asyncio.run(engine.add_project("P"))
        with pytest.raises(ValueError):
            asyncio.run(engine.add_milestone(p.id, "M", budget=-1))


class TestUpdate:
    def test_update_refreshes_updated_at_only_on_entity(self, engine: ProjectEngine) -> None:
        project, milestones = _tree(engine, 1)
        issue = engine.issues[0]
        updated = asyncio.run(engine.update_issue(issue.id, status="Close"))
        assert updated.status == IssueStatus.CLOSE
        assert updated.updated_at >= issue.updated_at
        assert updated.created_at == issue.created_at
        assert engine.get_milestone(milestones[0].id).updated_at == milestones[0].updated_at
        assert engine.get_project(project.id).updated_at == project.updated_at

    def test_update_project_persists(self, engine: ProjectEngine) -> None:
        p = asyncio.run(engine.add_project("P"))
        asyncio.run(engine.update_project(p.id, title="Renamed", status=ProjectStatus.CLOSED))
        row = asyncio.run(engine.project_store.get(p.id))
        assert (row["title"], row["status"]) == ("Renamed", "Closed")

    def test_update_milestone_invalid_status(self, engine: ProjectEngine) -> None:
        _, milestones = _tree(engine, 0)
        with pytest.raises(ValueError):
            asyncio.run(engine.update_milestone(milestones[0].id, status="Paused"))

    def test_update_unknown_issue(self, engine: ProjectEngine) -> None:
        with pytest.raises(IssueNotFoundError):
            asyncio.run(engine.update_issue(1, title="x"))

    def test_progress_follows_issue_edits(self, engine: ProjectEngine) -> None:
        project, milestones = _tree(engine, 2)
        first = engine.issues_for_milestone(milestones[0].id)[0]
        asyncio.run(engine.update_issue(first.id, status=IssueStatus.CLOSE))
        stats = engine.project_with_stats(project.id)
        assert [m.progress for m in stats.milestones] == [50, 0]
        assert stats.progress == 25
        assert stats.total_budget == 200


class TestCascades:
    def test_delete_issue(self, engine: ProjectEngine) -> None:
        _tree(engine, 1)
        target = engine.issues[0]
        asyncio.run(engine.delete_issue(target.id))
        assert engine.get_issue(target.id) is None

    def test_delete_milestone_removes_its_issues(self, engine: ProjectEngine) -> None:
        _, milestones = _tree(engine, 2)
        asyncio.run(engine.delete_milestone(milestones[0].id))
        assert [m.id for m in engine.milestones] == [milestones[1].id]
        assert {i.milestone_id for i in engine.issues} == {milestones[1].id}
        rows = asyncio.run(engine.issue_store.to_array())
        assert {r["milestoneId"] for r in rows} == {milestones[1].id}

    def test_delete_project_leaves_unrelated_untouched(self, engine: ProjectEngine) -> None:
        doomed, _ = _tree(engine, 2)
        kept, kept_milestones = _tree(engine, 2)
        asyncio.run(engine.delete_project(doomed.id))

        assert [p.id for p in engine.projects] == [kept.id]
        assert {m.project_id for m in engine.milestones} == {kept.id}
        assert {i.milestone_id for i in engine.issues} == {m.id for m in kept_milestones}
        assert len(engine.issues) == 4

        fresh = ProjectEngine(engine.project_store, engine.milestone_store, engine.issue_store)
        asyncio.run(fresh.load())
        assert fresh.projects == engine.projects
        assert fresh.milestones == engine.milestones
        assert fresh.issues == engine.issues

    def test_cascade_order_is_issues_milestones_project(self, failing_factory) -> None:
        projects = failing_factory("projects")
        milestones = failing_factory("milestones")
        issues = failing_factory("issues")
        engine = ProjectEngine(projects, milestones, issues)
        project, _ = _tree(engine, 1)
        for store in (projects, milestones, issues):
            store.calls.clear()
        asyncio.run(engine.delete_project(project.id))
        assert issues.calls == ["delete_where"]
        assert milestones.calls == ["delete_where"]
        assert projects.calls == ["delete"]

    def test_partial_cascade_failure_then_retry_converges(self, failing_factory) -> None:
        projects = failing_factory("projects")
        milestones = failing_factory("milestones")
        issues = failing_factory("issues")
        engine = ProjectEngine(projects, milestones, issues)
        project, _ = _tree(engine, 2)

        milestones.fail_on.add("delete_where")
        with pytest.raises(OSError):
            asyncio.run(engine.delete_project(project.id))

        # Issues are gone from the store, the rest of the tree is not, and memory is unchanged.
        assert asyncio.run(issues.inner.to_array()) == []
        assert len(asyncio.run(milestones.inner.to_array())) == 2
        assert len(engine.issues) == 4

        milestones.fail_on.clear()
        asyncio.run(engine.delete_project(project.id))
        assert engine.projects == [] and engine.milestones == [] and engine.issues == []
        assert asyncio.run(projects.inner.to_array()) == []

    def test_delete_unknown_project(self, engine: ProjectEngine) -> None:
        with pytest.raises(ProjectNotFoundError):
            asyncio.run(engine.delete_project(3))


class TestViews:
    def test_project_with_stats_unknown(self, engine: ProjectEngine) -> None:
        assert engine.project_with_stats(1) is None

    def test_all_projects_with_stats(self, engine: ProjectEngine) -> None:
        _tree(engine, 0)
        asyncio.run(engine.add_project("Empty"))
        stats = engine.all_projects_with_stats()
        assert [s.title for s in stats] == ["P", "Empty"]
        assert [s.total_budget for s in stats] == [200, 0]
        data = stats[0].to_dict()
        assert data["totalBudget"] == 200
        assert data["milestones"][0]["totalIssues"] == 0

    def test_load_failure_clears_flag(self, failing_factory) -> None:
        engine = ProjectEngine(
            failing_factory("projects"),
            failing_factory("milestones", {"to_array"}),
            failing_factory("issues"),
        )
        asyncio.run(engine.load())
        assert engine.loading is False
        assert engine.projects == []

    def test_milestone_dates_round_trip(self, engine: ProjectEngine) -> None:
        p = asyncio.run(engine.add_project("P"))
        deadline = datetime(2030, 1, 1, 12)
        m = asyncio.run(engine.add_milestone(p.id, "M", "Active", deadline, 12.5))
        fresh = ProjectEngine(engine.project_store, engine.milestone_store, engine.issue_store)
        asyncio.run(fresh.load())
        assert fresh.get_milestone(m.id) == m

    def test_aware_dates_are_held_as_local_time(self, engine: ProjectEngine) -> None:
        p = asyncio.run(engine.add_project("P"))
        deadline = datetime(2030, 1, 1, 12)
        m = asyncio.run(engine.add_milestone(p.id, "M", deadline=deadline.astimezone(timezone.utc)))
        issue = asyncio.run(engine.add_issue(m.id, "I", due_date=deadline.astimezone(timezone.utc)))
        moved = asyncio.run(engine.update_issue(issue.id, due_date=datetime(2030, 2, 1, 8).astimezone(timezone.utc)))
        assert m.deadline == deadline and m.deadline.tzinfo is None
        assert moved.due_date == datetime(2030, 2, 1, 8)
        fresh = ProjectEngine(engine.project_store, engine.milestone_store, engine.issue_store)
        asyncio.run(fresh.load())
        assert fresh.milestones == engine.milestones
        assert fresh.issues == engine.issues
