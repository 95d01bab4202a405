from __future__ import annotations

import datetime as dt

import pytest
from fakes import PROJECT, TEAM, USER, FakeAdoClient, full_client, work_item

from hawki.core.exceptions import AzureDevOpsRequestError, BadRequestError, NotFoundError
from hawki.integrations.azure_devops import service
from hawki.models.ado import AdoIteration, AdoProject, AdoTeam, AdoTeamIteration, AdoUser, AdoWorkItem
from hawki.models.enums import SyncStage, SyncStatus, SyncTable, SyncType
from hawki.services.checkpoints import get_checkpoint
from hawki.services.progress import InMemoryProgressSink

SETUP_STEPS = ["projects", "users", "teams", "iterations", "team_iterations"]


def test_sync_projects_twice_updates_in_place_and_keeps_operator_flag(db_session) -> None:
    client = FakeAdoClient(projects=[PROJECT])

    first = service.sync_projects(db_session, client)
    assert (first.inserted, first.updated) == (1, 0)

    service.set_project_active(db_session, "P1", False)
    second = service.sync_projects(db_session, client)

    assert (second.inserted, second.updated) == (0, 1)
    assert db_session.query(AdoProject).count() == 1
    assert db_session.get(AdoProject, "P1").is_active is False
    checkpoint = get_checkpoint(db_session, SyncTable.projects)
    assert checkpoint.status == SyncStatus.success
    assert checkpoint.records_processed == 1


def test_users_are_keyed_by_descriptor(db_session) -> None:
    client = FakeAdoClient(users=[USER, {"descriptor": "aad.u2", "principalName": "bob@corp.com"}])
    counts = service.sync_users(db_session, client)

    assert counts.inserted == 2
    bob = db_session.get(AdoUser, "aad.u2")
    assert bob.display_name == "bob@corp.com"
    assert bob.is_active is True


def test_key_repeated_across_pages_updates_the_pending_row(db_session) -> None:
    renamed = {**USER, "displayName": "Jane Q. Doe"}
    client = FakeAdoClient(users=[USER, {"descriptor": "aad.u2", "displayName": "Bob"}, renamed])

    counts = service.sync_users(db_session, client)

    assert (counts.inserted, counts.updated, counts.errors) == (2, 1, 0)
    assert db_session.query(AdoUser).count() == 2
    assert db_session.get(AdoUser, "aad.u1").display_name == "Jane Q. Doe"
    assert db_session.get(AdoUser, "aad.u2") is not None


def test_teams_need_an_active_owning_project(db_session) -> None:
    service.sync_projects(db_session, FakeAdoClient(projects=[PROJECT]))
    db_session.add(AdoProject(id="P2", name="Beta", state="wellFormed", is_active=False))
    db_session.commit()

    client = FakeAdoClient(
        teams=[
            TEAM,
            {"id": "T2", "name": "Dormant", "projectId": "P2"},
            {"id": "T9", "name": "Ghost", "url": "https://dev.azure.com/org/_apis/projects/PX/teams/T9"},
        ]
    )
    counts = service.sync_teams(db_session, client)

    assert (counts.inserted, counts.skipped) == (1, 2)
    assert [team.id for team in db_session.query(AdoTeam).all()] == ["T1"]


def test_team_project_falls_back_to_url_segment(db_session) -> None:
    service.sync_projects(db_session, FakeAdoClient(projects=[PROJECT]))
    client = FakeAdoClient(teams=[{"id": "T5", "name": "Url Team", "url": "https://dev.azure.com/org/_apis/projects/P1/teams/T5"}])
    counts = service.sync_teams(db_session, client)

    assert counts.inserted == 1
    assert db_session.get(AdoTeam, "T5").project_id == "P1"


def test_iterations_store_valid_nodes_and_count_rejects(db_session) -> None:
    service.sync_projects(db_session, FakeAdoClient(projects=[PROJECT]))
    tree = {
        "id": 10,
        "identifier": "ROOT",
        "name": "Alpha",
        "children": [
            {"id": 11, "identifier": "I1", "name": "Sprint 1", "attributes": {"startDate": "2026-01-05T00:00:00Z"}},
            {"identifier": "BAD", "name": "No node id"},
        ],
    }
    counts = service.sync_iterations(db_session, FakeAdoClient(trees={"P1": tree}), depth=3)

    assert counts.inserted == 2
    assert counts.errors == 1
    sprint = db_session.get(AdoIteration, "I1")
    assert sprint.path == "Alpha\\Sprint 1"
    assert sprint.node_id == 11
    assert sprint.start_date == dt.date(2026, 1, 5)
    assert db_session.get(AdoIteration, "BAD") is None


def test_team_iterations_use_composite_key_and_skip_failing_teams(db_session) -> None:
    client = full_client(teams=[TEAM, {"id": "T2", "name": "Platform", "projectId": "P1"}])
    service.sync_projects(db_session, client)
    service.sync_teams(db_session, client)

    counts = service.sync_team_iterations(db_session, client)

    assert counts.inserted == 1
    assert counts.skipped == 1
    row = db_session.get(AdoTeamIteration, "T1-I1")
    assert row.team_name == "Core"
    assert row.iteration_identifier == "I1"
    assert row.project_id == "P1"
    assert row.timeframe == "past"
    assert row.assigned is True
    assert client.throttled == [50]


def _snapshot(rows, columns: tuple[str, ...]) -> list[tuple]:
    return sorted(tuple(getattr(row, name) for name in columns) for row in rows)


def test_teams_iterations_and_team_iterations_converge_on_rerun(db_session) -> None:
    client = full_client()
    service.sync_projects(db_session, client)

    first = [
        service.sync_teams(db_session, client),
        service.sync_iterations(db_session, client),
        service.sync_team_iterations(db_session, client),
    ]
    team_columns = ("id", "name", "project_id", "project_name")
    iteration_columns = ("id", "node_id", "name", "path", "start_date", "end_date", "time_frame")
    team_iteration_columns = ("id", "team_id", "iteration_identifier", "iteration_path", "start_date", "timeframe")
    before = (
        _snapshot(db_session.query(AdoTeam).all(), team_columns),
        _snapshot(db_session.query(AdoIteration).all(), iteration_columns),
        _snapshot(db_session.query(AdoTeamIteration).all(), team_iteration_columns),
    )

    second = [
        service.sync_teams(db_session, client),
        service.sync_iterations(db_session, client),
        service.sync_team_iterations(db_session, client),
    ]
    after = (
        _snapshot(db_session.query(AdoTeam).all(), team_columns),
        _snapshot(db_session.query(AdoIteration).all(), iteration_columns),
        _snapshot(db_session.query(AdoTeamIteration).all(), team_iteration_columns),
    )

    assert [counts.inserted for counts in first] == [1, 2, 1]
    assert [counts.inserted for counts in second] == [0, 0, 0]
    assert [counts.updated for counts in second] == [1, 2, 1]
    assert after == before
    assert [row.id for row in db_session.query(AdoTeamIteration).all()] == ["T1-I1"]


def test_inactive_teams_are_not_fetched(db_session) -> None:
    client = full_client()
    service.sync_projects(db_session, client)
    service.sync_teams(db_session, client)
    service.set_team_active(db_session, "T1", False)

    counts = service.sync_team_iterations(db_session, client)
    assert counts.processed == 0
    assert db_session.query(AdoTeamIteration).count() == 0


def test_work_items_without_teams_or_iterations_keep_null_references(db_session) -> None:
    client = FakeAdoClient(projects=[PROJECT], work_items=[work_item(101)])
    service.sync_projects(db_session, client)

    counts = service.sync_work_items(db_session, client)

    assert counts.inserted == 1
    item = db_session.get(AdoWorkItem, 101)
    assert item.iteration_id is None
    assert item.team_iteration_id is None
    assert item.assigned_to is None
    assert item.assigned_to_display_name == "Jane Doe"
    assert item.tags == ["backend", "sync"]
    assert item.custom_fields == {"Custom.Squad": "Blue"}
    assert item.story_points == 5
    assert "IterationPath" not in client.queries[0]
    checkpoint = get_checkpoint(db_session, SyncTable.work_items, "P1")
    assert checkpoint.sync_type == SyncType.full
    assert checkpoint.status == SyncStatus.success


def test_full_run_links_references_and_next_run_is_incremental(db_session) -> None:
    client = full_client()
    result = service.sync_all(db_session, client, depth=5)

    assert result.success is True
    assert result.stage == SyncStage.done.value
    assert list(result.results) == ["projects", "users", "teams", "iterations", "team_iterations", "work_items"]
    assert result.summary["failed_syncs"] == 0
    assert result.summary["successful_syncs"] == 6

    item = db_session.get(AdoWorkItem, 101)
    assert item.iteration_id == "I1"
    assert item.team_iteration_id == "T1-I1"
    assert item.assigned_to == "aad.u1"
    assert "AND [System.IterationPath] IN ('Alpha', 'Alpha\\Sprint 1')" in client.queries[0]
    assert "ChangedDate" not in client.queries[0]

    counts = service.sync_work_items(db_session, client)
    assert (counts.inserted, counts.updated) == (0, 1)
    assert "AND [System.ChangedDate] >= '" in client.queries[1]
    assert get_checkpoint(db_session, SyncTable.work_items, "P1").sync_type == SyncType.incremental


def test_first_batch_only_run_does_not_advance_the_checkpoint(db_session) -> None:
    client = FakeAdoClient(
        projects=[PROJECT],
        work_items=[work_item(101), work_item(102), work_item(103)],
        batch_size=1,
    )
    service.sync_projects(db_session, client)

    partial = service.sync_work_items(db_session, client, first_batch_only=True)
    assert partial.inserted == 1
    assert get_checkpoint(db_session, SyncTable.work_items, "P1") is None

    full = service.sync_work_items(db_session, client)
    assert "ChangedDate" not in client.queries[1]
    assert (full.inserted, full.updated) == (2, 1)
    assert db_session.query(AdoWorkItem).count() == 3
    checkpoint = get_checkpoint(db_session, SyncTable.work_items, "P1")
    assert checkpoint.status == SyncStatus.success
    assert checkpoint.sync_type == SyncType.full


def test_work_items_skip_projects_that_are_not_well_formed(db_session) -> None:
    client = FakeAdoClient(projects=[{**PROJECT, "state": "createPending"}], work_items=[work_item(101)])
    service.sync_projects(db_session, client)

    counts = service.sync_work_items(db_session, client)
    assert counts.processed == 0
    assert client.queries == []


def test_scope_policy_requires_active_team_iteration(db_session) -> None:
    client = full_client(work_items=[work_item(101), work_item(102, iteration_path="Alpha\\Sprint 9", iteration_id=None)])
    service.sync_all(db_session, client, steps=SETUP_STEPS)

    counts = service.sync_work_items(
        db_session, client, scope_policy=service.SCOPE_REQUIRE_ACTIVE_TEAM_ITERATION
    )
    assert (counts.inserted, counts.skipped) == (1, 1)
    assert db_session.get(AdoWorkItem, 102) is None

    service.set_team_iteration_active(db_session, "T1-I1", False)
    counts = service.sync_work_items(
        db_session, client, scope_policy=service.SCOPE_REQUIRE_ACTIVE_TEAM_ITERATION
    )
    assert counts.skipped == 2


def test_unknown_scope_policy_is_rejected(db_session) -> None:
    with pytest.raises(BadRequestError):
        service.sync_work_items(db_session, FakeAdoClient(), scope_policy="everything")


def test_failed_project_query_records_failed_checkpoint(db_session) -> None:
    client = FakeAdoClient(projects=[PROJECT], failing={"work_items"})
    service.sync_projects(db_session, client)

    with pytest.raises(AzureDevOpsRequestError):
        service.sync_work_items(db_session, client)

    checkpoint = get_checkpoint(db_session, SyncTable.work_items, "P1")
    assert checkpoint.status == SyncStatus.failed
    assert "work_items unavailable" in checkpoint.error_message


def test_sync_all_stops_at_first_failure_and_keeps_completed_steps(db_session) -> None:
    client = full_client(failing={"teams"})
    progress = InMemoryProgressSink()

    result = service.sync_all(db_session, client, progress=progress)

    assert result.success is False
    assert result.failed_step == "teams"
    assert result.stage == SyncStage.failed.value
    assert "teams unavailable" in result.error
    assert list(result.results) == ["projects", "users"]
    assert result.summary == {
        "successful_syncs": 2,
        "failed_syncs": 1,
        "total_inserted": 2,
        "total_updated": 0,
        "total_errors": 0,
    }
    assert db_session.query(AdoProject).count() == 1
    assert get_checkpoint(db_session, SyncTable.teams).status == SyncStatus.failed
    assert client.queries == []
    assert progress.get("ado", "sync_all")["status"] == "failed"


def test_selected_steps_run_in_dependency_order() -> None:
    assert service.ordered_steps(["work_items", "projects"]) == [SyncStage.projects, SyncStage.work_items]
    assert service.ordered_steps(None) == list(service.STEP_ORDER)
    with pytest.raises(BadRequestError):
        service.ordered_steps(["done"])


def test_status_reports_counts_and_checkpoints(db_session) -> None:
    service.sync_all(db_session, full_client())

    status = service.get_status(db_session)
    assert status["tables"]["projects"]["count"] == 1
    assert status["tables"]["work_items"]["count"] == 1
    assert status["tables"]["team_iterations"]["last_updated"] is not None
    tables = {row["table_name"] for row in status["checkpoints"]}
    assert tables == {"projects", "users", "teams", "iterations", "team_iterations", "work_items"}


def test_toggle_unknown_row_raises_not_found(db_session) -> None:
    with pytest.raises(NotFoundError):
        service.set_iteration_active(db_session, "missing", False)


def test_inactive_project_contributes_no_child_records(db_session) -> None:
    client = full_client()
    service.sync_projects(db_session, client)
    service.sync_users(db_session, client)
    service.set_project_active(db_session, "P1", False)

    teams = service.sync_teams(db_session, client)
    iterations = service.sync_iterations(db_session, client)
    team_iterations = service.sync_team_iterations(db_session, client)
    work_items = service.sync_work_items(db_session, client)

    assert teams.processed == iterations.processed == team_iterations.processed == work_items.processed == 0
    assert client.queries == []
    assert db_session.query(AdoTeam).count() == 0
    assert db_session.query(AdoIteration).count() == 0
    assert db_session.get(AdoProject, "P1") is not None
