"""Azure DevOps -> local mirror sync, run in dependency order."""

from __future__ import annotations

import datetime as dt
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from hawki.core.config import settings
from hawki.core.exceptions import BadRequestError, NotFoundError, RemoteAPIException
from hawki.integrations.azure_devops.client import AzureDevOpsClient
from hawki.integrations.azure_devops.mapper import (
    WorkItemReferences,
    iteration_values,
    project_values,
    team_iteration_key,
    team_iteration_values,
    team_values,
    user_values,
    work_item_values,
)
from hawki.integrations.azure_devops.tree import flatten_iteration_tree, partition_valid
from hawki.integrations.azure_devops.wiql import active_iteration_paths, build_work_item_query
from hawki.models.ado import (
    WELL_FORMED_STATE,
    AdoIteration,
    AdoProject,
    AdoTeam,
    AdoTeamIteration,
    AdoUser,
    AdoWorkItem,
)
from hawki.models.enums import SyncStage, SyncStatus, SyncTable, SyncType
from hawki.models.sync_history import SyncHistory
from hawki.services.checkpoints import SyncCounts, get_last_sync_time, list_checkpoints, record_checkpoint
from hawki.services.progress import NullProgressSink, ProgressSink
from hawki.services.upsert import upsert

logger = logging.getLogger(__name__)

PROGRESS_SERVICE = "ado"
SCOPE_KEEP_UNSCOPED = "keep_unscoped"
SCOPE_REQUIRE_ACTIVE_TEAM_ITERATION = "require_active_team_iteration"
MAX_LOGGED_ERRORS = 5


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class SyncRun:
    """Stage tracker for one sync_all invocation."""

    stage: SyncStage = SyncStage.idle
    started: float = field(default_factory=time.monotonic)
    results: dict[str, SyncCounts] = field(default_factory=dict)
    failed_step: str | None = None
    error: str | None = None

    def advance(self, stage: SyncStage) -> None:
        if self.stage in {SyncStage.done, SyncStage.failed}:
            raise RuntimeError(f"sync run already finished in stage {self.stage.value}")
        self.stage = stage

    def finish(self) -> None:
        self.advance(SyncStage.done)

    def fail(self, step: str, error: str) -> None:
        self.failed_step = step
        self.error = error
        self.stage = SyncStage.failed

    @property
    def duration(self) -> float:
        return round(time.monotonic() - self.started, 2)


@dataclass
class SyncAllResult:
    success: bool
    duration: float
    stage: str
    results: dict[str, dict[str, Any]]
    summary: dict[str, int]
    error: str | None = None
    failed_step: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ----- persistence helpers -----


def _count(counts: SyncCounts, created: bool) -> None:
    if created:
        counts.inserted += 1
    else:
        counts.updated += 1


def _commit_batch(db: Session, counts: SyncCounts, *, label: str) -> None:
    """Commit pending upserts; on failure the whole batch is counted as errors."""
    try:
        db.commit()
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        discarded = counts.processed
        counts.inserted = counts.updated = 0
        counts.errors += discarded
        counts.note(f"{label}: batch commit failed: {exc}")
        logger.exception("Commit failed for %s (%s records discarded)", label, discarded)


def _log_record_error(errors_in_batch: int, message: str) -> None:
    if errors_in_batch <= MAX_LOGGED_ERRORS:
        logger.error(message)
    elif errors_in_batch == MAX_LOGGED_ERRORS + 1:
        logger.warning("Additional record errors in this batch will be suppressed")


def _active_projects(db: Session) -> list[AdoProject]:
    return db.query(AdoProject).filter(AdoProject.is_active.is_(True)).order_by(AdoProject.name.asc()).all()


def _processable_projects(db: Session) -> list[AdoProject]:
    return (
        db.query(AdoProject)
        .filter(AdoProject.is_active.is_(True), AdoProject.state == WELL_FORMED_STATE)
        .order_by(AdoProject.name.asc())
        .all()
    )


def _run_step(
    db: Session,
    table: SyncTable,
    progress: ProgressSink | None,
    body: Callable[[SyncCounts, ProgressSink], None],
    *,
    checkpoint: bool = True,
) -> SyncCounts:
    sink = progress or NullProgressSink()
    counts = SyncCounts()
    started_at = utcnow()
    logger.info("Starting Azure DevOps %s sync", table.value)
    sink.initialize(PROGRESS_SERVICE, table.value, {"message": f"Syncing {table.value}"})
    try:
        body(counts, sink)
    except Exception as exc:
        db.rollback()
        logger.error("Azure DevOps %s sync failed: %s", table.value, exc)
        if checkpoint:
            record_checkpoint(
                db,
                table,
                sync_type=SyncType.full,
                status=SyncStatus.failed,
                error_message=str(exc),
            )
        sink.fail(PROGRESS_SERVICE, table.value, str(exc))
        raise
    if checkpoint:
        record_checkpoint(
            db,
            table,
            sync_type=SyncType.full,
            status=SyncStatus.success,
            records_processed=counts.processed,
            synced_at=started_at,
        )
    logger.info(
        "Azure DevOps %s sync completed inserted=%s updated=%s skipped=%s errors=%s",
        table.value, counts.inserted, counts.updated, counts.skipped, counts.errors,
    )
    sink.complete(PROGRESS_SERVICE, table.value, counts.to_dict())
    return counts


# ----- resource steps -----


def sync_projects(db: Session, client: AzureDevOpsClient, *, progress: ProgressSink | None = None) -> SyncCounts:
    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        payloads = client.fetch_list("projects")
        counts.errors += getattr(payloads, "rejected", 0)
        for payload in payloads:
            try:
                _count(counts, upsert(db, AdoProject, payload.id, project_values(payload)))
            except Exception as exc:  # noqa: BLE001
                counts.record_error(f"project {payload.id}: {exc}")
                logger.exception("Failed to process project %s", payload.id)
        _commit_batch(db, counts, label="projects")

    return _run_step(db, SyncTable.projects, progress, body)


def sync_users(
    db: Session,
    client: AzureDevOpsClient,
    *,
    subject_types: str | None = None,
    scope_descriptor: str | None = None,
    progress: ProgressSink | None = None,
) -> SyncCounts:
    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        params = {"subject_types": subject_types, "scope_descriptor": scope_descriptor}
        payloads = client.fetch_list("users", params)
        counts.errors += getattr(payloads, "rejected", 0)
        for payload in payloads:
            try:
                _count(counts, upsert(db, AdoUser, payload.descriptor, user_values(payload), key_field="descriptor"))
            except Exception as exc:  # noqa: BLE001
                counts.record_error(f"user {payload.descriptor}: {exc}")
                logger.exception("Failed to process user %s", payload.descriptor)
        _commit_batch(db, counts, label="users")

    return _run_step(db, SyncTable.users, progress, body)


def sync_teams(db: Session, client: AzureDevOpsClient, *, progress: ProgressSink | None = None) -> SyncCounts:
    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        projects = {project.id: project for project in _active_projects(db)}
        if not projects:
            logger.warning("No active projects found; skipping teams sync")
            return
        payloads = client.fetch_list("teams", {"expand_identity": True})
        counts.errors += getattr(payloads, "rejected", 0)
        for payload in payloads:
            project_id = payload.resolved_project_id()
            project = projects.get(project_id or "")
            if project is None:
                counts.skipped += 1
                logger.debug("Skipping team %s: project %s missing or inactive", payload.name, project_id)
                continue
            try:
                _count(counts, upsert(db, AdoTeam, payload.id, team_values(payload, project)))
            except Exception as exc:  # noqa: BLE001
                counts.record_error(f"team {payload.id}: {exc}")
                logger.exception("Failed to process team %s", payload.id)
        _commit_batch(db, counts, label="teams")
        if counts.skipped:
            logger.warning("Skipped %s teams without an active owning project", counts.skipped)

    return _run_step(db, SyncTable.teams, progress, body)


def sync_iterations(
    db: Session,
    client: AzureDevOpsClient,
    *,
    depth: int | None = None,
    progress: ProgressSink | None = None,
) -> SyncCounts:
    tree_depth = depth or settings.ADO_ITERATION_DEPTH

    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        projects = _active_projects(db)
        if not projects:
            logger.warning("No active projects found; skipping iterations sync")
            return
        for index, project in enumerate(projects, start=1):
            tree = client.fetch_tree(project.id, "Iterations", tree_depth)
            valid, rejected = partition_valid(flatten_iteration_tree(tree, project_id=project.id))
            for record in rejected:
                counts.record_error(f"iteration {record.identifier or record.path}: missing {', '.join(record.missing_fields())}")
            project_counts = SyncCounts()
            for record in valid:
                try:
                    _count(project_counts, upsert(db, AdoIteration, record.identifier, iteration_values(record, project)))
                except Exception as exc:  # noqa: BLE001
                    project_counts.record_error(f"iteration {record.identifier}: {exc}")
                    logger.exception("Failed to process iteration %s", record.identifier)
            _commit_batch(db, project_counts, label=f"iterations of {project.name}")
            counts.merge(project_counts)
            logger.info(
                "Project %s iterations inserted=%s updated=%s rejected=%s",
                project.name, project_counts.inserted, project_counts.updated, len(rejected),
            )
            sink.update(
                PROGRESS_SERVICE,
                SyncTable.iterations.value,
                {"progress": int(index * 100 / len(projects)), "message": f"Processed {project.name}"},
            )

    return _run_step(db, SyncTable.iterations, progress, body)


def sync_team_iterations(db: Session, client: AzureDevOpsClient, *, progress: ProgressSink | None = None) -> SyncCounts:
    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        projects = _active_projects(db)
        if not projects:
            logger.warning("No active projects found; skipping team iterations sync")
            return
        for index, project in enumerate(projects, start=1):
            teams = (
                db.query(AdoTeam)
                .filter(AdoTeam.project_id == project.id, AdoTeam.is_active.is_(True))
                .order_by(AdoTeam.name.asc())
                .all()
            )
            if not teams:
                logger.warning("No teams stored for project %s", project.name)
            for position, team in enumerate(teams):
                if position:
                    client.throttle(settings.ADO_TEAM_DELAY_MS)
                try:
                    payloads = client.fetch_list("team_iterations", {"project_id": project.id, "team_id": team.id})
                except RemoteAPIException as exc:
                    counts.skipped += 1
                    counts.note(f"team {team.name}: {exc.message}")
                    logger.warning("Skipping team %s: iterations unavailable (%s)", team.name, exc.message)
                    continue
                counts.errors += getattr(payloads, "rejected", 0)
                team_counts = SyncCounts()
                for payload in payloads:
                    try:
                        values = team_iteration_values(payload, team)
                        missing = [name for name in ("iteration_identifier", "team_id", "team_name") if not values.get(name)]
                        if missing:
                            team_counts.record_error(f"team iteration {payload.id}: missing {', '.join(missing)}")
                            continue
                        key = team_iteration_key(team.id, payload.id)
                        _count(team_counts, upsert(db, AdoTeamIteration, key, values))
                    except Exception as exc:  # noqa: BLE001
                        team_counts.record_error(f"team iteration {payload.id}: {exc}")
                        logger.exception("Failed to process team iteration %s for team %s", payload.id, team.name)
                _commit_batch(db, team_counts, label=f"team iterations of {team.name}")
                counts.merge(team_counts)
            sink.update(
                PROGRESS_SERVICE,
                SyncTable.team_iterations.value,
                {"progress": int(index * 100 / len(projects)), "message": f"Processed {project.name}"},
            )

    return _run_step(db, SyncTable.team_iterations, progress, body)


def _work_item_references(db: Session, project: AdoProject) -> WorkItemReferences:
    refs = WorkItemReferences()
    refs.user_descriptors = {row[0] for row in db.query(AdoUser.descriptor).all()}
    for iteration_id, node_id, path in (
        db.query(AdoIteration.id, AdoIteration.node_id, AdoIteration.path)
        .filter(AdoIteration.project_id == project.id)
        .all()
    ):
        refs.iteration_by_node[node_id] = iteration_id
        refs.iteration_by_path.setdefault(path, iteration_id)
    for team_iteration_id, path, is_active in (
        db.query(AdoTeamIteration.id, AdoTeamIteration.iteration_path, AdoTeamIteration.is_active)
        .filter(AdoTeamIteration.project_id == project.id)
        .all()
    ):
        if path:
            refs.team_iterations_by_path.setdefault(path, []).append((team_iteration_id, bool(is_active)))
    return refs


def _project_active_paths(db: Session, project: AdoProject) -> list[str]:
    iteration_paths = [
        row[0]
        for row in db.query(AdoIteration.path)
        .filter(AdoIteration.project_id == project.id, AdoIteration.is_active.is_(True))
        .all()
    ]
    team_iteration_paths = [
        row[0]
        for row in db.query(AdoTeamIteration.iteration_path)
        .filter(AdoTeamIteration.project_id == project.id, AdoTeamIteration.is_active.is_(True))
        .all()
    ]
    return active_iteration_paths(iteration_paths, team_iteration_paths)


def _sync_project_work_items(
    db: Session,
    client: AzureDevOpsClient,
    project: AdoProject,
    *,
    first_batch_only: bool,
    scope_policy: str,
    sink: ProgressSink,
) -> SyncCounts:
    counts = SyncCounts()
    started_at = utcnow()
    last_sync = get_last_sync_time(db, SyncTable.work_items, project.id)
    sync_type = SyncType.incremental if last_sync else SyncType.full
    try:
        query = build_work_item_query(
            project.name,
            iteration_paths=_project_active_paths(db, project),
            changed_since=last_sync,
        )
        logger.info("Querying %s work items for project %s", sync_type.value, project.name)
        ids = client.run_query(query, settings.ADO_WORK_ITEM_QUERY_TOP)
        if len(ids) > settings.ADO_WORK_ITEM_WARN_THRESHOLD:
            logger.warning("Project %s returned %s work item ids; this sync may take a while", project.name, len(ids))
        refs = _work_item_references(db, project)

        for batch in client.iter_work_item_batches(ids, project.name, first_batch_only=first_batch_only):
            counts.errors += batch.rejected
            batch_counts = SyncCounts()
            errors_in_batch = 0
            for item in batch.items:
                try:
                    values = work_item_values(item, project, refs)
                    if scope_policy == SCOPE_REQUIRE_ACTIVE_TEAM_ITERATION:
                        team_iteration_id, is_active = refs.team_iteration(item.fields.iteration_path)
                        if team_iteration_id is None or not is_active:
                            batch_counts.skipped += 1
                            continue
                    values["last_sync_at"] = started_at
                    _count(batch_counts, upsert(db, AdoWorkItem, item.id, values))
                except Exception as exc:  # noqa: BLE001
                    errors_in_batch += 1
                    batch_counts.record_error(f"work item {item.id}: {exc}")
                    _log_record_error(errors_in_batch, f"Error syncing work item {item.id}: {exc}")
            _commit_batch(db, batch_counts, label=f"work items batch {batch.number}")
            counts.merge(batch_counts)
            logger.info(
                "Work item batch %s/%s for %s inserted=%s updated=%s errors=%s",
                batch.number, batch.total, project.name,
                batch_counts.inserted, batch_counts.updated, batch_counts.errors,
            )
            sink.update(
                PROGRESS_SERVICE,
                SyncTable.work_items.value,
                {
                    "progress": int(batch.number * 100 / batch.total),
                    "message": f"{project.name}: batch {batch.number}/{batch.total}",
                },
            )
    except Exception as exc:
        db.rollback()
        record_checkpoint(
            db,
            SyncTable.work_items,
            project_id=project.id,
            sync_type=sync_type,
            status=SyncStatus.failed,
            error_message=str(exc),
        )
        raise

    if first_batch_only:
        # A partial fetch must not move the incremental window forward.
        logger.info("First-batch-only run for %s; work item checkpoint left unchanged", project.name)
        return counts
    record_checkpoint(
        db,
        SyncTable.work_items,
        project_id=project.id,
        sync_type=sync_type,
        status=SyncStatus.success,
        records_processed=counts.processed,
        synced_at=started_at,
    )
    return counts


def sync_work_items(
    db: Session,
    client: AzureDevOpsClient,
    *,
    first_batch_only: bool = False,
    project_id: str | None = None,
    scope_policy: str | None = None,
    progress: ProgressSink | None = None,
) -> SyncCounts:
    policy = scope_policy or settings.ADO_WORK_ITEM_SCOPE_POLICY
    if policy not in {SCOPE_KEEP_UNSCOPED, SCOPE_REQUIRE_ACTIVE_TEAM_ITERATION}:
        raise BadRequestError(f"Unknown work item scope policy: {policy}")

    def body(counts: SyncCounts, sink: ProgressSink) -> None:
        projects = _processable_projects(db)
        if project_id is not None:
            projects = [project for project in projects if project.id == project_id]
        if not projects:
            logger.warning("No processable projects found; skipping work items sync")
            return
        for index, project in enumerate(projects, start=1):
            logger.info("Processing work items for project %s/%s: %s", index, len(projects), project.name)
            project_counts = _sync_project_work_items(
                db,
                client,
                project,
                first_batch_only=first_batch_only,
                scope_policy=policy,
                sink=sink,
            )
            counts.merge(project_counts)

    # Work items keep one checkpoint per project, written above.
    return _run_step(db, SyncTable.work_items, progress, body, checkpoint=False)


# ----- orchestration -----

STEP_ORDER: tuple[SyncStage, ...] = (
    SyncStage.projects,
    SyncStage.users,
    SyncStage.teams,
    SyncStage.iterations,
    SyncStage.team_iterations,
    SyncStage.work_items,
)


def ordered_steps(selected: Iterable[SyncStage | str] | None) -> list[SyncStage]:
    """Return the selected steps in dependency order (all steps when nothing is selected)."""
    if not selected:
        return list(STEP_ORDER)
    wanted = {SyncStage(value) for value in selected}
    unknown = wanted - set(STEP_ORDER)
    if unknown:
        raise BadRequestError(f"Not a sync step: {', '.join(sorted(stage.value for stage in unknown))}")
    return [stage for stage in STEP_ORDER if stage in wanted]


def _summary(results: dict[str, SyncCounts], failed: int) -> dict[str, int]:
    return {
        "successful_syncs": len(results),
        "failed_syncs": failed,
        "total_inserted": sum(counts.inserted for counts in results.values()),
        "total_updated": sum(counts.updated for counts in results.values()),
        "total_errors": sum(counts.errors for counts in results.values()),
    }


def sync_all(
    db: Session,
    client: AzureDevOpsClient,
    *,
    depth: int | None = None,
    first_batch_only: bool = False,
    steps: Sequence[SyncStage | str] | None = None,
    progress: ProgressSink | None = None,
) -> SyncAllResult:
    """Run the selected resource syncs in dependency order, stopping at the first failure.

    Completed steps keep their writes; the result reports what finished
    and which step failed.
    """
    run = SyncRun()
    sink = progress or NullProgressSink()
    runners: dict[SyncStage, Callable[[], SyncCounts]] = {
        SyncStage.projects: lambda: sync_projects(db, client, progress=sink),
        SyncStage.users: lambda: sync_users(db, client, progress=sink),
        SyncStage.teams: lambda: sync_teams(db, client, progress=sink),
        SyncStage.iterations: lambda: sync_iterations(db, client, depth=depth, progress=sink),
        SyncStage.team_iterations: lambda: sync_team_iterations(db, client, progress=sink),
        SyncStage.work_items: lambda: sync_work_items(db, client, first_batch_only=first_batch_only, progress=sink),
    }
    plan = ordered_steps(steps)
    sink.initialize(PROGRESS_SERVICE, "sync_all", {"message": f"Running {len(plan)} sync steps"})
    logger.info("Starting Azure DevOps sync: %s", ", ".join(stage.value for stage in plan))

    for position, stage in enumerate(plan, start=1):
        run.advance(stage)
        try:
            run.results[stage.value] = runners[stage]()
        except Exception as exc:  # noqa: BLE001
            run.fail(stage.value, str(exc))
            logger.error("Azure DevOps sync failed at %s after %ss: %s", stage.value, run.duration, exc)
            sink.fail(PROGRESS_SERVICE, "sync_all", f"{stage.value}: {exc}")
            break
        sink.update(
            PROGRESS_SERVICE,
            "sync_all",
            {"progress": int(position * 100 / len(plan)), "message": f"Completed {stage.value}"},
        )
    else:
        run.finish()
        sink.complete(PROGRESS_SERVICE, "sync_all", {"message": "Sync completed"})

    failed = 1 if run.failed_step else 0
    result = SyncAllResult(
        success=run.failed_step is None,
        duration=run.duration,
        stage=run.stage.value,
        results={name: counts.to_dict() for name, counts in run.results.items()},
        summary=_summary(run.results, failed),
        error=run.error,
        failed_step=run.failed_step,
    )
    logger.info("Azure DevOps sync finished success=%s duration=%ss", result.success, result.duration)
    return result


# ----- status and operator toggles -----

STATUS_TABLES: dict[str, type] = {
    SyncTable.projects.value: AdoProject,
    SyncTable.users.value: AdoUser,
    SyncTable.teams.value: AdoTeam,
    SyncTable.iterations.value: AdoIteration,
    SyncTable.team_iterations.value: AdoTeamIteration,
    SyncTable.work_items.value: AdoWorkItem,
}


def serialize_checkpoint(row: SyncHistory) -> dict[str, Any]:
    return {
        "id": row.id,
        "table_name": row.table_name,
        "project_id": row.project_id,
        "last_sync_at": row.last_sync_at.isoformat() if row.last_sync_at else None,
        "sync_type": row.sync_type.value if row.sync_type else None,
        "status": row.status.value if row.status else None,
        "records_processed": row.records_processed,
        "error_message": row.error_message,
    }


def get_status(db: Session) -> dict[str, Any]:
    tables: dict[str, dict[str, Any]] = {}
    for name, model in STATUS_TABLES.items():
        count, latest = db.query(func.count(), func.max(model.updated_at)).select_from(model).one()
        tables[name] = {
            "count": int(count or 0),
            "last_updated": latest.isoformat() if latest else None,
        }
    return {
        "tables": tables,
        "checkpoints": [serialize_checkpoint(row) for row in list_checkpoints(db)],
    }


def _set_active(db: Session, model: type, key: Any, is_active: bool, *, label: str):
    row = db.get(model, key)
    if row is None:
        raise NotFoundError(f"{label} not found", details={"id": key})
    row.is_active = is_active
    db.commit()
    db.refresh(row)
    logger.info("%s %s is_active=%s", label, key, is_active)
    return row


def set_project_active(db: Session, project_id: str, is_active: bool) -> AdoProject:
    return _set_active(db, AdoProject, project_id, is_active, label="Project")


def set_team_active(db: Session, team_id: str, is_active: bool) -> AdoTeam:
    return _set_active(db, AdoTeam, team_id, is_active, label="Team")


def set_iteration_active(db: Session, iteration_id: str, is_active: bool) -> AdoIteration:
    return _set_active(db, AdoIteration, iteration_id, is_active, label="Iteration")


def set_team_iteration_active(db: Session, team_iteration_id: str, is_active: bool) -> AdoTeamIteration:
    return _set_active(db, AdoTeamIteration, team_iteration_id, is_active, label="Team iteration")
