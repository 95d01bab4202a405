"""Run the Azure DevOps -> local mirror sync from the command line.

Usage examples (PowerShell):

    python scripts\\ado_sync.py --all
    python scripts\\ado_sync.py --projects --teams
    python scripts\\ado_sync.py --work-items --first-batch-only
    python scripts\\ado_sync.py --iterations --depth 4 --clear-cache
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from hawki.core.config import settings  # noqa: E402
from hawki.core.exceptions import InvalidConfigurationError  # noqa: E402
from hawki.core.logging import setup_logging  # noqa: E402
from hawki.db.session import SessionLocal, init_db  # noqa: E402
from hawki.integrations.azure_devops.cache import response_cache  # noqa: E402
from hawki.integrations.azure_devops.client import AzureDevOpsClient  # noqa: E402
from hawki.integrations.azure_devops.service import sync_all  # noqa: E402
from hawki.models.enums import SyncStage  # noqa: E402
from hawki.services.progress import LoggingProgressSink  # noqa: E402

RESOURCE_FLAGS: tuple[tuple[str, SyncStage], ...] = (
    ("projects", SyncStage.projects),
    ("users", SyncStage.users),
    ("teams", SyncStage.teams),
    ("iterations", SyncStage.iterations),
    ("team_iterations", SyncStage.team_iterations),
    ("work_items", SyncStage.work_items),
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync Azure DevOps data into the local database")
    parser.add_argument("--all", action="store_true", help="Sync every resource (default when no resource flag is set)")
    parser.add_argument("--projects", action="store_true", help="Sync projects")
    parser.add_argument("--users", action="store_true", help="Sync users")
    parser.add_argument("--teams", action="store_true", help="Sync teams")
    parser.add_argument("--iterations", action="store_true", help="Sync the iteration tree")
    parser.add_argument("--team-iterations", action="store_true", help="Sync team iteration assignments")
    parser.add_argument("--work-items", action="store_true", help="Sync work items")
    parser.add_argument(
        "--depth",
        type=int,
        default=settings.ADO_ITERATION_DEPTH,
        help="Iteration tree depth (default %(default)s)",
    )
    parser.add_argument("--clear-cache", action="store_true", help="Clear the API response cache before syncing")
    parser.add_argument("--first-batch-only", action="store_true", help="Fetch only the first work item batch per project")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables before syncing")
    args = parser.parse_args(argv)
    if args.depth < 1:
        parser.error("--depth must be at least 1")
    return args


def selected_steps(args: argparse.Namespace) -> list[SyncStage] | None:
    """None means every step; the orchestrator orders subsets itself."""
    if args.all:
        return None
    chosen = [stage for flag, stage in RESOURCE_FLAGS if getattr(args, flag)]
    return chosen or None


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    if args.create_tables:
        init_db()
        print("Tables created.")

    if args.clear_cache:
        cleared = response_cache.clear()
        print(f"Cleared {cleared} cached responses.")

    try:
        client = AzureDevOpsClient(cache=response_cache)
    except InvalidConfigurationError as exc:
        print(f"{exc.message}. Set ADO_ORGANIZATION and ADO_PAT in backend/.env")
        return 1

    db = SessionLocal()
    try:
        result = sync_all(
            db,
            client,
            depth=args.depth,
            first_batch_only=args.first_batch_only,
            steps=selected_steps(args),
            progress=LoggingProgressSink(),
        )
    finally:
        db.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    if not result.success:
        print(f"Sync failed at {result.failed_step}: {result.error}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
