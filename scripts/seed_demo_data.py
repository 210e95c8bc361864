"""Seed a demo SQLite DB with a tracked project, users and a review ticket.

Point a test webhook at the running service afterwards; the review ticket
links the sample pull request below, so review comments become remarks.

Usage:
  python scripts/seed_demo_data.py --db ./data/demo_githook.db --overwrite
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

DEMO_PULL_REQUEST = "https://github.com/acme/demo/pull/1"


def _sqlite_url_for_path(db_path: Path) -> str:
    # SQLAlchemy sqlite absolute path uses 4 slashes: sqlite:////abs/path
    p = db_path.expanduser().resolve()
    return f"sqlite:////{p}"


@dataclass(frozen=True)
class SeedResult:
    db_path: Path
    review_issue_id: int


def seed_demo_db(db_path: Path, overwrite: bool = False, working_copy: str = "./data/demo.git") -> SeedResult:
    db_path = db_path.expanduser().resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if overwrite and db_path.exists():
        db_path.unlink()

    # DATABASE_URL must be set before importing app.* modules
    os.environ["DATABASE_URL"] = _sqlite_url_for_path(db_path)
    os.environ.setdefault("LOG_LEVEL", "WARNING")

    from app.models.base import init_db, SessionLocal  # noqa: WPS433
    from app.models import (  # noqa: WPS433
        HookSetting,
        IssueStatus,
        TrackedProject,
        TrackedRepository,
        Tracker,
        TrackerIssue,
        TrackerUser,
    )

    init_db()

    db = SessionLocal()
    try:
        review = Tracker(name="Review")
        remark = Tracker(name="Remark")
        new = IssueStatus(name="New", is_closed=False)
        closed = IssueStatus(name="Closed", is_closed=True)
        alice = TrackerUser(login="alice", mail="alice@example.com", name="Alice Reviewer")
        bob = TrackerUser(login="bob", mail="bob@example.com", name="Bob Author")
        project = TrackedProject(identifier="demo", name="Demo")
        db.add_all([review, remark, new, closed, alice, bob, project])
        db.commit()

        db.add(
            TrackedRepository(
                project_id=project.id,
                identifier="demo",
                url=str(Path(working_copy).expanduser().resolve()),
            )
        )
        db.add(
            HookSetting(
                position=0,
                project_pattern="^demo$",
                remark_tracker_id=remark.id,
                remark_closed_status_id=closed.id,
                resolve_keyword="[resolved]",
            )
        )

        parent = TrackerIssue(
            project_id=project.id,
            tracker_id=review.id,
            status_id=new.id,
            author_id=bob.id,
            assigned_to_id=bob.id,
            subject="Review: demo pull request #1",
            description=f"Code review for the demo change.\n\n_merge_request_url={DEMO_PULL_REQUEST}",
        )
        db.add(parent)
        db.commit()
        db.refresh(parent)

        return SeedResult(db_path=db_path, review_issue_id=parent.id)
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo Git Hook SQLite DB")
    parser.add_argument(
        "--db",
        default="./data/demo_githook.db",
        help="Path to SQLite DB file to create (default: ./data/demo_githook.db)",
    )
    parser.add_argument(
        "--working-copy",
        default="./data/demo.git",
        help="Local git working copy registered as the project's repository",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Delete existing DB file first",
    )
    args = parser.parse_args()

    result = seed_demo_db(Path(args.db), overwrite=bool(args.overwrite), working_copy=args.working_copy)
    print(f"Seeded demo DB at: {result.db_path} (review issue #{result.review_issue_id})")


if __name__ == "__main__":
    main()
