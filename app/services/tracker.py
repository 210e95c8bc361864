"""Issue tracker collaborator operations.

The correlation engine only talks to the tracker through ``TrackerStore``:
project and user lookups, description-substring issue search, issue creation,
journal entries and status changes. All correlation state lives in the
records this store reads and writes.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import (
    IssueJournal,
    IssueStatus,
    TrackedProject,
    TrackedRepository,
    TrackerIssue,
    TrackerUser,
)

logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 255


def create_link(label: str, url: Optional[str], text_formatting: str) -> str:
    """Render a link in the tracker's markup flavor."""
    url = url or ""
    if text_formatting == "textile":
        return f'"{label}":{url} '
    if text_formatting == "markdown":
        return f"[{label}]({url}) "
    return url


class TrackerStore:
    """SQLAlchemy-backed projects, repositories, users and issues"""

    def __init__(self, db: Session):
        self.db = db

    # Projects / repositories

    def find_project_by_identifier(self, identifier: str) -> Optional[TrackedProject]:
        return (
            self.db.query(TrackedProject)
            .filter(TrackedProject.identifier == identifier.lower())
            .first()
        )

    def repositories_of(self, project: TrackedProject) -> List[TrackedRepository]:
        return (
            self.db.query(TrackedRepository)
            .filter(TrackedRepository.project_id == project.id)
            .order_by(TrackedRepository.id)
            .all()
        )

    def projects_with_repositories(self) -> List[TrackedProject]:
        return (
            self.db.query(TrackedProject)
            .join(TrackedRepository)
            .distinct()
            .order_by(TrackedProject.id)
            .all()
        )

    # Users

    def find_user_by_login(self, login: Optional[str]) -> Optional[TrackerUser]:
        if not login:
            return None
        return self.db.query(TrackerUser).filter(TrackerUser.login == login).first()

    def find_user_by_mail(self, mail: Optional[str]) -> Optional[TrackerUser]:
        if not mail:
            return None
        return self.db.query(TrackerUser).filter(TrackerUser.mail == mail).first()

    # Issues

    def get_issue(self, issue_id: int) -> Optional[TrackerIssue]:
        return self.db.query(TrackerIssue).filter(TrackerIssue.id == issue_id).first()

    def search_issues(self, project_id: int, description_contains: str) -> List[TrackerIssue]:
        """Issues of a project whose description contains the fragment, oldest first."""
        return (
            self.db.query(TrackerIssue)
            .filter(
                TrackerIssue.project_id == project_id,
                TrackerIssue.description.contains(description_contains, autoescape=True),
            )
            .order_by(TrackerIssue.id)
            .all()
        )

    def find_children(
        self,
        parent: TrackerIssue,
        *,
        tracker_id: int,
        excluding_status_id: int,
        description_contains_any: Iterable[str],
    ) -> List[TrackerIssue]:
        fragments = [
            TrackerIssue.description.contains(fragment, autoescape=True)
            for fragment in description_contains_any
        ]
        return (
            self.db.query(TrackerIssue)
            .filter(
                TrackerIssue.parent_id == parent.id,
                TrackerIssue.tracker_id == tracker_id,
                TrackerIssue.status_id != excluding_status_id,
                or_(*fragments),
            )
            .order_by(TrackerIssue.id)
            .all()
        )

    def default_status(self) -> Optional[IssueStatus]:
        return (
            self.db.query(IssueStatus)
            .filter(IssueStatus.is_closed == False)  # noqa: E712
            .order_by(IssueStatus.id)
            .first()
        )

    def create_issue(
        self,
        *,
        parent: TrackerIssue,
        tracker_id: int,
        author: TrackerUser,
        subject: str,
        description: str,
        start_date: date,
        due_date: date,
    ) -> Optional[TrackerIssue]:
        """Create a sub-ticket of ``parent``; returns None if it fails validation."""
        subject = (subject or "").strip()[:SUBJECT_MAX_LENGTH]
        status = self.default_status()
        if not subject or status is None:
            logger.warning(
                f"Refusing to create issue under #{parent.id}: "
                f"subject={'ok' if subject else 'blank'}, default status={status}"
            )
            return None

        issue = TrackerIssue(
            project_id=parent.project_id,
            tracker_id=tracker_id,
            status_id=status.id,
            parent_id=parent.id,
            author_id=author.id,
            assigned_to_id=parent.assigned_to_id,
            subject=subject,
            description=description,
            start_date=start_date,
            due_date=due_date,
        )
        self.db.add(issue)
        self.db.commit()
        self.db.refresh(issue)
        return issue

    def append_journal(self, issue: TrackerIssue, author: TrackerUser, notes: str) -> IssueJournal:
        """Add a journal entry; pending changes on ``issue`` are saved with it."""
        journal = IssueJournal(issue_id=issue.id, user_id=author.id, notes=notes)
        self.db.add(journal)
        self.db.commit()
        self.db.refresh(issue)
        return journal

    def close_issue(
        self, issue: TrackerIssue, author: TrackerUser, notes: str, status_id: int
    ) -> IssueJournal:
        issue.status_id = status_id
        return self.append_journal(issue, author, notes)
