"""Database models"""

from app.models.base import Base
from app.models.hook_setting import HookSetting
from app.models.issue import IssueJournal, IssueStatus, Tracker, TrackerIssue
from app.models.project import TrackedProject, TrackedRepository
from app.models.user import TrackerUser

__all__ = [
    "Base",
    "HookSetting",
    "TrackedProject",
    "TrackedRepository",
    "Tracker",
    "IssueStatus",
    "TrackerIssue",
    "IssueJournal",
    "TrackerUser",
]
