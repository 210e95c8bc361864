"""Tracker issue models"""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.base import Base


class Tracker(Base):
    """Issue type (e.g. Bug, Review remark)"""

    __tablename__ = "trackers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)

    def __repr__(self):
        return f"<Tracker(name='{self.name}')>"


class IssueStatus(Base):
    """Workflow status; is_closed marks terminal statuses"""

    __tablename__ = "issue_statuses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<IssueStatus(name='{self.name}', is_closed={self.is_closed})>"


class TrackerIssue(Base):
    """Tracker ticket; review parents and remark children both live here"""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, index=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    tracker_id = Column(Integer, ForeignKey("trackers.id"), nullable=False)
    status_id = Column(Integer, ForeignKey("issue_statuses.id"), nullable=False)
    parent_id = Column(Integer, ForeignKey("issues.id"), nullable=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    subject = Column(String(255), nullable=False)
    # Free text; correlation markers are embedded here.
    description = Column(Text, nullable=True)

    start_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship("TrackedProject")
    tracker = relationship("Tracker")
    status = relationship("IssueStatus")
    author = relationship("TrackerUser", foreign_keys=[author_id])
    assigned_to = relationship("TrackerUser", foreign_keys=[assigned_to_id])
    parent = relationship("TrackerIssue", remote_side=[id], back_populates="children")
    children = relationship("TrackerIssue", back_populates="parent", order_by="TrackerIssue.id")
    journals = relationship(
        "IssueJournal",
        back_populates="issue",
        order_by="IssueJournal.id",
        cascade="all, delete-orphan",
    )

    @property
    def closed(self) -> bool:
        return bool(self.status is not None and self.status.is_closed)

    def __str__(self):
        tracker = self.tracker.name if self.tracker is not None else "Issue"
        return f"{tracker} #{self.id}: {self.subject}"

    def __repr__(self):
        return f"<TrackerIssue(id={self.id}, status_id={self.status_id})>"


class IssueJournal(Base):
    """Comment / change note appended to an issue"""

    __tablename__ = "journals"

    id = Column(Integer, primary_key=True, index=True)
    issue_id = Column(Integer, ForeignKey("issues.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    issue = relationship("TrackerIssue", back_populates="journals")
    user = relationship("TrackerUser")

    def __repr__(self):
        return f"<IssueJournal(issue_id={self.issue_id}, user_id={self.user_id})>"
