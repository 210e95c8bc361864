"""Tracked project and repository models"""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base


class TrackedProject(Base):
    """Tracker project that webhook events are routed to"""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    # Always stored lowercase; lookups lowercase the requested identifier.
    identifier = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    repositories = relationship(
        "TrackedRepository",
        back_populates="project",
        order_by="TrackedRepository.id",
        cascade="all, delete-orphan",
    )

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<TrackedProject(identifier='{self.identifier}')>"


class TrackedRepository(Base):
    """Local working copy mirrored from an upstream remote"""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    identifier = Column(String, nullable=False)
    scm = Column(String, nullable=False, default="git")
    # Local path of the working copy; git commands run inside it.
    url = Column(String, nullable=False)

    # Ingestion bookkeeping
    branch_heads = Column(Text, nullable=True)  # JSON {branch: sha}
    last_fetched_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("TrackedProject", back_populates="repositories")

    @property
    def is_git(self) -> bool:
        return (self.scm or "").lower() == "git"

    def __repr__(self):
        return f"<TrackedRepository(identifier='{self.identifier}', url='{self.url}')>"
