"""Tracked project and repository management endpoints"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.models import TrackedProject, TrackedRepository
from app.models.base import get_db
from app.services.message_logger import MessageLogger
from app.services.repository_sync import RepositorySynchronizer
from app.services.tracker import TrackerStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


class ProjectCreate(BaseModel):
    identifier: str
    name: Optional[str] = None


class ProjectResponse(BaseModel):
    id: int
    identifier: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class RepositoryCreate(BaseModel):
    identifier: str
    url: str
    scm: str = "git"


class RepositoryResponse(BaseModel):
    id: int
    project_id: int
    identifier: str
    scm: str
    url: str
    branch_heads: Optional[str] = None
    last_fetched_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


def _get_project_or_404(db: Session, project_id: int) -> TrackedProject:
    project = db.query(TrackedProject).filter(TrackedProject.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("/", response_model=List[ProjectResponse])
def list_projects(db: Session = Depends(get_db)):
    """List all tracked projects"""
    return db.query(TrackedProject).order_by(TrackedProject.id).all()


@router.post("/", response_model=ProjectResponse)
def create_project(project: ProjectCreate, db: Session = Depends(get_db)):
    """Create a tracked project; identifiers are case-insensitive"""
    identifier = project.identifier.strip().lower()
    if not identifier:
        raise HTTPException(status_code=400, detail="Project identifier is required")

    existing = db.query(TrackedProject).filter(TrackedProject.identifier == identifier).first()
    if existing:
        raise HTTPException(status_code=400, detail="Project identifier already exists")

    db_project = TrackedProject(identifier=identifier, name=(project.name or "").strip() or identifier)
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    return db_project


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(project_id: int, db: Session = Depends(get_db)):
    """Get a specific project"""
    return _get_project_or_404(db, project_id)


@router.delete("/{project_id}")
def delete_project(project_id: int, db: Session = Depends(get_db)):
    """Delete a project and its repositories"""
    project = _get_project_or_404(db, project_id)
    db.delete(project)
    db.commit()
    return {"message": "Project deleted successfully"}


@router.get("/{project_id}/repositories", response_model=List[RepositoryResponse])
def list_repositories(project_id: int, db: Session = Depends(get_db)):
    """List repositories of a project"""
    project = _get_project_or_404(db, project_id)
    return TrackerStore(db).repositories_of(project)


@router.post("/{project_id}/repositories", response_model=RepositoryResponse)
def add_repository(project_id: int, repository: RepositoryCreate, db: Session = Depends(get_db)):
    """Register a local working copy under a project"""
    project = _get_project_or_404(db, project_id)
    db_repository = TrackedRepository(project_id=project.id, **repository.dict())
    db.add(db_repository)
    db.commit()
    db.refresh(db_repository)
    return db_repository


@router.delete("/{project_id}/repositories/{repository_id}")
def delete_repository(project_id: int, repository_id: int, db: Session = Depends(get_db)):
    """Remove a repository from a project"""
    repository = (
        db.query(TrackedRepository)
        .filter(TrackedRepository.id == repository_id, TrackedRepository.project_id == project_id)
        .first()
    )
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")
    db.delete(repository)
    db.commit()
    return {"message": "Repository deleted successfully"}


@router.post("/{project_id}/sync")
def trigger_sync(project_id: int, db: Session = Depends(get_db)):
    """Manually fetch every Git repository of a project"""
    project = _get_project_or_404(db, project_id)
    messages = MessageLogger(logger)
    store = TrackerStore(db)
    RepositorySynchronizer(db, store, messages).update_repositories(project)
    return messages.messages
