"""Project and hook-setting resolution"""

from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.models import HookSetting, TrackedProject
from app.services.errors import RecordNotFound
from app.services.message_logger import MessageLogger
from app.services.tracker import TrackerStore


class ProjectResolver:
    """Maps a delivery to its tracked project and applicable hook setting"""

    def __init__(self, db: Session, store: TrackerStore, messages: MessageLogger):
        self.db = db
        self.store = store
        self.messages = messages

    @staticmethod
    def project_name(payload: Mapping[str, Any], params: Mapping[str, Any]) -> Optional[str]:
        """Explicit ``project_id`` parameter first, else the repository name in the payload."""
        project_id = params.get("project_id")
        if project_id:
            return str(project_id)
        repository = payload.get("repository")
        if isinstance(repository, dict) and repository.get("name"):
            return str(repository["name"])
        return None

    def get_identifier(self, payload: Mapping[str, Any], params: Mapping[str, Any]) -> str:
        identifier = self.project_name(payload, params)
        if identifier is None:
            raise RecordNotFound("Project identifier not specified")
        return identifier

    def find_project(self, identifier: str) -> TrackedProject:
        project = self.store.find_project_by_identifier(identifier)
        if project is None:
            raise RecordNotFound(f"No project found with identifier '{identifier}'")
        return project

    def find_setting(self, identifier: str) -> Optional[HookSetting]:
        """First enabled rule, by ascending (position, id), whose pattern matches."""
        rules = (
            self.db.query(HookSetting)
            .order_by(HookSetting.position, HookSetting.id)
            .all()
        )
        for rule in rules:
            if rule.enabled and rule.matches(identifier):
                return rule
        self.messages.info(f"Available hook setting does not exist for the project '{identifier}'")
        return None
