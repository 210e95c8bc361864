"""Hook setting model"""

import re
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.models.base import Base


class HookSetting(Base):
    """Rule deciding how review events of matching projects become remark tickets"""

    __tablename__ = "git_hook_settings"

    id = Column(Integer, primary_key=True, index=True)
    # Rules are evaluated by ascending (position, id); first match wins.
    position = Column(Integer, nullable=False, default=0)
    project_pattern = Column(String, nullable=False)
    enabled = Column(Boolean, default=True)

    remark_tracker_id = Column(Integer, nullable=False)
    remark_closed_status_id = Column(Integer, nullable=False)
    resolve_keyword = Column(String, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def matches(self, identifier: str) -> bool:
        """Regex search (not full match) of the pattern against a project identifier."""
        return re.search(self.project_pattern, identifier) is not None

    def __repr__(self):
        return f"<HookSetting(pattern='{self.project_pattern}', enabled={self.enabled})>"
