"""API routes"""

from app.api import hook_settings, hooks, projects

__all__ = ["hooks", "hook_settings", "projects"]
