"""Services"""

from app.services.hook_service import GitHookService
from app.services.message_logger import MessageLogger
from app.services.repository_sync import RepositorySynchronizer
from app.services.review_sync import ReviewIssueSynchronizer

__all__ = ["GitHookService", "MessageLogger", "RepositorySynchronizer", "ReviewIssueSynchronizer"]
