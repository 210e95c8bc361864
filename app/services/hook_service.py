"""Webhook event processing entry point"""

import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy.orm import Session

from app.services.correlator import ReviewCorrelator
from app.services.errors import SkipEvent
from app.services.events import CanonicalOperation, ProviderEvents
from app.services.message_logger import MessageLogger
from app.services.repository_sync import RepositorySynchronizer
from app.services.resolver import ProjectResolver
from app.services.review_sync import ReviewIssueSynchronizer
from app.services.tracker import TrackerStore

logger = logging.getLogger(__name__)


class GitHookService:
    """Processes one webhook delivery and collects its log lines"""

    def __init__(self, db: Session, messages: Optional[MessageLogger] = None):
        self.db = db
        self.messages = messages or MessageLogger(logger)
        self.store = TrackerStore(db)
        self.resolver = ProjectResolver(db, self.store, self.messages)

    def repository_synchronizer(self) -> RepositorySynchronizer:
        return RepositorySynchronizer(self.db, self.store, self.messages)

    def review_synchronizer(self) -> ReviewIssueSynchronizer:
        return ReviewIssueSynchronizer(
            self.store,
            self.resolver,
            ReviewCorrelator(self.store),
            self.messages,
        )

    def handle(
        self,
        events: ProviderEvents,
        event_type: str,
        payload: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> List[str]:
        """Dispatch a delivery; RecordNotFound / PreconditionFailed propagate to the caller."""
        operation = events.classify(event_type)
        if operation == CanonicalOperation.UNSUPPORTED:
            self.messages.info(f"Event '{event_type}' is not supported.")
        elif operation == CanonicalOperation.SYNCHRONIZE_REPOSITORY:
            self.update_repositories(payload, params)
        else:
            self.update_review_issue(events, operation, payload, params)
        return self.messages.messages

    def update_repositories(self, payload: Mapping[str, Any], params: Mapping[str, Any]) -> None:
        identifier = self.resolver.get_identifier(payload, params)
        project = self.resolver.find_project(identifier)
        self.repository_synchronizer().update_repositories(project)

    def update_review_issue(
        self,
        events: ProviderEvents,
        operation: CanonicalOperation,
        payload: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> None:
        identifier = self.resolver.get_identifier(payload, params)
        setting = self.resolver.find_setting(identifier)
        if setting is None:
            return

        try:
            event = events.normalize(operation, payload)
        except SkipEvent as e:
            self.messages.info(str(e))
            return

        self.review_synchronizer().handle(event, setting, identifier)
