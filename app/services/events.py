"""Webhook event normalization.

GitHub and GitLab describe the same review activity with different event
names and payload shapes. Each provider gets one ``ProviderEvents`` variant
that classifies its event names into a ``CanonicalOperation`` and turns its
payloads into a provider-agnostic ``ReviewEvent``. The variant is picked once
from the request headers; nothing downstream branches on the provider name
except where the two providers genuinely behave differently.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from app.services.errors import PreconditionFailed, SkipEvent


class Provider(str, enum.Enum):
    """Hosting platform a delivery came from"""
    GITHUB = "github"
    GITLAB = "gitlab"


class CanonicalOperation(str, enum.Enum):
    """What a delivery asks this service to do"""
    SYNCHRONIZE_REPOSITORY = "synchronize_repository"
    COMMENT_ON_REVIEW = "comment_on_review"
    THREAD_RESOLVED = "thread_resolved"
    MERGE_REQUEST_STATE_CHANGED = "merge_request_state_changed"
    UNSUPPORTED = "unsupported"


@dataclass
class ReviewEvent:
    """Provider-agnostic view of a review delivery"""

    provider: Provider
    operation: CanonicalOperation
    actor_login: Optional[str]
    actor_email: Optional[str]
    # The pull/merge request under review
    subject_url: Optional[str]
    subject_body: str
    subject_open: bool
    action: Optional[str] = None
    # Key of an existing discussion to look up, and key recorded on a new one
    thread_id: Optional[str] = None
    new_thread_id: Optional[str] = None
    comment_body: Optional[str] = None
    comment_url: Optional[str] = None
    note_type: Optional[str] = None
    blocking_discussions_resolved: Optional[bool] = None
    # GitLab records the request's blocking-discussion state on each remark
    tracks_blocking_discussions: bool = False


def _section(data: Mapping[str, Any], key: str, label: Optional[str] = None) -> Dict[str, Any]:
    """Return ``data[key]`` if it is an object, else fail the precondition."""
    value = data.get(key)
    if not isinstance(value, dict):
        raise PreconditionFailed(
            f"Payload field '{label or key}' must be an object, got {type(value).__name__}"
        )
    return value


def _as_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


class ProviderEvents:
    """Base class of the per-provider event variants."""

    provider: Provider
    event_types: Dict[str, CanonicalOperation] = {}
    # Actions handled per operation; operations missing here have no action filter.
    actions: Dict[CanonicalOperation, FrozenSet[str]] = {}

    def classify(self, event_type: Optional[str]) -> CanonicalOperation:
        return self.event_types.get(event_type or "", CanonicalOperation.UNSUPPORTED)

    def normalize(self, operation: CanonicalOperation, payload: Mapping[str, Any]) -> ReviewEvent:
        raise NotImplementedError

    def check_action(self, operation: CanonicalOperation, action: Optional[str]) -> None:
        supported = self.actions.get(operation)
        if supported is not None and action not in supported:
            raise SkipEvent(f"'{action}' action is not supported.")

    def __repr__(self):
        return f"<{type(self).__name__}(provider={self.provider.value})>"


class GitHubEvents(ProviderEvents):
    """GitHub: push, pull_request_review_comment, pull_request_review_thread, pull_request"""

    provider = Provider.GITHUB
    event_types = {
        "push": CanonicalOperation.SYNCHRONIZE_REPOSITORY,
        "pull_request_review_comment": CanonicalOperation.COMMENT_ON_REVIEW,
        "pull_request_review_thread": CanonicalOperation.THREAD_RESOLVED,
        "pull_request": CanonicalOperation.MERGE_REQUEST_STATE_CHANGED,
    }
    actions = {
        CanonicalOperation.THREAD_RESOLVED: frozenset({"resolved"}),
        CanonicalOperation.MERGE_REQUEST_STATE_CHANGED: frozenset({"closed"}),
    }

    def normalize(self, operation: CanonicalOperation, payload: Mapping[str, Any]) -> ReviewEvent:
        if operation != CanonicalOperation.COMMENT_ON_REVIEW:
            self.check_action(operation, payload.get("action"))

        pull_request = _section(payload, "pull_request")
        subject = dict(
            subject_url=pull_request.get("html_url"),
            subject_body=pull_request.get("body") or "",
            subject_open=pull_request.get("state") == "open",
        )

        if operation == CanonicalOperation.COMMENT_ON_REVIEW:
            comment = _section(payload, "comment")
            user = _section(comment, "user", "comment.user")
            return ReviewEvent(
                provider=self.provider,
                operation=operation,
                actor_login=user.get("login"),
                actor_email=user.get("email"),
                # A top-level comment starts its own thread; a replayed delivery
                # must find the child created from it.
                thread_id=_as_id(comment.get("in_reply_to_id")) or _as_id(comment.get("id")),
                new_thread_id=_as_id(comment.get("id")),
                comment_body=comment.get("body") or "",
                comment_url=comment.get("html_url"),
                **subject,
            )

        sender = _section(payload, "sender")
        event = ReviewEvent(
            provider=self.provider,
            operation=operation,
            actor_login=sender.get("login"),
            actor_email=sender.get("email"),
            action=payload.get("action"),
            **subject,
        )
        if operation == CanonicalOperation.THREAD_RESOLVED:
            thread = _section(payload, "thread")
            comments = thread.get("comments")
            if not isinstance(comments, list) or not comments or not isinstance(comments[0], dict):
                raise PreconditionFailed("Payload field 'thread.comments' must be a non-empty list")
            event.thread_id = _as_id(comments[0].get("id"))
        return event


class GitLabEvents(ProviderEvents):
    """GitLab: Push Hook, Note Hook, Merge Request Hook"""

    provider = Provider.GITLAB
    event_types = {
        "Push Hook": CanonicalOperation.SYNCHRONIZE_REPOSITORY,
        "Note Hook": CanonicalOperation.COMMENT_ON_REVIEW,
        "Merge Request Hook": CanonicalOperation.MERGE_REQUEST_STATE_CHANGED,
    }
    actions = {
        CanonicalOperation.MERGE_REQUEST_STATE_CHANGED: frozenset({"merge", "update"}),
    }

    def normalize(self, operation: CanonicalOperation, payload: Mapping[str, Any]) -> ReviewEvent:
        attributes = _section(payload, "object_attributes")
        if operation != CanonicalOperation.COMMENT_ON_REVIEW:
            self.check_action(operation, attributes.get("action"))
        user = _section(payload, "user")

        if operation == CanonicalOperation.COMMENT_ON_REVIEW:
            if not payload.get("merge_request"):
                raise SkipEvent("Only comments on merge requests are supported.")
            merge_request = _section(payload, "merge_request")
            discussion_id = _as_id(attributes.get("discussion_id"))
            return ReviewEvent(
                provider=self.provider,
                operation=operation,
                actor_login=user.get("username"),
                actor_email=user.get("email"),
                subject_url=merge_request.get("url"),
                subject_body=merge_request.get("description") or "",
                subject_open=merge_request.get("state") == "opened",
                thread_id=discussion_id,
                new_thread_id=discussion_id,
                comment_body=attributes.get("note") or "",
                comment_url=attributes.get("url"),
                note_type=attributes.get("type"),
                blocking_discussions_resolved=merge_request.get("blocking_discussions_resolved"),
                tracks_blocking_discussions=True,
            )

        return ReviewEvent(
            provider=self.provider,
            operation=operation,
            actor_login=user.get("username"),
            actor_email=user.get("email"),
            subject_url=attributes.get("url"),
            subject_body=attributes.get("description") or "",
            subject_open=attributes.get("state") == "opened",
            action=attributes.get("action"),
            blocking_discussions_resolved=attributes.get("blocking_discussions_resolved"),
            tracks_blocking_discussions=True,
        )


# Header that identifies each provider, checked in this order.
EVENT_HEADERS: Tuple[Tuple[str, type], ...] = (
    ("x-github-event", GitHubEvents),
    ("x-gitlab-event", GitLabEvents),
)


def detect_provider(headers: Mapping[str, str]) -> Optional[Tuple[ProviderEvents, str]]:
    """Pick the provider variant from request headers; None if neither header is present."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for header, events_cls in EVENT_HEADERS:
        event_type = lowered.get(header)
        if event_type:
            return events_cls(), event_type
    return None
