"""Review remark tickets: create, comment on and close them as reviews evolve"""

from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from app.config import settings
from app.models import HookSetting, TrackedProject, TrackerIssue, TrackerUser
from app.services.correlator import ReviewCorrelator
from app.services.errors import RecordNotFound
from app.services.events import CanonicalOperation, ReviewEvent
from app.services.markers import (
    BLOCKING_DISCUSSIONS_RESOLVED,
    DISCUSSION_ID,
    NOTE_TYPE,
    format_marker_block,
    marker_key,
    marker_token,
    parse_markers,
    set_marker,
)
from app.services.message_logger import MessageLogger
from app.services.resolver import ProjectResolver
from app.services.tracker import TrackerStore, create_link

SEPARATOR = "\n\n---\n\n"
VIEW_ON_GIT = "View on Git"

RESOLVED_REMARK = "This issue is closed because the conversation has been resolved."
MERGED_REMARK = "This issue is closed because the merge request has been merged."
ALL_RESOLVED_REMARK = "This issue is closed because all threads have been resolved."
PULL_REQUEST_CLOSED_REMARK = "This issue is closed because the pull request has been closed."


class ReviewIssueSynchronizer:
    """State machine mapping canonical review events onto remark tickets.

    Parent tickets stand for a whole pull/merge request; child tickets stand
    for one discussion and are found again through their ``_discussion_id``
    marker, so replaying a delivery finds the same child instead of creating
    a new one.
    """

    def __init__(
        self,
        store: TrackerStore,
        resolver: ProjectResolver,
        correlator: ReviewCorrelator,
        messages: MessageLogger,
        *,
        text_formatting: Optional[str] = None,
        remark_due_days: Optional[int] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.correlator = correlator
        self.messages = messages
        self.text_formatting = text_formatting if text_formatting is not None else settings.text_formatting
        self.remark_due_days = remark_due_days if remark_due_days is not None else settings.remark_due_days

    def handle(self, event: ReviewEvent, setting: HookSetting, identifier: str) -> None:
        handlers = {
            CanonicalOperation.COMMENT_ON_REVIEW: self.handle_comment,
            CanonicalOperation.THREAD_RESOLVED: self.handle_thread_resolved,
            CanonicalOperation.MERGE_REQUEST_STATE_CHANGED: self.handle_merge_request,
        }
        handler = handlers.get(event.operation)
        if handler is None:
            self.messages.info(f"Event '{event.operation.value}' is not supported.")
            return
        handler(event, setting, identifier)

    # Lookups

    def find_user(self, login: Optional[str], email: Optional[str]) -> TrackerUser:
        reviewer = self.store.find_user_by_login(login) or self.store.find_user_by_mail(email)
        if reviewer is None:
            raise RecordNotFound(f"Reviewer not found. username={login} or email={email}")
        return reviewer

    def _review_context(
        self, event: ReviewEvent, identifier: str
    ) -> Optional[Tuple[TrackerUser, TrackedProject, TrackerIssue]]:
        """Reviewer, project and open parent ticket, or None when the review is not tracked."""
        reviewer = self.find_user(event.actor_login, event.actor_email)
        project = self.resolver.find_project(identifier)

        parent = self.correlator.find_parent(project, event.subject_url, event.subject_body)
        if parent is None:
            self.messages.info(f"Linked review issue is not found. request_url='{event.subject_url}'")
            return None
        if parent.closed:
            self.messages.info(f"Linked review issue has been closed. '{parent}'")
            return None
        return reviewer, project, parent

    def link(self, url: Optional[str]) -> str:
        return create_link(VIEW_ON_GIT, url, self.text_formatting)

    # Event handlers

    def handle_comment(self, event: ReviewEvent, setting: HookSetting, identifier: str) -> None:
        context = self._review_context(event, identifier)
        if context is None:
            return
        reviewer, project, parent = context

        child = self.correlator.find_child(project, event.thread_id)
        view_on_git = self.link(event.comment_url)

        if child is not None:
            if child.closed:
                self.messages.info(f"Indicated issue has already been closed. '{child}'")
                return
            # Keys the child was created without are left out.
            recorded = parse_markers(child.description)
            for key, value in (
                (BLOCKING_DISCUSSIONS_RESOLVED, event.blocking_discussions_resolved),
                (NOTE_TYPE, event.note_type),
            ):
                if key in recorded and recorded[key] != value:
                    child.description = set_marker(child.description, key, value)
            self._update_child(reviewer, setting, child, event.comment_body or "", view_on_git)
            return

        if not event.subject_open:
            self.messages.info(
                f"This merge request is not open so no issues can be added. '{event.subject_url}'"
            )
            return

        markers = {DISCUSSION_ID: event.new_thread_id, NOTE_TYPE: event.note_type}
        if event.tracks_blocking_discussions:
            markers[BLOCKING_DISCUSSIONS_RESOLVED] = event.blocking_discussions_resolved

        description = (
            f"{event.comment_body or ''}{SEPARATOR}{view_on_git} \n\n{format_marker_block(markers)}"
        )
        self._create_child(reviewer, setting, parent, description)

    def handle_thread_resolved(self, event: ReviewEvent, setting: HookSetting, identifier: str) -> None:
        context = self._review_context(event, identifier)
        if context is None:
            return
        reviewer, project, parent = context

        child = self.correlator.find_child(project, event.thread_id)
        if child is None:
            self.messages.info(f"Indicated issue is not found. review_issue='{parent}'")
            return
        if child.closed:
            self.messages.info(f"Indicated issue has already been closed. '{child}'")
            return

        self.store.close_issue(child, reviewer, RESOLVED_REMARK, setting.remark_closed_status_id)
        self.messages.info(f"Indicated issue closed. '{child}'")

    def handle_merge_request(self, event: ReviewEvent, setting: HookSetting, identifier: str) -> None:
        context = self._review_context(event, identifier)
        if context is None:
            return
        reviewer, _project, parent = context

        if event.action == "merge":
            fragments = [marker_key(BLOCKING_DISCUSSIONS_RESOLVED)]
            remark = MERGED_REMARK
        elif event.action == "update":
            if not event.blocking_discussions_resolved:
                self.messages.info("Some threads have not been resolved.")
                return
            fragments = [
                marker_token(BLOCKING_DISCUSSIONS_RESOLVED, False),
                marker_token(NOTE_TYPE, None),
            ]
            remark = ALL_RESOLVED_REMARK
        elif event.action == "closed":
            fragments = [marker_key(DISCUSSION_ID)]
            remark = PULL_REQUEST_CLOSED_REMARK
        else:
            self.messages.info(f"'{event.action}' action is not supported.")
            return

        children = self.correlator.closable_children(parent, setting, *fragments)
        self._close_children(reviewer, setting, children, remark, event.subject_url)

    # Mutations

    def _update_child(
        self,
        reviewer: TrackerUser,
        setting: HookSetting,
        child: TrackerIssue,
        raw_comment: str,
        view_on_git: str,
    ) -> None:
        keyword = setting.resolve_keyword
        if keyword and keyword in raw_comment:
            comment = raw_comment.replace(keyword, "").strip()
            comment = f"{comment}{SEPARATOR}{view_on_git}" if comment else view_on_git
            self.store.close_issue(child, reviewer, comment, setting.remark_closed_status_id)
            self.messages.info(f"Indicated issue closed. '{child}'")
        else:
            self.store.append_journal(child, reviewer, f"{raw_comment}{SEPARATOR}{view_on_git}")
            self.messages.info(f"Comment '{raw_comment}' added to '{child}'.")

    def _create_child(
        self, reviewer: TrackerUser, setting: HookSetting, parent: TrackerIssue, description: str
    ) -> None:
        today = date.today()
        child = self.store.create_issue(
            parent=parent,
            tracker_id=setting.remark_tracker_id,
            author=reviewer,
            subject=description.partition("\n")[0],
            description=description,
            start_date=today,
            due_date=today + timedelta(days=self.remark_due_days),
        )
        if child is None:
            self.messages.info("Failed to create indicated issue.")
        else:
            self.messages.info(f"Indicated issue added. '{child}'")

    def _close_children(
        self,
        reviewer: TrackerUser,
        setting: HookSetting,
        children: Iterable[TrackerIssue],
        remark: str,
        request_url: Optional[str],
    ) -> None:
        children = list(children)
        if not children:
            self.messages.info("No indicated issues need to be closed.")
            return

        remark = f"{remark}{SEPARATOR}{self.link(request_url)}"
        for child in children:
            self.store.close_issue(child, reviewer, remark, setting.remark_closed_status_id)
        closed = ", ".join(f"'{child}'" for child in children)
        self.messages.info(f"Indicated issue(s) closed. {closed}")
