"""Locate the tracker tickets that belong to a review and its discussions"""

import re
from typing import Iterable, List, Optional

from app.models import HookSetting, TrackedProject, TrackerIssue
from app.services.markers import (
    DISCUSSION_ID,
    MERGE_REQUEST_URL,
    marker_key,
    marker_token,
    parse_markers,
)
from app.services.tracker import TrackerStore

_REFS_RE = re.compile(r"refs #([0-9]+)")


def _url_marker_re(url: str):
    # The URL must end at whitespace, a comma or the end of the text: /pull/1 is not /pull/12.
    return re.compile(re.escape(f"{marker_key(MERGE_REQUEST_URL)}{url}") + r"(?=[\s,]|$)")


def has_marker(description: Optional[str], fragments: Iterable[str]) -> bool:
    """True if a recorded marker token starts with any of the fragments."""
    tokens = [marker_token(key, value) for key, value in parse_markers(description).items()]
    return any(token.startswith(fragment) for token in tokens for fragment in fragments)


class ReviewCorrelator:
    """Marker-based lookup of parent (review) and child (discussion) tickets

    The store narrows candidates with a description substring search; the
    decoded markers decide, so reviewer text that merely quotes a token never
    matches.
    """

    def __init__(self, store: TrackerStore):
        self.store = store

    def find_parent(
        self, project: TrackedProject, request_url: Optional[str], request_body: Optional[str]
    ) -> Optional[TrackerIssue]:
        """Ticket carrying ``_merge_request_url=<url>``, else the ``refs #<id>`` ticket.

        The ``refs #<id>`` fallback resolves the id as-is: the referenced ticket
        may belong to any project.
        """
        if request_url:
            pattern = _url_marker_re(request_url)
            issues = [
                issue
                for issue in self.store.search_issues(project.id, f"{marker_key(MERGE_REQUEST_URL)}{request_url}")
                if pattern.search(issue.description or "")
            ]
            if issues:
                return issues[-1]

        m = _REFS_RE.search(request_body or "")
        if m:
            return self.store.get_issue(int(m.group(1)))
        return None

    def find_child(self, project: TrackedProject, discussion_id: Optional[str]) -> Optional[TrackerIssue]:
        """Most recently created ticket whose markers record ``_discussion_id=<id>,``."""
        if not discussion_id:
            return None
        token = marker_token(DISCUSSION_ID, discussion_id)
        issues = [
            issue
            for issue in self.store.search_issues(project.id, token)
            if has_marker(issue.description, [token])
        ]
        return issues[-1] if issues else None

    def closable_children(
        self, parent: TrackerIssue, setting: HookSetting, *marker_fragments: str
    ) -> List[TrackerIssue]:
        """Open remark children of ``parent`` whose markers start with any of the fragments."""
        children = self.store.find_children(
            parent,
            tracker_id=setting.remark_tracker_id,
            excluding_status_id=setting.remark_closed_status_id,
            description_contains_any=marker_fragments,
        )
        return [child for child in children if has_marker(child.description, marker_fragments)]
