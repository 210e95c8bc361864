import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, HookSetting, IssueStatus, TrackedProject, Tracker, TrackerIssue
from app.services.correlator import ReviewCorrelator
from app.services.markers import format_marker_block
from app.services.tracker import TrackerStore

PR_URL = "https://github.com/acme/demo/pull/7"


def _memory_session():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


class ReviewCorrelatorTests(unittest.TestCase):
    def setUp(self):
        self.db = _memory_session()
        self.review = Tracker(name="Review")
        self.remark = Tracker(name="Remark")
        self.new = IssueStatus(name="New", is_closed=False)
        self.closed = IssueStatus(name="Closed", is_closed=True)
        self.project = TrackedProject(identifier="demo", name="Demo")
        self.other = TrackedProject(identifier="other", name="Other")
        self.db.add_all([self.review, self.remark, self.new, self.closed, self.project, self.other])
        self.db.commit()
        self.correlator = ReviewCorrelator(TrackerStore(self.db))

    def tearDown(self):
        self.db.close()

    def _issue(self, description, project=None, tracker=None, status=None, parent=None):
        issue = TrackerIssue(
            project_id=(project or self.project).id,
            tracker_id=(tracker or self.review).id,
            status_id=(status or self.new).id,
            parent_id=parent.id if parent is not None else None,
            subject="Issue",
            description=description,
        )
        self.db.add(issue)
        self.db.commit()
        return issue

    def test_parent_by_url_marker_prefers_latest(self):
        self._issue(f"Old review\n_merge_request_url={PR_URL}")
        latest = self._issue(f"New review\n_merge_request_url={PR_URL}")
        self._issue(f"Elsewhere\n_merge_request_url={PR_URL}", project=self.other)

        found = self.correlator.find_parent(self.project, PR_URL, "refs #999")

        self.assertEqual(found.id, latest.id)

    def test_parent_url_must_match_exactly(self):
        self._issue(f"Longer number\n_merge_request_url={PR_URL}2")

        self.assertIsNone(self.correlator.find_parent(self.project, PR_URL, ""))

        tagged = self._issue(f"_merge_request_url={PR_URL}, see also #2")
        self.assertEqual(self.correlator.find_parent(self.project, PR_URL, "").id, tagged.id)

    def test_parent_falls_back_to_refs_in_request_body(self):
        foreign = self._issue("Tracked in another project", project=self.other)

        found = self.correlator.find_parent(
            self.project, PR_URL, f"This change refs #{foreign.id} and more"
        )

        self.assertEqual(found.id, foreign.id)

    def test_parent_not_found(self):
        self.assertIsNone(self.correlator.find_parent(self.project, PR_URL, "no reference"))
        self.assertIsNone(self.correlator.find_parent(self.project, None, None))

    def test_child_lookup_matches_whole_discussion_id(self):
        self._issue("remark\n_discussion_id=123,\n_type=null,\n", tracker=self.remark)

        self.assertIsNone(self.correlator.find_child(self.project, "12"))
        self.assertIsNotNone(self.correlator.find_child(self.project, "123"))
        self.assertIsNone(self.correlator.find_child(self.project, None))

    def test_child_lookup_prefers_latest(self):
        self._issue("first\n_discussion_id=abc,\n", tracker=self.remark)
        second = self._issue("second\n_discussion_id=abc,\n", tracker=self.remark)

        self.assertEqual(self.correlator.find_child(self.project, "abc").id, second.id)

    def test_closable_children_filters_tracker_status_and_markers(self):
        parent = self._issue(f"_merge_request_url={PR_URL}")
        wanted = self._issue("a\n_discussion_id=1,\n", tracker=self.remark, parent=parent)
        self._issue("b\n_discussion_id=2,\n", tracker=self.remark, parent=parent, status=self.closed)
        self._issue("c\n_discussion_id=3,\n", tracker=self.review, parent=parent)
        self._issue("d without markers", tracker=self.remark, parent=parent)
        setting = HookSetting(
            project_pattern=".*",
            remark_tracker_id=self.remark.id,
            remark_closed_status_id=self.closed.id,
        )

        children = self.correlator.closable_children(parent, setting, "_discussion_id=")

        self.assertEqual([child.id for child in children], [wanted.id])

    def test_quoted_token_in_comment_text_is_not_a_marker(self):
        parent = self._issue(f"_merge_request_url={PR_URL}")
        quoting = self._issue(
            "Why is _type=null, set here?\n\n---\n\n"
            + format_marker_block({"discussion_id": "q", "type": "DiffNote"}),
            tracker=self.remark,
            parent=parent,
        )
        setting = HookSetting(
            project_pattern=".*",
            remark_tracker_id=self.remark.id,
            remark_closed_status_id=self.closed.id,
        )

        self.assertEqual(self.correlator.closable_children(parent, setting, "_type=null,"), [])
        self.assertEqual(self.correlator.find_child(self.project, "q").id, quoting.id)


if __name__ == "__main__":
    unittest.main()
