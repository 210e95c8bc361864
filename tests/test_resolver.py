import logging
import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, HookSetting, TrackedProject
from app.services.errors import RecordNotFound
from app.services.message_logger import MessageLogger
from app.services.resolver import ProjectResolver
from app.services.tracker import TrackerStore


def _memory_session():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


class ProjectResolverTests(unittest.TestCase):
    def setUp(self):
        self.db = _memory_session()
        self.messages = MessageLogger(logging.getLogger(__name__))
        self.resolver = ProjectResolver(self.db, TrackerStore(self.db), self.messages)

    def tearDown(self):
        self.db.close()

    def _rule(self, pattern, tracker_id, position=0, enabled=True):
        rule = HookSetting(
            project_pattern=pattern,
            position=position,
            enabled=enabled,
            remark_tracker_id=tracker_id,
            remark_closed_status_id=5,
        )
        self.db.add(rule)
        self.db.commit()
        return rule

    def test_project_id_parameter_wins_over_repository_name(self):
        payload = {"repository": {"name": "from-payload"}}

        self.assertEqual(self.resolver.get_identifier(payload, {"project_id": "explicit"}), "explicit")
        self.assertEqual(self.resolver.get_identifier(payload, {}), "from-payload")
        self.assertEqual(self.resolver.get_identifier(payload, {"project_id": ""}), "from-payload")

    def test_missing_identifier_is_not_found(self):
        with self.assertRaises(RecordNotFound) as ctx:
            self.resolver.get_identifier({"repository": "not an object"}, {})
        self.assertEqual(str(ctx.exception), "Project identifier not specified")

    def test_find_project_is_case_insensitive(self):
        self.db.add(TrackedProject(identifier="demo", name="Demo"))
        self.db.commit()

        self.assertEqual(self.resolver.find_project("Demo").identifier, "demo")
        with self.assertRaises(RecordNotFound) as ctx:
            self.resolver.find_project("other")
        self.assertEqual(str(ctx.exception), "No project found with identifier 'other'")

    def test_first_matching_rule_by_id(self):
        self._rule("^foo", tracker_id=1)
        self._rule("foo", tracker_id=2)

        self.assertEqual(self.resolver.find_setting("foobar").remark_tracker_id, 1)
        self.assertEqual(self.resolver.find_setting("barfoo").remark_tracker_id, 2)

    def test_position_orders_before_id(self):
        self._rule("foo", tracker_id=1, position=10)
        self._rule("foo", tracker_id=2, position=1)

        self.assertEqual(self.resolver.find_setting("foo").remark_tracker_id, 2)

    def test_disabled_rules_are_skipped(self):
        self._rule("foo", tracker_id=1, enabled=False)
        self._rule("foo", tracker_id=2)

        self.assertEqual(self.resolver.find_setting("foo").remark_tracker_id, 2)

    def test_no_matching_rule_logs_info(self):
        self._rule("^foo", tracker_id=1)

        self.assertIsNone(self.resolver.find_setting("bar"))
        self.assertEqual(
            self.messages.messages_at(logging.INFO),
            ["Available hook setting does not exist for the project 'bar'"],
        )


if __name__ == "__main__":
    unittest.main()
