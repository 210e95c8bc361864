import json
import logging
import re
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, TrackedProject, TrackedRepository
from app.services.message_logger import MessageLogger
from app.services.repository_sync import RepositorySynchronizer, time_diff_milli
from app.services.tracker import TrackerStore


def _memory_session():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


class _FakeGit:
    """Stands in for subprocess.run: records calls, writes canned output."""

    def __init__(self, failures=(), output=b"main 1111111\nfeature/x 2222222\n"):
        self.calls = []
        self.failures = list(failures)
        self.output = output

    def __call__(self, command, cwd=None, stdout=None, stderr=None, check=False):
        self.calls.append((command, cwd))
        for predicate in self.failures:
            if predicate(command, cwd):
                stdout.write(b"fatal: unable to access remote\n")
                return SimpleNamespace(returncode=128)
        if "for-each-ref" in command:
            stdout.write(self.output)
        return SimpleNamespace(returncode=0)


class RepositorySynchronizerTests(unittest.TestCase):
    def setUp(self):
        self.db = _memory_session()
        self.messages = MessageLogger(logging.getLogger(__name__))
        self.project = TrackedProject(identifier="demo", name="Demo")
        self.db.add(self.project)
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def _repository(self, identifier, url, scm="git"):
        repo = TrackedRepository(
            project_id=self.project.id, identifier=identifier, url=url, scm=scm
        )
        self.db.add(repo)
        self.db.commit()
        return repo

    def _synchronizer(self, git_command="git"):
        return RepositorySynchronizer(self.db, TrackerStore(self.db), self.messages, git_command)

    def test_fetch_prune_and_ingest_in_working_copy(self):
        repo = self._repository("main-repo", "/srv/git/demo.git")
        fake = _FakeGit()

        with patch("app.services.repository_sync.subprocess.run", fake):
            self._synchronizer().update_repositories(self.project)

        self.assertEqual(
            fake.calls,
            [
                (["git", "fetch", "origin"], "/srv/git/demo.git"),
                (
                    ["git", "fetch", "--prune", "--prune-tags", "origin", "+refs/heads/*:refs/heads/*"],
                    "/srv/git/demo.git",
                ),
                (
                    ["git", "for-each-ref", "--format=%(refname:short) %(objectname)", "refs/heads"],
                    "/srv/git/demo.git",
                ),
            ],
        )
        self.db.refresh(repo)
        self.assertEqual(json.loads(repo.branch_heads), {"feature/x": "2222222", "main": "1111111"})
        self.assertIsNotNone(repo.last_fetched_at)

        info = self.messages.messages_at(logging.INFO)
        self.assertEqual(len(info), 1)
        self.assertRegex(
            info[0], r"^Repository updated: main-repo \(Git: [0-9.]+ms, Tracker: [0-9.]+ms\)$"
        )

    def test_git_command_may_carry_arguments(self):
        self._repository("main-repo", "/srv/git/demo.git")
        fake = _FakeGit()

        with patch("app.services.repository_sync.subprocess.run", fake):
            self._synchronizer("git -c core.quotepath=off").update_repositories(self.project)

        self.assertEqual(fake.calls[0][0], ["git", "-c", "core.quotepath=off", "fetch", "origin"])

    def test_failed_fetch_skips_prune_but_still_ingests(self):
        self._repository("main-repo", "/srv/git/demo.git")
        fake = _FakeGit(failures=[lambda command, cwd: command[1:] == ["fetch", "origin"]])

        with patch("app.services.repository_sync.subprocess.run", fake):
            self._synchronizer().update_repositories(self.project)

        issued = [command[1] for command, _ in fake.calls]
        self.assertEqual(issued, ["fetch", "for-each-ref"])

        errors = self.messages.messages_at(logging.ERROR)
        self.assertEqual(len(errors), 1)
        self.assertIn("Command 'git fetch origin' didn't exit properly.", errors[0])
        self.assertIn("fatal: unable to access remote", errors[0])
        self.assertEqual(len(self.messages.messages_at(logging.INFO)), 1)

    def test_failing_repository_does_not_stop_siblings(self):
        self._repository("broken", "/srv/git/broken.git")
        ok = self._repository("healthy", "/srv/git/healthy.git")
        fake = _FakeGit(failures=[lambda command, cwd: cwd == "/srv/git/broken.git"])

        with patch("app.services.repository_sync.subprocess.run", fake):
            self._synchronizer().update_repositories(self.project)

        healthy_calls = [command[1] for command, cwd in fake.calls if cwd == "/srv/git/healthy.git"]
        self.assertEqual(healthy_calls, ["fetch", "fetch", "for-each-ref"])
        self.db.refresh(ok)
        self.assertIsNotNone(ok.branch_heads)

        info = self.messages.messages_at(logging.INFO)
        self.assertEqual(len(info), 2)
        self.assertTrue(info[0].startswith("Repository updated: broken "))
        self.assertTrue(info[1].startswith("Repository updated: healthy "))

    def test_project_without_git_repository(self):
        self._repository("svn-repo", "/srv/svn/demo", scm="subversion")
        fake = _FakeGit()

        with patch("app.services.repository_sync.subprocess.run", fake):
            self._synchronizer().update_repositories(self.project)

        self.assertEqual(fake.calls, [])
        self.assertEqual(
            self.messages.messages_at(logging.INFO), ["Project 'Demo' ('demo') has no repository"]
        )

    def test_missing_executable_is_reported_as_failure(self):
        def missing(*args, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", "git")

        with patch("app.services.repository_sync.subprocess.run", missing):
            success, output = self._synchronizer().exec(["git", "fetch", "origin"], "/srv/git/demo.git")

        self.assertFalse(success)
        self.assertIn("No such file or directory", output)
        self.assertEqual(len(self.messages.messages_at(logging.ERROR)), 1)

    def test_successful_command_logs_debug_only(self):
        with patch("app.services.repository_sync.subprocess.run", _FakeGit()):
            success, _ = self._synchronizer().exec(["git", "fetch", "origin"], "/srv/git/demo.git")

        self.assertTrue(success)
        self.assertEqual(self.messages.messages_at(logging.INFO), [])
        debug = self.messages.messages_at(logging.DEBUG)
        self.assertEqual(debug[0], "Executing command: 'git fetch origin'")

    def test_time_diff_milli_rounds_to_tenths(self):
        self.assertEqual(time_diff_milli(1.0, 1.01234), 12.3)
        self.assertTrue(re.match(r"^[0-9]+\.[0-9]$", str(time_diff_milli(0.0, 0.5))))


if __name__ == "__main__":
    unittest.main()
