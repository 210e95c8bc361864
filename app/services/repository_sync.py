"""Repository mirror synchronization (git fetch + changeset ingestion)"""

import json
import shlex
import subprocess
import tempfile
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.models import TrackedProject, TrackedRepository
from app.services.message_logger import MessageLogger
from app.services.tracker import TrackerStore


def time_diff_milli(start: float, finish: float) -> float:
    return round((finish - start) * 1000.0, 1)


class RepositorySynchronizer:
    """Fetches upstream refs into the local working copies of a project"""

    def __init__(
        self,
        db: Session,
        store: TrackerStore,
        messages: MessageLogger,
        git_command: Optional[str] = None,
    ):
        self.db = db
        self.store = store
        self.messages = messages
        self.git_command = shlex.split(git_command or settings.scm_git_command)

    def _git(self, *args: str) -> List[str]:
        return [*self.git_command, *args]

    def exec(self, command: List[str], directory: Optional[str] = None) -> Tuple[bool, str]:
        """Run ``command`` in ``directory``; returns (exited successfully, combined output).

        stdout and stderr go to a temporary file that is removed however the
        command ends.
        """
        cmdline = shlex.join(command)
        self.messages.debug(f"Executing command: '{cmdline}'")

        with tempfile.TemporaryFile(prefix="git_hook_exec") as logfile:
            try:
                proc = subprocess.run(  # noqa: S603 (command built from config + fixed args)
                    command,
                    cwd=directory or None,
                    stdout=logfile,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
                success = proc.returncode == 0
            except OSError as e:
                logfile.write(f"{e}\n".encode("utf-8"))
                success = False
            logfile.seek(0)
            output = logfile.read().decode("utf-8", errors="replace")

        lines = output.splitlines(keepends=True)
        if success:
            self.messages.debug(f"Command output: {lines!r}")
        else:
            self.messages.error(f"Command '{cmdline}' didn't exit properly. Full output: {lines!r}")
        return success, output

    def synchronize(self, repository: TrackedRepository) -> bool:
        """Fetch origin, then prune branches and tags that vanished upstream."""
        fetched, _ = self.exec(self._git("fetch", "origin"), repository.url)
        if not fetched:
            return False

        pruned, _ = self.exec(
            self._git("fetch", "--prune", "--prune-tags", "origin", "+refs/heads/*:refs/heads/*"),
            repository.url,
        )
        return pruned

    def ingest_changesets(self, repository: TrackedRepository) -> bool:
        """Record the current branch heads of the working copy."""
        ok, output = self.exec(
            self._git("for-each-ref", "--format=%(refname:short) %(objectname)", "refs/heads"),
            repository.url,
        )
        if not ok:
            return False

        heads = {}
        for line in output.splitlines():
            name, _, sha = line.strip().rpartition(" ")
            if name and sha:
                heads[name] = sha
        repository.branch_heads = json.dumps(heads, sort_keys=True)
        repository.last_fetched_at = datetime.now(timezone.utc).replace(tzinfo=None)
        self.db.commit()
        return True

    def update_repositories(self, project: TrackedProject) -> None:
        """Synchronize and ingest every Git repository of ``project``, one after another."""
        repositories = [repo for repo in self.store.repositories_of(project) if repo.is_git]
        if not repositories:
            self.messages.info(f"Project '{project}' ('{project.identifier}') has no repository")
            return

        for repository in repositories:
            tg1 = time.perf_counter()
            self.synchronize(repository)
            tg2 = time.perf_counter()

            tr1 = time.perf_counter()
            self.ingest_changesets(repository)
            tr2 = time.perf_counter()

            self.messages.info(
                f"Repository updated: {repository.identifier} "
                f"(Git: {time_diff_milli(tg1, tg2)}ms, Tracker: {time_diff_milli(tr1, tr2)}ms)"
            )
