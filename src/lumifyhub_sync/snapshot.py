"""Git snapshots of the local mirror.

After a pass that wrote files, each mirror root is committed to its own
git repository so that every pull and push can be inspected or reverted
with ordinary git tools.  Missing git, or a failing git command, only
disables snapshots; it never fails the sync pass.
"""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_USER_NAME = "LumifyHub CLI"
GIT_USER_EMAIL = "cli@lumifyhub.io"


class GitSnapshotter:
    """Initialise and commit a mirror directory.

    Args:
        root: Directory to snapshot.
        timeout: Seconds allowed per git command.
    """

    def __init__(self, root: Path, timeout: int = 30) -> None:
        self.root = Path(root)
        self.timeout = timeout

    def _git(self, *args: str) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=str(self.root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as exc:
            logger.debug("git %s failed: %s", " ".join(args), exc)
            return None

    def is_repo(self) -> bool:
        return (self.root / ".git").exists()

    def ensure_repo(self) -> bool:
        """Create the repository (with a local identity) if missing.

        Returns:
            ``True`` if the directory is a git repository afterwards.
        """
        if self.is_repo():
            return True
        self.root.mkdir(parents=True, exist_ok=True)
        result = self._git("init")
        if result is None or result.returncode != 0:
            logger.warning("Could not initialise git in %s", self.root)
            return False
        self._git("config", "user.email", GIT_USER_EMAIL)
        self._git("config", "user.name", GIT_USER_NAME)
        logger.info("Initialised git repository in %s", self.root)
        return True

    def commit_all(self, message: str) -> bool:
        """Stage everything and commit if anything changed.

        The commit message gets a ``YYYY-MM-DD HH:MM:SS`` suffix.

        Returns:
            ``True`` if a commit was created.
        """
        if not self.ensure_repo():
            return False
        self._git("add", "-A")
        staged = self._git("diff", "--cached", "--quiet")
        if staged is None or staged.returncode == 0:
            return False
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        result = self._git("commit", "-m", f"{message} - {timestamp}")
        if result is None or result.returncode != 0:
            logger.warning(
                "git commit failed in %s: %s",
                self.root,
                result.stderr.strip() if result else "git unavailable",
            )
            return False
        logger.info("Committed snapshot in %s", self.root)
        return True
