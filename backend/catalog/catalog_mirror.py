"""
Local working copy of the catalog git repository.

Uses the native git CLI via subprocess. Commands run in a worker thread so a
slow clone never blocks the event loop.

The mirror is a single directory shared by all requests: callers must hold
CatalogMirror.lock from sync() until they are done reading the tree, or a
concurrent request for another release line could switch branches under
them.
"""

import asyncio
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a mirror sync (clone or fetch + checkout)."""
    success: bool
    updated: bool  # True if HEAD moved
    commit: Optional[str]
    error: Optional[str] = None


class GitNotAvailableError(RuntimeError):
    """Raised when git is not installed or not accessible."""
    pass


class CatalogMirror:
    """Clone-or-update of one repository URL into one directory."""

    def __init__(self, url: str, path: str, verify_git: bool = True):
        """
        Args:
            url: Catalog repository URL
            path: Working copy directory
            verify_git: Check that the git binary works

        Raises:
            GitNotAvailableError: If git is not installed
        """
        self.url = url
        self.path = Path(path)
        self.lock = asyncio.Lock()
        if verify_git:
            self._verify_git_available()

    def _verify_git_available(self) -> None:
        try:
            result = subprocess.run(
                ['git', '--version'],
                capture_output=True,
                text=True,
                timeout=10
            )
            if result.returncode != 0:
                raise GitNotAvailableError("Git command failed")
            logger.info(f"Git available: {result.stdout.strip()}")
        except FileNotFoundError:
            raise GitNotAvailableError("Git not found. Install git in the container: apk add git")
        except subprocess.TimeoutExpired:
            raise GitNotAvailableError("Git command timed out")

    def exists(self) -> bool:
        return (self.path / '.git').exists()

    async def sync(self, branch: str) -> SyncResult:
        """
        Bring the working copy to the tip of a branch.

        Clones when the directory is absent, otherwise fetches origin, checks
        the branch out and resets it to the fetched tip.
        """
        if not self.exists():
            logger.info(f"Cloning catalog {self._sanitize_error(self.url)} (branch={branch})")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            result = await self._run_git(
                ['clone', self.url, '--quiet', '--branch', branch, str(self.path)],
                cwd=self.path.parent,
                timeout=600
            )
            if result.returncode != 0:
                return SyncResult(False, False, None, self._failure(result, "Error cloning catalog"))
            commit = await self._get_head_commit()
            return SyncResult(success=True, updated=True, commit=commit)

        logger.info(f"Updating catalog (branch={branch})")
        old_commit = await self._get_head_commit()

        steps = [
            (['fetch', 'origin'], "Error fetching catalog"),
            (['checkout', '--quiet', branch], f"Error checking out catalog branch {branch}"),
            (['reset', '--hard', '--quiet', f'origin/{branch}'], f"Error resetting catalog branch {branch}"),
        ]
        for args, message in steps:
            result = await self._run_git(args, cwd=self.path)
            if result.returncode != 0:
                return SyncResult(False, False, old_commit, self._failure(result, message))

        new_commit = await self._get_head_commit()
        updated = old_commit != new_commit
        if updated:
            logger.info(f"Catalog moved {old_commit} -> {new_commit}")
        return SyncResult(success=True, updated=updated, commit=new_commit)

    def _failure(self, result: subprocess.CompletedProcess, message: str) -> str:
        detail = self._sanitize_error(result.stderr.strip()) if result.stderr else ""
        return f"{message}: {detail}" if detail else message

    async def _run_git(self, args: List[str], cwd: Path, timeout: int = 300) -> subprocess.CompletedProcess:
        full_env = {
            **os.environ,
            'GIT_TERMINAL_PROMPT': '0',  # Disable interactive prompts
        }
        return await asyncio.to_thread(
            subprocess.run,
            ['git'] + args,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout
        )

    async def _get_head_commit(self) -> Optional[str]:
        result = await self._run_git(['rev-parse', 'HEAD'], cwd=self.path)
        return result.stdout.strip() if result.returncode == 0 else None

    @staticmethod
    def _sanitize_error(error: str) -> str:
        """Remove credentials from URLs embedded in git output"""
        return re.sub(r'(https?://)[^\s/]+@(?=[a-zA-Z0-9])', r'\1', error)
