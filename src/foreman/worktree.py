"""Isolated working copies for agents.

Each agent gets its own git worktree on a throwaway branch so concurrent
agents working on the same repository do not collide:
- worktrees live under <source>/.agent-worktrees/<label>
- a repository is initialized when the source directory is not one yet
- the seed document (CLAUDE.md / AGENTS.md) is written into the worktree
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import WorktreeError

logger = logging.getLogger(__name__)

WORKTREE_DIR = ".agent-worktrees"
DEFAULT_SEED_FILENAME = "CLAUDE.md"


@dataclass
class IsolatedCopy:
    path: str
    label: str


class WorktreeManager:
    """Creates and removes git worktrees for agents."""

    async def create_isolated_copy(
        self,
        source_dir: str,
        label: str,
        seed_document: str | None = None,
        seed_filename: str = DEFAULT_SEED_FILENAME,
    ) -> IsolatedCopy:
        """Create a worktree of source_dir on a new branch named label.

        Raises:
            WorktreeError: If git fails or the source directory is missing.
        """
        source = Path(source_dir)
        if not source.is_dir():
            raise WorktreeError(f"Source directory does not exist: {source_dir}")

        base = source / WORKTREE_DIR
        base.mkdir(parents=True, exist_ok=True)
        worktree_path = base / label

        returncode, _, _ = await self._git(source, "rev-parse", "--git-dir")
        if returncode != 0:
            logger.info("Initializing git repository in %s", source)
            await self._git_checked(source, "init")
            await self._git_checked(
                source,
                "-c",
                "user.name=foreman",
                "-c",
                "user.email=foreman@localhost",
                "commit",
                "--allow-empty",
                "-m",
                "init",
            )

        await self._git_checked(source, "worktree", "add", "-b", label, str(worktree_path))

        if seed_document:
            self.update_seed_document(str(worktree_path), seed_document, seed_filename)

        logger.info("Created worktree %s on branch %s", worktree_path, label)
        return IsolatedCopy(path=str(worktree_path), label=label)

    async def remove_isolated_copy(self, source_dir: str, path: str, label: str) -> None:
        """Remove a worktree and its branch. Missing pieces are ignored."""
        source = Path(source_dir)
        returncode, _, stderr = await self._git(source, "worktree", "remove", path, "--force")
        if returncode != 0:
            logger.debug("Worktree remove failed for %s: %s", path, stderr)
        returncode, _, stderr = await self._git(source, "branch", "-D", label)
        if returncode != 0:
            logger.debug("Branch delete failed for %s: %s", label, stderr)

    def update_seed_document(
        self, path: str, content: str, filename: str = DEFAULT_SEED_FILENAME
    ) -> None:
        (Path(path) / filename).write_text(content)

    async def _git_checked(self, cwd: Path, *args: str) -> str:
        returncode, stdout, stderr = await self._git(cwd, *args)
        if returncode != 0:
            raise WorktreeError(f"git {args[0]} failed in {cwd}", detail=stderr)
        return stdout

    async def _git(self, cwd: Path, *args: str) -> tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise WorktreeError("git is not available", detail=str(e)) from e
        stdout, stderr = await proc.communicate()
        return (
            proc.returncode or 0,
            stdout.decode(errors="replace").strip(),
            stderr.decode(errors="replace").strip(),
        )
