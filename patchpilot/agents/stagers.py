"""
PR staging for the patch pipeline

Handles the git side of a patch:
- Branch creation
- File writing + staging
- Commit creation (local hooks bypassed)
- Diff against the parent commit
- Pushing the fix branch
"""

import os
from pathlib import Path

from patchpilot.utils.logger import get_logger
from patchpilot.utils.repo_manager import GitCommandError, git_env, run_command, run_git

logger = get_logger(__name__)

COMMIT_AUTHOR_NAME = "PatchPilot"
COMMIT_AUTHOR_EMAIL = "patchpilot@users.noreply.github.com"
COMMIT_SUBJECT_CHARS = 50


def fix_branch_name(session_id: str) -> str:
    """Deterministic fix branch for a session."""
    prefix = "".join(c if c.isalnum() or c in "-_" else "-" for c in session_id[:8]).lower()
    return f"patchpilot-fix-{prefix}" if prefix else "patchpilot-fix"


def commit_message(bug_description: str) -> str:
    summary = " ".join(bug_description.split())[:COMMIT_SUBJECT_CHARS]
    return f"fix: {summary}" if summary else "fix: automated patch"


class UnsafePathError(ValueError):
    """A patch path points outside the checkout."""


class PRStager:
    """Stages a patch locally without pushing."""

    def __init__(self, repo_path: str | Path):
        self.repo_path = Path(repo_path)

    def resolve(self, file_path: str) -> Path:
        """Map a repository-relative path onto the checkout, refusing escapes."""
        normalized = file_path.strip().strip("`'\"").replace("\\", "/")
        while normalized.startswith("./"):
            normalized = normalized[2:]
        normalized = normalized.lstrip("/")
        if not normalized:
            raise UnsafePathError(f"Empty path: {file_path!r}")

        root = os.path.realpath(self.repo_path)
        resolved = os.path.realpath(os.path.join(root, normalized))
        if not resolved.startswith(root + os.sep):
            raise UnsafePathError(f"Path escapes repository: {file_path}")
        if os.sep + ".git" + os.sep in resolved[len(root):] + os.sep:
            raise UnsafePathError(f"Refusing to write inside .git: {file_path}")
        return Path(resolved)

    def relative(self, full_path: Path) -> str:
        return full_path.relative_to(os.path.realpath(self.repo_path)).as_posix()

    async def create_branch(self, branch_name: str) -> str:
        await run_git(["checkout", "-b", branch_name], cwd=self.repo_path)
        logger.info("Created branch", extra={"action": "create_branch", "extra": branch_name})
        return branch_name

    async def stage_file(self, file_path: str, content: str) -> str:
        """Write the full replacement content and ``git add`` it.

        Returns the normalized repository-relative path.
        """
        full_path = self.resolve(file_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content)
        rel_path = self.relative(full_path)
        await run_git(["add", "--", rel_path], cwd=self.repo_path)
        logger.info("Staged file", extra={"action": "stage_file", "extra": rel_path})
        return rel_path

    async def create_commit(self, message: str) -> str:
        """Commit staged changes with ``--no-verify`` and return the commit SHA."""
        await run_git(
            [
                "-c", f"user.name={COMMIT_AUTHOR_NAME}",
                "-c", f"user.email={COMMIT_AUTHOR_EMAIL}",
                "commit", "--no-verify", "-m", message,
            ],
            cwd=self.repo_path,
        )
        sha = (await run_git(["rev-parse", "HEAD"], cwd=self.repo_path)).strip()
        logger.info("Commit created", extra={"action": "commit", "extra": sha[:7]})
        return sha

    async def has_staged_changes(self, rel_path: str) -> bool:
        """True when the index differs from HEAD for ``rel_path``."""
        cmd = ["git", "diff", "--cached", "--quiet", "--", rel_path]
        result = await run_command(cmd, cwd=self.repo_path, env=git_env())
        if result.returncode not in (0, 1):
            raise GitCommandError(cmd, result.returncode, result.stderr)
        return result.returncode == 1

    async def diff_against_parent(self) -> str:
        return await run_git(["diff", "HEAD~1", "HEAD"], cwd=self.repo_path)

    async def push_branch(self, remote_url: str, branch_name: str) -> None:
        await run_git(["push", remote_url, f"{branch_name}:{branch_name}"], cwd=self.repo_path, timeout=120)
        logger.info("Pushed branch", extra={"action": "push", "extra": branch_name})
