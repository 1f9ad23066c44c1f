"""
Repository management utilities: subprocess runner, clone, dependency install.
"""

import asyncio
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

# Pattern to strip tokens/credentials from URLs in error messages
_TOKEN_URL_RE = re.compile(r"(https?://)[^@/\s]+@")

CLONE_TIMEOUT = 300.0
INSTALL_TIMEOUT = 300.0

# (manifest, lock file or None, command) checked in order; first hit wins.
_INSTALL_RULES: list[tuple[str, Optional[str], list[str]]] = [
    ("package.json", "pnpm-lock.yaml", ["pnpm", "install", "--frozen-lockfile"]),
    ("package.json", "yarn.lock", ["yarn", "install", "--frozen-lockfile"]),
    ("package.json", "package-lock.json", ["npm", "ci"]),
    ("package.json", None, ["npm", "install"]),
    ("pyproject.toml", "poetry.lock", ["poetry", "install"]),
    ("Pipfile", "Pipfile.lock", ["pipenv", "install", "--deploy"]),
    ("requirements.txt", None, ["pip", "install", "-r", "requirements.txt"]),
    ("pyproject.toml", None, ["pip", "install", "-e", "."]),
    ("setup.py", None, ["pip", "install", "-e", "."]),
]


def sanitize_output(text: str) -> str:
    """Remove embedded tokens/credentials from URLs in command output."""
    return _TOKEN_URL_RE.sub(r"\1***@", text)


class GitCommandError(Exception):
    """A git invocation exited non-zero."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = sanitize_output(stderr.strip())
        super().__init__(f"git {self.subcommand} exited with {returncode}: {self.stderr}")

    @property
    def subcommand(self) -> str:
        """First argument after ``git`` that is neither an option nor a ``-c`` value."""
        args = self.command[1:] if self.command[:1] == ["git"] else self.command
        skip_next = False
        for arg in args:
            if skip_next:
                skip_next = False
                continue
            if arg in ("-c", "-C"):
                skip_next = True
                continue
            if not arg.startswith("-"):
                return arg
        return "?"


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False


@dataclass
class InstallOutcome:
    attempted: bool
    success: bool
    command: Optional[list[str]] = None
    output: str = ""


async def run_command(
    args: Sequence[str],
    cwd: Optional[Path | str] = None,
    timeout: Optional[float] = None,
    env: Optional[dict] = None,
) -> CommandResult:
    """Run an argv command without a shell and capture its output.

    A missing executable raises FileNotFoundError; a timeout kills the child
    and returns ``timed_out=True`` with returncode -1.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return CommandResult(-1, "", f"Command timed out after {timeout:.0f}s", timed_out=True)
    return CommandResult(
        proc.returncode,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


def git_env() -> dict:
    """Environment for non-interactive git (never block on a credential prompt)."""
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


async def run_git(args: Sequence[str], cwd: Optional[Path | str] = None, timeout: Optional[float] = None) -> str:
    """Run ``git <args>`` and return stdout; raise GitCommandError on failure."""
    cmd = ["git", *args]
    result = await run_command(cmd, cwd=cwd, timeout=timeout, env=git_env())
    if result.returncode != 0:
        raise GitCommandError(cmd, result.returncode, result.stderr or result.stdout)
    return result.stdout


def detect_install_command(repo_path: Path | str) -> Optional[list[str]]:
    """Pick an installation command from the manifest/lock files present."""
    root = Path(repo_path)
    for manifest, lock_file, command in _INSTALL_RULES:
        if not (root / manifest).is_file():
            continue
        if lock_file is None or (root / lock_file).is_file():
            return list(command)
    return None


class RepoManager:
    """Manages repository checkout and dependency installation."""

    @staticmethod
    async def clone_repo(
        repo_url: str,
        branch: str,
        target_path: Path | str,
        timeout: float = CLONE_TIMEOUT,
    ) -> Path:
        """Shallow, single-branch clone of ``branch`` into ``target_path``.

        Raises:
            GitCommandError: git exited non-zero (bad branch, bad URL, auth).
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Cloning repository",
            extra={"action": "clone", "extra": {"repo": sanitize_output(repo_url), "branch": branch}},
        )
        start = time.monotonic()
        await run_git(
            ["clone", "--depth", "1", "--single-branch", "--branch", branch, repo_url, str(target)],
            timeout=timeout,
        )
        logger.info(
            "Clone finished",
            extra={"action": "clone_done", "duration_ms": round((time.monotonic() - start) * 1000)},
        )
        return target

    @staticmethod
    async def install_dependencies(repo_path: Path | str, timeout: float = INSTALL_TIMEOUT) -> InstallOutcome:
        """Install declared dependencies. Never raises."""
        command = detect_install_command(repo_path)
        if command is None:
            return InstallOutcome(attempted=False, success=True)

        try:
            result = await run_command(command, cwd=repo_path, timeout=timeout)
        except (FileNotFoundError, PermissionError) as e:
            return InstallOutcome(attempted=True, success=False, command=command,
                                  output=f"Cannot run {command[0]}: {e}")

        output = sanitize_output((result.stdout + result.stderr).strip())
        if result.timed_out:
            return InstallOutcome(attempted=True, success=False, command=command,
                                  output=f"Installation timed out after {timeout:.0f}s")
        return InstallOutcome(
            attempted=True,
            success=result.returncode == 0,
            command=command,
            output=output[-2000:],
        )
