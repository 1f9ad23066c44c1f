"""
Per-session workspace directories.
"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

_SAFE_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

REPO_SUBDIR = "repo"


@dataclass(frozen=True)
class Workspace:
    session_id: str
    root: Path

    @property
    def repo_dir(self) -> Path:
        return self.root / REPO_SUBDIR


class WorkspaceManager:
    """Creates one isolated directory per session under a common root."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    def path_for(self, session_id: str) -> Workspace:
        if not _SAFE_SESSION_ID_RE.match(session_id) or ".." in session_id:
            raise ValueError(f"Invalid session id for workspace: {session_id!r}")
        return Workspace(session_id=session_id, root=self.base_dir / session_id)

    def create(self, session_id: str) -> Workspace:
        """Create the workspace, discarding any checkout left by an earlier run."""
        workspace = self.path_for(session_id)
        if workspace.repo_dir.exists():
            logger.info("Removing stale checkout", extra={"session_id": session_id, "action": "workspace_reset"})
            shutil.rmtree(workspace.repo_dir)
        workspace.root.mkdir(parents=True, exist_ok=True)
        return workspace

    def get(self, session_id: str) -> Workspace | None:
        """Return an existing workspace that still holds a checkout."""
        workspace = self.path_for(session_id)
        return workspace if workspace.repo_dir.is_dir() else None

    def cleanup(self, session_id: str) -> bool:
        workspace = self.path_for(session_id)
        if not workspace.root.exists():
            return False
        try:
            shutil.rmtree(workspace.root)
            return True
        except OSError as e:
            logger.warning("Workspace cleanup failed: %s", e, extra={"session_id": session_id})
            return False
