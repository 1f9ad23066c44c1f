"""
Active-run registry

At most one pipeline run or PR creation per session id may be in flight.
Routes claim the session before scheduling work and the background wrapper
releases it when the work ends.
"""

import threading
from typing import Dict, Optional

from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)


class ActiveRunRegistry:
    """Thread-safe map of session id -> kind of work currently running."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Dict[str, str] = {}

    def try_claim(self, session_id: str, kind: str) -> bool:
        """Claim ``session_id``; False if something is already running for it."""
        with self._lock:
            if session_id in self._active:
                logger.info("Session busy", extra={
                    "session_id": session_id, "action": "claim_rejected",
                    "extra": {"running": self._active[session_id], "requested": kind},
                })
                return False
            self._active[session_id] = kind
            return True

    def release(self, session_id: str) -> None:
        with self._lock:
            self._active.pop(session_id, None)

    def active_kind(self, session_id: str) -> Optional[str]:
        with self._lock:
            return self._active.get(session_id)

    def list_active(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._active)

    def clear(self) -> None:
        with self._lock:
            self._active.clear()


active_runs = ActiveRunRegistry()
