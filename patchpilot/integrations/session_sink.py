"""
Step-reporting sink clients.

The record-keeping service owns session persistence; the pipeline only ever
sends it partial updates ("apply session update"). Two implementations:

- HttpSessionSink: POST <base>/api/sessions/<id>/update (production)
- InMemorySessionSink: same merge semantics over in-process records
  (local runs, tests)
"""

import threading
from typing import Any, Dict, Optional

import httpx

from patchpilot.models.schemas import SessionUpdate
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)


class SessionSink:
    """Interface: apply one partial update to a session."""

    async def apply(self, session_id: str, update: SessionUpdate) -> None:
        raise NotImplementedError


class HttpSessionSink(SessionSink):
    """Sends session updates to the record-keeping HTTP API.

    Delivery failures are logged and swallowed: losing a progress line must
    never abort the pipeline that produced it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _update_url(self, session_id: str) -> str:
        return f"{self.base_url}/api/sessions/{session_id}/update"

    async def apply(self, session_id: str, update: SessionUpdate) -> None:
        if update.is_empty():
            return
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self._update_url(session_id), json=update.to_wire())
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Session update rejected",
                extra={"session_id": session_id, "action": "sink_rejected",
                       "extra": f"{e.response.status_code}: {e.response.text[:200]}"},
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Session update failed",
                extra={"session_id": session_id, "action": "sink_failed", "extra": str(e)},
            )


class InMemorySessionSink(SessionSink):
    """Keeps merged session records in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self.updates: list[tuple[str, SessionUpdate]] = []

    def get(self, session_id: str) -> Dict[str, Any]:
        with self._lock:
            record = self._sessions.get(session_id)
            return dict(record) if record else self._blank()

    @staticmethod
    def _blank() -> Dict[str, Any]:
        return {
            "status": "pending",
            "step": None,
            "logs": "",
            "patchDiff": None,
            "prUrl": None,
            "errorMessage": None,
        }

    async def apply(self, session_id: str, update: SessionUpdate) -> None:
        with self._lock:
            self.updates.append((session_id, update))
            record = self._sessions.setdefault(session_id, self._blank())
            if update.status is not None:
                record["status"] = update.status.value
            if update.step is not None:
                record["step"] = update.step.value
            if update.logs_append:
                record["logs"] += update.logs_append
            if update.patch_diff is not None:
                record["patchDiff"] = update.patch_diff
            if update.pr_url is not None:
                record["prUrl"] = update.pr_url
            if update.error_message is not None:
                record["errorMessage"] = update.error_message
