import asyncio
from datetime import datetime, timezone
from typing import Optional

from patchpilot.integrations.session_sink import SessionSink
from patchpilot.models.schemas import (
    STATUS_ORDER, STEP_ORDER, PipelineStep, SessionStatus, SessionUpdate,
)
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)


def timestamped(message: str) -> str:
    return f"[{datetime.now(timezone.utc).isoformat()}] {message}\n"


class StepReporter:
    """Forwards status/step transitions and log lines for one session run.

    Updates are sent one at a time under a lock so the sink sees log appends in
    call order. Status and step only move forward; ``failed`` is accepted from
    any non-terminal status.
    """

    def __init__(self, session_id: str, sink: SessionSink):
        self.session_id = session_id
        self._sink = sink
        self._lock = asyncio.Lock()
        self._status: Optional[SessionStatus] = None
        self._step: Optional[PipelineStep] = None
        self._sent: list[SessionUpdate] = []

    @property
    def status(self) -> Optional[SessionStatus]:
        return self._status

    @property
    def current_step(self) -> Optional[PipelineStep]:
        return self._step

    def _accept_status(self, status: SessionStatus) -> bool:
        current = self._status
        if current is not None and current.is_terminal:
            return False
        if status == SessionStatus.FAILED:
            return True
        if current is None:
            return True
        return STATUS_ORDER.index(status) >= STATUS_ORDER.index(current)

    def _accept_step(self, step: PipelineStep) -> bool:
        if self._step is None:
            return True
        return STEP_ORDER.index(step) >= STEP_ORDER.index(self._step)

    async def update(
        self,
        *,
        status: Optional[SessionStatus] = None,
        step: Optional[PipelineStep] = None,
        log: Optional[str] = None,
        patch_diff: Optional[str] = None,
        pr_url: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> SessionUpdate:
        """Send one merged update. ``log`` is timestamped before sending."""
        async with self._lock:
            if status is not None and not self._accept_status(status):
                logger.warning(
                    "Dropping backwards status transition",
                    extra={"session_id": self.session_id, "action": "status_regression",
                           "extra": {"from": self._status and self._status.value, "to": status.value}},
                )
                status = None
            if step is not None and not self._accept_step(step):
                logger.warning(
                    "Dropping backwards step transition",
                    extra={"session_id": self.session_id, "action": "step_regression",
                           "extra": {"from": self._step and self._step.value, "to": step.value}},
                )
                step = None

            update = SessionUpdate(
                status=status,
                step=step,
                logs_append=timestamped(log) if log else None,
                patch_diff=patch_diff,
                pr_url=pr_url,
                error_message=error_message,
            )
            if update.is_empty():
                return update

            if status is not None:
                self._status = status
            if step is not None:
                self._step = step

            self._sent.append(update)
            logger.debug(
                "Session update",
                extra={"session_id": self.session_id, "step": self._step and self._step.value,
                       "action": "session_update", "extra": log},
            )
            await self._sink.apply(self.session_id, update)
            return update

    async def log(self, message: str) -> SessionUpdate:
        return await self.update(log=message)

    async def step(
        self,
        step: PipelineStep,
        message: str,
        status: Optional[SessionStatus] = None,
    ) -> SessionUpdate:
        """Announce a stage before it executes."""
        logger.info(message, extra={"session_id": self.session_id, "step": step.value, "action": "step"})
        return await self.update(status=status, step=step, log=message)

    async def fail(self, error_message: str, log: Optional[str] = None) -> SessionUpdate:
        return await self.update(status=SessionStatus.FAILED, log=log, error_message=error_message)

    def get_sent_updates(self) -> list[SessionUpdate]:
        return list(self._sent)

    def statuses_seen(self) -> list[SessionStatus]:
        return [u.status for u in self._sent if u.status is not None]

    def steps_seen(self) -> list[PipelineStep]:
        return [u.step for u in self._sent if u.step is not None]
