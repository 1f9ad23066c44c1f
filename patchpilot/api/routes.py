"""
Pipeline entry points.

Both routes return 202 as soon as the work is scheduled; results reach the
record-keeping service through session updates only.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from patchpilot.agents.errors import SubmissionRejectedError
from patchpilot.agents.pipeline import DebugPipeline
from patchpilot.agents.pr_creator import PullRequestCreator, check_submittable
from patchpilot.api.models import AcceptedResponse, HealthResponse
from patchpilot.api.session_manager import active_runs
from patchpilot.models.schemas import PipelineRequest, SessionSnapshot
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["pipeline"])
health_router = APIRouter(tags=["health"])


def get_pipeline() -> DebugPipeline:
    return DebugPipeline()


def get_pr_creator() -> PullRequestCreator:
    return PullRequestCreator()


def _check_path_matches(path_id: str, body_id: str) -> None:
    if path_id != body_id:
        raise HTTPException(status_code=400, detail="Session id in path and body differ")


async def _run_pipeline(pipeline: DebugPipeline, request: PipelineRequest) -> None:
    try:
        await pipeline.run(request)
    finally:
        active_runs.release(request.session_id)


async def _create_pr(creator: PullRequestCreator, snapshot: SessionSnapshot) -> None:
    try:
        await creator.create(snapshot)
    except SubmissionRejectedError as e:
        logger.warning("PR creation rejected: %s", e, extra={"session_id": snapshot.session_id})
    except Exception:
        logger.exception("PR creation failed", extra={"session_id": snapshot.session_id, "action": "create_pr"})
    finally:
        active_runs.release(snapshot.session_id)


@router.post("/sessions/{session_id}/run", status_code=202, response_model=AcceptedResponse)
async def run_session(
    session_id: str,
    request: PipelineRequest,
    background_tasks: BackgroundTasks,
    pipeline: DebugPipeline = Depends(get_pipeline),
):
    _check_path_matches(session_id, request.session_id)
    if not active_runs.try_claim(session_id, "pipeline"):
        raise HTTPException(status_code=409, detail=f"Session {session_id} already has an active run")

    logger.info("Pipeline scheduled", extra={"session_id": session_id, "action": "run_scheduled"})
    background_tasks.add_task(_run_pipeline, pipeline, request)
    return AcceptedResponse(session_id=session_id, message="Pipeline started")


@router.post("/sessions/{session_id}/create-pr", status_code=202, response_model=AcceptedResponse)
async def create_pr(
    session_id: str,
    snapshot: SessionSnapshot,
    background_tasks: BackgroundTasks,
    creator: PullRequestCreator = Depends(get_pr_creator),
):
    _check_path_matches(session_id, snapshot.session_id)
    try:
        check_submittable(snapshot)
    except SubmissionRejectedError as e:
        raise HTTPException(status_code=400, detail=e.user_message)

    if not active_runs.try_claim(session_id, "create_pr"):
        raise HTTPException(status_code=409, detail=f"Session {session_id} already has an active run")

    background_tasks.add_task(_create_pr, creator, snapshot)
    return AcceptedResponse(session_id=session_id, message="PR creation started")


@health_router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", active_runs=active_runs.list_active())
