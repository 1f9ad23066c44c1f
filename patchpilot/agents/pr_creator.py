"""
Pull request creation for completed sessions.

Triggered separately from the pipeline once a session is ``completed``.
Pushes the fix branch from the retained checkout and opens a pull request
when a GitHub token is configured; otherwise, or when push/API fails, the
provisional compare URL is recorded instead.
"""

from typing import Optional

from patchpilot.agents.errors import SubmissionRejectedError
from patchpilot.agents.stagers import PRStager, commit_message, fix_branch_name
from patchpilot.integrations.connection_config import PipelineConfig, resolve_config
from patchpilot.integrations.github_client import (
    GitHubAPIError, GitHubClient, authenticated_remote, compare_url,
)
from patchpilot.integrations.session_sink import HttpSessionSink, SessionSink
from patchpilot.models.schemas import PipelineStep, SessionSnapshot, SessionStatus, SubmissionResult
from patchpilot.utils.logger import get_logger
from patchpilot.utils.repo_manager import GitCommandError
from patchpilot.utils.step_reporter import StepReporter
from patchpilot.utils.workspace import WorkspaceManager

logger = get_logger(__name__)


def check_submittable(snapshot: SessionSnapshot) -> None:
    """Raise SubmissionRejectedError unless a PR may be created for this session."""
    if snapshot.status != SessionStatus.COMPLETED:
        raise SubmissionRejectedError(
            f"Session {snapshot.session_id} is {snapshot.status.value}",
            user_message="Session must be completed before creating a PR",
        )
    if snapshot.has_real_pr:
        raise SubmissionRejectedError(
            f"Session {snapshot.session_id} already has PR {snapshot.pr_url}",
            user_message=f"PR already created: {snapshot.pr_url}",
        )


def pr_body(bug_description: str) -> str:
    return (
        "## Automated fix by PatchPilot\n\n"
        f"### Bug description\n{bug_description}\n\n"
        "### Changes\n"
        "This patch was generated by the PatchPilot debugging pipeline and verified "
        "by running the session's reproduction command.\n\n"
        "Please review the changes before merging."
    )


class PullRequestCreator:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        sink: Optional[SessionSink] = None,
        github_client: Optional[GitHubClient] = None,
        workspace_manager: Optional[WorkspaceManager] = None,
    ):
        self.config = config or resolve_config()
        self._sink = sink
        self.github_client = github_client or GitHubClient(
            token=self.config.github_token, api_url=self.config.github_api_url,
        )
        self.workspace_manager = workspace_manager or WorkspaceManager(self.config.workspace_root)

    def _sink_for(self, snapshot: SessionSnapshot) -> SessionSink:
        if self._sink is not None:
            return self._sink
        return HttpSessionSink(
            snapshot.backend_base_url or self.config.backend_base_url,
            timeout=self.config.sink_timeout,
        )

    async def create(self, snapshot: SessionSnapshot) -> SubmissionResult:
        """Submit the session's fix branch.

        Raises:
            SubmissionRejectedError: before any side effect, when the session is
                not completed or already has a real pull request.
        """
        check_submittable(snapshot)

        reporter = StepReporter(snapshot.session_id, self._sink_for(snapshot))
        branch_name = fix_branch_name(snapshot.session_id)
        provisional = compare_url(snapshot.repo_url, snapshot.branch, branch_name)

        if snapshot.has_provisional_pr:
            await reporter.step(PipelineStep.CREATING_PR, "Creating pull request (replacing provisional link)...")
        else:
            await reporter.step(PipelineStep.CREATING_PR, "Creating pull request...")

        result = await self._submit(snapshot, reporter, branch_name)
        if result is not None:
            await reporter.update(
                step=PipelineStep.PR_CREATED,
                pr_url=result.pr_url,
                log=f"✓ Pull request created: {result.pr_url}",
            )
            return result

        await reporter.update(
            step=PipelineStep.PR_PROPOSED,
            pr_url=provisional,
            log=f"✓ Open a pull request from the comparison page: {provisional}",
        )
        return SubmissionResult(pr_url=provisional, provisional=True)

    async def _submit(
        self, snapshot: SessionSnapshot, reporter: StepReporter, branch_name: str
    ) -> Optional[SubmissionResult]:
        token = self.config.github_token
        if not token:
            await reporter.log("⚠ GITHUB_TOKEN not set, falling back to a comparison link")
            return None

        workspace = self.workspace_manager.get(snapshot.session_id)
        if workspace is None:
            await reporter.log("⚠ Checkout for this session is gone, falling back to a comparison link")
            return None

        try:
            remote = authenticated_remote(snapshot.repo_url, token)
            await PRStager(workspace.repo_dir).push_branch(remote, branch_name)
            await reporter.log(f"✓ Pushed branch {branch_name}")
            created = await self.github_client.create_pull_request(
                snapshot.repo_url,
                head=branch_name,
                base=snapshot.branch,
                title=commit_message(snapshot.bug_description),
                body=pr_body(snapshot.bug_description),
            )
        except (ValueError, GitCommandError, GitHubAPIError, OSError) as e:
            logger.warning("PR submission failed: %s", e, extra={
                "session_id": snapshot.session_id, "action": "create_pr_failed",
            })
            await reporter.log(f"⚠ Could not create pull request automatically: {e}")
            return None

        logger.info("Pull request created", extra={
            "session_id": snapshot.session_id, "action": "create_pr", "extra": created["html_url"],
        })
        return SubmissionResult(pr_url=created["html_url"], provisional=False, pr_number=created.get("number"))
