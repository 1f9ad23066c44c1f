"""
Debugging pipeline orchestrator

Drives one session through its stages:
1. (optional) Issue fetch when the description links a GitHub issue
2. Clone at the requested branch
3. (optional) Dependency install
4. Context mining
5. Knowledge lookup
6. Patch synthesis
7. Verification (unless skipped)
8. Finalization

Every stage announces its step through the StepReporter before running.
Fatal problems surface as PipelineError subclasses and end the session in
``failed``; advisory problems are logged and the run continues.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from patchpilot.agents.context_miner import mine_relevant_files
from patchpilot.agents.errors import AcquisitionError, PipelineError, VerificationFailedError
from patchpilot.agents.knowledge_lookup import KnowledgeLookup
from patchpilot.agents.patch_synthesizer import PatchOutcome, PatchSynthesizer
from patchpilot.agents.stagers import fix_branch_name
from patchpilot.agents.verifier import VerificationRunner, failure_message
from patchpilot.integrations.connection_config import PipelineConfig, resolve_config
from patchpilot.integrations.github_client import GitHubClient, compare_url, find_issue_url
from patchpilot.integrations.search_client import ExaSearchClient
from patchpilot.integrations.session_sink import HttpSessionSink, SessionSink
from patchpilot.models.schemas import (
    PipelineRequest, PipelineStep, SessionStatus, VerificationResult,
)
from patchpilot.utils.llm_client import AnthropicClient
from patchpilot.utils.logger import get_logger
from patchpilot.utils.repo_manager import GitCommandError, RepoManager, detect_install_command, sanitize_output
from patchpilot.utils.step_reporter import StepReporter
from patchpilot.utils.workspace import Workspace, WorkspaceManager

logger = get_logger(__name__)


@dataclass
class PipelineContext:
    """Per-run state handed from stage to stage."""
    request: PipelineRequest
    reporter: StepReporter
    description: str
    branch_name: str
    workspace: Optional[Workspace] = None
    candidates: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    patch: Optional[PatchOutcome] = None
    verification: Optional[VerificationResult] = None

    @property
    def session_id(self) -> str:
        return self.request.session_id


class DebugPipeline:
    """Runs the full bug-fixing workflow for one session at a time."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        sink: Optional[SessionSink] = None,
        llm_client=None,
        search_client: Optional[ExaSearchClient] = None,
        github_client: Optional[GitHubClient] = None,
        workspace_manager: Optional[WorkspaceManager] = None,
    ):
        self.config = config or resolve_config()
        self._sink = sink
        self._llm_client = llm_client
        self.search_client = search_client or ExaSearchClient(
            api_key=self.config.exa_api_key, timeout=self.config.search_timeout,
        )
        self.github_client = github_client or GitHubClient(
            token=self.config.github_token, api_url=self.config.github_api_url,
        )
        self.workspace_manager = workspace_manager or WorkspaceManager(self.config.workspace_root)

    def _sink_for(self, request: PipelineRequest) -> SessionSink:
        if self._sink is not None:
            return self._sink
        return HttpSessionSink(
            request.backend_base_url or self.config.backend_base_url,
            timeout=self.config.sink_timeout,
        )

    def _reasoning_client(self):
        """Raises ReasoningProviderUnavailable when no API key is configured."""
        if self._llm_client is None:
            self._llm_client = AnthropicClient(
                agent_name=PatchSynthesizer.AGENT_NAME,
                model=self.config.llm_model,
                api_key=self.config.anthropic_api_key,
                max_tokens=self.config.llm_max_tokens,
            )
        return self._llm_client

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, request: PipelineRequest) -> PipelineContext:
        reporter = StepReporter(request.session_id, self._sink_for(request))
        ctx = PipelineContext(
            request=request,
            reporter=reporter,
            description=request.bug_description,
            branch_name=fix_branch_name(request.session_id),
        )
        start = time.monotonic()
        logger.info("Pipeline started", extra={"session_id": ctx.session_id, "action": "pipeline_start"})

        try:
            llm_client = self._reasoning_client()
            await self._fetch_issue(ctx)
            await self._acquire(ctx)
            await self._install(ctx)
            await self._mine_context(ctx)
            await self._lookup_knowledge(ctx)
            await self._synthesize(ctx, llm_client)
            await self._verify(ctx)
            await self._finalize(ctx)
        except PipelineError as e:
            logger.warning("Pipeline failed: %s", e, extra={
                "session_id": ctx.session_id, "action": "pipeline_failed",
                "step": reporter.current_step and reporter.current_step.value,
            })
            await reporter.fail(e.user_message, log=f"✗ {e}")
        except Exception as e:
            logger.exception("Unexpected pipeline error", extra={
                "session_id": ctx.session_id, "action": "pipeline_error",
            })
            await reporter.fail(f"Unexpected error: {e}", log=f"✗ Unexpected error: {e}")
        finally:
            logger.info("Pipeline finished", extra={
                "session_id": ctx.session_id, "action": "pipeline_done",
                "duration_ms": round((time.monotonic() - start) * 1000),
                "extra": {"status": reporter.status and reporter.status.value},
            })
        return ctx

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _fetch_issue(self, ctx: PipelineContext) -> None:
        issue_url = find_issue_url(ctx.description)
        if not issue_url:
            return
        await ctx.reporter.step(
            PipelineStep.FETCHING_ISSUE, f"Fetching GitHub issue: {issue_url}", status=SessionStatus.RUNNING,
        )
        try:
            ctx.description = await self.github_client.fetch_issue_description(issue_url)
        except Exception as e:
            logger.warning("Issue fetch failed: %s", e, extra={"session_id": ctx.session_id, "action": "issue_fetch"})
            await ctx.reporter.log(f"⚠ Could not fetch issue, using the description as given: {e}")
            return
        await ctx.reporter.log("✓ Issue details fetched")

    async def _acquire(self, ctx: PipelineContext) -> None:
        request = ctx.request
        await ctx.reporter.step(
            PipelineStep.CLONING,
            f"Cloning repository: {sanitize_output(request.repo_url)} (branch: {request.branch})",
            status=SessionStatus.RUNNING,
        )
        try:
            ctx.workspace = self.workspace_manager.create(ctx.session_id)
            await RepoManager.clone_repo(request.repo_url, request.branch, ctx.workspace.repo_dir)
        except GitCommandError as e:
            raise AcquisitionError(
                f"Failed to clone repository: {e.stderr}",
                user_message=f"Git clone failed for branch '{request.branch}': {e.stderr}",
            ) from e
        except OSError as e:
            raise AcquisitionError(
                f"Failed to clone repository: {e}",
                user_message=f"Git clone failed for branch '{request.branch}': {e}",
            ) from e
        await ctx.reporter.log("✓ Repository cloned successfully")

    async def _install(self, ctx: PipelineContext) -> None:
        repo_dir = ctx.workspace.repo_dir
        if not self.config.install_dependencies:
            await ctx.reporter.log("Skipping dependency installation (disabled by configuration)")
            return
        command = detect_install_command(repo_dir)
        if command is None:
            await ctx.reporter.log("No dependency manifest found, skipping installation")
            return

        await ctx.reporter.step(PipelineStep.INSTALLING, f"Installing dependencies: {' '.join(command)}")
        outcome = await RepoManager.install_dependencies(repo_dir, timeout=self.config.install_timeout)
        if outcome.success:
            await ctx.reporter.log("✓ Dependencies installed")
        else:
            await ctx.reporter.log(f"⚠ Dependency installation failed, continuing: {outcome.output[-500:]}")

    async def _mine_context(self, ctx: PipelineContext) -> None:
        await ctx.reporter.step(PipelineStep.ANALYZING, "Analyzing codebase for relevant files...")
        try:
            candidates, strategy, keywords = mine_relevant_files(ctx.description, ctx.workspace.repo_dir)
        except Exception as e:
            logger.warning("Context mining failed: %s", e, extra={"session_id": ctx.session_id, "action": "mine"})
            await ctx.reporter.log(f"⚠ Could not analyze codebase: {e}")
            candidates, strategy, keywords = [], "none", []

        ctx.candidates = candidates
        if strategy == "keywords":
            await ctx.reporter.log(f"Searching for keywords: {', '.join(keywords)}")
        if candidates:
            listing = "\n".join(f"  - {path}" for path in candidates)
            await ctx.reporter.log(f"✓ Found {len(candidates)} relevant files:\n{listing}")
        else:
            await ctx.reporter.log("⚠ No relevant files identified")

    async def _lookup_knowledge(self, ctx: PipelineContext) -> None:
        await ctx.reporter.step(PipelineStep.SEARCHING, "Searching for similar bug fixes...")
        ctx.patterns, from_provider = await KnowledgeLookup(self.search_client).find_patterns(ctx.description)
        if from_provider:
            await ctx.reporter.log(f"✓ Found {len(ctx.patterns)} similar patterns")
        else:
            await ctx.reporter.log("⚠ Search unavailable, using general debugging patterns")

    async def _synthesize(self, ctx: PipelineContext, llm_client) -> None:
        await ctx.reporter.step(PipelineStep.GENERATING_PATCH, "Generating patch...")
        synthesizer = PatchSynthesizer(
            ctx.workspace.repo_dir, llm_client, ctx.reporter, llm_timeout=self.config.llm_timeout,
        )
        ctx.patch = await synthesizer.synthesize(ctx.description, ctx.candidates, ctx.patterns, ctx.branch_name)

        files = "\n".join(f"  - {path}" for path in ctx.patch.files)
        await ctx.reporter.update(
            status=SessionStatus.PATCH_FOUND,
            patch_diff=ctx.patch.diff,
            log=f"✓ Patch generated ({len(ctx.patch.files)} files changed):\n{files}",
        )
        if ctx.patch.explanation:
            await ctx.reporter.log(f"Explanation: {ctx.patch.explanation}")

    async def _verify(self, ctx: PipelineContext) -> None:
        if ctx.request.skip_tests:
            await ctx.reporter.log("⚠ Skipping verification (skipTests=true): the patch has not been tested")
            ctx.verification = VerificationResult(passed=True, skipped=True)
            return

        command = ctx.request.repro_command
        await ctx.reporter.step(
            PipelineStep.TESTING, f"Running tests: {command}", status=SessionStatus.TESTS_RUNNING,
        )
        runner = VerificationRunner(ctx.workspace.repo_dir, timeout=self.config.verify_timeout)
        result = await runner.run(command)
        ctx.verification = result
        await ctx.reporter.log(f"Test output:\n{result.output}")

        if result.passed:
            await ctx.reporter.log("✓ Tests passed")
            return
        if result.excerpt:
            await ctx.reporter.log("🔍 Key test errors:\n" + "\n".join(result.excerpt))
        summary = failure_message(result).split("\n\n", 1)[0]
        raise VerificationFailedError(summary, user_message=failure_message(result))

    async def _finalize(self, ctx: PipelineContext) -> None:
        await ctx.reporter.step(PipelineStep.FINALIZING, "Finalizing...")
        provisional = compare_url(ctx.request.repo_url, ctx.request.branch, ctx.branch_name)
        await ctx.reporter.update(
            status=SessionStatus.COMPLETED,
            step=PipelineStep.READY,
            pr_url=provisional,
            log=f"✓ Pipeline completed. Review the changes: {provisional}",
        )
