"""
Patch synthesis

Three reasoning-provider calls around a git staging step:
1. Root-cause summary (advisory, logged verbatim)
2. Patch generation (whole-file replacements in a loosely specified format)
3. Diff explanation (advisory, logged)

The patch text is parsed by the ordered strategies in patch_extractors; the
first strategy that modifies at least one file wins. Modified files land on a
dedicated branch as a single commit.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from patchpilot.agents import prompts
from patchpilot.agents.errors import PatchExtractionError, ReasoningProviderUnavailable
from patchpilot.agents.patch_extractors import EXTRACTION_STRATEGIES, ExtractionStrategy
from patchpilot.agents.stagers import PRStager, UnsafePathError, commit_message
from patchpilot.models.schemas import PatchFile
from patchpilot.utils.logger import get_logger
from patchpilot.utils.repo_manager import GitCommandError
from patchpilot.utils.step_reporter import StepReporter

logger = get_logger(__name__)


@dataclass
class PatchOutcome:
    files: list[str]
    strategy: str
    commit_sha: str
    diff: str
    root_cause: str = ""
    explanation: str = ""
    skipped: list[str] = field(default_factory=list)


class PatchSynthesizer:
    """Asks the reasoning provider for a fix and commits whatever applies."""

    AGENT_NAME = "patch_synthesizer"

    def __init__(
        self,
        repo_path: str | Path,
        llm_client,
        reporter: StepReporter,
        llm_timeout: float = 120.0,
        strategies: Optional[Sequence[tuple[str, ExtractionStrategy]]] = None,
    ):
        self.repo_path = Path(repo_path)
        self.llm_client = llm_client
        self.reporter = reporter
        self.llm_timeout = llm_timeout
        self.strategies = list(strategies or EXTRACTION_STRATEGIES)
        self.stager = PRStager(repo_path)

    # ------------------------------------------------------------------
    # Reasoning provider
    # ------------------------------------------------------------------

    async def _ask(self, messages: list[dict], purpose: str) -> str:
        try:
            return await asyncio.wait_for(self.llm_client.complete_chat(messages), timeout=self.llm_timeout)
        except asyncio.TimeoutError as e:
            raise ReasoningProviderUnavailable(
                f"{purpose} timed out after {self.llm_timeout:.0f}s",
                user_message=f"Reasoning provider timed out during {purpose}",
            ) from e
        except ReasoningProviderUnavailable:
            raise
        except Exception as e:
            raise ReasoningProviderUnavailable(
                f"{purpose} failed: {e}",
                user_message=f"Reasoning provider call failed during {purpose}: {e}",
            ) from e

    async def _ask_advisory(self, messages: list[dict], purpose: str) -> str:
        try:
            return (await self._ask(messages, purpose)).strip()
        except ReasoningProviderUnavailable as e:
            await self.reporter.log(f"⚠ {purpose.capitalize()} unavailable: {e}")
            return ""

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def read_candidates(self, candidate_files: Sequence[str]) -> list[tuple[str, str]]:
        contents = []
        for rel_path in candidate_files:
            try:
                text = self.stager.resolve(rel_path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError, UnsafePathError) as e:
                logger.warning("Skipping unreadable candidate %s: %s", rel_path, e,
                               extra={"agent_name": self.AGENT_NAME, "action": "read_skip"})
                continue
            contents.append((rel_path, text))
        return contents

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    async def apply_files(self, files: list[PatchFile]) -> tuple[list[str], list[str]]:
        """Write and stage each file. Returns (modified, skipped).

        Files whose new content matches HEAD count as skipped.
        """
        modified, skipped = [], []
        for patch_file in files:
            try:
                rel_path = await self.stager.stage_file(patch_file.path, patch_file.content)
                changed = await self.stager.has_staged_changes(rel_path)
            except (UnsafePathError, OSError, GitCommandError) as e:
                skipped.append(patch_file.path)
                await self.reporter.log(f"✗ Could not apply fix to {patch_file.path}: {e}")
                continue
            if not changed:
                skipped.append(patch_file.path)
                await self.reporter.log(f"⚠ Proposed fix leaves {rel_path} unchanged")
                continue
            if rel_path not in modified:
                modified.append(rel_path)
        return modified, skipped

    async def extract_and_apply(
        self, model_output: str, candidate_files: Sequence[str]
    ) -> tuple[list[str], str, list[str]]:
        """Run the strategy chain. Raises PatchExtractionError when nothing applies."""
        all_skipped: list[str] = []
        for name, strategy in self.strategies:
            files = strategy(model_output, list(candidate_files))
            if not files:
                continue
            modified, skipped = await self.apply_files(files)
            all_skipped.extend(skipped)
            if modified:
                logger.info("Patch extracted", extra={
                    "agent_name": self.AGENT_NAME, "action": "extract",
                    "extra": {"strategy": name, "files": modified},
                })
                return modified, name, all_skipped

        raise PatchExtractionError(
            "No files were modified by the patch",
            user_message=(
                "Could not extract a patch from the model response: no `FILE: <path>` "
                "block, bold file label, or usable code block was found"
            ),
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def synthesize(
        self,
        bug_description: str,
        candidate_files: Sequence[str],
        patterns: list[str],
        branch_name: str,
    ) -> PatchOutcome:
        files = self.read_candidates(candidate_files)
        if not files:
            await self.reporter.log("⚠ No readable candidate files; asking for a fix from the description alone")

        await self.reporter.log("Analyzing root cause...")
        root_cause = await self._ask_advisory(
            prompts.root_cause_messages(bug_description, files, patterns), "root cause analysis"
        )
        if root_cause:
            await self.reporter.log(f"Root cause: {root_cause}")

        await self.reporter.log("Generating patch with the reasoning provider...")
        model_output = await self._ask(
            prompts.patch_messages(bug_description, files, patterns), "patch generation"
        )

        await self.stager.create_branch(branch_name)
        modified, strategy, skipped = await self.extract_and_apply(
            model_output, [path for path, _ in files] or list(candidate_files)
        )

        commit_sha = await self.stager.create_commit(commit_message(bug_description))
        diff = await self.stager.diff_against_parent()

        explanation = await self._ask_advisory(prompts.explain_messages(diff), "diff explanation")

        return PatchOutcome(
            files=modified,
            strategy=strategy,
            commit_sha=commit_sha,
            diff=diff,
            root_cause=root_cause,
            explanation=explanation,
            skipped=skipped,
        )
