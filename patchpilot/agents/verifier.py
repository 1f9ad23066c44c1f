"""
Verification: run the reproduction command against the patched checkout.
"""

import asyncio
import os
import re
import signal
from pathlib import Path

from patchpilot.models.schemas import VerificationResult
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

MAX_EXCERPT_MATCHES = 3
CONTEXT_BEFORE = 2
CONTEXT_AFTER = 3
MAX_EXCERPT_LINES = 15

_FAILURE_MARKER_RE = re.compile(
    r"AssertionError|TypeError|ReferenceError|SyntaxError"
    r"|\d+\s+failing"
    r"|\bFAIL(?:ED)?\b|\bERROR\b"
)

FAILURE_SUGGESTIONS = (
    "Add more detail to the bug description (error message, stack trace, affected file).",
    "Paste a GitHub issue URL as the bug description so its full context is fetched.",
    "Double-check the reproduction command runs the relevant tests from the repository root.",
)


def extract_error_excerpt(output: str) -> list[str]:
    """Lines around the first few failure markers, de-duplicated and capped."""
    lines = output.splitlines()
    picked: list[int] = []
    matches = 0
    for index, line in enumerate(lines):
        if not _FAILURE_MARKER_RE.search(line):
            continue
        start = max(0, index - CONTEXT_BEFORE)
        end = min(len(lines), index + CONTEXT_AFTER + 1)
        for i in range(start, end):
            if i not in picked:
                picked.append(i)
        matches += 1
        if matches >= MAX_EXCERPT_MATCHES:
            break
    return [lines[i] for i in sorted(picked)][:MAX_EXCERPT_LINES]


def failure_message(result: VerificationResult) -> str:
    if result.timed_out:
        head = "Tests did not finish after applying patch (reproduction command timed out)."
    elif result.exit_code is None:
        head = "Tests could not be run after applying patch (reproduction command failed to start)."
    else:
        head = f"Tests failed after applying patch (exit code {result.exit_code})."
    parts = [head]
    if result.excerpt:
        parts.append("Key test errors:\n" + "\n".join(result.excerpt))
    parts.append("Suggestions:\n" + "\n".join(f"- {s}" for s in FAILURE_SUGGESTIONS))
    parts.append("Full output:\n" + result.output)
    return "\n\n".join(parts)


class VerificationRunner:
    """Runs the caller's reproduction command through the shell."""

    def __init__(self, repo_path: str | Path, timeout: float | None = 900.0):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    async def _read_stream(self, stream: asyncio.StreamReader, chunks: list[str]) -> None:
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            chunks.append(chunk.decode(errors="replace"))

    @staticmethod
    def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
        """Kill the shell and everything it started (it leads its own session)."""
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    async def run(self, command: str) -> VerificationResult:
        """Exit code 0 passes; anything else, a spawn error or a timeout fails."""
        logger.info("Running reproduction command", extra={"action": "verify_start", "extra": command})
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                cwd=str(self.repo_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            output = f"Could not start reproduction command: {e}"
            return VerificationResult(passed=False, exit_code=None, output=output,
                                      excerpt=[output])

        chunks: list[str] = []
        timed_out = False
        try:
            await asyncio.wait_for(self._read_stream(proc.stdout, chunks), timeout=self.timeout)
            exit_code = await proc.wait()
        except asyncio.TimeoutError:
            timed_out = True
            self._kill_process_group(proc)
            exit_code = await proc.wait()
            chunks.append(f"\n[reproduction command killed after {self.timeout:.0f}s]\n")

        output = "".join(chunks)
        passed = exit_code == 0 and not timed_out
        excerpt = [] if passed else extract_error_excerpt(output)
        logger.info("Reproduction command finished", extra={
            "action": "verify_done", "extra": {"exit_code": exit_code, "passed": passed, "timed_out": timed_out},
        })
        return VerificationResult(
            passed=passed,
            exit_code=exit_code,
            output=output,
            excerpt=excerpt,
            timed_out=timed_out,
        )
