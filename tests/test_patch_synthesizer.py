"""
Tests for patch synthesis

Verifies:
- Strategy fallback from file label to bold label
- Paths escaping the checkout are skipped and logged
- Advisory calls degrade on timeout
- Nothing is committed when extraction fails
"""

import asyncio

import pytest

from patchpilot.agents.errors import PatchExtractionError, ReasoningProviderUnavailable
from patchpilot.agents.patch_synthesizer import PatchSynthesizer
from patchpilot.integrations.session_sink import InMemorySessionSink
from patchpilot.utils.step_reporter import StepReporter
from tests.helpers import FakeLLM, git, make_repo


@pytest.fixture
def repo(tmp_path):
    return make_repo(tmp_path / "repo", {"src/app.js": "module.exports = () => 1;\n"})


def _synth(repo, llm, sink, **kwargs):
    return PatchSynthesizer(repo, llm, StepReporter("s", sink), **kwargs)


@pytest.mark.asyncio
async def test_bold_label_fallback(repo):
    sink = InMemorySessionSink()
    llm = FakeLLM("cause", "**File: src/app.js**\n```js\nmodule.exports = () => 2;\n```", "explains")
    outcome = await _synth(repo, llm, sink).synthesize("wrong value", ["src/app.js"], ["p"], "patchpilot-fix-s")

    assert outcome.strategy == "bold_label"
    assert outcome.files == ["src/app.js"]
    assert outcome.explanation == "explains"
    assert (repo / "src" / "app.js").read_text() == "module.exports = () => 2;\n"
    assert "+module.exports = () => 2;" in outcome.diff
    assert "src/app.js" in llm.calls[1][1]["content"]


@pytest.mark.asyncio
async def test_escaping_path_is_skipped(repo):
    sink = InMemorySessionSink()
    output = (
        "FILE: ../../evil.js\n```\nbad\n```\n"
        "FILE: src/app.js\n```\nmodule.exports = () => 3;\n```"
    )
    outcome = await _synth(repo, FakeLLM("c", output, "e"), sink).synthesize(
        "bug", ["src/app.js"], [], "patchpilot-fix-s",
    )

    assert outcome.files == ["src/app.js"]
    assert outcome.skipped == ["../../evil.js"]
    assert "✗ Could not apply fix to ../../evil.js" in sink.get("s")["logs"]


@pytest.mark.asyncio
async def test_extraction_failure_leaves_history_untouched(repo):
    synth = _synth(repo, FakeLLM("c", "no code here"), InMemorySessionSink())
    with pytest.raises(PatchExtractionError):
        await synth.synthesize("bug", ["src/app.js"], [], "patchpilot-fix-s")
    assert git("rev-list", "--count", "HEAD", cwd=repo).strip() == "1"


@pytest.mark.asyncio
async def test_patch_generation_timeout_is_unavailable(repo):
    class SlowLLM(FakeLLM):
        async def complete_chat(self, messages, temperature=0.1):
            await asyncio.sleep(5)
            return ""

    sink = InMemorySessionSink()
    with pytest.raises(ReasoningProviderUnavailable) as exc:
        await _synth(repo, SlowLLM(), sink, llm_timeout=0.05).synthesize("bug", [], [], "b")

    assert "timed out" in exc.value.user_message
    assert "⚠ Root cause analysis unavailable" in sink.get("s")["logs"]
    assert "No readable candidate files" in sink.get("s")["logs"]


@pytest.mark.asyncio
async def test_unchanged_files_are_not_counted_as_modified(repo):
    sink = InMemorySessionSink()
    output = (
        "FILE: src/app.js\n```\nmodule.exports = () => 1;\n```\n"
        "FILE: src/extra.js\n```\nmodule.exports = 'new';\n```"
    )
    outcome = await _synth(repo, FakeLLM("c", output, "e"), sink).synthesize(
        "bug", ["src/app.js"], [], "patchpilot-fix-s",
    )

    assert outcome.files == ["src/extra.js"]
    assert outcome.skipped == ["src/app.js"]
    assert "src/app.js" not in outcome.diff
