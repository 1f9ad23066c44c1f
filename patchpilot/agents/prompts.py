"""Prompt templates for the three reasoning-provider calls."""

from patchpilot.agents.knowledge_lookup import format_patterns_for_prompt

ROOT_CAUSE_SYSTEM = (
    "You are an expert debugging assistant. Analyze bugs and identify their root causes concisely."
)

PATCH_SYSTEM = """You are an expert debugging assistant. Your task is to analyze bugs and generate precise code fixes.

Rules:
1. Provide ONLY the fixed code for each file you change
2. Format every changed file as a line `FILE: path/to/file.ext` immediately followed by a fenced code block
3. Include the complete fixed file content, not a diff and not just the changed lines
4. Be conservative - only fix what's necessary
5. Maintain the original code style and formatting
6. Use repository-relative paths exactly as given"""

EXPLAIN_SYSTEM = "You are a code review assistant. Explain code changes clearly and concisely."


def _messages(system: str, user: str) -> list[dict]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def root_cause_messages(bug_description: str, files: list[tuple[str, str]], patterns: list[str]) -> list[dict]:
    file_lines = "\n".join(
        f"File: {path} ({len(content.splitlines())} lines)" for path, content in files
    ) or "(no files identified)"
    user = f"""Analyze this bug and identify the root cause:

BUG DESCRIPTION:
{bug_description}

RELEVANT FILES:
{file_lines}

SIMILAR PATTERNS:
{chr(10).join(patterns[:3])}

Provide a concise root cause analysis (2-3 sentences)."""
    return _messages(ROOT_CAUSE_SYSTEM, user)


def patch_messages(bug_description: str, files: list[tuple[str, str]], patterns: list[str]) -> list[dict]:
    file_blocks = "\n".join(
        f"File: {path}\n```\n{content}\n```\n" for path, content in files
    ) or "(no files identified - infer the file to change from the bug description)"
    user = f"""Fix the following bug:

BUG DESCRIPTION:
{bug_description}

RELEVANT FILES:
{file_blocks}

SIMILAR BUG PATTERNS:
{format_patterns_for_prompt(patterns)}

Analyze the bug, apply insights from the similar patterns, and provide the fixed code.
Remember: `FILE: <path>` on its own line, then the complete file in a fenced block."""
    return _messages(PATCH_SYSTEM, user)


def explain_messages(diff: str) -> list[dict]:
    user = f"""Explain what this code change does and why it fixes the bug:

```diff
{diff}
```

Provide a brief explanation (2-3 sentences)."""
    return _messages(EXPLAIN_SYSTEM, user)
