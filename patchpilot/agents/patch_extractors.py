"""
Patch extraction strategies.

Each strategy is a pure function ``(model_output, candidate_files) ->
list[PatchFile]``. The synthesizer tries them in EXTRACTION_STRATEGIES order
and keeps the first one whose files actually apply.
"""

import re
from typing import Callable, Sequence

from patchpilot.models.schemas import PatchFile

ExtractionStrategy = Callable[[str, Sequence[str]], list[PatchFile]]

_FENCE_BODY = r"```[^\n]*\n(?P<body>.*?)\n?```"

# FILE: path/to/file.ext
# ```lang
# ...
# ```
_PRIMARY_RE = re.compile(r"FILE:[ \t]*(?P<path>[^\n]+?)[ \t]*\n" + _FENCE_BODY, re.DOTALL)

# **File: path/to/file.ext**
# ```lang
_BOLD_RE = re.compile(
    r"\*\*File:[ \t]*(?P<path>[^\n*]+?)[ \t]*\*\*[ \t]*\n(?:[ \t]*\n)*" + _FENCE_BODY,
    re.DOTALL,
)

_FIRST_FENCE_RE = re.compile(_FENCE_BODY, re.DOTALL)


def _clean_path(raw: str) -> str:
    return raw.strip().strip("`*'\"").strip()


def _clean_content(raw: str) -> str:
    content = raw.strip()
    return content + "\n" if content else ""


def _collect(pattern: re.Pattern, model_output: str) -> list[PatchFile]:
    files: dict[str, PatchFile] = {}
    for match in pattern.finditer(model_output):
        path = _clean_path(match.group("path"))
        content = _clean_content(match.group("body"))
        if path and content:
            # A later block for the same file supersedes an earlier one.
            files[path] = PatchFile(path=path, content=content)
    return list(files.values())


def extract_file_labeled(model_output: str, candidate_files: Sequence[str] = ()) -> list[PatchFile]:
    """``FILE: <path>`` line immediately followed by a fenced block."""
    return _collect(_PRIMARY_RE, model_output)


def extract_bold_labeled(model_output: str, candidate_files: Sequence[str] = ()) -> list[PatchFile]:
    """``**File: <path>**`` followed by a fenced block."""
    return _collect(_BOLD_RE, model_output)


def extract_unlabeled_block(model_output: str, candidate_files: Sequence[str] = ()) -> list[PatchFile]:
    """First fenced block applied to the first candidate.

    Only used when no labeled block is present at all; a labeled but
    unusable answer is not second-guessed.
    """
    if not candidate_files:
        return []
    if extract_file_labeled(model_output) or extract_bold_labeled(model_output):
        return []
    match = _FIRST_FENCE_RE.search(model_output)
    if not match:
        return []
    content = _clean_content(match.group("body"))
    if not content:
        return []
    return [PatchFile(path=candidate_files[0], content=content)]


EXTRACTION_STRATEGIES: list[tuple[str, ExtractionStrategy]] = [
    ("file_label", extract_file_labeled),
    ("bold_label", extract_bold_labeled),
    ("unlabeled_block", extract_unlabeled_block),
]
