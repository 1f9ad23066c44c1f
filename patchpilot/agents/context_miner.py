"""
Context mining: which files in the checkout are relevant to a bug?

Two strategies, tried in order:
1. Path tokens in the bug text ("File foo/bar.py", "at src/x.ts:12", ...)
   that exist in the checkout.
2. Keyword content search over source files, used only when (1) finds
   nothing.
"""

import os
import re
from pathlib import Path
from typing import Iterable

from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

MAX_CANDIDATES = 10
MAX_KEYWORDS = 3
MAX_MATCHES_PER_KEYWORD = 5

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "in", "on", "at",
    "to", "for", "of", "with", "by",
})

SOURCE_EXTENSIONS = (".py", ".js", ".ts", ".tsx", ".jsx", ".java", ".go", ".rb")

_SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build"})

_PATH_TOKEN_RE = re.compile(r"""(?:File |at |in )["']?([a-zA-Z0-9_\-/.]+\.[a-zA-Z]+)""")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def extract_keywords(text: str, extra_stop_words: Iterable[str] = ()) -> list[str]:
    """Lower-case, strip punctuation, drop stop words and short tokens; keep first-seen order."""
    stop = STOP_WORDS | frozenset(extra_stop_words)
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    seen: dict[str, None] = {}
    for word in words:
        if len(word) > 3 and word not in stop:
            seen.setdefault(word, None)
    return list(seen)


def _dedupe_cap(paths: Iterable[str], cap: int = MAX_CANDIDATES) -> list[str]:
    out: list[str] = []
    for p in paths:
        if p not in out:
            out.append(p)
        if len(out) >= cap:
            break
    return out


def find_path_tokens(bug_description: str, repo_path: Path | str) -> list[str]:
    """Strategy A: cue-prefixed path tokens that name an existing file."""
    root = os.path.realpath(repo_path)
    found = []
    for match in _PATH_TOKEN_RE.finditer(bug_description):
        token = match.group(1)
        candidate = token
        while candidate.startswith("./"):
            candidate = candidate[2:]
        candidate = candidate.lstrip("/")
        resolved = os.path.realpath(os.path.join(root, candidate))
        if not resolved.startswith(root + os.sep):
            continue
        if os.path.isfile(resolved):
            found.append(Path(resolved).relative_to(root).as_posix())
    return found


def _iter_source_files(root: Path):
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            if name.endswith(SOURCE_EXTENSIONS):
                yield Path(dirpath) / name


def search_keywords(keywords: list[str], repo_path: Path | str) -> list[str]:
    """Strategy B: files whose content contains each keyword (case-sensitive)."""
    root = Path(os.path.realpath(repo_path))
    found = []
    for keyword in keywords[:MAX_KEYWORDS]:
        matches = 0
        for path in _iter_source_files(root):
            try:
                text = path.read_text(encoding="utf-8", errors="ignore")
            except OSError:
                continue
            if keyword in text:
                found.append(path.relative_to(root).as_posix())
                matches += 1
                if matches >= MAX_MATCHES_PER_KEYWORD:
                    break
    return found


def mine_relevant_files(bug_description: str, repo_path: Path | str) -> tuple[list[str], str, list[str]]:
    """Return (candidates, strategy, keywords).

    ``strategy`` is "path_tokens", "keywords" or "none". Raises on I/O trouble;
    the caller decides how to degrade.
    """
    paths = find_path_tokens(bug_description, repo_path)
    if paths:
        return _dedupe_cap(paths), "path_tokens", []

    keywords = extract_keywords(bug_description)
    paths = search_keywords(keywords, repo_path)
    strategy = "keywords" if paths else "none"
    return _dedupe_cap(paths), strategy, keywords[:MAX_KEYWORDS]
