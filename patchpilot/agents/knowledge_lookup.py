"""
External knowledge lookup: similar bugs and how they were fixed.

Always returns a non-empty advisory list; provider trouble of any kind falls
back to generic debugging heuristics.
"""

import re
from typing import Optional

from patchpilot.agents.context_miner import extract_keywords
from patchpilot.integrations.search_client import ExaSearchClient, SearchProviderError
from patchpilot.models.schemas import SearchResult
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

SNIPPET_CHARS = 300
QUERY_KEYWORDS = 3
QUERY_STOP_WORDS = ("from", "error", "exception")

_ERROR_TYPE_RE = re.compile(r"(\w+Error|\w+Exception)")

FALLBACK_PATTERNS = (
    "Pattern 1: Check for null/undefined values before accessing properties or methods",
    "Pattern 2: Add proper error handling with try-catch blocks around risky operations",
    "Pattern 3: Ensure async operations are properly awaited and promises are handled",
    "Pattern 4: Validate input parameters at function entry points",
    "Pattern 5: Add type checking or type guards before operations on dynamic types",
)


def fallback_patterns() -> list[str]:
    return list(FALLBACK_PATTERNS)


def extract_error_type(text: str) -> Optional[str]:
    match = _ERROR_TYPE_RE.search(text)
    return match.group(1) if match else None


def build_search_query(bug_text: str) -> str:
    parts = ["how to fix"]
    error_type = extract_error_type(bug_text)
    if error_type:
        parts.append(error_type)
    parts.extend(extract_keywords(bug_text, QUERY_STOP_WORDS)[:QUERY_KEYWORDS])
    return " ".join(parts) + " solution github issue"


def result_to_pattern(index: int, result: SearchResult) -> str:
    return f"Pattern {index} (from {result.url}):\n{result.title}\n{result.text[:SNIPPET_CHARS]}..."


def format_patterns_for_prompt(patterns: list[str]) -> str:
    if not patterns:
        return "No similar patterns found."
    return "\n\n".join(f"{i}. {p}" for i, p in enumerate(patterns, start=1))


class KnowledgeLookup:
    """Turns a bug description into a list of similar-fix patterns."""

    def __init__(self, search_client: Optional[ExaSearchClient]):
        self.search_client = search_client

    async def find_patterns(self, bug_text: str) -> tuple[list[str], bool]:
        """Return (patterns, from_provider). Never raises."""
        if self.search_client is None or not self.search_client.configured:
            logger.warning("EXA_API_KEY not set, using fallback patterns", extra={"action": "exa_skipped"})
            return fallback_patterns(), False

        query = build_search_query(bug_text)
        try:
            results = await self.search_client.search(query)
        except SearchProviderError as e:
            logger.warning("Exa search failed, using fallback patterns",
                           extra={"action": "exa_failed", "extra": str(e)})
            return fallback_patterns(), False
        except Exception:
            logger.exception("Unexpected Exa failure, using fallback patterns", extra={"action": "exa_failed"})
            return fallback_patterns(), False

        patterns = [result_to_pattern(i, r) for i, r in enumerate(results, start=1)]
        if not patterns:
            return fallback_patterns(), False
        return patterns, True
