"""
Exa search client: finds write-ups of similar bugs and their fixes.
"""

from typing import Optional

import httpx

from patchpilot.models.schemas import SearchResult
from patchpilot.utils.logger import get_logger

logger = get_logger(__name__)

EXA_SEARCH_URL = "https://api.exa.ai/search"


class SearchProviderError(Exception):
    """The search provider could not be reached or answered with an error."""


class ExaSearchClient:
    """Thin async client for the Exa ``/search`` endpoint."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        num_results: int = 5,
        url: str = EXA_SEARCH_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.num_results = num_results
        self.url = url
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> list[SearchResult]:
        """Search for similar fixes. Raises SearchProviderError on any failure."""
        if not self.configured:
            raise SearchProviderError("EXA_API_KEY not set")

        body = {
            "query": query,
            "type": "neural",
            "useAutoprompt": True,
            "numResults": self.num_results,
            "contents": {"text": True},
            "category": "github",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.url,
                    json=body,
                    headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            raise SearchProviderError(
                f"Exa API error {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SearchProviderError(f"Exa request failed: {e}") from e

        results = []
        for item in data.get("results") or []:
            results.append(SearchResult(
                title=item.get("title") or "",
                url=item.get("url") or "",
                text=item.get("text") or "",
                score=item.get("score"),
            ))
        logger.info("Exa search finished", extra={"action": "exa_search", "extra": {"results": len(results)}})
        return results
