"""Network source for the corpus and the versioned index.

The enhanced corpus (documents plus embeddings) is tried first; any
failure falls back to the standard corpus. ``CorpusUnavailableError`` is
raised only when both fail.
"""

from typing import Any, List, Optional
from urllib.parse import urljoin

import httpx
import structlog

from ..exceptions import CorpusFormatError, CorpusUnavailableError
from ..models import SearchDocument, parse_documents

logger = structlog.get_logger("corpus_source")


class CorpusSource:
    """Fetches corpus resources over HTTP.

    Parameters
    - base_url: URL the resource names are resolved against
    - enhanced_resource, standard_resource, versioned_index_resource:
      Resource names
    - timeout: Request timeout in seconds
    - http_client: Optional pre-built ``httpx.AsyncClient`` (not closed by
      ``close`` when supplied)
    """

    def __init__(
        self,
        base_url: str,
        enhanced_resource: str = "enhanced-search-index.json",
        standard_resource: str = "search-index.json",
        versioned_index_resource: str = "docs-index-versioned.json",
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.enhanced_resource = enhanced_resource
        self.standard_resource = standard_resource
        self.versioned_index_resource = versioned_index_resource
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.last_resource: Optional[str] = None

    def resource_url(self, resource: str) -> str:
        return urljoin(self.base_url, resource)

    async def fetch_documents(self) -> List[SearchDocument]:
        """Fetch the enhanced corpus, falling back to the standard one."""
        try:
            documents = await self._fetch_corpus(self.enhanced_resource)
        except (httpx.HTTPError, CorpusFormatError) as e:
            logger.info(
                "Enhanced index not available, falling back to standard index",
                resource=self.enhanced_resource,
                error=str(e),
            )
        else:
            self.last_resource = self.enhanced_resource
            return documents

        try:
            documents = await self._fetch_corpus(self.standard_resource)
        except (httpx.HTTPError, CorpusFormatError) as e:
            raise CorpusUnavailableError(
                f"Neither {self.enhanced_resource} nor {self.standard_resource} could be loaded: {e}"
            ) from e

        self.last_resource = self.standard_resource
        return documents

    async def fetch_versioned_index(self) -> Any:
        """Fetch the raw versioned index payload."""
        return await self._get_json(self.versioned_index_resource)

    async def close(self):
        if self._owns_client:
            await self.http_client.aclose()

    async def _fetch_corpus(self, resource: str) -> List[SearchDocument]:
        payload = await self._get_json(resource)
        documents = parse_documents(payload)
        logger.info("Fetched corpus", resource=resource, documents=len(documents))
        return documents

    async def _get_json(self, resource: str) -> Any:
        response = await self.http_client.get(self.resource_url(resource))
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise CorpusFormatError(f"{resource} is not valid JSON") from e
