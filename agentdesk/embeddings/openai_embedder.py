"""
OpenAI Embedder
Generate embeddings through the shared provider rate limiter
"""

from typing import List, Optional, Tuple
from openai import AsyncOpenAI, APIError, RateLimitError
from agentdesk.config import settings
from agentdesk.core.exceptions import ProviderError, ProviderRateLimited
from agentdesk.services.rate_limiter import ProviderRateLimiter, get_rate_limiter
from agentdesk.utils.retry import ingestion_retrying
import logging

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Generate embeddings using OpenAI API"""

    def __init__(
        self,
        rate_limiter: Optional[ProviderRateLimiter] = None,
        retry_backoff: Optional[float] = None,
    ):
        self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.model = settings.EMBEDDING_MODEL
        self.dimensions = settings.EMBEDDING_DIMENSIONS
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.retry_backoff = retry_backoff

    async def embed(self, text: str) -> List[float]:
        """
        Generate embedding for a single text

        Args:
            text: Text to embed

        Returns:
            Full-length embedding vector

        Raises:
            ProviderRateLimited: Provider throttled the call
            ProviderError: Any other provider failure, or a short vector
        """
        await self.rate_limiter.await_turn()

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=[text],
                dimensions=self.dimensions
            )
        except RateLimitError as e:
            raise ProviderRateLimited(f"Embedding rate limited: {e}") from e
        except (APIError, TimeoutError, ConnectionError) as e:
            raise ProviderError(f"Embedding request failed: {e}") from e

        embedding = list(response.data[0].embedding)
        if len(embedding) != self.dimensions:
            raise ProviderError(
                f"Embedding has {len(embedding)} dimensions, expected {self.dimensions}"
            )
        return embedding

    async def embed_for_ingestion(self, text: str) -> Tuple[Optional[List[float]], Optional[str]]:
        """
        Embed a chunk during ingestion without raising

        Throttled calls are retried once after a fixed backoff. Any final
        failure yields ``(None, error)`` so sibling chunks keep going.

        Returns:
            (embedding, None) on success, (None, error message) on failure
        """
        try:
            async for attempt in ingestion_retrying(self.retry_backoff):
                with attempt:
                    return await self.embed(text), None
        except ProviderError as e:
            logger.warning(f"Storing chunk without embedding: {e}")
            return None, str(e)
