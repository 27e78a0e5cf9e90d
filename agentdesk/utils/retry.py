"""
Retry Logic Utilities

Tenacity policies for provider calls. Provider SDK errors are translated
to ProviderRateLimited/ProviderError before these policies see them.
"""

from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception_type,
    before_sleep_log,
)
from agentdesk.config import settings
from agentdesk.core.exceptions import ProviderRateLimited
import logging

logger = logging.getLogger(__name__)


def ingestion_retrying(backoff_seconds: float = None) -> AsyncRetrying:
    """
    Retry policy for ingestion embeddings

    One retry after a fixed backoff, only for provider throttling.
    The final failure is re-raised so the caller can store a null embedding.

    Usage:
        async for attempt in ingestion_retrying():
            with attempt:
                vector = await embedder.embed(text)
    """
    if backoff_seconds is None:
        backoff_seconds = settings.EMBEDDING_RETRY_BACKOFF_SECONDS

    return AsyncRetrying(
        stop=stop_after_attempt(2),
        wait=wait_fixed(backoff_seconds),
        retry=retry_if_exception_type(ProviderRateLimited),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
