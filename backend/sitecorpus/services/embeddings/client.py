"""Embedding service access: the OpenAI client plus retry and bisection."""

import logging
from typing import List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from sitecorpus.errors import EmbeddingServiceError
from sitecorpus.services.retry import RetryPolicy

from .models import EmbeddingResult

logger = logging.getLogger(__name__)

TOO_LARGE_MARKERS = ("maximum context length", "tokens per request", "too many tokens")


def classify_embedding_error(status_code: Optional[int], message: str) -> EmbeddingServiceError:
    lowered = (message or "").lower()
    too_large = status_code == 413 or any(marker in lowered for marker in TOO_LARGE_MARKERS)
    retryable = not too_large and (status_code is None or status_code == 429 or status_code >= 500)
    return EmbeddingServiceError(message, status_code=status_code, retryable=retryable, too_large=too_large)


class EmbeddingBackend(Protocol):
    async def create(self, texts: List[str]) -> EmbeddingResult:
        ...


class OpenAIEmbeddingBackend:
    """Raw embeddings call; every failure surfaces as ``EmbeddingServiceError``."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", client: Optional[AsyncOpenAI] = None):
        self.model = model
        # Retries are handled by RetryPolicy
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=0)

    async def create(self, texts: List[str]) -> EmbeddingResult:
        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
        except openai.APIStatusError as exc:
            raise classify_embedding_error(exc.status_code, str(exc)) from exc
        except openai.APIConnectionError as exc:
            raise classify_embedding_error(None, str(exc)) from exc
        vectors = [item.embedding for item in sorted(response.data, key=lambda item: item.index)]
        tokens = response.usage.total_tokens if response.usage else 0
        return EmbeddingResult(vectors=vectors, tokens=tokens)


def _retryable(exc: Exception) -> bool:
    return isinstance(exc, EmbeddingServiceError) and exc.retryable


def embedding_retry_policy(max_attempts: int = 5, base_delay: float = 1.0) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        backoff="exponential",
        is_retryable=_retryable,
    )


class EmbeddingDispatcher:
    """Embeds one batch, retrying overload errors and bisecting oversize batches."""

    def __init__(
        self,
        backend: EmbeddingBackend,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.backend = backend
        self.retry_policy = retry_policy or embedding_retry_policy()

    async def embed(self, texts: List[str]) -> EmbeddingResult:
        """Vectors for ``texts`` in order.

        Texts that could not be embedded after retries and bisection come
        back as ``None`` and are counted in ``failed``.
        """
        if not texts:
            return EmbeddingResult(vectors=[], tokens=0, calls=0)
        calls = 0

        async def attempt() -> EmbeddingResult:
            nonlocal calls
            calls += 1
            return await self.backend.create(texts)

        try:
            result = await self.retry_policy.run(attempt)
        except EmbeddingServiceError as exc:
            if exc.too_large and len(texts) > 1:
                middle = len(texts) // 2
                logger.info("Batch of %d too large, bisecting", len(texts))
                left = await self.embed(texts[:middle])
                right = await self.embed(texts[middle:])
                return EmbeddingResult(
                    vectors=left.vectors + right.vectors,
                    tokens=left.tokens + right.tokens,
                    calls=calls + left.calls + right.calls,
                    failed=left.failed + right.failed,
                    errors=left.errors + right.errors,
                )
            logger.warning("Embedding batch of %d failed after %d call(s): %s", len(texts), calls, exc)
            return self._failed(texts, calls)

        if len(result.vectors) != len(texts):
            logger.warning("Expected %d vectors, got %d", len(texts), len(result.vectors))
            return self._failed(texts, calls)
        result.calls = calls
        return result

    @staticmethod
    def _failed(texts: List[str], calls: int) -> EmbeddingResult:
        return EmbeddingResult(vectors=[None] * len(texts), tokens=0, calls=calls, failed=len(texts), errors=1)
