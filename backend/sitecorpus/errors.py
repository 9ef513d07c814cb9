"""Error taxonomy shared by the crawl and embedding pipelines."""

from typing import Optional


class CorpusError(Exception):
    """Base error for sitecorpus."""


class FetchError(CorpusError):
    def __init__(self, message: str, retryable: bool = False, timed_out: bool = False):
        super().__init__(message)
        self.retryable = retryable
        self.timed_out = timed_out


class ExtractionError(CorpusError):
    """Content could not be parsed as its declared type."""


class EmbeddingServiceError(CorpusError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        too_large: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.too_large = too_large

