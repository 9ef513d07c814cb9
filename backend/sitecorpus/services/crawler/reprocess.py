"""Re-extraction of binary documents that downloaded but yielded no text."""

import logging
import uuid
from typing import Optional

from sitecorpus.services.rate_limit import RateLimiter

from .models import CrawlRunSummary
from .orchestrator import CrawlOrchestrator

logger = logging.getLogger(__name__)


async def reprocess_binary_documents(
    orchestrator: CrawlOrchestrator,
    documents,
    limit: Optional[int] = None,
    request_delay: float = 0.5,
) -> CrawlRunSummary:
    candidates = await documents.failed_binary_extractions(limit=limit)
    summary = CrawlRunSummary(batch_id=str(uuid.uuid4()))
    logger.info("Re-extracting %d binary documents", len(candidates))

    limiter = RateLimiter(request_delay)
    for entity_id, url in candidates:
        if orchestrator.stopping:
            break
        await limiter.wait()
        result = await orchestrator.refetch(entity_id, url, summary)
        summary.add(result)

    logger.info("Binary re-extraction complete: %s", summary.as_dict())
    return summary
