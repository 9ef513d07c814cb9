"""Scores every entity that has documents and overwrites its Keyword Score row."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .engine import score_entity

logger = logging.getLogger(__name__)


@dataclass
class ScoringRunSummary:
    processed: int = 0
    with_keywords: int = 0
    documents: int = 0
    tiers: Dict[str, int] = field(default_factory=lambda: {"tier1": 0, "tier2": 0, "tier3": 0})

    def as_dict(self) -> Dict[str, object]:
        return {
            "processed": self.processed,
            "with_keywords": self.with_keywords,
            "documents": self.documents,
            "tiers": dict(self.tiers),
        }


class ScoringRunner:
    def __init__(
        self,
        documents,
        scores,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.documents = documents
        self.scores = scores
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        logger.info(message)
        if self.progress_callback:
            self.progress_callback(message)

    async def run(self, batch_id: Optional[str] = None, now: Optional[datetime] = None) -> ScoringRunSummary:
        now = now or datetime.utcnow()
        entity_ids = await self.documents.entity_ids_with_documents(batch_id=batch_id)
        self._log(f"Scoring {len(entity_ids)} entities")

        summary = ScoringRunSummary()
        for entity_id in entity_ids:
            docs = await self.documents.documents_for_scoring(entity_id)
            if not docs:
                continue
            result = score_entity(docs, now)
            await self.scores.replace(entity_id, result)

            summary.processed += 1
            summary.documents += result.documents_analyzed
            if result.total_score > 0:
                summary.with_keywords += 1
            summary.tiers[result.tier.value] += 1
            if summary.processed % 50 == 0:
                self._log(f"Scored {summary.processed}/{len(entity_ids)} entities")

        self._log(
            "Scoring complete: %d entities, %d with keywords, tiers %s"
            % (summary.processed, summary.with_keywords, summary.tiers)
        )
        return summary
