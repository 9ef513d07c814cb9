from datetime import datetime

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.keyword_score import KeywordScore
from sitecorpus.services.scoring.engine import ScoreResult


class KeywordScoreStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def replace(self, entity_id: str, result: ScoreResult) -> None:
        """Overwrite the entity's score row with ``result``."""
        now = datetime.utcnow()
        scores = result.category_scores
        values = {
            "readiness_score": round(scores["readiness"], 2),
            "alignment_score": round(scores["alignment"], 2),
            "activation_score": round(scores["activation"], 2),
            "branding_score": round(scores["branding"], 2),
            "total_score": round(result.total_score, 2),
            "tier": result.tier,
            "keyword_matches": result.keyword_matches,
            "documents_analyzed": result.documents_analyzed,
            "updated_at": now,
        }
        stmt = pg_insert(KeywordScore).values(entity_id=entity_id, scored_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[KeywordScore.entity_id],
            set_={**values, "scored_at": now},
        )
        async with self.session_maker() as session:
            await session.execute(stmt)
            await session.commit()
