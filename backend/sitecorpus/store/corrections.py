from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from sitecorpus.models.url_correction import UrlCorrection
from sitecorpus.services.discovery.models import Discovery


class UrlCorrectionStore:
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def record(self, entity_id: str, old_url: Optional[str], discovery: Discovery) -> None:
        async with self.session_maker() as session:
            session.add(
                UrlCorrection(
                    entity_id=entity_id,
                    old_url=old_url,
                    new_url=discovery.url,
                    discovery_method=discovery.strategy,
                    discovery_details=dict(discovery.details),
                    confidence=discovery.confidence,
                    http_status=discovery.http_status,
                    validated=True,
                )
            )
            await session.commit()
