"""Data models for URL discovery."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProbeResult:
    url: str
    live: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    redirected_from: Optional[str] = None


@dataclass
class DiscoveryTarget:
    """What discovery knows about one entity."""
    entity_id: str
    name: str
    jurisdiction: Optional[str] = None
    url_hints: List[str] = field(default_factory=list)  # primary registry first
    emails: List[str] = field(default_factory=list)
    last_failed_url: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def all_hints(self) -> List[str]:
        hints = list(self.url_hints)
        if self.last_failed_url and self.last_failed_url not in hints:
            hints.append(self.last_failed_url)
        return hints

    @property
    def primary_hint(self) -> Optional[str]:
        hints = self.all_hints
        return hints[0] if hints else None


@dataclass
class Discovery:
    """A verified-working entry URL and how it was found."""
    url: str
    strategy: str
    confidence: float
    http_status: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    fetched: Optional[Any] = None  # FetchResult when the last-resort strategy already fetched the page
