"""URL discovery: normalization, candidate generation, probing and the strategy waterfall."""

from .models import Discovery, DiscoveryTarget, ProbeResult
from .normalize import normalize_url, repair_variants, host_variants, extract_domain
from .candidates import clean_entity_name, pattern_candidates, email_candidates
from .liveness import LivenessProber
from .search import WebSearch
from .waterfall import DiscoveryWaterfall, ALL_FAILED_MESSAGE, needs_correction

__all__ = [
    "Discovery",
    "DiscoveryTarget",
    "ProbeResult",
    "normalize_url",
    "repair_variants",
    "host_variants",
    "extract_domain",
    "clean_entity_name",
    "pattern_candidates",
    "email_candidates",
    "LivenessProber",
    "WebSearch",
    "DiscoveryWaterfall",
    "ALL_FAILED_MESSAGE",
    "needs_correction",
]
