from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    QUERY_EXPANDED = "query_expanded"
    QUERY_REJECTED = "query_rejected"
    ASSETS_DETECTED = "assets_detected"
    SEARCH_COMPLETED = "search_completed"
    SCRAPE_COMPLETED = "scrape_completed"
    COVERAGE_COMPUTED = "coverage_computed"
    BACKFILL_STARTED = "backfill_started"
    BACKFILL_COMPLETED = "backfill_completed"
    SYNTHESIS_STARTED = "synthesis_started"
    RESEARCH_COMPLETE = "research_complete"
    ERROR = "error"


@dataclass
class PipelineEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)
