"""
schemas/audit.py
----------------
Structured warnings for every degraded path of the pipeline.

Stages never raise for data problems. They append a PlanWarning to the
AuditTrail they were handed, and the trail travels back to the caller inside
the TripPlan. Each record is also mirrored to the module logger and, when a
StructuredLogger is attached, to the session's JSONL file as an AUDIT event.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class WarningCode(str, Enum):
    MISSING_MUST_SEE = "MISSING_MUST_SEE"
    CAPACITY_UNRESOLVED = "CAPACITY_UNRESOLVED"
    ACTIVITY_DROPPED = "ACTIVITY_DROPPED"
    UNRESOLVED_COORDINATES = "UNRESOLVED_COORDINATES"
    POOL_EXHAUSTED = "POOL_EXHAUSTED"
    NO_RESTAURANT_IN_RANGE = "NO_RESTAURANT_IN_RANGE"
    NO_HOTEL = "NO_HOTEL"
    FETCH_FAILED = "FETCH_FAILED"
    THEMING_FALLBACK = "THEMING_FALLBACK"
    QUALITY_GATE = "QUALITY_GATE"


@dataclass
class PlanWarning:
    code: WarningCode
    message: str
    day_number: Optional[int] = None
    entity_id: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["code"] = self.code.value
        return d


@dataclass
class AuditTrail:
    """Accumulator threaded explicitly through the stages of one trip."""
    session_id: str = "default"
    warnings: list[PlanWarning] = field(default_factory=list)
    structured_logger: Optional[object] = field(default=None, repr=False)

    def warn(
        self,
        code: WarningCode,
        message: str,
        day_number: Optional[int] = None,
        entity_id: Optional[str] = None,
    ) -> PlanWarning:
        w = PlanWarning(code=code, message=message, day_number=day_number, entity_id=entity_id)
        self.warnings.append(w)
        logger.warning("[%s] %s", code.value, message)
        if self.structured_logger is not None:
            self.structured_logger.log(self.session_id, "AUDIT", w.to_dict())
        return w

    def codes(self) -> list[WarningCode]:
        return [w.code for w in self.warnings]

    def by_code(self, code: WarningCode) -> list[PlanWarning]:
        return [w for w in self.warnings if w.code == code]
