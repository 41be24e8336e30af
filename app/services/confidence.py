from dataclasses import dataclass
from enum import Enum

from app.config import CONFIDENCE_HIGH_THRESHOLD, CONFIDENCE_MEDIUM_THRESHOLD


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ConfidencePolicy:
    """Presentation buckets for a diagnosis confidence in [0, 1]"""
    high_threshold: float = CONFIDENCE_HIGH_THRESHOLD
    medium_threshold: float = CONFIDENCE_MEDIUM_THRESHOLD

    def __post_init__(self):
        if not 0 <= self.medium_threshold <= self.high_threshold <= 1:
            raise ValueError(
                f"Invalid confidence thresholds: medium={self.medium_threshold}, high={self.high_threshold}"
            )

    def categorize(self, confidence: float) -> ConfidenceLevel:
        if confidence > self.high_threshold:
            return ConfidenceLevel.HIGH
        if confidence > self.medium_threshold:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW
