"""Tier classification shared by selection and transition diffing."""

from enum import Enum

HOT_THRESHOLD = 0.8         # Full file injection
WARM_THRESHOLD = 0.25       # Header-only injection
# Below WARM = COLD (evicted)


class Tier(Enum):
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"

    def __str__(self) -> str:
        return self.value


def get_tier(score: float, hot_threshold: float = HOT_THRESHOLD,
             warm_threshold: float = WARM_THRESHOLD) -> Tier:
    """Classify attention score into tier."""
    if score >= hot_threshold:
        return Tier.HOT
    elif score >= warm_threshold:
        return Tier.WARM
    return Tier.COLD
