"""
Trend Calculator

Compares revenue in the two halves of a window.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from retail_reports.config import ReportingSettings, get_settings
from retail_reports.reporting.aggregation import AggregationEngine, QueryFilters
from retail_reports.reporting.periods import Window

logger = structlog.get_logger(__name__)


class TrendClassification(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendResult:
    """Signed growth percentage and its classification"""
    growth: float
    classification: TrendClassification
    first_half: float = 0.0
    second_half: float = 0.0

    def to_dict(self) -> dict:
        return {
            "growth": round(self.growth, 2),
            "trend": self.classification.value,
        }


def classify_growth(first_half: float, second_half: float, threshold: float = 5.0) -> TrendResult:
    """
    Classify the change between two half-window totals.

    A zero first half reports 0% growth and ``stable``, even when the second
    half has sales.
    """
    if first_half > 0:
        growth = (second_half - first_half) / first_half * 100
    else:
        growth = 0.0

    if growth > threshold:
        classification = TrendClassification.INCREASING
    elif growth < -threshold:
        classification = TrendClassification.DECREASING
    else:
        classification = TrendClassification.STABLE

    return TrendResult(
        growth=growth,
        classification=classification,
        first_half=first_half,
        second_half=second_half,
    )


class TrendCalculator:
    """Splits a window at its midpoint and classifies revenue growth"""

    def __init__(self, engine: AggregationEngine, settings: Optional[ReportingSettings] = None):
        self.engine = engine
        self.settings = settings or get_settings().reporting

    def classify(self, first_half: float, second_half: float) -> TrendResult:
        return classify_growth(first_half, second_half, self.settings.trend_threshold)

    async def compute(self, window: Window, filters: Optional[QueryFilters] = None) -> TrendResult:
        first, second = window.split()
        first_total = await self.engine.totals(first, filters)
        second_total = await self.engine.totals(second, filters)

        result = self.classify(first_total.total, second_total.total)
        logger.debug(
            "Trend computed",
            midpoint=window.midpoint.isoformat(),
            first_half=result.first_half,
            second_half=result.second_half,
            growth=result.growth,
            trend=result.classification.value,
        )
        return result
