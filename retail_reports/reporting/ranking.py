"""
Ranking Engine

Top-N breakdowns whose percentages are shares of the whole population, not
of the entries that survive truncation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from retail_reports.reporting.aggregation import AggregateBucket


class Metric(str, Enum):
    """Bucket metric to rank by"""
    REVENUE = "revenue"
    QUANTITY = "quantity"
    ORDERS = "orders"


def metric_value(bucket: AggregateBucket, metric: Metric) -> float:
    if metric == Metric.QUANTITY:
        return float(bucket.quantity)
    if metric == Metric.ORDERS:
        return float(bucket.count)
    return bucket.total


@dataclass
class RankedEntry:
    """One ranked dimension value"""
    rank: int
    key: Any
    label: Optional[str]
    value: float
    percentage: float
    bucket: AggregateBucket

    @property
    def name(self) -> str:
        return self.label or str(self.key)


@dataclass
class Ranking:
    """Top-N entries plus the untruncated population they were drawn from"""
    metric: Metric
    total: float
    population: int
    entries: List[RankedEntry] = field(default_factory=list)

    @property
    def leader(self) -> Optional[RankedEntry]:
        return self.entries[0] if self.entries else None

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def rank(
    buckets: Sequence[AggregateBucket],
    metric: Metric = Metric.REVENUE,
    limit: Optional[int] = None,
) -> Ranking:
    """
    Rank buckets by a metric.

    Sorting is stable, so equal values keep their query order. Percentages
    use the sum over all buckets as denominator; a zero total gives zero
    percentages.

    Args:
        buckets: Aggregated per-dimension totals
        metric: Metric to rank by
        limit: Keep only the top N entries (None keeps all)

    Returns:
        Ranking with the kept entries
    """
    total = sum(metric_value(b, metric) for b in buckets)
    ordered = sorted(buckets, key=lambda b: metric_value(b, metric), reverse=True)
    if limit is not None:
        ordered = ordered[:limit]

    entries = []
    for position, bucket in enumerate(ordered, start=1):
        value = metric_value(bucket, metric)
        entries.append(
            RankedEntry(
                rank=position,
                key=bucket.key,
                label=bucket.label,
                value=value,
                percentage=(value / total * 100) if total else 0.0,
                bucket=bucket,
            )
        )

    return Ranking(metric=metric, total=total, population=len(buckets), entries=entries)
