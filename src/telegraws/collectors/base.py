from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from ..aws.cloudwatch import MetricPoint, MetricsQuery
from ..logging import get_logger
from ..util.errors import AWSQueryError
from ..window import TimeWindow, select_period

LOG = get_logger(__name__)

MetricSet = Dict[str, float]
LogCounts = Dict[str, int]
Dimensions = Sequence[Tuple[str, str]]

BYTES_PER_MB = 1048576.0
BYTES_PER_GB = 1073741824.0

# What a failed query turns into, per table.
ON_ERROR_FAIL = "fail"  # the whole collector fails
ON_ERROR_SKIP = "skip"  # metric omitted, collector continues
ON_ERROR_ZERO = "zero"  # metric reads 0, collector continues

# How several points in the window reduce to one value.
LATEST = "latest"
MEAN = "mean"
SUM = "sum"


def passthrough(value: float) -> float:
    return value


def bytes_to_mb(value: float) -> float:
    return value / BYTES_PER_MB


def bytes_to_gb(value: float) -> float:
    return value / BYTES_PER_GB


def seconds_to_ms(value: float) -> float:
    return value * 1000


@dataclass(frozen=True)
class MetricSpec:
    """
    One row of a collector's metric table: which statistic to fetch and
    how to store it.
    """

    name: str
    statistic: str
    key: Optional[str] = None
    convert: Callable[[float], float] = passthrough
    unit: Optional[str] = None
    reduce: str = LATEST

    @property
    def metric_key(self) -> str:
        return self.key or self.name


@dataclass(frozen=True)
class MetricTable:
    namespace: str
    specs: Tuple[MetricSpec, ...]
    on_error: str = ON_ERROR_FAIL


@dataclass(frozen=True)
class CollectorResult:
    """Tagged outcome of one collector call."""

    service: str
    resource: str
    metrics: Optional[Union[MetricSet, LogCounts]] = None
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.metrics is not None


@dataclass(frozen=True)
class CollectorTask:
    service: str
    resource: str
    run: Callable[[], Union[MetricSet, LogCounts]] = field(compare=False)


def latest_value(points: Sequence[MetricPoint]) -> Optional[float]:
    if not points:
        return None
    return max(points, key=lambda p: p.timestamp).value


def reduce_points(points: Sequence[MetricPoint], how: str = LATEST) -> Optional[float]:
    if not points:
        return None
    if how == SUM:
        return float(sum(p.value for p in points))
    if how == MEAN:
        return float(sum(p.value for p in points)) / len(points)
    return latest_value(points)


def query_table(
    metrics: MetricsQuery,
    table: MetricTable,
    dimensions: Dimensions,
    window: TimeWindow,
    *,
    service: str,
    resource: str,
    period: Optional[int] = None,
    start: Optional[datetime] = None,
) -> MetricSet:
    """
    Run every row of a metric table against one set of dimensions.

    Empty results read 0.0. Query errors follow the table's on_error policy;
    with ON_ERROR_FAIL the AWSQueryError propagates to the coordinator.
    """
    period = period or select_period(window)
    start = start or window.start
    out: MetricSet = {}
    for spec in table.specs:
        try:
            points = metrics.get_statistic(
                namespace=table.namespace,
                metric_name=spec.name,
                dimensions=dimensions,
                start=start,
                end=window.end,
                period=period,
                statistic=spec.statistic,
                unit=spec.unit,
            )
        except AWSQueryError as e:
            if table.on_error == ON_ERROR_FAIL:
                raise
            LOG.warning(
                "Metric query failed",
                extra=_query_context(service, resource, spec, period, error=str(e)),
            )
            if table.on_error == ON_ERROR_ZERO:
                out[spec.metric_key] = 0.0
            continue
        value = reduce_points(points, spec.reduce)
        out[spec.metric_key] = spec.convert(value) if value is not None else 0.0
    return out


def _query_context(service: str, resource: str, spec: MetricSpec, period: int, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "service": service,
        "resource": resource,
        "metric": spec.name,
        "statistic": spec.statistic,
        "period": period,
    }
    payload.update(extra)
    return payload