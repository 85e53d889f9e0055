from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..util.errors import map_aws_error

Dimensions = Sequence[Tuple[str, str]]
DimensionFilters = Sequence[Tuple[str, Optional[str]]]


@dataclass(frozen=True)
class MetricPoint:
    timestamp: datetime
    value: float


class MetricsQuery(Protocol):
    """
    Metrics backend capability consumed by collectors and the resolver.
    """

    def get_statistic(
        self,
        *,
        namespace: str,
        metric_name: str,
        dimensions: Dimensions,
        start: datetime,
        end: datetime,
        period: int,
        statistic: str,
        unit: Optional[str] = None,
    ) -> List[MetricPoint]:
        ...

    def list_dimension_sets(
        self,
        *,
        namespace: str,
        metric_name: str,
        dimension_filters: DimensionFilters = (),
    ) -> List[Dict[str, str]]:
        ...


def _dimension_list(dimensions: Dimensions) -> List[Dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in dimensions]


class CloudWatchMetrics:
    """MetricsQuery over a boto3 CloudWatch client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def get_statistic(
        self,
        *,
        namespace: str,
        metric_name: str,
        dimensions: Dimensions,
        start: datetime,
        end: datetime,
        period: int,
        statistic: str,
        unit: Optional[str] = None,
    ) -> List[MetricPoint]:
        kwargs: Dict[str, Any] = {
            "Namespace": namespace,
            "MetricName": metric_name,
            "Dimensions": _dimension_list(dimensions),
            "StartTime": start,
            "EndTime": end,
            "Period": period,
            "Statistics": [statistic],
        }
        if unit:
            kwargs["Unit"] = unit
        try:
            resp = self._client.get_metric_statistics(**kwargs)
        except Exception as e:
            mapped = map_aws_error(
                e, f"GetMetricStatistics {namespace}/{metric_name} {statistic} period={period}"
            )
            if mapped:
                raise mapped from e
            raise
        points: List[MetricPoint] = []
        for dp in resp.get("Datapoints") or []:
            value = dp.get(statistic)
            if value is None:
                continue
            points.append(MetricPoint(timestamp=dp["Timestamp"], value=float(value)))
        return points

    def list_dimension_sets(
        self,
        *,
        namespace: str,
        metric_name: str,
        dimension_filters: DimensionFilters = (),
    ) -> List[Dict[str, str]]:
        filters: List[Dict[str, str]] = []
        for name, value in dimension_filters:
            entry = {"Name": name}
            if value is not None:
                entry["Value"] = value
            filters.append(entry)

        kwargs: Dict[str, Any] = {"Namespace": namespace, "MetricName": metric_name}
        if filters:
            kwargs["Dimensions"] = filters
        sets: List[Dict[str, str]] = []
        try:
            for page in self._client.get_paginator("list_metrics").paginate(**kwargs):
                for metric in page.get("Metrics") or []:
                    sets.append({d["Name"]: d.get("Value", "") for d in metric.get("Dimensions") or []})
        except Exception as e:
            mapped = map_aws_error(e, f"ListMetrics {namespace}/{metric_name}")
            if mapped:
                raise mapped from e
            raise
        return sets
