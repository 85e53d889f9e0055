from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..window import TimeWindow
from .base import MEAN, SUM, CollectorTask, MetricSet, MetricSpec, MetricTable, bytes_to_mb, query_table

SERVICE = "cloudfront"

# Rates average every point in the window; counters sum them.
CLOUDFRONT_METRICS = MetricTable(
    namespace="AWS/CloudFront",
    specs=(
        MetricSpec("Requests", "Sum", reduce=SUM),
        MetricSpec("4xxErrorRate", "Average", reduce=MEAN),
        MetricSpec("5xxErrorRate", "Average", reduce=MEAN),
        MetricSpec("BytesUploaded", "Sum", convert=bytes_to_mb, reduce=SUM),
        MetricSpec("BytesDownloaded", "Sum", convert=bytes_to_mb, reduce=SUM),
    ),
)


def collect_cloudfront(metrics: MetricsQuery, distribution_id: str, window: TimeWindow) -> MetricSet:
    return query_table(
        metrics,
        CLOUDFRONT_METRICS,
        [("DistributionId", distribution_id), ("Region", "Global")],
        window,
        service=SERVICE,
        resource=distribution_id,
    )


def cloudfront_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    distribution_id = cfg.services.cloudfront.distribution_id
    return [
        CollectorTask(
            SERVICE,
            distribution_id,
            lambda: collect_cloudfront(clients.global_metrics, distribution_id, window),
        )
    ]
