from __future__ import annotations

from datetime import timedelta, timezone
from typing import List, Optional

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..logging import get_logger
from ..util.errors import AWSQueryError
from ..window import DAILY_PERIOD, TimeWindow
from .base import (
    ON_ERROR_ZERO,
    CollectorTask,
    MetricSet,
    MetricSpec,
    MetricTable,
    bytes_to_mb,
    latest_value,
    query_table,
)

LOG = get_logger(__name__)

SERVICE = "s3"
NAMESPACE = "AWS/S3"

# Checked in order; the first storage class that reports a size wins.
STORAGE_TYPES = (
    "StandardStorage",
    "StandardIAStorage",
    "StandardIASizeOverhead",
    "ReducedRedundancyStorage",
    "GlacierStorage",
    "DeepArchiveStorage",
    "GlacierInstantRetrievalSizeOverhead",
    "GlacierFlexibleRetrievalSizeOverhead",
    "GlacierDeepArchiveSizeOverhead",
    "IntelligentTieringFAStorage",
    "IntelligentTieringIAStorage",
    "IntelligentTieringAAStorage",
    "IntelligentTieringAIAStorage",
    "IntelligentTieringDAAStorage",
)

# Storage metrics are published once a day, so the window reaches one day further back.
STORAGE_LOOKBACK_PADDING = timedelta(days=1)

REQUEST_METRICS = MetricTable(
    namespace=NAMESPACE,
    specs=(
        MetricSpec("AllRequests", "Sum", unit="Count"),
        MetricSpec("4xxErrors", "Sum", unit="Count"),
        MetricSpec("5xxErrors", "Sum", unit="Count"),
        MetricSpec("BytesUploaded", "Sum", key="BytesUploadedMB", convert=bytes_to_mb, unit="Bytes"),
        MetricSpec("BytesDownloaded", "Sum", key="BytesDownloadedMB", convert=bytes_to_mb, unit="Bytes"),
    ),
    on_error=ON_ERROR_ZERO,
)


def _storage_value(
    metrics: MetricsQuery,
    bucket: str,
    metric_name: str,
    storage_type: str,
    window: TimeWindow,
) -> Optional[float]:
    try:
        points = metrics.get_statistic(
            namespace=NAMESPACE,
            metric_name=metric_name,
            dimensions=[("BucketName", bucket), ("StorageType", storage_type)],
            start=window.start.astimezone(timezone.utc) - STORAGE_LOOKBACK_PADDING,
            end=window.end,
            period=DAILY_PERIOD,
            statistic="Average",
        )
    except AWSQueryError as e:
        LOG.warning(
            "Storage metric query failed",
            extra={
                "service": SERVICE,
                "resource": bucket,
                "metric": metric_name,
                "statistic": "Average",
                "period": DAILY_PERIOD,
                "storage_type": storage_type,
                "error": str(e),
            },
        )
        return None
    return latest_value(points)


def collect_s3(
    metrics: MetricsQuery,
    bucket: str,
    window: TimeWindow,
    *,
    request_metrics_filter_id: Optional[str] = None,
) -> MetricSet:
    """
    Bucket size (MB) and object count, plus request metrics when the bucket
    has a request-metrics filter configured.
    """
    out: MetricSet = {"BucketSizeMB": 0.0, "NumberOfObjects": 0.0}
    for storage_type in STORAGE_TYPES:
        size = _storage_value(metrics, bucket, "BucketSizeBytes", storage_type, window)
        if size is not None:
            out["BucketSizeMB"] = bytes_to_mb(size)
            break
    objects = _storage_value(metrics, bucket, "NumberOfObjects", "AllStorageTypes", window)
    if objects is not None:
        out["NumberOfObjects"] = objects

    if request_metrics_filter_id:
        out.update(
            query_table(
                metrics,
                REQUEST_METRICS,
                [("BucketName", bucket), ("FilterId", request_metrics_filter_id)],
                window,
                service=SERVICE,
                resource=bucket,
            )
        )
    return out


def s3_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    svc = cfg.services.s3
    return [
        CollectorTask(
            SERVICE,
            svc.bucket_name,
            lambda: collect_s3(
                clients.metrics,
                svc.bucket_name,
                window,
                request_metrics_filter_id=svc.request_metrics_filter_id,
            ),
        )
    ]
