from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..window import TimeWindow
from .base import (
    ON_ERROR_SKIP,
    CollectorTask,
    MetricSet,
    MetricSpec,
    MetricTable,
    bytes_to_gb,
    query_table,
    seconds_to_ms,
)

SERVICE = "rds"
NAMESPACE = "AWS/RDS"

INSTANCE_METRICS = MetricTable(
    namespace=NAMESPACE,
    specs=(
        MetricSpec("CPUUtilization", "Average", key="Instance_CPUUtilization_Average"),
        MetricSpec("CPUUtilization", "Maximum", key="Instance_CPUUtilization_Maximum"),
        MetricSpec("FreeableMemory", "Average", key="Instance_FreeableMemory", convert=bytes_to_gb),
        MetricSpec("DatabaseConnections", "Maximum", key="Instance_DatabaseConnections"),
        MetricSpec("ReadLatency", "Average", key="Instance_ReadLatency", convert=seconds_to_ms),
        MetricSpec("WriteLatency", "Average", key="Instance_WriteLatency", convert=seconds_to_ms),
    ),
    on_error=ON_ERROR_SKIP,
)

CLUSTER_METRICS = MetricTable(
    namespace=NAMESPACE,
    specs=(
        MetricSpec("VolumeBytesUsed", "Average", key="Cluster_VolumeBytesUsed", convert=bytes_to_gb),
        MetricSpec("VolumeReadIOPs", "Average", key="Cluster_VolumeReadIOPs"),
        MetricSpec("VolumeWriteIOPs", "Average", key="Cluster_VolumeWriteIOPs"),
    ),
    on_error=ON_ERROR_SKIP,
)


def collect_rds(
    metrics: MetricsQuery,
    window: TimeWindow,
    *,
    cluster_id: str = "",
    instance_id: str = "",
) -> MetricSet:
    """
    Instance metrics when an instance identifier is configured, cluster
    storage metrics when a cluster identifier is. A failing query drops only
    that metric.
    """
    out: MetricSet = {}
    resource = " / ".join(x for x in (cluster_id, instance_id) if x)
    if instance_id:
        out.update(
            query_table(
                metrics,
                INSTANCE_METRICS,
                [("DBInstanceIdentifier", instance_id)],
                window,
                service=SERVICE,
                resource=resource,
            )
        )
    if cluster_id:
        out.update(
            query_table(
                metrics,
                CLUSTER_METRICS,
                [("DBClusterIdentifier", cluster_id)],
                window,
                service=SERVICE,
                resource=resource,
            )
        )
    return out


def rds_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    svc = cfg.services.rds
    resource = " / ".join(x for x in (svc.cluster_id, svc.db_instance_identifier) if x)
    return [
        CollectorTask(
            SERVICE,
            resource,
            lambda: collect_rds(
                clients.metrics,
                window,
                cluster_id=svc.cluster_id,
                instance_id=svc.db_instance_identifier,
            ),
        )
    ]
