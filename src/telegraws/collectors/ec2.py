from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..window import TimeWindow
from .base import CollectorTask, MetricSet, MetricSpec, MetricTable, bytes_to_mb, query_table

SERVICE = "ec2"

# Block-storage read/write throughput is intentionally absent.
EC2_METRICS = MetricTable(
    namespace="AWS/EC2",
    specs=(
        MetricSpec("CPUUtilization", "Average", key="CPUUtilization_Average"),
        MetricSpec("CPUUtilization", "Maximum", key="CPUUtilization_Maximum"),
        MetricSpec("StatusCheckFailed", "Sum"),
        MetricSpec("NetworkIn", "Sum", convert=bytes_to_mb, unit="Bytes"),
        MetricSpec("NetworkOut", "Sum", convert=bytes_to_mb, unit="Bytes"),
    ),
)


def collect_ec2(metrics: MetricsQuery, instance_id: str, window: TimeWindow) -> MetricSet:
    return query_table(
        metrics,
        EC2_METRICS,
        [("InstanceId", instance_id)],
        window,
        service=SERVICE,
        resource=instance_id,
    )


def ec2_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    instance_id = cfg.services.ec2.instance_id
    return [CollectorTask(SERVICE, instance_id, lambda: collect_ec2(clients.metrics, instance_id, window))]
