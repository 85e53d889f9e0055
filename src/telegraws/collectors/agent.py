from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..resolve import AGENT_NAMESPACE, ROOT_PATH, resolve_disk_device
from ..window import TimeWindow
from .base import CollectorTask, MetricSet, MetricSpec, MetricTable, query_table

SERVICE = "cloudwatchAgent"

MEMORY_METRICS = MetricTable(
    namespace=AGENT_NAMESPACE,
    specs=(
        MetricSpec("mem_used_percent", "Average", key="mem_used_percent_Average"),
        MetricSpec("mem_used_percent", "Maximum", key="mem_used_percent_Maximum"),
    ),
)

DISK_METRICS = MetricTable(
    namespace=AGENT_NAMESPACE,
    specs=(MetricSpec("disk_used_percent", "Average"),),
)


def collect_agent(metrics: MetricsQuery, instance_id: str, window: TimeWindow) -> MetricSet:
    """
    Memory and root-disk usage published by the CloudWatch agent. The disk
    series is dimensioned by device/fstype, which are looked up first.
    """
    out = query_table(
        metrics,
        MEMORY_METRICS,
        [("InstanceId", instance_id)],
        window,
        service=SERVICE,
        resource=instance_id,
    )
    device, fstype = resolve_disk_device(metrics, instance_id, ROOT_PATH)
    out.update(
        query_table(
            metrics,
            DISK_METRICS,
            [("InstanceId", instance_id), ("path", ROOT_PATH), ("device", device), ("fstype", fstype)],
            window,
            service=SERVICE,
            resource=instance_id,
        )
    )
    return out


def agent_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    instance_id = cfg.services.cloudwatch_agent.instance_id
    return [CollectorTask(SERVICE, instance_id, lambda: collect_agent(clients.metrics, instance_id, window))]
