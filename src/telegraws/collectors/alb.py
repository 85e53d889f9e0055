from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..config import ReportConfig
from ..resolve import ALB_NAMESPACE, resolve_load_balancer
from ..window import TimeWindow
from .base import CollectorTask, MetricSet, MetricSpec, MetricTable, query_table

SERVICE = "alb"

ALB_METRICS = MetricTable(
    namespace=ALB_NAMESPACE,
    specs=(
        MetricSpec("RequestCount", "Sum"),
        MetricSpec("TargetResponseTime", "Average"),
        MetricSpec("HTTPCode_Target_2XX_Count", "Sum"),
        MetricSpec("HTTPCode_Target_4XX_Count", "Sum"),
        MetricSpec("HTTPCode_Target_5XX_Count", "Sum"),
        MetricSpec("HTTPCode_ELB_4XX_Count", "Sum"),
        MetricSpec("HTTPCode_ELB_5XX_Count", "Sum"),
        MetricSpec("HealthyHostCount", "Average"),
        MetricSpec("UnHealthyHostCount", "Average"),
    ),
)


def collect_alb(metrics: MetricsQuery, alb_name: str, window: TimeWindow) -> MetricSet:
    load_balancer = resolve_load_balancer(metrics, alb_name)
    return query_table(
        metrics,
        ALB_METRICS,
        [("LoadBalancer", load_balancer)],
        window,
        service=SERVICE,
        resource=alb_name,
    )


def alb_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    alb_name = cfg.services.alb.alb_name
    return [CollectorTask(SERVICE, alb_name, lambda: collect_alb(clients.metrics, alb_name, window))]
