from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..aws.waf import WebACLDescriber
from ..config import ReportConfig, WAFService
from ..resolve import resolve_web_acl_resource
from ..window import TimeWindow
from .base import ON_ERROR_SKIP, CollectorTask, MetricSet, MetricSpec, MetricTable, query_table

SERVICE = "waf"

WAF_METRICS = MetricTable(
    namespace="AWS/WAFV2",
    specs=(
        MetricSpec("AllowedRequests", "Sum"),
        MetricSpec("BlockedRequests", "Sum"),
    ),
    on_error=ON_ERROR_SKIP,
)


def collect_waf(
    metrics: MetricsQuery,
    web_acls: WebACLDescriber,
    name: str,
    acl_id: str,
    scope: str,
    window: TimeWindow,
) -> MetricSet:
    """
    CLOUDFRONT-scoped ACLs are dimensioned by name. REGIONAL ACLs are
    dimensioned by the single load balancer they protect; failing to find it
    fails the collector.
    """
    if scope == "CLOUDFRONT":
        dimensions = [("WebACL", name)]
    else:
        resource_arn = resolve_web_acl_resource(web_acls, name, acl_id, scope)
        dimensions = [("Resource", resource_arn or ""), ("ResourceType", "ALB")]
    return query_table(metrics, WAF_METRICS, dimensions, window, service=SERVICE, resource=name)


def _collect_for(svc: WAFService, clients, window: TimeWindow) -> MetricSet:
    scope = svc.effective_scope
    return collect_waf(
        clients.metrics_for_scope(scope),
        clients.web_acls(scope),
        svc.web_acl_name,
        svc.web_acl_id,
        scope,
        window,
    )


def waf_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    svc = cfg.services.waf
    return [CollectorTask(SERVICE, svc.web_acl_name, lambda: _collect_for(svc, clients, window))]
