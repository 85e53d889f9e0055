from __future__ import annotations

from typing import List, Optional, Tuple

from .aws.cloudwatch import MetricsQuery
from .aws.waf import ALB_RESOURCE_TYPE, WebACLDescriber
from .logging import get_logger
from .util.errors import AmbiguousResourceError, ResourceNotFoundError

LOG = get_logger(__name__)

ALB_NAMESPACE = "AWS/ApplicationELB"
ALB_PREFIX = "app/"
AGENT_NAMESPACE = "CWAgent"
ROOT_PATH = "/"


def _alb_name_segment(identifier: str) -> str:
    # app/<name>/<id>
    parts = identifier.split("/")
    if len(parts) >= 2:
        return parts[1]
    return identifier


def resolve_load_balancer(metrics: MetricsQuery, name: str) -> str:
    """
    Map a short ALB name to the LoadBalancer dimension value (app/<name>/<id>).

    Fully-qualified names pass through. Otherwise published RequestCount
    series are searched for identifiers containing the name. Several
    candidates are accepted only when exactly one has the name as its name
    segment.
    """
    if name.startswith(ALB_PREFIX):
        return name

    dimension_sets = metrics.list_dimension_sets(namespace=ALB_NAMESPACE, metric_name="RequestCount")
    candidates: List[str] = []
    for dims in dimension_sets:
        value = dims.get("LoadBalancer")
        if value and name in value and value not in candidates:
            candidates.append(value)

    if not candidates:
        raise ResourceNotFoundError(f"No load balancer found matching {name!r}")
    if len(candidates) == 1:
        return candidates[0]

    exact = [c for c in candidates if _alb_name_segment(c) == name]
    if len(exact) == 1:
        LOG.info(
            "Load balancer name matched several series; using exact name match",
            extra={"resource": name, "selected": exact[0], "candidates": candidates},
        )
        return exact[0]
    raise AmbiguousResourceError(
        f"Load balancer name {name!r} matches {len(candidates)} load balancers: {', '.join(sorted(candidates))}"
    )


def resolve_disk_device(metrics: MetricsQuery, instance_id: str, path: str = ROOT_PATH) -> Tuple[str, str]:
    """
    Find the (device, fstype) pair the agent publishes for the instance's
    root filesystem. Returns ("", "") when no series exists.
    """
    dimension_sets = metrics.list_dimension_sets(
        namespace=AGENT_NAMESPACE,
        metric_name="disk_used_percent",
        dimension_filters=[("InstanceId", instance_id), ("path", path)],
    )
    for dims in dimension_sets:
        if dims.get("InstanceId") != instance_id:
            continue
        device = dims.get("device")
        fstype = dims.get("fstype")
        if device and fstype:
            return device, fstype
    LOG.warning(
        "No disk series found for instance; disk usage will read 0",
        extra={"service": "cloudwatchAgent", "resource": instance_id, "path": path},
    )
    return "", ""


def resolve_web_acl_resource(web_acls: WebACLDescriber, name: str, acl_id: str, scope: str) -> Optional[str]:
    """
    Return the ARN of the load balancer a REGIONAL web ACL protects.
    CLOUDFRONT-scoped ACLs are dimensioned by name alone, so None is returned
    without any lookup.
    """
    if scope == "CLOUDFRONT":
        return None
    acl_arn = web_acls.get_web_acl_arn(name, acl_id, scope)
    arns = web_acls.list_protected_resources(acl_arn, ALB_RESOURCE_TYPE)
    if not arns:
        raise ResourceNotFoundError(f"No load balancer associated with web ACL {name!r}")
    if len(arns) > 1:
        raise AmbiguousResourceError(
            f"Web ACL {name!r} protects {len(arns)} load balancers; expected exactly one"
        )
    return arns[0]
