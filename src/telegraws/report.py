from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .config import ReportConfig
from .logging import get_logger
from .util.time import format_report_timestamp
from .window import TimeWindow

LOG = get_logger(__name__)

ROUTINE_SEPARATOR = "- - - - - - - - - - - - - - -"
DAILY_SEPARATOR = "= = = = = = = = = = = = = = ="
LAMBDA_LOG_PREFIX = "/aws/lambda/"

# Telegram rejects longer messages.
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

SectionRenderer = Callable[[Mapping[str, Any], ReportConfig], List[str]]


def escape_markdown(text: str) -> str:
    """
    Escape the two characters legacy Telegram Markdown treats as markup.
    """
    return (text or "").replace("_", "\\_").replace("*", "\\*")


def _num(metrics: Mapping[str, Any], key: str) -> float:
    value = metrics.get(key)
    if value is None:
        return 0.0
    return float(value)


def _ec2_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    return [
        f"*EC2*: {escape_markdown(cfg.services.ec2.instance_id)}",
        f"CPU: {_num(metrics, 'CPUUtilization_Average'):.2f}% (avg), {_num(metrics, 'CPUUtilization_Maximum'):.2f}% (max)",
        f"Status Checks Failed: {_num(metrics, 'StatusCheckFailed'):.0f}",
        f"Network In: {_num(metrics, 'NetworkIn'):.2f} MB",
        f"Network Out: {_num(metrics, 'NetworkOut'):.2f} MB",
    ]


def _agent_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    return [
        f"Memory: {_num(metrics, 'mem_used_percent_Average'):.2f}% (avg), {_num(metrics, 'mem_used_percent_Maximum'):.2f}% (max)",
        f"Disk: {_num(metrics, 'disk_used_percent'):.2f}%",
    ]


def _s3_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    lines = [
        f"*S3* {escape_markdown(cfg.services.s3.bucket_name)}",
        f"Size: {_num(metrics, 'BucketSizeMB'):.2f} MB",
        f"Objects: {_num(metrics, 'NumberOfObjects'):.0f}",
    ]
    if "AllRequests" in metrics:
        lines.append(
            f"Requests: {_num(metrics, 'AllRequests'):.0f} "
            f"(4xx: {_num(metrics, '4xxErrors'):.0f}, 5xx: {_num(metrics, '5xxErrors'):.0f})"
        )
        lines.append(f" Uploaded: {_num(metrics, 'BytesUploadedMB'):.2f} MB")
        lines.append(f" Downloaded: {_num(metrics, 'BytesDownloadedMB'):.2f} MB")
    return lines + [""]


def _alb_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    elb_errors = _num(metrics, "HTTPCode_ELB_4XX_Count") + _num(metrics, "HTTPCode_ELB_5XX_Count")
    return [
        f"*ALB* {escape_markdown(cfg.services.alb.alb_name)}",
        f"Requests: {_num(metrics, 'RequestCount'):.0f}",
        f"Response Time: {_num(metrics, 'TargetResponseTime'):.3f} s",
        f"2xx: {_num(metrics, 'HTTPCode_Target_2XX_Count'):.0f}, "
        f"4xx: {_num(metrics, 'HTTPCode_Target_4XX_Count'):.0f}, "
        f"5xx: {_num(metrics, 'HTTPCode_Target_5XX_Count'):.0f}",
        f"Healthy: {_num(metrics, 'HealthyHostCount'):.0f}, Unhealthy: {_num(metrics, 'UnHealthyHostCount'):.0f}",
        f"ALB Errors: {elb_errors:.0f}",
        "",
    ]


def _cloudfront_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    return [
        f"*CloudFront* {escape_markdown(cfg.services.cloudfront.distribution_id)}",
        f"Requests: {_num(metrics, 'Requests'):.0f}",
        f"4xx Error Rate: {_num(metrics, '4xxErrorRate'):.2f}%",
        f"5xx Error Rate: {_num(metrics, '5xxErrorRate'):.2f}%",
        f" Uploaded: {_num(metrics, 'BytesUploaded'):.2f} MB",
        f" Downloaded: {_num(metrics, 'BytesDownloaded'):.2f} MB",
        "",
    ]


def _dynamodb_table_lines(table_name: str, metrics: Mapping[str, Any]) -> List[str]:
    lines = [f"*DynamoDB* {escape_markdown(table_name)}"]
    if _num(metrics, "BillingMode") == 0:
        lines.append(f"Total Requests: {_num(metrics, 'RequestCount'):.0f}")
        lines.append(f"Latency: {_num(metrics, 'SuccessfulRequestLatency'):.2f} ms")
    else:
        lines.append("Total Requests: N/A (On-Demand)")
        lines.append("Latency: N/A")
    db_errors = _num(metrics, "UserErrors") + _num(metrics, "SystemErrors")
    lines.extend(
        [
            f"Items: {_num(metrics, 'ItemCount'):.0f}",
            f"Read Throttles: {_num(metrics, 'ReadThrottleEvents'):.0f}",
            f"Write Throttles: {_num(metrics, 'WriteThrottleEvents'):.0f}",
            f"Read Capacity: {_num(metrics, 'ConsumedReadCapacityUnits'):.0f} units",
            f"Write Capacity: {_num(metrics, 'ConsumedWriteCapacityUnits'):.0f} units",
            f"DB Errors: {db_errors:.0f}",
            "",
        ]
    )
    return lines


def _dynamodb_lines(tables: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    lines: List[str] = []
    for table_name in cfg.services.dynamodb.table_names:
        metrics = tables.get(table_name)
        if metrics is not None:
            lines.extend(_dynamodb_table_lines(table_name, metrics))
    return lines


def _rds_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    cluster_id = cfg.services.rds.cluster_id
    instance_id = cfg.services.rds.db_instance_identifier
    if cluster_id and instance_id:
        header = f"*RDS* {escape_markdown(cluster_id)} / {escape_markdown(instance_id)}"
    elif cluster_id:
        header = f"*RDS Cluster* {escape_markdown(cluster_id)}"
    else:
        header = f"*RDS Instance* {escape_markdown(instance_id)}"
    lines = [header]

    # Metrics whose query failed are absent and their line is left out.
    if instance_id:
        if "Instance_CPUUtilization_Average" in metrics:
            cpu = f"CPU: {_num(metrics, 'Instance_CPUUtilization_Average'):.2f}% (avg)"
            if "Instance_CPUUtilization_Maximum" in metrics:
                cpu += f", {_num(metrics, 'Instance_CPUUtilization_Maximum'):.2f}% (max)"
            lines.append(cpu)
        if "Instance_FreeableMemory" in metrics:
            lines.append(f"Free Memory: {_num(metrics, 'Instance_FreeableMemory'):.2f} GB")
        if "Instance_DatabaseConnections" in metrics:
            lines.append(f"Connections: {_num(metrics, 'Instance_DatabaseConnections'):.0f}")
        if "Instance_ReadLatency" in metrics:
            lines.append(f"Read Latency: {_num(metrics, 'Instance_ReadLatency'):.2f} ms")
        if "Instance_WriteLatency" in metrics:
            lines.append(f"Write Latency: {_num(metrics, 'Instance_WriteLatency'):.2f} ms")
    if cluster_id:
        if "Cluster_VolumeBytesUsed" in metrics:
            lines.append(f"Volume Size: {_num(metrics, 'Cluster_VolumeBytesUsed'):.2f} GB")
        if "Cluster_VolumeReadIOPs" in metrics:
            lines.append(f"Read IOPS: {_num(metrics, 'Cluster_VolumeReadIOPs'):.0f}")
        if "Cluster_VolumeWriteIOPs" in metrics:
            lines.append(f"Write IOPS: {_num(metrics, 'Cluster_VolumeWriteIOPs'):.0f}")
    return lines + [""]


def _waf_lines(metrics: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    return [
        f"*WAF* {escape_markdown(cfg.services.waf.web_acl_name)}",
        f"Allowed Requests: {_num(metrics, 'AllowedRequests'):.0f}",
        f"Blocked Requests: {_num(metrics, 'BlockedRequests'):.0f}",
        "",
    ]


def is_lambda_log_group(name: str) -> bool:
    return name.startswith(LAMBDA_LOG_PREFIX)


def _log_group_lines(groups: Sequence[str], counts: Mapping[str, Any]) -> List[str]:
    lines: List[str] = []
    for group in groups:
        level_counts = counts[group]
        lines.extend(
            [
                f"{escape_markdown(group)}:",
                f"INFO: {int(level_counts.get('info', 0))}",
                f"WARN: {int(level_counts.get('warn', 0))}",
                f"ERROR: {int(level_counts.get('error', 0))}",
                "",
            ]
        )
    return lines


def _logs_lines(counts: Mapping[str, Any], cfg: ReportConfig) -> List[str]:
    present = [g for g in cfg.services.cloudwatch_logs.log_group_names if g in counts]
    application = [g for g in present if not is_lambda_log_group(g)]
    runtime = [g for g in present if is_lambda_log_group(g)]
    lines: List[str] = []
    if application:
        lines.append("*APPLICATION*")
        lines.extend(_log_group_lines(application, counts))
    if runtime:
        lines.append("*LAMBDA*")
        lines.extend(_log_group_lines(runtime, counts))
    return lines


def _section(
    key: str,
    renderer: SectionRenderer,
    report: Mapping[str, Any],
    cfg: ReportConfig,
) -> List[str]:
    data = report.get(key)
    if data is None or not cfg.services.get(key).enabled:
        return []
    try:
        return renderer(data, cfg)
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        LOG.error("Could not render report section", extra={"service": key, "error": str(e)})
        return []


def render_report(report: Mapping[str, Any], cfg: ReportConfig, window: TimeWindow) -> str:
    """
    Render the aggregated metrics as one Telegram Markdown message.

    Sections appear only for enabled services present in the report, in a
    fixed order with fixed line layouts. Identifiers from configuration are
    escaped; labels are not.
    """
    separator = DAILY_SEPARATOR if window.is_daily_report else ROUTINE_SEPARATOR
    lines: List[str] = ["", separator, "", format_report_timestamp(window.end), ""]

    # Agent memory/disk lines continue the EC2 block.
    host_lines = _section("ec2", _ec2_lines, report, cfg) + _section("cloudwatchAgent", _agent_lines, report, cfg)
    if host_lines:
        lines.extend(host_lines + [""])

    if window.is_daily_report:
        lines.extend(_section("s3", _s3_lines, report, cfg))
    lines.extend(_section("alb", _alb_lines, report, cfg))
    lines.extend(_section("cloudfront", _cloudfront_lines, report, cfg))
    lines.extend(_section("dynamodb", _dynamodb_lines, report, cfg))
    lines.extend(_section("rds", _rds_lines, report, cfg))
    lines.extend(_section("waf", _waf_lines, report, cfg))
    lines.extend(_section("cloudwatchLogs", _logs_lines, report, cfg))

    lines.extend([separator, ""])
    return "\n".join(lines)


def report_length_exceeded(text: str, limit: Optional[int] = None) -> bool:
    return len(text) > (limit or TELEGRAM_MAX_MESSAGE_LENGTH)


def section_keys(report: Mapping[str, Any]) -> Dict[str, int]:
    """Number of entries per section, for logging."""
    out: Dict[str, int] = {}
    for key, value in report.items():
        if isinstance(value, Mapping) and value and all(isinstance(v, Mapping) for v in value.values()):
            out[key] = len(value)
        else:
            out[key] = 1
    return out
