from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fakes import make_config, make_window
from telegraws.report import DAILY_SEPARATOR, ROUTINE_SEPARATOR, escape_markdown, is_lambda_log_group, render_report

END = datetime(2024, 5, 6, 9, 5, 7, tzinfo=timezone.utc)


def test_escape_markdown_only_touches_underscore_and_star() -> None:
    assert escape_markdown("my_bucket*name[1]") == "my\\_bucket\\*name[1]"


def test_routine_frame_and_timestamp() -> None:
    text = render_report({}, make_config(), make_window(end=END))

    assert text == f"\n{ROUTINE_SEPARATOR}\n\n06/05/2024 09:05:07\n\n{ROUTINE_SEPARATOR}\n"


def test_daily_frame_uses_daily_separator() -> None:
    text = render_report({}, make_config(), make_window(daily=True, end=END))

    assert text.startswith(f"\n{DAILY_SEPARATOR}\n\n")
    assert text.endswith(f"{DAILY_SEPARATOR}\n")
    assert ROUTINE_SEPARATOR not in text


def test_ec2_and_agent_block() -> None:
    cfg = make_config(
        {
            "ec2": {"enabled": True, "instanceId": "i-1"},
            "cloudwatchAgent": {"enabled": True, "instanceId": "i-1"},
        }
    )
    report = {
        "ec2": {
            "CPUUtilization_Average": 12.5,
            "CPUUtilization_Maximum": 80.0,
            "StatusCheckFailed": 0.0,
            "NetworkIn": 0.0,
            "NetworkOut": 1.234,
        },
        "cloudwatchAgent": {
            "mem_used_percent_Average": 40.0,
            "mem_used_percent_Maximum": 55.5,
            "disk_used_percent": 63.5,
        },
    }

    text = render_report(report, cfg, make_window(end=END))

    assert (
        "*EC2*: i-1\n"
        "CPU: 12.50% (avg), 80.00% (max)\n"
        "Status Checks Failed: 0\n"
        "Network In: 0.00 MB\n"
        "Network Out: 1.23 MB\n"
        "Memory: 40.00% (avg), 55.50% (max)\n"
        "Disk: 63.50%\n"
        "\n"
    ) in text


def test_dynamodb_on_demand_shows_not_applicable() -> None:
    cfg = make_config({"dynamodb": {"enabled": True, "tableNames": ["user_sessions"]}})
    report = {
        "dynamodb": {
            "user_sessions": {
                "BillingMode": 1.0,
                "ItemCount": 1500.0,
                "ReadThrottleEvents": 2.0,
                "WriteThrottleEvents": 0.0,
                "SystemErrors": 1.0,
                "UserErrors": 3.0,
                "ConsumedReadCapacityUnits": 10.0,
                "ConsumedWriteCapacityUnits": 4.0,
            }
        }
    }

    text = render_report(report, cfg, make_window(end=END))

    assert "*DynamoDB* user\\_sessions\n" in text
    assert "Total Requests: N/A (On-Demand)\n" in text
    assert "Latency: N/A\n" in text
    assert " ms\n" not in text
    assert "Items: 1500\n" in text
    assert "Read Throttles: 2\n" in text
    assert "DB Errors: 4\n" in text


def test_dynamodb_provisioned_shows_requests_and_latency() -> None:
    cfg = make_config({"dynamodb": {"enabled": True, "tableNames": ["orders"]}})
    report = {"dynamodb": {"orders": {"BillingMode": 0.0, "RequestCount": 99.0, "SuccessfulRequestLatency": 4.5}}}

    text = render_report(report, cfg, make_window(end=END))

    assert "Total Requests: 99\nLatency: 4.50 ms\nItems: 0\n" in text


def test_s3_rendered_only_on_daily_reports() -> None:
    cfg = make_config({"s3": {"enabled": True, "bucketName": "my_assets"}})
    report = {"s3": {"BucketSizeMB": 12.5, "NumberOfObjects": 10.0}}

    routine = render_report(report, cfg, make_window(end=END))
    daily = render_report(report, cfg, make_window(daily=True, end=END))

    assert "*S3*" not in routine
    assert "*S3* my\\_assets\nSize: 12.50 MB\nObjects: 10\n\n" in daily


def test_missing_section_is_skipped_and_order_is_fixed() -> None:
    cfg = make_config(
        {
            "alb": {"enabled": True, "albName": "web"},
            "waf": {"enabled": True, "webACLId": "id", "webACLName": "edge_acl"},
            "cloudfront": {"enabled": True, "distributionId": "E1"},
        }
    )
    report = {
        "waf": {"AllowedRequests": 5.0, "BlockedRequests": 1.0},
        "alb": {"RequestCount": 10.0, "TargetResponseTime": 0.1234, "HTTPCode_ELB_4XX_Count": 2.0, "HTTPCode_ELB_5XX_Count": 1.0},
    }

    text = render_report(report, cfg, make_window(end=END))

    assert "*CloudFront*" not in text
    assert text.index("*ALB* web") < text.index("*WAF* edge\\_acl")
    assert "Response Time: 0.123 s\n" in text
    assert "ALB Errors: 3\n" in text
    assert "Blocked Requests: 1\n" in text


def test_disabled_service_not_rendered_even_if_present() -> None:
    cfg = make_config({"alb": {"enabled": False, "albName": "web"}})

    text = render_report({"alb": {"RequestCount": 1.0}}, cfg, make_window(end=END))

    assert "*ALB*" not in text


def test_rds_lines_only_for_present_metrics() -> None:
    cfg = make_config({"rds": {"enabled": True, "clusterId": "aurora_main", "dbInstanceIdentifier": "aurora-1"}})
    report = {
        "rds": {
            "Instance_CPUUtilization_Average": 20.0,
            "Instance_FreeableMemory": 1.5,
            "Cluster_VolumeReadIOPs": 300.0,
        }
    }

    text = render_report(report, cfg, make_window(end=END))

    assert "*RDS* aurora\\_main / aurora-1\nCPU: 20.00% (avg)\nFree Memory: 1.50 GB\nRead IOPS: 300\n\n" in text
    assert "Connections" not in text


def test_logs_split_into_application_and_lambda_in_configured_order() -> None:
    cfg = make_config(
        {
            "cloudwatchLogs": {
                "enabled": True,
                "logGroupNames": ["/aws/lambda/worker_job", "/ecs/api", "/ecs/web"],
            }
        }
    )
    report = {
        "cloudwatchLogs": {
            "/ecs/web": {"error": 0, "warn": 1, "info": 2},
            "/aws/lambda/worker_job": {"error": 3, "warn": 0, "info": 9},
            "/ecs/api": {"error": 5, "warn": 6, "info": 7},
        }
    }

    text = render_report(report, cfg, make_window(end=END))

    assert (
        "*APPLICATION*\n"
        "/ecs/api:\nINFO: 7\nWARN: 6\nERROR: 5\n\n"
        "/ecs/web:\nINFO: 2\nWARN: 1\nERROR: 0\n\n"
        "*LAMBDA*\n"
        "/aws/lambda/worker\\_job:\nINFO: 9\nWARN: 0\nERROR: 3\n\n"
    ) in text


def test_identifiers_never_reach_output_unescaped() -> None:
    cfg = make_config(
        {
            "ec2": {"enabled": True, "instanceId": "i_1*"},
            "cloudfront": {"enabled": True, "distributionId": "E_1"},
        }
    )
    report = {"ec2": {}, "cloudfront": {}}

    text = render_report(report, cfg, make_window(end=END))

    assert "*EC2*: i\\_1\\*\n" in text
    assert "*CloudFront* E\\_1\n" in text


def test_malformed_section_is_skipped_not_raised() -> None:
    cfg = make_config({"ec2": {"enabled": True, "instanceId": "i-1"}, "alb": {"enabled": True, "albName": "web"}})

    text = render_report({"ec2": {"NetworkIn": "lots"}, "alb": {}}, cfg, make_window(end=END))

    assert "*EC2*" not in text
    assert "*ALB* web" in text


@pytest.mark.parametrize(
    "group, expected",
    [
        ("/aws/lambda/worker", True),
        ("/aws/lambda-edge/us-east-1.viewer", False),
        ("/shared/aws/lambda/worker", False),
        ("/ecs/api", False),
    ],
)
def test_lambda_log_groups_are_matched_by_prefix(group, expected) -> None:
    assert is_lambda_log_group(group) is expected
