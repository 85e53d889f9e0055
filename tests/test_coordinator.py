from __future__ import annotations

import pytest

from fakes import FakeClients, FakeLogSearch, FakeMetrics, FakeTables, FakeWebACLs, make_config, make_window, point
from telegraws.aws.dynamodb import TableDescription
from telegraws.collectors import CollectorResult, CollectorTask
from telegraws.coordinator import build_tasks, collect_all, merge_results, run_task

ALL_SERVICES = {
    "ec2": {"enabled": True, "instanceId": "i-1"},
    "s3": {"enabled": True, "bucketName": "assets"},
    "alb": {"enabled": True, "albName": "web"},
    "cloudfront": {"enabled": True, "distributionId": "E1"},
    "cloudwatchAgent": {"enabled": True, "instanceId": "i-1"},
    "cloudwatchLogs": {"enabled": True, "logGroupNames": ["/ecs/app", "/aws/lambda/job"]},
    "waf": {"enabled": True, "webACLId": "id", "webACLName": "acl", "scope": "REGIONAL"},
    "dynamodb": {"enabled": True, "tableNames": ["orders", "sessions"]},
    "rds": {"enabled": True, "clusterId": "aurora"},
}


def _clients(**kwargs) -> FakeClients:
    tables = FakeTables(
        {
            "orders": TableDescription("PAY_PER_REQUEST", 10),
            "sessions": TableDescription("PROVISIONED", 20),
        }
    )
    return FakeClients(
        kwargs.pop("metrics", FakeMetrics({("CPUUtilization", "Average"): [point(12.5)]})),
        tables=kwargs.pop("tables", tables),
        logs=FakeLogSearch({("/ecs/app", "error"): 1}),
        web_acls=kwargs.pop("web_acls", FakeWebACLs([])),
    )


def test_tasks_follow_fixed_service_order_and_skip_s3_on_routine() -> None:
    cfg = make_config(ALL_SERVICES)

    routine = [(t.service, t.resource) for t in build_tasks(cfg, _clients(), make_window())]
    daily = [t.service for t in build_tasks(cfg, _clients(), make_window(daily=True))]

    assert routine == [
        ("ec2", "i-1"),
        ("alb", "web"),
        ("cloudfront", "E1"),
        ("cloudwatchAgent", "i-1"),
        ("cloudwatchLogs", "/ecs/app"),
        ("cloudwatchLogs", "/aws/lambda/job"),
        ("waf", "acl"),
        ("dynamodb", "orders"),
        ("dynamodb", "sessions"),
        ("rds", "aurora"),
    ]
    assert daily[1] == "s3"


def test_disabled_services_produce_no_tasks() -> None:
    cfg = make_config({"ec2": {"enabled": False, "instanceId": "i-1"}})

    assert build_tasks(cfg, _clients(), make_window(daily=True)) == []


def test_waf_without_load_balancer_is_excluded_and_others_present() -> None:
    cfg = make_config(ALL_SERVICES)

    run = collect_all(cfg, make_window(), _clients(web_acls=FakeWebACLs([])), max_workers=4)

    assert "waf" not in run.report
    assert run.report["ec2"]["CPUUtilization_Average"] == 12.5
    assert "rds" in run.report
    assert [(f.service, f.resource) for f in run.failures] == [("alb", "web"), ("waf", "acl")]


def test_alb_failure_keeps_compute_and_storage_sections() -> None:
    cfg = make_config(ALL_SERVICES)
    clients = _clients(web_acls=FakeWebACLs(["arn:alb"]))

    run = collect_all(cfg, make_window(daily=True), clients, max_workers=2)

    assert "alb" not in run.report
    assert "ec2" in run.report
    assert "s3" in run.report
    assert "waf" in run.report


def test_multi_resource_partial_failure_keeps_successful_tables() -> None:
    cfg = make_config(ALL_SERVICES)
    tables = FakeTables({"sessions": TableDescription("PROVISIONED", 20)}, errors=["orders"])

    run = collect_all(cfg, make_window(), _clients(tables=tables), max_workers=3)

    assert list(run.report["dynamodb"]) == ["sessions"]
    assert run.report["cloudwatchLogs"]["/ecs/app"] == {"error": 1, "warn": 0, "info": 0}


def test_multi_resource_all_failed_omits_service() -> None:
    cfg = make_config({"dynamodb": {"enabled": True, "tableNames": ["a", "b"]}})
    tables = FakeTables({}, errors=["a", "b"])

    run = collect_all(cfg, make_window(), _clients(tables=tables), max_workers=2)

    assert run.report == {}
    assert len(run.failures) == 2


def test_run_task_folds_exception_into_result(caplog) -> None:
    def boom():
        raise RuntimeError("kaput")

    with caplog.at_level("ERROR"):
        result = run_task(CollectorTask("rds", "aurora", boom))

    assert not result.ok
    assert result.error == "kaput"
    record = [r for r in caplog.records if r.getMessage() == "Collector failed"][0]
    assert record.service == "rds"
    assert record.resource == "aurora"


def test_interrupt_propagates() -> None:
    def interrupted():
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_task(CollectorTask("ec2", "i-1", interrupted))


def test_merge_results_nests_multi_resource_services() -> None:
    results = [
        CollectorResult("ec2", "i-1", metrics={"NetworkIn": 1.0}),
        CollectorResult("dynamodb", "orders", metrics={"ItemCount": 3.0}),
        CollectorResult("dynamodb", "sessions", error="denied"),
    ]

    assert merge_results(results) == {"ec2": {"NetworkIn": 1.0}, "dynamodb": {"orders": {"ItemCount": 3.0}}}


def test_on_result_sees_every_collector() -> None:
    cfg = make_config(ALL_SERVICES)
    seen = []

    run = collect_all(cfg, make_window(), _clients(), max_workers=4, on_result=seen.append)

    assert len(seen) == len(run.results) == 10
