from __future__ import annotations

from telegraws.aws import clients as aws_clients
from telegraws.aws.clients import GLOBAL_REGION, AwsClients
from telegraws.config import AwsConfig


def test_client_cache_reuses_by_service_and_region() -> None:
    calls = []

    def factory(service, region):
        calls.append((service, region))
        return object()

    clients = AwsClients(factory=factory)

    c1 = clients.client("cloudwatch")
    c2 = clients.client("cloudwatch")
    c3 = clients.client("cloudwatch", GLOBAL_REGION)

    assert c1 is c2
    assert c1 is not c3
    assert calls == [("cloudwatch", None), ("cloudwatch", GLOBAL_REGION)]

    clients.clear()
    clients.client("cloudwatch")
    assert len(calls) == 3


def test_capabilities_route_global_services_to_us_east_1() -> None:
    calls = []
    clients = AwsClients(factory=lambda service, region: calls.append((service, region)) or object())

    clients.global_metrics
    clients.metrics_for_scope("CLOUDFRONT")
    clients.web_acls("CLOUDFRONT")
    clients.web_acls("REGIONAL")
    clients.logs
    clients.tables

    assert calls == [
        ("cloudwatch", GLOBAL_REGION),
        ("wafv2", GLOBAL_REGION),
        ("wafv2", None),
        ("logs", None),
        ("dynamodb", None),
    ]


def test_session_gets_single_attempt_client_config(monkeypatch) -> None:
    created = []

    class _FakeSession:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

        def client(self, service, region_name=None, config=None):
            created.append((service, region_name, config))
            return object()

    monkeypatch.setattr(aws_clients.boto3, "Session", _FakeSession)

    clients = AwsClients.from_config(AwsConfig(region="eu-west-1", profile="ops"))
    clients.client("cloudwatch")

    assert clients._session.kwargs == {"profile_name": "ops", "region_name": "eu-west-1"}
    service, region, config = created[0]
    assert (service, region) == ("cloudwatch", None)
    assert config is aws_clients.CLIENT_CONFIG
    assert config.retries["total_max_attempts"] == 1
