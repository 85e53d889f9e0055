from __future__ import annotations

from botocore.exceptions import ClientError, EndpointConnectionError

from telegraws.util.errors import (
    AWSQueryError,
    ConfigError,
    DeliveryError,
    ExitCode,
    ResourceNotFoundError,
    as_exit_code,
    aws_error_code,
    is_aws_error,
    map_aws_error,
)


class DummyBotoError(Exception):
    __module__ = "botocore.exceptions"


def test_map_aws_error_wraps_botocore_errors() -> None:
    err = ClientError({"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "ListMetrics")

    mapped = map_aws_error(err, "ListMetrics AWS/ApplicationELB/RequestCount")

    assert isinstance(mapped, AWSQueryError)
    assert str(mapped).startswith("ListMetrics AWS/ApplicationELB/RequestCount: ")
    assert aws_error_code(err) == "ThrottlingException"


def test_non_aws_errors_are_not_mapped() -> None:
    assert map_aws_error(ValueError("x"), "ctx") is None
    assert not is_aws_error(KeyError("x"))


def test_module_based_detection() -> None:
    assert is_aws_error(DummyBotoError("boom"))
    assert is_aws_error(EndpointConnectionError(endpoint_url="https://monitoring.eu-west-1.amazonaws.com"))
    assert aws_error_code(DummyBotoError("boom")) == "DummyBotoError"


def test_exit_codes() -> None:
    assert as_exit_code(ConfigError("x")) == ExitCode.CONFIG_ERROR
    assert as_exit_code(AWSQueryError("x")) == ExitCode.AWS_ERROR
    assert as_exit_code(DeliveryError("x")) == ExitCode.DELIVERY_ERROR
    assert as_exit_code(ResourceNotFoundError("x")) == ExitCode.RUNTIME_ERROR
    assert as_exit_code(RuntimeError("x")) == 1
