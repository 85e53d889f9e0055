from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AWS_ERROR = 4
    DELIVERY_ERROR = 5
    RUNTIME_ERROR = 6


class TelegrawsError(Exception):
    """Base error for the report pipeline."""


class ConfigError(TelegrawsError):
    """Raised for configuration, timezone or argument issues."""


class ResolutionError(TelegrawsError):
    """Raised when a configured identifier cannot be mapped to a metric dimension."""


class ResourceNotFoundError(ResolutionError):
    """No candidate matched the configured identifier."""


class AmbiguousResourceError(ResolutionError):
    """More than one candidate matched and none could be preferred."""


class AWSQueryError(TelegrawsError):
    """Raised when an AWS API call fails."""


class DeliveryError(TelegrawsError):
    """Raised when the report could not be handed to the messaging endpoint."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AWSQueryError):
        return int(ExitCode.AWS_ERROR)
    if isinstance(exc, DeliveryError):
        return int(ExitCode.DELIVERY_ERROR)
    if isinstance(exc, TelegrawsError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _aws_error_types() -> tuple[type[BaseException], ...]:
    from botocore.exceptions import BotoCoreError, ClientError

    return (ClientError, BotoCoreError)


def is_aws_error(exc: BaseException) -> bool:
    """
    Return True if the exception looks like a botocore/boto3 error.
    """
    if isinstance(exc, _aws_error_types()):
        return True
    module = exc.__class__.__module__
    return module.startswith("botocore.") or module.startswith("boto3.")


def aws_error_code(exc: BaseException) -> str:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        code = (response.get("Error") or {}).get("Code")
        if code:
            return str(code)
    return exc.__class__.__name__


def map_aws_error(exc: BaseException, context: str) -> AWSQueryError | None:
    """
    Wrap AWS SDK errors with AWSQueryError so callers handle one type.
    """
    if not is_aws_error(exc):
        return None
    return AWSQueryError(f"{context}: {exc}")
