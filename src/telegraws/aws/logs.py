from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..util.errors import map_aws_error
from ..util.time import to_epoch_millis


class LogSearch(Protocol):
    def count_events(self, log_group: str, pattern: str, start: datetime, end: datetime) -> int:
        ...


class CloudWatchLogSearch:
    """LogSearch over a boto3 CloudWatch Logs client (FilterLogEvents, all pages)."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def count_events(self, log_group: str, pattern: str, start: datetime, end: datetime) -> int:
        paginator = self._client.get_paginator("filter_log_events")
        total = 0
        try:
            for page in paginator.paginate(
                logGroupName=log_group,
                filterPattern=pattern,
                startTime=to_epoch_millis(start),
                endTime=to_epoch_millis(end),
            ):
                total += len(page.get("events") or [])
        except Exception as e:
            mapped = map_aws_error(e, f"FilterLogEvents {log_group} {pattern}")
            if mapped:
                raise mapped from e
            raise
        return total
