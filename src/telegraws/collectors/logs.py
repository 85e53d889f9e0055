from __future__ import annotations

from typing import List

from ..aws.logs import LogSearch
from ..config import ReportConfig
from ..logging import get_logger
from ..util.errors import AWSQueryError
from ..window import TimeWindow
from .base import CollectorTask, LogCounts

LOG = get_logger(__name__)

SERVICE = "cloudwatchLogs"

# Structured JSON logs with a "level" field.
LEVEL_PATTERNS = (
    ("error", '{ $.level = "error" }'),
    ("warn", '{ $.level = "warn" }'),
    ("info", '{ $.level = "info" }'),
)


def collect_log_counts(search: LogSearch, log_group: str, window: TimeWindow) -> LogCounts:
    """
    Count error/warn/info events in one log group. A failed search counts 0
    for that level and does not fail the collector.
    """
    counts: LogCounts = {}
    for level, pattern in LEVEL_PATTERNS:
        try:
            counts[level] = search.count_events(log_group, pattern, window.start, window.end)
        except AWSQueryError as e:
            LOG.warning(
                "Log search failed",
                extra={"service": SERVICE, "resource": log_group, "level": level, "error": str(e)},
            )
            counts[level] = 0
    return counts


def logs_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    return [
        CollectorTask(SERVICE, group, lambda name=group: collect_log_counts(clients.logs, name, window))
        for group in cfg.services.cloudwatch_logs.log_group_names
    ]
