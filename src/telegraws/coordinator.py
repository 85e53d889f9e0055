from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Union

from .collectors import (
    CollectorResult,
    CollectorTask,
    LogCounts,
    MetricSet,
    get_task_factory,
    is_multi_resource,
)
from .config import SERVICE_KEYS, ReportConfig
from .logging import get_logger
from .util.concurrency import parallel_map_ordered
from .window import TimeWindow

LOG = get_logger(__name__)

# Collected only on daily cycles; the backend publishes these once a day.
DAILY_ONLY_SERVICES = frozenset({"s3"})

AggregatedReport = Dict[str, Union[MetricSet, Dict[str, Union[MetricSet, LogCounts]]]]


@dataclass(frozen=True)
class CollectionRun:
    report: AggregatedReport
    results: List[CollectorResult] = field(default_factory=list)

    @property
    def failures(self) -> List[CollectorResult]:
        return [r for r in self.results if not r.ok]


def build_tasks(cfg: ReportConfig, clients: Any, window: TimeWindow) -> List[CollectorTask]:
    """
    One task per (service, resource) for every enabled service, in the fixed
    service order.
    """
    tasks: List[CollectorTask] = []
    for key in SERVICE_KEYS:
        if not cfg.services.get(key).enabled:
            continue
        if key in DAILY_ONLY_SERVICES and not window.is_daily_report:
            LOG.debug("Skipping daily-only service on routine cycle", extra={"service": key})
            continue
        tasks.extend(get_task_factory(key)(cfg, clients, window))
    return tasks


def run_task(task: CollectorTask) -> CollectorResult:
    """
    Run one collector and fold any failure into the result so it cannot
    affect other collectors.
    """
    started = perf_counter()
    try:
        metrics = task.run()
    except Exception as e:
        duration_ms = int((perf_counter() - started) * 1000)
        LOG.error(
            "Collector failed",
            extra={
                "service": task.service,
                "resource": task.resource,
                "error": str(e),
                "error_type": e.__class__.__name__,
                "duration_ms": duration_ms,
            },
        )
        return CollectorResult(task.service, task.resource, error=str(e), duration_ms=duration_ms)
    duration_ms = int((perf_counter() - started) * 1000)
    LOG.debug(
        "Collector finished",
        extra={"service": task.service, "resource": task.resource, "duration_ms": duration_ms},
    )
    return CollectorResult(task.service, task.resource, metrics=metrics, duration_ms=duration_ms)


def merge_results(results: List[CollectorResult]) -> AggregatedReport:
    """
    Fold successful results into the report. Multi-resource services nest
    per resource and are left out entirely when nothing succeeded.
    """
    report: AggregatedReport = {}
    for result in results:
        if not result.ok or result.metrics is None:
            continue
        if is_multi_resource(result.service):
            group = report.setdefault(result.service, {})
            group[result.resource] = result.metrics  # type: ignore[index]
        else:
            report[result.service] = result.metrics
    return report


def collect_all(
    cfg: ReportConfig,
    window: TimeWindow,
    clients: Any,
    *,
    max_workers: Optional[int] = None,
    on_result: Optional[Callable[[CollectorResult], None]] = None,
) -> CollectionRun:
    """
    Run every enabled collector on a bounded thread pool and build the
    AggregatedReport from the ones that succeeded.

    Interrupts (KeyboardInterrupt, SystemExit) propagate after pending
    collectors are cancelled.
    """
    tasks = build_tasks(cfg, clients, window)
    workers = max_workers or cfg.workers
    LOG.info(
        "Collecting metrics",
        extra={"tasks": len(tasks), "workers": workers, "daily": window.is_daily_report},
    )
    results = parallel_map_ordered(run_task, tasks, workers, on_result=on_result)
    report = merge_results(results)
    failed = sum(1 for r in results if not r.ok)
    if failed:
        LOG.warning(
            "Some collectors failed; their sections are left out",
            extra={"failed": failed, "succeeded": len(results) - failed},
        )
    return CollectionRun(report=report, results=results)
