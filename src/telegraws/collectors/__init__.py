from __future__ import annotations

from typing import Any, Callable, Dict, List

from ..config import ReportConfig
from ..window import TimeWindow
from .agent import agent_tasks
from .alb import alb_tasks
from .base import CollectorResult, CollectorTask, LogCounts, MetricSet
from .cloudfront import cloudfront_tasks
from .dynamodb import dynamodb_tasks
from .ec2 import ec2_tasks
from .logs import logs_tasks
from .rds import rds_tasks
from .s3 import s3_tasks
from .waf import waf_tasks

TaskFactory = Callable[[ReportConfig, Any, TimeWindow], List[CollectorTask]]

__all__ = [
    "CollectorRegistry",
    "CollectorResult",
    "CollectorTask",
    "LogCounts",
    "MetricSet",
    "get_task_factory",
    "is_collector_registered",
    "is_multi_resource",
    "list_registered_services",
    "register_collector",
]


class CollectorRegistry:
    """
    Registry mapping service keys to task factories. A factory turns the
    service's configuration into one task per resource it covers.
    """

    def __init__(self) -> None:
        self._map: Dict[str, TaskFactory] = {}
        self._multi: Dict[str, bool] = {}

    def register(self, service: str, factory: TaskFactory, *, multi_resource: bool = False) -> None:
        self._map[service] = factory
        self._multi[service] = multi_resource

    def is_registered(self, service: str) -> bool:
        return service in self._map

    def registered_services(self) -> list[str]:
        return sorted(self._map.keys())

    def is_multi_resource(self, service: str) -> bool:
        return self._multi.get(service, False)

    def get(self, service: str) -> TaskFactory:
        factory = self._map.get(service)
        if factory is None:
            raise KeyError(f"No collector registered for service {service!r}")
        return factory


_global_registry = CollectorRegistry()


def register_collector(service: str, factory: TaskFactory, *, multi_resource: bool = False) -> None:
    _global_registry.register(service, factory, multi_resource=multi_resource)


def get_task_factory(service: str) -> TaskFactory:
    return _global_registry.get(service)


def is_collector_registered(service: str) -> bool:
    return _global_registry.is_registered(service)


def is_multi_resource(service: str) -> bool:
    return _global_registry.is_multi_resource(service)


def list_registered_services() -> list[str]:
    return _global_registry.registered_services()


def _register_builtin_collectors() -> None:
    register_collector("ec2", ec2_tasks)
    register_collector("s3", s3_tasks)
    register_collector("alb", alb_tasks)
    register_collector("cloudfront", cloudfront_tasks)
    register_collector("cloudwatchAgent", agent_tasks)
    register_collector("cloudwatchLogs", logs_tasks, multi_resource=True)
    register_collector("waf", waf_tasks)
    register_collector("dynamodb", dynamodb_tasks, multi_resource=True)
    register_collector("rds", rds_tasks)


_register_builtin_collectors()
