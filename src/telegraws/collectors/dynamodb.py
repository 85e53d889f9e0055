from __future__ import annotations

from typing import List

from ..aws.cloudwatch import MetricsQuery
from ..aws.dynamodb import TableDescriber
from ..config import ReportConfig
from ..window import TimeWindow
from .base import CollectorTask, MetricSet, MetricSpec, MetricTable, query_table

SERVICE = "dynamodb"
NAMESPACE = "AWS/DynamoDB"

BILLING_PROVISIONED = 0.0
BILLING_ON_DEMAND = 1.0

TABLE_METRICS = MetricTable(
    namespace=NAMESPACE,
    specs=(
        MetricSpec("ReadThrottleEvents", "Sum"),
        MetricSpec("WriteThrottleEvents", "Sum"),
        MetricSpec("SystemErrors", "Sum"),
        MetricSpec("UserErrors", "Sum"),
        MetricSpec("ConsumedReadCapacityUnits", "Sum"),
        MetricSpec("ConsumedWriteCapacityUnits", "Sum"),
    ),
)

# Only meaningful for provisioned tables; absent from on-demand results.
PROVISIONED_METRICS = MetricTable(
    namespace=NAMESPACE,
    specs=(
        MetricSpec("RequestCount", "Sum"),
        MetricSpec("SuccessfulRequestLatency", "Average"),
    ),
)


def collect_dynamodb(
    metrics: MetricsQuery,
    tables: TableDescriber,
    table_name: str,
    window: TimeWindow,
) -> MetricSet:
    """
    Billing mode and item count come from DescribeTable; everything else
    from CloudWatch.
    """
    description = tables.describe(table_name)
    out: MetricSet = {
        "BillingMode": BILLING_ON_DEMAND if description.on_demand else BILLING_PROVISIONED,
        "ItemCount": float(description.item_count),
    }
    dimensions = [("TableName", table_name)]
    out.update(query_table(metrics, TABLE_METRICS, dimensions, window, service=SERVICE, resource=table_name))
    if not description.on_demand:
        out.update(
            query_table(metrics, PROVISIONED_METRICS, dimensions, window, service=SERVICE, resource=table_name)
        )
    return out


def dynamodb_tasks(cfg: ReportConfig, clients, window: TimeWindow) -> List[CollectorTask]:
    tasks: List[CollectorTask] = []
    for table_name in cfg.services.dynamodb.table_names:
        tasks.append(
            CollectorTask(
                SERVICE,
                table_name,
                lambda name=table_name: collect_dynamodb(clients.metrics, clients.tables, name, window),
            )
        )
    return tasks
