from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from ..util.errors import map_aws_error

BILLING_PROVISIONED = "PROVISIONED"
BILLING_PAY_PER_REQUEST = "PAY_PER_REQUEST"


@dataclass(frozen=True)
class TableDescription:
    billing_mode: str
    item_count: int

    @property
    def on_demand(self) -> bool:
        return self.billing_mode == BILLING_PAY_PER_REQUEST


class TableDescriber(Protocol):
    def describe(self, table_name: str) -> TableDescription:
        ...


class DynamoDBTables:
    """TableDescriber over a boto3 DynamoDB client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def describe(self, table_name: str) -> TableDescription:
        try:
            resp = self._client.describe_table(TableName=table_name)
        except Exception as e:
            mapped = map_aws_error(e, f"DescribeTable {table_name}")
            if mapped:
                raise mapped from e
            raise
        table = resp.get("Table") or {}
        # Tables created as provisioned may omit BillingModeSummary entirely.
        summary = table.get("BillingModeSummary") or {}
        return TableDescription(
            billing_mode=str(summary.get("BillingMode") or BILLING_PROVISIONED),
            item_count=int(table.get("ItemCount") or 0),
        )
