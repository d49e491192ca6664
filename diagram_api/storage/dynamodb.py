"""DynamoDB catalog implementation."""

import asyncio
import json
from decimal import Decimal
from typing import Any
from urllib.parse import parse_qs, urlparse

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..exceptions import StorageError
from ..models import partition_key
from ..types import CatalogRow


def _to_dynamodb(value: Any) -> Any:
    """DynamoDB rejects floats, so round-trip through JSON with Decimal floats."""
    return json.loads(json.dumps(value), parse_float=Decimal)


def _from_dynamodb(value: Any) -> Any:
    """Turn the Decimals boto3 hands back into plain ints and floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamodb(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamodb(v) for v in value]
    return value


class DynamoDBMetadataStore:
    """Single-table DynamoDB catalog keyed by PK (owner) and SK (timestamp + id)."""

    def __init__(self, database_url: str):
        """Initialize DynamoDB catalog.

        Args:
            database_url: DynamoDB URL in format: dynamodb://table_name?region=us-east-1
        """
        parsed = urlparse(database_url)
        self.table_name = parsed.netloc or parsed.path.lstrip("/")
        self.region = parse_qs(parsed.query).get("region", [None])[0]
        self.table = None

    async def startup(self) -> None:
        """Initialize DynamoDB table reference."""
        import boto3

        resource = boto3.resource("dynamodb", region_name=self.region)
        self.table = resource.Table(self.table_name)
        logger.info(f"Connected to DynamoDB table: {self.table_name} in {self.region}")

    async def shutdown(self) -> None:
        """No cleanup needed for DynamoDB."""
        pass

    async def put(self, row: CatalogRow) -> None:
        """Write a catalog row.

        Args:
            row: Complete catalog row including PK and SK.
        """
        item = _to_dynamodb(dict(row))
        await self._run("put_item", lambda: self.table.put_item(Item=item))

    async def query_by_partition(
        self, owner_id: str, descending: bool = True, diagram_id: str | None = None
    ) -> list[CatalogRow]:
        """Query an owner's partition, following pagination.

        Args:
            owner_id: Owner whose partition is read.
            descending: Most recent first when True.
            diagram_id: Optional filter on the diagramId attribute.

        Returns:
            Catalog rows in sort key order.
        """
        from boto3.dynamodb.conditions import Attr, Key

        params: dict[str, Any] = {
            "KeyConditionExpression": Key("PK").eq(partition_key(owner_id)),
            "ScanIndexForward": not descending,
        }
        if diagram_id is not None:
            params["FilterExpression"] = Attr("diagramId").eq(diagram_id)

        def _query_dynamodb() -> list[CatalogRow]:
            items: list[CatalogRow] = []
            kwargs = dict(params)
            while True:
                response = self.table.query(**kwargs)
                items.extend(_from_dynamodb(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key

        return await self._run("query", _query_dynamodb)

    async def delete_by_key(self, partition_key: str, sort_key: str) -> None:
        """Remove a single row by its primary key."""
        await self._run(
            "delete_item",
            lambda: self.table.delete_item(Key={"PK": partition_key, "SK": sort_key}),
        )

    async def health_check(self) -> bool:
        """Check if DynamoDB is accessible.

        Returns:
            True if DynamoDB is healthy, False otherwise.
        """
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, lambda: self.table.table_status)
            return True
        except (AttributeError, BotoCoreError, ClientError) as e:
            logger.warning(f"DynamoDB health check failed: {e}")
            return False

    async def _run(self, action: str, call: Any) -> Any:
        """Run a blocking boto3 call in the default executor."""
        if self.table is None:
            raise StorageError("DynamoDB catalog used before startup")
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, call)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"DynamoDB {action} failed on {self.table_name}: {e}")
            raise StorageError(f"Catalog {action} failed: {e}") from e
